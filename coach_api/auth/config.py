"""
Coach API - Auth Configuration

Local vs production mode for authentication, plus startup safety checks.
"""

import os
from enum import Enum
from typing import List, Set

from ..core.models import Tier


class AuthMode(str, Enum):
    """Authentication mode."""

    LOCAL = "local"  # coach_<tier>_<user> tokens, unknown tier means power
    PROD = "prod"    # Supabase JWT, tier from the user table
    TEST = "test"    # coach_<tier>_<user> tokens, unknown tier means guest


def get_auth_mode() -> AuthMode:
    """
    Current authentication mode from MODE.

    MODE must be one of: local, prod/production, test.
    Default: prod, so a missing variable never relaxes auth.
    """
    mode = os.getenv("MODE", "prod").lower().strip()
    if mode in {"prod", "production"}:
        return AuthMode.PROD
    if mode == "local":
        return AuthMode.LOCAL
    if mode == "test":
        return AuthMode.TEST
    raise ValueError("Invalid MODE. Use one of: local, prod, production, test")


def is_local_mode() -> bool:
    return get_auth_mode() == AuthMode.LOCAL


def is_test_mode() -> bool:
    return get_auth_mode() == AuthMode.TEST


def is_prod_mode() -> bool:
    return get_auth_mode() == AuthMode.PROD


# Prefix of development tokens accepted in local/test mode
DEV_TOKEN_PREFIX = "coach_"

# Claim audience Supabase puts on user access tokens
JWT_AUDIENCE = "authenticated"


def get_default_dev_tier(mode: AuthMode) -> str:
    """Tier for dev tokens that do not name a known tier."""
    return Tier.POWER.value if mode == AuthMode.LOCAL else Tier.GUEST.value


def get_jwt_secret() -> str:
    return os.getenv("SUPABASE_JWT_SECRET", "")


def get_admin_user_ids() -> Set[str]:
    """Parse ADMIN_USER_IDS from environment."""
    raw = os.getenv("ADMIN_USER_IDS", "")
    return {uid.strip() for uid in raw.split(",") if uid.strip()}


def use_stub_adapters() -> bool:
    return os.getenv("USE_STUB_ADAPTERS", "false").lower() in {"1", "true", "yes"}


def get_cors_allowed_origins() -> List[str]:
    """Parse CORS_ALLOW_ORIGINS from environment."""
    raw = os.getenv("CORS_ALLOW_ORIGINS", "")
    if not raw.strip():
        return []
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def validate_security_config() -> None:
    """Fail closed for unsafe production startup configuration."""
    mode = get_auth_mode()
    if mode in {AuthMode.LOCAL, AuthMode.TEST}:
        return

    if use_stub_adapters():
        raise RuntimeError("USE_STUB_ADAPTERS is not allowed in production mode")

    if not os.getenv("DATABASE_URL"):
        raise RuntimeError("DATABASE_URL is required in production mode")

    if not get_jwt_secret():
        raise RuntimeError("SUPABASE_JWT_SECRET is required in production mode")

    origins = get_cors_allowed_origins()
    if not origins:
        raise RuntimeError("CORS_ALLOW_ORIGINS must be set in production mode")
    if "*" in origins:
        raise RuntimeError("CORS_ALLOW_ORIGINS cannot include '*' in production mode")
