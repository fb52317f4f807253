"""
Coach API - Auth Middleware

FastAPI dependencies that turn a bearer token into an AuthContext.
"""

from typing import Optional, Tuple

import jwt
from fastapi import Depends, Header, Request

from ..core.errors import (
    InvalidTokenError,
    MissingTokenError,
    PermissionDeniedError,
)
from ..core.models import Tier
from ..db.models import AuthContext
from ..db.services import get_user_store
from ..observability.logging import get_logger
from ..observability.middleware import bind_principal, get_request_id
from .config import (
    AuthMode,
    DEV_TOKEN_PREFIX,
    JWT_AUDIENCE,
    get_admin_user_ids,
    get_auth_mode,
    get_default_dev_tier,
    get_jwt_secret,
)


logger = get_logger(__name__)


def parse_dev_token(token: str, mode: AuthMode) -> Tuple[str, str]:
    """
    Split a development token into (user_id, tier).

    "coach_essential_alice" -> ("alice", "essential")
    "coach_alice"           -> ("alice", <mode default tier>)
    """
    body = token[len(DEV_TOKEN_PREFIX):]
    tier_part, sep, user_part = body.partition("_")
    tier = Tier.parse(tier_part)

    if tier is not None and sep and user_part:
        return user_part, tier.value
    return body, get_default_dev_tier(mode)


def _context_from_dev_token(token: str, mode: AuthMode, request_id: str) -> AuthContext:
    if not token.startswith(DEV_TOKEN_PREFIX) or len(token) <= len(DEV_TOKEN_PREFIX):
        raise InvalidTokenError(
            message=f"Invalid token format. Development tokens start with '{DEV_TOKEN_PREFIX}'",
            request_id=request_id,
        )

    user_id, tier = parse_dev_token(token, mode)
    return AuthContext(
        user_id=user_id,
        tier=tier,
        is_admin=mode == AuthMode.LOCAL or user_id in get_admin_user_ids(),
        request_id=request_id,
    )


async def _context_from_jwt(token: str, request_id: str) -> AuthContext:
    """
    Verify a Supabase access token and load the user's tier (production).

    Raises:
        InvalidTokenError: If the token is malformed, expired or unsigned
    """
    secret = get_jwt_secret()
    if not secret:
        # validate_security_config() blocks this at startup
        raise InvalidTokenError(message="Token verification is not configured", request_id=request_id)

    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            audience=JWT_AUDIENCE,
        )
    except jwt.ExpiredSignatureError:
        raise InvalidTokenError(message="Token has expired", request_id=request_id)
    except jwt.InvalidTokenError as e:
        logger.info("Rejected access token", reason=type(e).__name__)
        raise InvalidTokenError(request_id=request_id)

    user_id = claims.get("sub")
    if not user_id:
        raise InvalidTokenError(message="Token has no subject", request_id=request_id)

    user = await get_user_store().get_user(user_id)
    tier = user.tier if user else Tier.GUEST.value

    return AuthContext(
        user_id=user_id,
        tier=tier,
        email=(user.email if user else None) or claims.get("email"),
        is_admin=user_id in get_admin_user_ids(),
        request_id=request_id,
    )


async def get_auth_context(
    request: Request,
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> AuthContext:
    """
    FastAPI dependency that validates the bearer token.

    Usage:
        @router.get("/quota")
        async def quota(auth: AuthContext = Depends(get_auth_context)):
            ...

    Behavior by mode:
    - PROD: HS256 JWT verified with SUPABASE_JWT_SECRET; tier from the user store
    - LOCAL/TEST: coach_<tier>_<user> tokens, no database

    Raises:
        MissingTokenError: No Authorization header
        InvalidTokenError: Token rejected
    """
    request_id = get_request_id(request)

    if not authorization:
        raise MissingTokenError(request_id=request_id)

    token = authorization[7:] if authorization.startswith("Bearer ") else authorization
    token = token.strip()
    if not token:
        raise MissingTokenError(request_id=request_id)

    mode = get_auth_mode()
    if mode == AuthMode.PROD:
        auth = await _context_from_jwt(token, request_id)
    else:
        auth = _context_from_dev_token(token, mode, request_id)

    auth.trace_id = getattr(request.state, "trace_id", "")
    bind_principal(request, auth.user_id, auth.tier)
    return auth


async def require_admin(auth: AuthContext = Depends(get_auth_context)) -> AuthContext:
    """
    Dependency for operator endpoints.

    Raises:
        PermissionDeniedError: Caller is not listed in ADMIN_USER_IDS
    """
    if not auth.is_admin:
        raise PermissionDeniedError("admin", request_id=auth.request_id)
    return auth
