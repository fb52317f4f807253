"""
Coach API - Authentication Module

Bearer token validation and principal context for requests.
"""

from .middleware import (
    get_auth_context,
    require_admin,
    parse_dev_token,
)
from .config import AuthMode, get_auth_mode, validate_security_config

__all__ = [
    "get_auth_context",
    "require_admin",
    "parse_dev_token",
    "AuthMode",
    "get_auth_mode",
    "validate_security_config",
]
