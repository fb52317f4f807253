"""
Coach API - Database Layer

Async access to the managed user database.
"""

from .connection import DatabasePool, init_db, close_db, get_db, get_db_optional
from .models import UserAccount, AuthContext
from .services import (
    UserStore,
    InMemoryUserStore,
    PostgresUserStore,
    get_user_store,
    set_user_store,
)

__all__ = [
    "DatabasePool",
    "init_db",
    "close_db",
    "get_db",
    "get_db_optional",
    "UserAccount",
    "AuthContext",
    "UserStore",
    "InMemoryUserStore",
    "PostgresUserStore",
    "get_user_store",
    "set_user_store",
]
