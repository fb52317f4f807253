"""
Coach API - User Store

Reads and writes subscription state on the `users` table.

Expected columns: id, email, tier, stripe_customer_id, subscription_id,
subscription_status, payment_status, last_payment_date, updated_at.
"""

from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Optional

from ..observability.logging import get_logger
from .connection import DatabasePool
from .models import UserAccount


logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserStore(ABC):
    """User lookups and subscription updates."""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserAccount]:
        pass

    @abstractmethod
    async def get_user_by_customer(self, customer_id: str) -> Optional[UserAccount]:
        """Find the user linked to a Stripe customer id."""
        pass

    @abstractmethod
    async def update_subscription(
        self,
        user_id: str,
        tier: str,
        subscription_status: Optional[str],
        subscription_id: Optional[str],
    ) -> Optional[UserAccount]:
        """Set tier and subscription fields. Returns the updated user, or None."""
        pass

    @abstractmethod
    async def record_payment(
        self,
        user_id: str,
        status: str,
        paid_at: Optional[datetime] = None,
    ) -> Optional[UserAccount]:
        """Set payment_status, and last_payment_date when paid_at is given."""
        pass

    @abstractmethod
    async def upsert_user(self, account: UserAccount) -> UserAccount:
        pass


class InMemoryUserStore(UserStore):
    """Dict-backed store for local and test modes."""

    def __init__(self):
        self._users: Dict[str, UserAccount] = {}

    async def get_user(self, user_id: str) -> Optional[UserAccount]:
        return self._users.get(user_id)

    async def get_user_by_customer(self, customer_id: str) -> Optional[UserAccount]:
        for user in self._users.values():
            if user.stripe_customer_id == customer_id:
                return user
        return None

    async def update_subscription(
        self,
        user_id: str,
        tier: str,
        subscription_status: Optional[str],
        subscription_id: Optional[str],
    ) -> Optional[UserAccount]:
        user = self._users.get(user_id)
        if user is None:
            return None
        updated = replace(
            user,
            tier=tier,
            subscription_status=subscription_status,
            subscription_id=subscription_id,
            updated_at=_utcnow(),
        )
        self._users[user_id] = updated
        return updated

    async def record_payment(
        self,
        user_id: str,
        status: str,
        paid_at: Optional[datetime] = None,
    ) -> Optional[UserAccount]:
        user = self._users.get(user_id)
        if user is None:
            return None
        updated = replace(
            user,
            payment_status=status,
            last_payment_date=paid_at or user.last_payment_date,
            updated_at=_utcnow(),
        )
        self._users[user_id] = updated
        return updated

    async def upsert_user(self, account: UserAccount) -> UserAccount:
        self._users[account.id] = account
        return account


class PostgresUserStore(UserStore):
    """User store backed by the managed Postgres database."""

    COLUMNS = """
        id, email, tier, stripe_customer_id, subscription_id,
        subscription_status, payment_status, last_payment_date, updated_at
    """

    def __init__(self, db: DatabasePool):
        self.db = db

    async def get_user(self, user_id: str) -> Optional[UserAccount]:
        record = await self.db.fetchrow(
            f"SELECT {self.COLUMNS} FROM users WHERE id = $1",
            user_id,
        )
        return UserAccount.from_record(record) if record else None

    async def get_user_by_customer(self, customer_id: str) -> Optional[UserAccount]:
        record = await self.db.fetchrow(
            f"SELECT {self.COLUMNS} FROM users WHERE stripe_customer_id = $1",
            customer_id,
        )
        return UserAccount.from_record(record) if record else None

    async def update_subscription(
        self,
        user_id: str,
        tier: str,
        subscription_status: Optional[str],
        subscription_id: Optional[str],
    ) -> Optional[UserAccount]:
        record = await self.db.fetchrow(
            f"""
            UPDATE users
            SET tier = $2,
                subscription_status = $3,
                subscription_id = $4,
                updated_at = NOW()
            WHERE id = $1
            RETURNING {self.COLUMNS}
            """,
            user_id,
            tier,
            subscription_status,
            subscription_id,
        )
        if record is None:
            logger.warning("Subscription update matched no user", user_id=user_id)
            return None
        return UserAccount.from_record(record)

    async def record_payment(
        self,
        user_id: str,
        status: str,
        paid_at: Optional[datetime] = None,
    ) -> Optional[UserAccount]:
        record = await self.db.fetchrow(
            f"""
            UPDATE users
            SET payment_status = $2,
                last_payment_date = COALESCE($3, last_payment_date),
                updated_at = NOW()
            WHERE id = $1
            RETURNING {self.COLUMNS}
            """,
            user_id,
            status,
            paid_at,
        )
        return UserAccount.from_record(record) if record else None

    async def upsert_user(self, account: UserAccount) -> UserAccount:
        record = await self.db.fetchrow(
            f"""
            INSERT INTO users (
                id, email, tier, stripe_customer_id, subscription_id,
                subscription_status, payment_status, last_payment_date, updated_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, NOW())
            ON CONFLICT (id) DO UPDATE SET
                email = EXCLUDED.email,
                tier = EXCLUDED.tier,
                stripe_customer_id = EXCLUDED.stripe_customer_id,
                subscription_id = EXCLUDED.subscription_id,
                subscription_status = EXCLUDED.subscription_status,
                payment_status = EXCLUDED.payment_status,
                last_payment_date = EXCLUDED.last_payment_date,
                updated_at = NOW()
            RETURNING {self.COLUMNS}
            """,
            account.id,
            account.email,
            account.tier,
            account.stripe_customer_id,
            account.subscription_id,
            account.subscription_status,
            account.payment_status,
            account.last_payment_date,
        )
        return UserAccount.from_record(record)


# Global store, chosen at startup
_user_store: Optional[UserStore] = None


def get_user_store() -> UserStore:
    """Get the global user store, defaulting to an in-memory one."""
    global _user_store
    if _user_store is None:
        _user_store = InMemoryUserStore()
    return _user_store


def set_user_store(store: Optional[UserStore]):
    """Set the global user store (startup and tests)."""
    global _user_store
    _user_store = store
