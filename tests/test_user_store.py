"""
Coach API - User Store Tests

In-memory store semantics, the Postgres store's queries against a fake
pool, and pool lifecycle guards.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from coach_api.db import (
    DatabasePool,
    InMemoryUserStore,
    PostgresUserStore,
    UserAccount,
    get_db,
    get_db_optional,
    get_user_store,
    set_user_store,
)


PAID_AT = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


def _row(**overrides):
    row = {
        "id": "user-1",
        "email": "u1@example.com",
        "tier": "essential",
        "stripe_customer_id": "cus_1",
        "subscription_id": "sub_1",
        "subscription_status": "active",
        "payment_status": None,
        "last_payment_date": None,
        "updated_at": None,
    }
    row.update(overrides)
    return row


# ============================================================
# In-memory store
# ============================================================

class TestInMemoryUserStore:

    @pytest.fixture
    def store(self):
        return InMemoryUserStore()

    @pytest.mark.asyncio
    async def test_lookup_by_customer(self, store):
        await store.upsert_user(UserAccount(id="alice", stripe_customer_id="cus_a"))

        assert (await store.get_user_by_customer("cus_a")).id == "alice"
        assert await store.get_user_by_customer("cus_missing") is None

    @pytest.mark.asyncio
    async def test_update_subscription(self, store):
        await store.upsert_user(UserAccount(id="alice", tier="essential"))

        updated = await store.update_subscription("alice", "power", "active", "sub_9")

        assert updated.tier == "power"
        assert updated.subscription_id == "sub_9"
        assert updated.updated_at is not None
        assert (await store.get_user("alice")).tier == "power"

    @pytest.mark.asyncio
    async def test_update_unknown_user(self, store):
        assert await store.update_subscription("ghost", "power", "active", None) is None

    @pytest.mark.asyncio
    async def test_failed_payment_keeps_last_payment_date(self, store):
        await store.upsert_user(UserAccount(id="alice"))
        await store.record_payment("alice", "paid", PAID_AT)

        updated = await store.record_payment("alice", "failed")

        assert updated.payment_status == "failed"
        assert updated.last_payment_date == PAID_AT

    def test_global_store_defaults_to_memory(self):
        set_user_store(None)
        assert isinstance(get_user_store(), InMemoryUserStore)


# ============================================================
# Postgres store
# ============================================================

class TestPostgresUserStore:

    @pytest.fixture
    def db(self):
        pool = AsyncMock(spec=DatabasePool)
        pool.fetchrow.return_value = _row()
        return pool

    @pytest.mark.asyncio
    async def test_get_user_by_customer(self, db):
        user = await PostgresUserStore(db).get_user_by_customer("cus_1")

        query, customer_id = db.fetchrow.call_args.args
        assert "WHERE stripe_customer_id = $1" in query
        assert customer_id == "cus_1"
        assert user.id == "user-1"
        assert user.tier == "essential"

    @pytest.mark.asyncio
    async def test_missing_row(self, db):
        db.fetchrow.return_value = None

        assert await PostgresUserStore(db).get_user("nobody") is None
        assert await PostgresUserStore(db).update_subscription("nobody", "power", "active", None) is None

    @pytest.mark.asyncio
    async def test_update_subscription_parameters(self, db):
        db.fetchrow.return_value = _row(tier="power", subscription_id="sub_2")

        user = await PostgresUserStore(db).update_subscription("user-1", "power", "active", "sub_2")

        args = db.fetchrow.call_args.args
        assert args[0].strip().startswith("UPDATE users")
        assert args[1:] == ("user-1", "power", "active", "sub_2")
        assert user.tier == "power"

    @pytest.mark.asyncio
    async def test_record_payment_passes_date(self, db):
        db.fetchrow.return_value = _row(payment_status="paid", last_payment_date=PAID_AT)

        user = await PostgresUserStore(db).record_payment("user-1", "paid", PAID_AT)

        assert db.fetchrow.call_args.args[1:] == ("user-1", "paid", PAID_AT)
        assert user.payment_status == "paid"
        assert user.to_dict()["last_payment_date"] == PAID_AT.isoformat()

    @pytest.mark.asyncio
    async def test_null_tier_reads_as_guest(self, db):
        db.fetchrow.return_value = _row(tier=None)

        assert (await PostgresUserStore(db).get_user("user-1")).tier == "guest"


# ============================================================
# Pool lifecycle
# ============================================================

class TestDatabasePool:

    @pytest.mark.asyncio
    async def test_connect_requires_dsn(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)

        with pytest.raises(RuntimeError):
            await DatabasePool().connect()

    @pytest.mark.asyncio
    async def test_acquire_before_connect(self):
        pool = DatabasePool(dsn="postgresql://localhost/coach")

        assert pool.is_connected is False
        with pytest.raises(RuntimeError):
            await pool.fetchval("SELECT 1")

    def test_global_pool_not_initialized(self):
        assert get_db_optional() is None
        with pytest.raises(RuntimeError):
            get_db()
