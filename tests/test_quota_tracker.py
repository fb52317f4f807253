"""
Coach API - Quota Tracker Tests

Tests for:
- Tier ceilings (power unlimited, essential/guest capped, unknown = guest)
- Fixed 24h windows and lazy reset
- Check vs increment vs atomic consume
- Stale record cleanup
- Usage statistics
- Sweeper background task
"""

import asyncio
from datetime import timedelta

import pytest

from coach_api.quota import (
    UNLIMITED,
    InMemoryQuotaStore,
    Principal,
    QuotaRecord,
    QuotaSweeper,
    QuotaTracker,
    TierPolicy,
    cleanup_interval_from_env,
    get_quota_tracker,
    reset_if_expired,
    set_quota_tracker,
)


def _tracker(clock, **kwargs) -> QuotaTracker:
    return QuotaTracker(clock=clock, **kwargs)


class YieldingQuotaStore(InMemoryQuotaStore):
    """Suspends on every access, like a store behind a network hop."""

    async def get(self, user_id):
        await asyncio.sleep(0)
        return await super().get(user_id)

    async def set(self, record):
        await asyncio.sleep(0)
        await super().set(record)

    async def delete(self, user_id):
        for _ in range(3):
            await asyncio.sleep(0)
        return await super().delete(user_id)

    async def items(self):
        await asyncio.sleep(0)
        return await super().items()


# ============================================================
# Tier Ceilings
# ============================================================

class TestTierCeilings:
    """Per-tier limits."""

    @pytest.mark.asyncio
    async def test_power_is_always_allowed(self, clock):
        tracker = _tracker(clock)
        power = Principal("pat", "power")

        for _ in range(50):
            result = await tracker.check_rate_limit(power)
            assert result.allowed is True
            assert result.remaining == UNLIMITED
            await tracker.increment_usage(power)

        assert await tracker.get_remaining_queries(power) == -1
        assert await tracker.tracked_principals() == 0

    @pytest.mark.asyncio
    async def test_essential_allows_three_then_denies(self, clock):
        tracker = _tracker(clock)
        user = Principal("erin", "essential")

        for expected_remaining in (3, 2, 1):
            result = await tracker.check_rate_limit(user)
            assert result.allowed is True
            assert result.remaining == expected_remaining
            await tracker.increment_usage(user)

        result = await tracker.check_rate_limit(user)
        assert result.allowed is False
        assert result.remaining == 0
        assert result.limit == 3
        assert result.reset_time == clock.current + timedelta(hours=24)

    @pytest.mark.asyncio
    async def test_unknown_tier_gets_guest_ceiling(self, clock):
        tracker = _tracker(clock)
        trial = Principal("tess", "trial")

        for _ in range(3):
            assert (await tracker.try_consume(trial)).allowed is True

        result = await tracker.check_rate_limit(trial)
        assert result.allowed is False
        assert result.limit == 3

    @pytest.mark.asyncio
    async def test_custom_policy_limits(self, clock):
        tracker = _tracker(clock, policy=TierPolicy(limits={"guest": 1, "essential": 5, "power": -1}))

        assert (await tracker.try_consume(Principal("g", "guest"))).allowed is True
        assert (await tracker.try_consume(Principal("g", "guest"))).allowed is False
        assert (await tracker.check_rate_limit(Principal("e", "essential"))).remaining == 5


# ============================================================
# Windows
# ============================================================

class TestWindows:
    """Fixed 24h windows."""

    @pytest.mark.asyncio
    async def test_window_resets_after_25_hours(self, clock):
        tracker = _tracker(clock)
        user = Principal("erin", "essential")

        for _ in range(3):
            await tracker.try_consume(user)
        assert (await tracker.check_rate_limit(user)).allowed is False

        clock.advance(hours=25)
        result = await tracker.check_rate_limit(user)

        assert result.allowed is True
        assert result.remaining == 3
        assert result.reset_time == clock.current + timedelta(hours=24)

    @pytest.mark.asyncio
    async def test_window_still_closed_just_before_24_hours(self, clock):
        tracker = _tracker(clock)
        user = Principal("erin", "essential")

        for _ in range(3):
            await tracker.try_consume(user)

        clock.advance(hours=23, minutes=59)
        assert (await tracker.check_rate_limit(user)).allowed is False

    @pytest.mark.asyncio
    async def test_window_resets_at_exactly_24_hours(self, clock):
        tracker = _tracker(clock)
        user = Principal("erin", "essential")

        for _ in range(3):
            await tracker.try_consume(user)

        clock.advance(hours=24)
        assert (await tracker.check_rate_limit(user)).allowed is True

    def test_reset_if_expired_is_pure(self, clock):
        record = QuotaRecord("u", "guest", 3, clock.current, 3)

        same = reset_if_expired(record, clock.current + timedelta(hours=1))
        assert same is record

        fresh = reset_if_expired(record, clock.current + timedelta(hours=30))
        assert fresh is not record
        assert fresh.used_count == 0
        assert fresh.window_start == clock.current + timedelta(hours=30)
        assert record.used_count == 3

    @pytest.mark.asyncio
    async def test_reset_picks_up_new_tier(self, clock):
        tracker = _tracker(clock)

        for _ in range(3):
            await tracker.try_consume(Principal("sam", "guest"))

        clock.advance(hours=25)
        result = await tracker.check_rate_limit(Principal("sam", "essential"))
        record = await tracker.store.get("sam")

        assert result.allowed is True
        assert record.tier == "essential"


# ============================================================
# Check / Increment / Consume
# ============================================================

class TestConsumption:
    """Check is read-only; increment and consume record usage."""

    @pytest.mark.asyncio
    async def test_checks_are_idempotent(self, clock):
        tracker = _tracker(clock)
        user = Principal("gus", "guest")

        first = await tracker.check_rate_limit(user)
        second = await tracker.check_rate_limit(user)

        assert first == second
        assert first.remaining == 3
        assert (await tracker.store.get("gus")).used_count == 0

    @pytest.mark.asyncio
    async def test_increment_without_record_is_noop(self, clock):
        tracker = _tracker(clock)

        await tracker.increment_usage(Principal("ghost", "guest"))

        assert await tracker.store.get("ghost") is None

    @pytest.mark.asyncio
    async def test_increment_does_not_recheck_ceiling(self, clock):
        tracker = _tracker(clock)
        user = Principal("gus", "guest")

        await tracker.check_rate_limit(user)
        for _ in range(5):
            await tracker.increment_usage(user)

        assert (await tracker.store.get("gus")).used_count == 5
        assert (await tracker.check_rate_limit(user)).remaining == 0

    @pytest.mark.asyncio
    async def test_try_consume_reports_remaining_after_consumption(self, clock):
        tracker = _tracker(clock)
        user = Principal("gus", "guest")

        results = [await tracker.try_consume(user) for _ in range(4)]

        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]
        assert (await tracker.store.get("gus")).used_count == 3

    @pytest.mark.asyncio
    async def test_concurrent_consume_admits_exactly_limit(self, clock):
        tracker = _tracker(clock, store=YieldingQuotaStore())
        user = Principal("crowd", "essential")

        results = await asyncio.gather(*[tracker.try_consume(user) for _ in range(10)])

        assert sum(1 for r in results if r.allowed) == 3
        assert (await tracker.store.get("crowd")).used_count == 3

    @pytest.mark.asyncio
    async def test_concurrent_consume_below_limit_admits_all(self, clock):
        tracker = _tracker(
            clock,
            store=YieldingQuotaStore(),
            policy=TierPolicy(limits={"guest": 20, "essential": 3, "power": -1}),
        )
        user = Principal("few", "guest")

        results = await asyncio.gather(*[tracker.try_consume(user) for _ in range(5)])

        assert all(r.allowed for r in results)
        assert (await tracker.store.get("few")).used_count == 5

    @pytest.mark.asyncio
    async def test_concurrent_increments_are_all_recorded(self, clock):
        tracker = _tracker(clock, store=YieldingQuotaStore())
        user = Principal("busy", "guest")
        await tracker.check_rate_limit(user)

        await asyncio.gather(*[tracker.increment_usage(user) for _ in range(10)])

        assert (await tracker.store.get("busy")).used_count == 10

    @pytest.mark.asyncio
    async def test_increment_after_expiry_uses_current_tier(self, clock):
        tracker = _tracker(clock, policy=TierPolicy(limits={"guest": 1, "essential": 5, "power": -1}))
        await tracker.check_rate_limit(Principal("sam", "guest"))
        await tracker.increment_usage(Principal("sam", "guest"))

        clock.advance(hours=25)
        await tracker.increment_usage(Principal("sam", "essential"))
        record = await tracker.store.get("sam")

        assert record.tier == "essential"
        assert record.limit == 5
        assert record.used_count == 1
        assert record.window_start == clock.current

    @pytest.mark.asyncio
    async def test_users_are_independent(self, clock):
        tracker = _tracker(clock)

        for _ in range(3):
            await tracker.try_consume(Principal("a", "guest"))

        assert (await tracker.check_rate_limit(Principal("a", "guest"))).allowed is False
        assert (await tracker.check_rate_limit(Principal("b", "guest"))).allowed is True


# ============================================================
# Cleanup & Stats
# ============================================================

class TestMaintenance:
    """Stale record removal and aggregate statistics."""

    @pytest.mark.asyncio
    async def test_cleanup_removes_only_stale_records(self, clock):
        tracker = _tracker(clock)

        await tracker.check_rate_limit(Principal("old", "guest"))
        clock.advance(days=2)
        await tracker.check_rate_limit(Principal("recent", "guest"))
        clock.advance(days=6)

        removed = await tracker.cleanup_stale_quotas()

        assert removed == 1
        assert await tracker.store.get("old") is None
        assert await tracker.store.get("recent") is not None

    @pytest.mark.asyncio
    async def test_cleanup_keeps_record_renewed_by_concurrent_consume(self, clock):
        store = YieldingQuotaStore()
        await store.set(QuotaRecord("erin", "essential", 3, clock.current - timedelta(days=8), 3))
        tracker = _tracker(clock, store=store)

        result, _ = await asyncio.gather(
            tracker.try_consume(Principal("erin", "essential")),
            tracker.cleanup_stale_quotas(),
        )
        record = await store.get("erin")

        assert result.allowed is True
        assert record is not None
        assert record.used_count == 1
        assert record.window_start == clock.current

    @pytest.mark.asyncio
    async def test_cleanup_on_empty_store(self, clock):
        assert await _tracker(clock).cleanup_stale_quotas() == 0

    @pytest.mark.asyncio
    async def test_usage_stats(self, clock):
        tracker = _tracker(clock)

        await tracker.try_consume(Principal("g1", "guest"))
        await tracker.check_rate_limit(Principal("g2", "guest"))
        await tracker.try_consume(Principal("e1", "essential"))
        await tracker.try_consume(Principal("p1", "power"))

        stats = await tracker.get_usage_stats()

        assert stats.total_principals == 3
        assert stats.active_principals == 2
        assert stats.tier_distribution == {"guest": 2, "essential": 1, "power": 0}
        assert stats.generated_at == clock.current

    @pytest.mark.asyncio
    async def test_expired_records_are_not_active(self, clock):
        tracker = _tracker(clock)
        await tracker.try_consume(Principal("g1", "guest"))

        clock.advance(hours=30)
        stats = await tracker.get_usage_stats()

        assert stats.total_principals == 1
        assert stats.active_principals == 0

    @pytest.mark.asyncio
    async def test_forget_starts_fresh_window(self, clock):
        tracker = _tracker(clock)
        for _ in range(3):
            await tracker.try_consume(Principal("u", "essential"))

        assert await tracker.forget("u") is True
        assert (await tracker.check_rate_limit(Principal("u", "essential"))).remaining == 3
        assert await tracker.forget("nobody") is False


# ============================================================
# Store
# ============================================================

class TestInMemoryStore:

    @pytest.mark.asyncio
    async def test_set_get_delete(self, clock):
        store = InMemoryQuotaStore()
        await store.set(QuotaRecord("u", "guest", 1, clock.current, 3))

        assert (await store.get("u")).used_count == 1
        assert await store.count() == 1
        assert await store.delete("u") is True
        assert await store.delete("u") is False
        assert await store.get("u") is None

    @pytest.mark.asyncio
    async def test_lock_serializes_same_key(self):
        store = InMemoryQuotaStore()
        order = []

        async def worker(name):
            async with store.lock("k"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])

    @pytest.mark.asyncio
    async def test_locks_are_dropped_with_their_records(self, clock):
        store = InMemoryQuotaStore()
        tracker = _tracker(clock, store=store)

        await tracker.try_consume(Principal("old", "guest"))
        await tracker.try_consume(Principal("gone", "guest"))
        assert set(store._locks) == {"old", "gone"}

        await tracker.forget("gone")
        clock.advance(days=8)
        await tracker.cleanup_stale_quotas()

        assert store._locks == {}
        assert store._lock_users == {}


# ============================================================
# Policy & Globals
# ============================================================

class TestPolicyAndGlobals:

    def test_policy_from_env(self, monkeypatch):
        monkeypatch.setenv("QUOTA_LIMIT_GUEST", "1")
        monkeypatch.setenv("QUOTA_LIMIT_ESSENTIAL", "10")
        monkeypatch.setenv("QUOTA_LIMIT_POWER", "-5")

        policy = TierPolicy.from_env()

        assert policy.limit_for("guest") == 1
        assert policy.limit_for("essential") == 10
        assert policy.is_unlimited("power")
        assert policy.limit_for("mystery") == 1

    def test_policy_rejects_non_integer(self, monkeypatch):
        monkeypatch.setenv("QUOTA_LIMIT_GUEST", "lots")

        with pytest.raises(ValueError):
            TierPolicy.from_env()

    def test_upgrade_url(self):
        policy = TierPolicy.default()

        assert policy.upgrade_url("guest") == "/upgrade"
        assert policy.upgrade_url("essential") == "/upgrade"
        assert policy.upgrade_url("power") is None

    def test_global_tracker(self, clock):
        default = get_quota_tracker()
        assert get_quota_tracker() is default

        custom = _tracker(clock)
        set_quota_tracker(custom)
        assert get_quota_tracker() is custom


# ============================================================
# Sweeper
# ============================================================

class TestSweeper:

    @pytest.mark.asyncio
    async def test_sweep_once_updates_metrics(self, clock, metrics):
        tracker = _tracker(clock)
        await tracker.check_rate_limit(Principal("old", "guest"))
        clock.advance(days=8)

        removed = await QuotaSweeper(tracker).sweep_once()

        assert removed == 1
        assert metrics.registry.get_sample_value("coach_quota_records_swept_total") == 1
        assert metrics.registry.get_sample_value("coach_tracked_principals") == 0

    @pytest.mark.asyncio
    async def test_background_loop_runs_and_stops(self, clock):
        tracker = _tracker(clock)
        await tracker.check_rate_limit(Principal("old", "guest"))
        clock.advance(days=8)

        sweeper = QuotaSweeper(tracker, interval=0.01)
        await sweeper.start()
        assert sweeper.running

        for _ in range(100):
            if await tracker.tracked_principals() == 0:
                break
            await asyncio.sleep(0.01)

        await sweeper.stop()

        assert not sweeper.running
        assert await tracker.tracked_principals() == 0

    def test_cleanup_interval_from_env(self, monkeypatch):
        assert cleanup_interval_from_env() == 3600

        monkeypatch.setenv("QUOTA_CLEANUP_INTERVAL", "60")
        assert cleanup_interval_from_env() == 60

        monkeypatch.setenv("QUOTA_CLEANUP_INTERVAL", "0")
        with pytest.raises(ValueError):
            cleanup_interval_from_env()
