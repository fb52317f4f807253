"""
Coach API - Quota Tracker

Per-user daily query accounting.

Each limited principal owns one QuotaRecord with a fixed 24h window. The
window starts on the first check and is reset lazily: the first access
after it has expired replaces the record with a fresh one. Unlimited
tiers never touch the store.

Two usage styles are supported:

    # Atomic (used by the HTTP admission layer)
    result = await tracker.try_consume(principal)

    # Two-step; concurrent callers for the same user can both pass
    # check_rate_limit before either increments.
    result = await tracker.check_rate_limit(principal)
    if result.allowed:
        await tracker.increment_usage(principal)
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from ..core.models import Tier
from ..observability.logging import get_logger
from .models import Principal, QuotaRecord, RateLimitResult, UsageStats, UNLIMITED
from .policy import TierPolicy
from .store import InMemoryQuotaStore, QuotaStore


logger = get_logger(__name__)

DEFAULT_WINDOW = timedelta(hours=24)
DEFAULT_STALE_AGE = timedelta(days=7)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def reset_if_expired(
    record: QuotaRecord,
    now: datetime,
    window: timedelta = DEFAULT_WINDOW
) -> QuotaRecord:
    """
    Return a fresh record if the window has expired, else the input.

    A window is expired once its age reaches the window length, so a
    record that started exactly 24h ago is reset.
    """
    if now - record.window_start >= window:
        return QuotaRecord(
            user_id=record.user_id,
            tier=record.tier,
            used_count=0,
            window_start=now,
            limit=record.limit,
        )
    return record


class QuotaTracker:
    """
    Answers "may this principal make one more request now?" and records
    consumption.

    Never raises for quota reasons; denial is expressed through
    RateLimitResult.allowed.
    """

    def __init__(
        self,
        store: Optional[QuotaStore] = None,
        policy: Optional[TierPolicy] = None,
        window: timedelta = DEFAULT_WINDOW,
        stale_age: timedelta = DEFAULT_STALE_AGE,
        clock: Callable[[], datetime] = utc_now
    ):
        self.store = store or InMemoryQuotaStore()
        self.policy = policy or TierPolicy.default()
        self.window = window
        self.stale_age = stale_age
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    # ============================================================
    # Internals
    # ============================================================

    def _unlimited_result(self, now: datetime) -> RateLimitResult:
        return RateLimitResult(
            allowed=True,
            remaining=UNLIMITED,
            reset_time=now + self.window,
            limit=UNLIMITED,
        )

    def _result_for(self, record: QuotaRecord) -> RateLimitResult:
        return RateLimitResult(
            allowed=record.used_count < record.limit,
            remaining=max(0, record.limit - record.used_count),
            reset_time=record.window_start + self.window,
            limit=record.limit,
        )

    async def _load_current(self, principal: Principal, now: datetime) -> QuotaRecord:
        """Load the record, creating or resetting it as needed, and persist it."""
        record = await self.store.get(principal.user_id)

        if record is None:
            record = QuotaRecord(
                user_id=principal.user_id,
                tier=principal.tier,
                used_count=0,
                window_start=now,
                limit=self.policy.limit_for(principal.tier),
            )
            await self.store.set(record)
            logger.debug(
                "Quota record created",
                user_id=principal.user_id,
                tier=principal.tier,
                limit=record.limit
            )
            return record

        fresh = self._renew(record, principal, now)
        if fresh is not record:
            await self.store.set(fresh)
        return fresh

    def _renew(self, record: QuotaRecord, principal: Principal, now: datetime) -> QuotaRecord:
        """Reset an expired record; the new window picks up the current tier ceiling."""
        fresh = reset_if_expired(record, now, self.window)
        if fresh is not record:
            fresh.tier = principal.tier
            fresh.limit = self.policy.limit_for(principal.tier)
            logger.debug(
                "Quota window reset",
                user_id=principal.user_id,
                tier=principal.tier,
                previous_used=record.used_count
            )
        return fresh

    # ============================================================
    # Public API
    # ============================================================

    async def check_rate_limit(self, principal: Principal) -> RateLimitResult:
        """
        Report whether one more request is allowed.

        Does not consume quota; repeated calls return the same answer.
        """
        now = self.now()
        if self.policy.is_unlimited(principal.tier):
            return self._unlimited_result(now)

        record = await self._load_current(principal, now)
        result = self._result_for(record)
        logger.debug(
            "Quota checked",
            user_id=principal.user_id,
            tier=principal.tier,
            allowed=result.allowed,
            remaining=result.remaining
        )
        return result

    async def increment_usage(self, principal: Principal) -> None:
        """
        Record one consumed request.

        Does not re-check the ceiling. If no record exists (check was never
        called) nothing is recorded.
        """
        if self.policy.is_unlimited(principal.tier):
            return

        now = self.now()
        async with self.store.lock(principal.user_id):
            record = await self.store.get(principal.user_id)
            if record is None:
                logger.debug(
                    "Increment skipped, no quota record",
                    user_id=principal.user_id,
                    tier=principal.tier
                )
                return

            record = self._renew(record, principal, now)
            await self.store.set(record.with_usage(record.used_count + 1))

    async def try_consume(self, principal: Principal) -> RateLimitResult:
        """
        Atomically check and consume one request.

        Holds the per-user store lock across read, check and write, so N
        concurrent calls against a fresh limit L admit exactly min(N, L).
        On success `remaining` reflects the state after consumption. On
        denial nothing changes.
        """
        now = self.now()
        if self.policy.is_unlimited(principal.tier):
            return self._unlimited_result(now)

        async with self.store.lock(principal.user_id):
            record = await self._load_current(principal, now)
            result = self._result_for(record)
            if not result.allowed:
                logger.debug(
                    "Quota consume denied",
                    user_id=principal.user_id,
                    tier=principal.tier,
                    used=record.used_count,
                    limit=record.limit
                )
                return result

            consumed = record.with_usage(record.used_count + 1)
            await self.store.set(consumed)

        return RateLimitResult(
            allowed=True,
            remaining=max(0, consumed.limit - consumed.used_count),
            reset_time=result.reset_time,
            limit=consumed.limit,
        )

    async def get_remaining_queries(self, principal: Principal) -> int:
        """Remaining requests in the current window (-1 when unlimited)."""
        result = await self.check_rate_limit(principal)
        return result.remaining

    async def get_usage_stats(self) -> UsageStats:
        """
        Aggregate counts over every stored record.

        A principal is active if its window is still open and it has used
        at least one request. The tier histogram counts expired records too.
        """
        now = self.now()
        distribution: Dict[str, int] = {tier.value: 0 for tier in Tier}
        total = 0
        active = 0

        for _, record in await self.store.items():
            total += 1
            distribution[record.tier] = distribution.get(record.tier, 0) + 1
            if now - record.window_start < self.window and record.used_count > 0:
                active += 1

        return UsageStats(
            total_principals=total,
            active_principals=active,
            tier_distribution=distribution,
            generated_at=now,
        )

    async def cleanup_stale_quotas(self) -> int:
        """
        Delete records whose window started more than stale_age ago.

        Candidates come from a snapshot; each one is re-read under its user
        lock, so a record renewed by a concurrent consume is kept.
        """
        cutoff = self.now() - self.stale_age
        removed = 0

        for user_id, record in await self.store.items():
            if record.window_start >= cutoff:
                continue
            async with self.store.lock(user_id):
                current = await self.store.get(user_id)
                if current is None or current.window_start >= cutoff:
                    continue
                if await self.store.delete(user_id):
                    removed += 1

        if removed:
            logger.info("Stale quota records removed", removed=removed)
        return removed

    async def forget(self, user_id: str) -> bool:
        """Drop a user's record so the next check starts a fresh window."""
        return await self.store.delete(user_id)

    async def tracked_principals(self) -> int:
        return await self.store.count()


# ============================================================
# Global Instance
# ============================================================

_tracker: Optional[QuotaTracker] = None


def get_quota_tracker() -> QuotaTracker:
    """Get the global quota tracker, creating a default one lazily."""
    global _tracker
    if _tracker is None:
        _tracker = QuotaTracker(policy=TierPolicy.from_env())
    return _tracker


def set_quota_tracker(tracker: Optional[QuotaTracker]):
    """Replace (or clear, with None) the global quota tracker."""
    global _tracker
    _tracker = tracker
