"""
Coach API Quota Module

Per-tier daily query quotas.

Features:
- Fixed 24h windows, reset lazily on access
- Atomic check-and-consume per user
- Pluggable record store
- Periodic cleanup of stale records
"""

from .models import (
    UNLIMITED,
    Principal,
    QuotaRecord,
    RateLimitResult,
    UsageStats,
)

from .policy import (
    DEFAULT_LIMITS,
    UPGRADE_URL,
    TierPolicy,
)

from .store import (
    QuotaStore,
    InMemoryQuotaStore,
)

from .tracker import (
    DEFAULT_WINDOW,
    DEFAULT_STALE_AGE,
    QuotaTracker,
    reset_if_expired,
    get_quota_tracker,
    set_quota_tracker,
)

from .sweeper import (
    QuotaSweeper,
    cleanup_interval_from_env,
)

__all__ = [
    # Models
    "UNLIMITED",
    "Principal",
    "QuotaRecord",
    "RateLimitResult",
    "UsageStats",

    # Policy
    "DEFAULT_LIMITS",
    "UPGRADE_URL",
    "TierPolicy",

    # Store
    "QuotaStore",
    "InMemoryQuotaStore",

    # Tracker
    "DEFAULT_WINDOW",
    "DEFAULT_STALE_AGE",
    "QuotaTracker",
    "reset_if_expired",
    "get_quota_tracker",
    "set_quota_tracker",

    # Sweeper
    "QuotaSweeper",
    "cleanup_interval_from_env",
]
