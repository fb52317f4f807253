"""
Coach API - Quota Data Models

Per-principal quota records and the results handed back to callers.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional


# Sentinel limit / remaining value for tiers without a ceiling
UNLIMITED = -1


@dataclass(frozen=True)
class Principal:
    """Identity the quota is charged to."""
    user_id: str
    tier: str


@dataclass
class QuotaRecord:
    """
    Usage counter for a single principal.

    One record per user id. The window is fixed: it starts on the first
    check and is replaced wholesale once it is 24h old.
    """
    user_id: str
    tier: str
    used_count: int
    window_start: datetime
    limit: int

    def with_usage(self, used_count: int) -> "QuotaRecord":
        """Copy with a new usage count."""
        return replace(self, used_count=used_count)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "tier": self.tier,
            "used_count": self.used_count,
            "window_start": self.window_start.isoformat(),
            "limit": self.limit,
        }


@dataclass
class RateLimitResult:
    """Answer to 'may this principal make one more request now?'."""
    allowed: bool
    remaining: int
    reset_time: datetime
    limit: int = UNLIMITED

    @property
    def is_unlimited(self) -> bool:
        return self.limit == UNLIMITED

    def retry_after_seconds(self, now: datetime) -> int:
        """Seconds until the window resets (at least 1)."""
        return max(int((self.reset_time - now).total_seconds()), 1)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "allowed": self.allowed,
            "remaining": self.remaining,
            "reset_time": self.reset_time.isoformat(),
            "limit": self.limit,
        }


@dataclass
class UsageStats:
    """Aggregate view over all quota records."""
    total_principals: int = 0
    active_principals: int = 0
    tier_distribution: Dict[str, int] = field(default_factory=dict)
    generated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_principals": self.total_principals,
            "active_principals": self.active_principals,
            "tier_distribution": dict(self.tier_distribution),
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
        }
