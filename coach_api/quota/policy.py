"""
Coach API - Tier Policy

Daily query ceilings per subscription tier.

Defaults:
- power:     unlimited
- essential: 3 per 24h
- guest:     3 per 24h (also used for any unknown tier)

Each ceiling can be overridden through QUOTA_LIMIT_<TIER>. A negative
value means unlimited.
"""

import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from ..core.models import Tier
from .models import UNLIMITED


DEFAULT_LIMITS: Dict[str, int] = {
    Tier.GUEST.value: 3,
    Tier.ESSENTIAL.value: 3,
    Tier.POWER.value: UNLIMITED,
}

# Where the "you ran out" response points non-power users
UPGRADE_URL = "/upgrade"


def _env_limit(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    return UNLIMITED if value < 0 else value


@dataclass
class TierPolicy:
    """
    Maps a tier string to its request ceiling.

    Unknown tiers are never rejected; they get the guest ceiling.
    """
    limits: Mapping[str, int]

    @classmethod
    def default(cls) -> "TierPolicy":
        return cls(limits=dict(DEFAULT_LIMITS))

    @classmethod
    def from_env(cls) -> "TierPolicy":
        """Build the policy from QUOTA_LIMIT_* environment variables."""
        return cls(limits={
            tier: _env_limit(f"QUOTA_LIMIT_{tier.upper()}", default)
            for tier, default in DEFAULT_LIMITS.items()
        })

    def limit_for(self, tier: Optional[str]) -> int:
        """Ceiling for a tier, with the guest ceiling as fallback."""
        key = (tier or "").strip().lower()
        if key in self.limits:
            value = self.limits[key]
        else:
            value = self.limits.get(Tier.GUEST.value, DEFAULT_LIMITS[Tier.GUEST.value])
        return UNLIMITED if value < 0 else value

    def is_unlimited(self, tier: Optional[str]) -> bool:
        return self.limit_for(tier) == UNLIMITED

    def upgrade_url(self, tier: Optional[str]) -> Optional[str]:
        """Upgrade link shown on denial; power users have nowhere to go."""
        if (tier or "").strip().lower() == Tier.POWER.value:
            return None
        return UPGRADE_URL
