"""
Coach API - Database Models

Dataclass models for the user table and the per-request auth context.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from ..core.models import Tier


@dataclass
class UserAccount:
    """Row of the `users` table."""

    id: str
    email: Optional[str] = None
    tier: str = Tier.GUEST.value
    stripe_customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    subscription_status: Optional[str] = None
    payment_status: Optional[str] = None
    last_payment_date: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record) -> "UserAccount":
        """Create UserAccount from a database record."""
        return cls(
            id=str(record["id"]),
            email=record["email"],
            tier=record["tier"] or Tier.GUEST.value,
            stripe_customer_id=record["stripe_customer_id"],
            subscription_id=record["subscription_id"],
            subscription_status=record["subscription_status"],
            payment_status=record["payment_status"],
            last_payment_date=record["last_payment_date"],
            updated_at=record["updated_at"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "tier": self.tier,
            "stripe_customer_id": self.stripe_customer_id,
            "subscription_id": self.subscription_id,
            "subscription_status": self.subscription_status,
            "payment_status": self.payment_status,
            "last_payment_date": self.last_payment_date.isoformat() if self.last_payment_date else None,
        }


@dataclass
class AuthContext:
    """
    Authenticated principal for a request.

    Populated by get_auth_context after validating the bearer token.
    """

    user_id: str
    tier: str
    email: Optional[str] = None
    is_admin: bool = False

    # Request tracing
    request_id: str = ""
    trace_id: str = ""
