"""
Coach API - Stripe Webhooks

Verifies Stripe webhook signatures and applies subscription changes to
the user store.

Handled events:
- customer.subscription.created / updated: tier from the price id
- customer.subscription.deleted: back to essential
- invoice.payment_succeeded: payment_status=paid (subscription invoices only)
- invoice.payment_failed: payment_status=failed

Anything else is acknowledged without changes. Lookup and store failures
are logged and acknowledged so Stripe does not retry forever.
"""

import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Optional

import stripe

from ..core.errors import InvalidRequestError, WebhookConfigError, WebhookSignatureError
from ..core.models import Tier
from ..db.models import UserAccount
from ..db.services import UserStore
from ..observability.logging import get_logger
from ..observability.metrics import get_metrics
from ..quota.tracker import QuotaTracker


logger = get_logger(__name__)

ACTIVE_STATUSES = {"active", "trialing"}


@dataclass
class WebhookResult:
    """Outcome of processing one event."""
    event_type: str
    handled: bool
    user_id: Optional[str] = None
    tier: Optional[str] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "handled": self.handled,
            "user_id": self.user_id,
            "tier": self.tier,
            "reason": self.reason,
        }


def power_price_ids_from_env() -> FrozenSet[str]:
    raw = os.getenv("STRIPE_POWER_PRICE_ID", "")
    return frozenset(p.strip() for p in raw.split(",") if p.strip())


def _first_price_id(subscription: Dict[str, Any]) -> Optional[str]:
    items = (subscription.get("items") or {}).get("data") or []
    if not items:
        return None
    return ((items[0] or {}).get("price") or {}).get("id")


class StripeWebhookHandler:
    """
    Usage:
        handler = StripeWebhookHandler(user_store, tracker)
        result = await handler.handle(payload, request.headers["stripe-signature"])
    """

    def __init__(
        self,
        user_store: UserStore,
        tracker: Optional[QuotaTracker] = None,
        webhook_secret: Optional[str] = None,
        power_price_ids: Optional[FrozenSet[str]] = None,
    ):
        self.user_store = user_store
        self.tracker = tracker
        self.webhook_secret = webhook_secret if webhook_secret is not None else os.getenv("STRIPE_WEBHOOK_SECRET", "")
        self.power_price_ids = power_price_ids if power_price_ids is not None else power_price_ids_from_env()

        secret_key = os.getenv("STRIPE_SECRET_KEY")
        if secret_key:
            stripe.api_key = secret_key
        if not self.webhook_secret:
            logger.warning("STRIPE_WEBHOOK_SECRET not set, webhooks will be rejected")

    def tier_for_price(self, price_id: Optional[str]) -> str:
        """Power price ids map to power; every other price is essential."""
        if price_id and price_id in self.power_price_ids:
            return Tier.POWER.value
        return Tier.ESSENTIAL.value

    def verify(self, payload: bytes, signature: str) -> Dict[str, Any]:
        """
        Check the Stripe-Signature header and return the decoded event.

        Raises:
            WebhookConfigError: No signing secret configured
            WebhookSignatureError: Signature or payload rejected
        """
        if not self.webhook_secret:
            raise WebhookConfigError()

        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError:
            logger.warning("Stripe signature verification failed")
            raise WebhookSignatureError()
        except ValueError:
            raise WebhookSignatureError("Invalid webhook payload")

        event = json.loads(payload)
        if not isinstance(event, dict) or "type" not in event:
            raise InvalidRequestError("Webhook event has no type", param="type")
        return event

    async def handle(self, payload: bytes, signature: str) -> WebhookResult:
        """Verify and dispatch one webhook delivery."""
        event = self.verify(payload, signature)
        event_type = event["type"]
        obj = (event.get("data") or {}).get("object") or {}

        logger.info("Processing Stripe webhook", event_type=event_type, event_id=event.get("id"))

        try:
            if event_type in ("customer.subscription.created", "customer.subscription.updated"):
                result = await self._subscription_changed(event_type, obj)
            elif event_type == "customer.subscription.deleted":
                result = await self._subscription_deleted(event_type, obj)
            elif event_type == "invoice.payment_succeeded":
                result = await self._payment_succeeded(event_type, obj)
            elif event_type == "invoice.payment_failed":
                result = await self._payment_failed(event_type, obj)
            else:
                logger.info("Unhandled Stripe event type", event_type=event_type)
                result = WebhookResult(event_type, handled=False, reason="unhandled_event_type")
        except Exception as e:
            logger.exception("Stripe webhook processing failed", event_type=event_type, error=str(e))
            result = WebhookResult(event_type, handled=False, reason="processing_error")

        outcome = "handled" if result.handled else (result.reason or "ignored")
        get_metrics().record_webhook_event(event_type, outcome)
        return result

    # ============================================================
    # Event handlers
    # ============================================================

    async def _find_user(self, event_type: str, obj: Dict[str, Any]) -> Optional[UserAccount]:
        customer_id = obj.get("customer")
        if not customer_id:
            logger.warning("Stripe object has no customer", event_type=event_type)
            return None

        user = await self.user_store.get_user_by_customer(customer_id)
        if user is None:
            logger.error("User not found for Stripe customer", customer_id=customer_id, event_type=event_type)
        return user

    async def _apply_tier(
        self,
        user: UserAccount,
        tier: str,
        status: Optional[str],
        subscription_id: Optional[str],
    ) -> Optional[UserAccount]:
        updated = await self.user_store.update_subscription(user.id, tier, status, subscription_id)
        if updated is None:
            return None

        if user.tier != tier and self.tracker is not None:
            # Next request starts a fresh window at the new tier's ceiling
            await self.tracker.forget(user.id)

        logger.info(
            "User subscription updated",
            user_id=user.id,
            previous_tier=user.tier,
            tier=tier,
            subscription_status=status,
        )
        return updated

    async def _subscription_changed(self, event_type: str, subscription: Dict[str, Any]) -> WebhookResult:
        user = await self._find_user(event_type, subscription)
        if user is None:
            return WebhookResult(event_type, handled=False, reason="user_not_found")

        status = subscription.get("status")
        tier = self.tier_for_price(_first_price_id(subscription))
        if status not in ACTIVE_STATUSES:
            tier = Tier.ESSENTIAL.value

        updated = await self._apply_tier(user, tier, status, subscription.get("id"))
        if updated is None:
            return WebhookResult(event_type, handled=False, user_id=user.id, reason="update_failed")
        return WebhookResult(event_type, handled=True, user_id=user.id, tier=tier)

    async def _subscription_deleted(self, event_type: str, subscription: Dict[str, Any]) -> WebhookResult:
        user = await self._find_user(event_type, subscription)
        if user is None:
            return WebhookResult(event_type, handled=False, reason="user_not_found")

        tier = Tier.ESSENTIAL.value
        updated = await self._apply_tier(user, tier, "canceled", None)
        if updated is None:
            return WebhookResult(event_type, handled=False, user_id=user.id, reason="update_failed")
        return WebhookResult(event_type, handled=True, user_id=user.id, tier=tier)

    async def _payment_succeeded(self, event_type: str, invoice: Dict[str, Any]) -> WebhookResult:
        if not invoice.get("subscription"):
            return WebhookResult(event_type, handled=False, reason="not_a_subscription")

        user = await self._find_user(event_type, invoice)
        if user is None:
            return WebhookResult(event_type, handled=False, reason="user_not_found")

        await self.user_store.record_payment(user.id, "paid", datetime.now(timezone.utc))
        logger.info("Subscription payment succeeded", user_id=user.id)
        return WebhookResult(event_type, handled=True, user_id=user.id, tier=user.tier)

    async def _payment_failed(self, event_type: str, invoice: Dict[str, Any]) -> WebhookResult:
        user = await self._find_user(event_type, invoice)
        if user is None:
            return WebhookResult(event_type, handled=False, reason="user_not_found")

        await self.user_store.record_payment(user.id, "failed")
        logger.warning("Subscription payment failed", user_id=user.id)
        return WebhookResult(event_type, handled=True, user_id=user.id, tier=user.tier)
