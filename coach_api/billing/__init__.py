"""
Coach API Billing Module

Stripe webhook processing.
"""

from .webhooks import (
    StripeWebhookHandler,
    WebhookResult,
    power_price_ids_from_env,
)

__all__ = [
    "StripeWebhookHandler",
    "WebhookResult",
    "power_price_ids_from_env",
]
