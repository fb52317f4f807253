"""
Coach API - Stripe Webhook Endpoint

Receives subscription and invoice events. Authenticated by the Stripe
signature only, never rate limited.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from ...billing.webhooks import StripeWebhookHandler
from ...core.errors import InvalidRequestError
from ...observability.middleware import get_request_id
from ..dependencies import get_webhook_handler
from ..models import WebhookAck


router = APIRouter(prefix="/stripe", tags=["stripe"])


@router.post("/webhook", response_model=WebhookAck, include_in_schema=False)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    handler: StripeWebhookHandler = Depends(get_webhook_handler),
):
    """Verify and apply one Stripe event."""
    request_id = get_request_id(request)

    if not stripe_signature:
        raise InvalidRequestError(
            "Missing stripe-signature header",
            param="stripe-signature",
            request_id=request_id,
        )

    payload = await request.body()
    if not payload:
        raise InvalidRequestError("Missing request body", request_id=request_id)

    await handler.handle(payload, stripe_signature)
    return WebhookAck(received=True)
