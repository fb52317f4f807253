"""
Coach API - API Dependencies

Shared dependencies for FastAPI routes: quota admission and access to
the services built at startup.
"""

import calendar
from typing import Dict, Optional

from fastapi import Depends

from ..adapters.base import BaseAdapter
from ..auth.middleware import get_auth_context
from ..billing.webhooks import StripeWebhookHandler
from ..coaching.conflict_analysis import ConflictAnalysisService
from ..coaching.model_router import ModelRouter
from ..core.errors import CoachApiException, QuotaExceededError, ServiceUnavailableError
from ..db.models import AuthContext
from ..db.services import get_user_store
from ..observability.logging import get_logger
from ..observability.metrics import get_metrics
from ..quota.models import Principal, RateLimitResult
from ..quota.tracker import get_quota_tracker


logger = get_logger(__name__)


# ============================================================
# Service instances (set by server lifespan)
# ============================================================

_adapter: Optional[BaseAdapter] = None
_model_router: Optional[ModelRouter] = None
_conflict_service: Optional[ConflictAnalysisService] = None
_webhook_handler: Optional[StripeWebhookHandler] = None


def set_adapter(adapter: Optional[BaseAdapter]):
    """Install the LLM adapter and rebuild the services that use it."""
    global _adapter, _model_router, _conflict_service
    _adapter = adapter
    _model_router = None
    _conflict_service = None


def get_adapter() -> Optional[BaseAdapter]:
    return _adapter


def get_model_router() -> ModelRouter:
    global _model_router
    if _model_router is None:
        _model_router = ModelRouter(_adapter)
    return _model_router


def get_conflict_service() -> ConflictAnalysisService:
    global _conflict_service
    if _conflict_service is None:
        _conflict_service = ConflictAnalysisService(_adapter)
    return _conflict_service


def get_webhook_handler() -> StripeWebhookHandler:
    global _webhook_handler
    if _webhook_handler is None:
        _webhook_handler = StripeWebhookHandler(get_user_store(), get_quota_tracker())
    return _webhook_handler


def set_webhook_handler(handler: Optional[StripeWebhookHandler]):
    global _webhook_handler
    _webhook_handler = handler


# ============================================================
# Quota admission
# ============================================================

async def enforce_quota(auth: AuthContext = Depends(get_auth_context)) -> RateLimitResult:
    """
    Consume one request from the caller's daily quota.

    Usage:
        @router.post("/chat")
        async def chat(quota: RateLimitResult = Depends(enforce_quota)):
            ...

    Raises:
        QuotaExceededError: Quota used up for the current window
        ServiceUnavailableError: The tracker itself failed (fail closed)
    """
    tracker = get_quota_tracker()
    metrics = get_metrics()
    principal = Principal(user_id=auth.user_id, tier=auth.tier)

    try:
        result = await tracker.try_consume(principal)
    except CoachApiException:
        raise
    except Exception as e:
        logger.error(
            "Quota check failed, denying request",
            user_id=auth.user_id,
            tier=auth.tier,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise ServiceUnavailableError(
            code="quota_unavailable",
            message="Quota service unavailable, please retry shortly",
            request_id=auth.request_id,
        )

    metrics.record_quota_check(auth.tier, result.allowed)

    if not result.allowed:
        metrics.record_rate_limit_hit(auth.tier)
        logger.info(
            "Rate limit exceeded",
            user_id=auth.user_id,
            tier=auth.tier,
            limit=result.limit,
            reset_time=result.reset_time.isoformat(),
        )
        raise QuotaExceededError(
            tier=auth.tier,
            limit=result.limit,
            reset_time=result.reset_time.isoformat(),
            retry_after=result.retry_after_seconds(tracker.now()),
            upgrade_url=tracker.policy.upgrade_url(auth.tier),
            request_id=auth.request_id,
        )

    return result


def rate_limit_headers(result: RateLimitResult) -> Dict[str, str]:
    """X-RateLimit-* headers for an admitted request."""
    if result.is_unlimited:
        limit = remaining = "unlimited"
    else:
        limit = str(result.limit)
        remaining = str(result.remaining)

    return {
        "X-RateLimit-Limit": limit,
        "X-RateLimit-Remaining": remaining,
        "X-RateLimit-Reset": str(calendar.timegm(result.reset_time.utctimetuple())),
    }


def add_standard_headers(
    auth: AuthContext,
    quota: Optional[RateLimitResult] = None,
    **extra_headers
) -> Dict[str, str]:
    """Correlation headers plus rate limit headers when a quota result is given."""
    headers = {
        "X-Request-Id": auth.request_id,
        "X-Trace-Id": auth.trace_id,
    }
    if quota is not None:
        headers.update(rate_limit_headers(quota))
    headers.update({k: str(v) for k, v in extra_headers.items() if v is not None})
    return headers
