"""
Coach API - API Layer

REST endpoints for the workplace coach.

Provides:
- Coaching chat and conflict analysis (quota gated)
- Quota inspection and operator maintenance
- Stripe webhook intake
"""

from .models import (
    ChatRequest,
    ChatResponse,
    ConflictAnalysisRequest,
    ConflictAnalysisResponse,
    QuotaResponse,
    UsageStatsResponse,
)
from .dependencies import (
    enforce_quota,
    rate_limit_headers,
    add_standard_headers,
    get_adapter,
    set_adapter,
    get_model_router,
    get_conflict_service,
    get_webhook_handler,
    set_webhook_handler,
)
from .routes import (
    chat_router,
    quota_router,
    stripe_router,
)


__all__ = [
    # Routers
    "chat_router",
    "quota_router",
    "stripe_router",
    # Models
    "ChatRequest",
    "ChatResponse",
    "ConflictAnalysisRequest",
    "ConflictAnalysisResponse",
    "QuotaResponse",
    "UsageStatsResponse",
    # Dependencies
    "enforce_quota",
    "rate_limit_headers",
    "add_standard_headers",
    "get_adapter",
    "set_adapter",
    "get_model_router",
    "get_conflict_service",
    "get_webhook_handler",
    "set_webhook_handler",
]
