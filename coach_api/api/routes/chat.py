"""
Coach API - Chat Endpoints

Coaching chat and conflict analysis. Both are charged against the
caller's daily quota.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...auth.middleware import get_auth_context
from ...coaching.conflict_analysis import ConflictAnalysisService
from ...coaching.model_router import ModelRouter
from ...db.models import AuthContext
from ...observability.logging import get_logger
from ...quota.models import RateLimitResult
from ..dependencies import (
    add_standard_headers,
    enforce_quota,
    get_conflict_service,
    get_model_router,
)
from ..models import (
    ChatRequest,
    ChatResponse,
    ConflictAnalysisRequest,
    ConflictAnalysisResponse,
)


router = APIRouter(prefix="/chat", tags=["chat"])
logger = get_logger(__name__)


@router.post("", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    auth: AuthContext = Depends(get_auth_context),
    quota: RateLimitResult = Depends(enforce_quota),
    model_router: ModelRouter = Depends(get_model_router),
):
    """
    Send a message to the coach.

    The reply comes from the model configured for the caller's tier.
    Provider failures are answered with canned coaching content.
    """
    response = await model_router.route_to_model(
        body.to_coaching_request(),
        tier=auth.tier,
        context_data=body.context_data or None,
        request_id=auth.request_id,
    )

    logger.info(
        "Chat reply generated",
        model=response.model_used,
        tokens=response.cost_in_tokens,
        fallback=response.fallback,
    )

    return JSONResponse(
        content=response.to_dict(),
        headers=add_standard_headers(auth, quota, **{"X-Model-Used": response.model_used}),
    )


@router.post("/conflict-analysis", response_model=ConflictAnalysisResponse)
async def analyze_conflict(
    body: ConflictAnalysisRequest,
    auth: AuthContext = Depends(get_auth_context),
    quota: RateLimitResult = Depends(enforce_quota),
    service: ConflictAnalysisService = Depends(get_conflict_service),
):
    """
    Analyze a workplace conflict.

    Returns root cause, stakeholder map, resolution strategies, risks
    and a recommended timeline.
    """
    result = await service.analyze_conflict(body.to_input(), tier=auth.tier, request_id=auth.request_id)

    logger.info(
        "Conflict analysis generated",
        conflict_type=result.identified_conflict_type.value,
        complexity=result.analysis_complexity,
        fallback=result.fallback,
    )

    return JSONResponse(
        content=result.to_dict(),
        headers=add_standard_headers(auth, quota),
    )
