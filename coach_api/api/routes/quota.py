"""
Coach API - Quota Endpoints

Read-only view of the caller's quota plus operator endpoints.
None of these consume quota.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...auth.middleware import get_auth_context, require_admin
from ...db.models import AuthContext
from ...observability.logging import get_logger
from ...observability.metrics import get_metrics
from ...quota.models import Principal
from ...quota.tracker import get_quota_tracker
from ..dependencies import add_standard_headers
from ..models import CleanupResponse, QuotaResponse, UsageStatsResponse


router = APIRouter(prefix="/quota", tags=["quota"])
logger = get_logger(__name__)


@router.get("", response_model=QuotaResponse)
async def get_quota(auth: AuthContext = Depends(get_auth_context)):
    """Current limit, remaining queries and reset time for the caller."""
    tracker = get_quota_tracker()
    result = await tracker.check_rate_limit(Principal(user_id=auth.user_id, tier=auth.tier))

    content = QuotaResponse(
        user_id=auth.user_id,
        tier=auth.tier,
        limit="unlimited" if result.is_unlimited else result.limit,
        remaining="unlimited" if result.is_unlimited else result.remaining,
        reset_time=result.reset_time.isoformat(),
        upgrade_url=tracker.policy.upgrade_url(auth.tier),
    )
    return JSONResponse(content=content.model_dump(), headers=add_standard_headers(auth))


@router.get("/stats", response_model=UsageStatsResponse)
async def get_quota_stats(auth: AuthContext = Depends(require_admin)):
    """Aggregate quota usage across all tracked principals."""
    stats = await get_quota_tracker().get_usage_stats()
    get_metrics().set_tracked_principals(stats.total_principals)
    return JSONResponse(content=stats.to_dict(), headers=add_standard_headers(auth))


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_quotas(auth: AuthContext = Depends(require_admin)):
    """Remove stale quota records now instead of waiting for the sweeper."""
    tracker = get_quota_tracker()
    removed = await tracker.cleanup_stale_quotas()
    remaining = await tracker.tracked_principals()

    metrics = get_metrics()
    metrics.record_quota_sweep(removed)
    metrics.set_tracked_principals(remaining)

    logger.info("Manual quota cleanup", removed=removed, remaining=remaining)
    return JSONResponse(
        content={"removed": removed, "remaining": remaining},
        headers=add_standard_headers(auth),
    )
