"""
Coach API - Main API Server

FastAPI server for the workplace coach backend.
Uses canonical error layer from coach_api/core/errors.py

Supports three modes:
- MODE=local: Development mode, coach_<tier>_<user> tokens, in-memory users
- MODE=test: Like local, unknown token tiers default to guest
- MODE=prod: Supabase JWT auth with Postgres-backed user tiers

Features:
- Tier-aware coaching chat and conflict analysis
- Daily per-user query quotas with a background sweeper
- Stripe subscription webhooks
- Full observability (metrics, tracing, logging)
"""

import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .adapters import create_adapter_from_env
from .api import chat_router, quota_router, stripe_router
from .api.dependencies import get_adapter, set_adapter, set_webhook_handler
from .auth.config import (
    get_auth_mode,
    get_cors_allowed_origins,
    is_local_mode,
    is_prod_mode,
    use_stub_adapters,
    validate_security_config,
)
from .core.errors import CoachApiException, ErrorDetails, ErrorType
from .db.connection import close_db, init_db
from .db.services import InMemoryUserStore, PostgresUserStore, set_user_store
from .observability import (
    ObservabilityMiddleware,
    get_logger,
    get_request_id,
    metrics_endpoint,
    setup_observability,
    shutdown_tracing,
)
from .quota import (
    QuotaSweeper,
    QuotaTracker,
    TierPolicy,
    cleanup_interval_from_env,
    get_quota_tracker,
    set_quota_tracker,
)


SERVICE_NAME = "coach-api"

logger = get_logger("coach_api.server")


# ============================================================
# Lifespan management
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown."""
    mode = get_auth_mode()

    # Observability first so startup is logged
    setup_observability(
        service_name=SERVICE_NAME,
        service_version=__version__,
        otlp_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
    logger.info("Coach API starting", auth_mode=mode.value)

    validate_security_config()

    if is_prod_mode():
        db = await init_db(os.getenv("DATABASE_URL"))
        set_user_store(PostgresUserStore(db))
        logger.info("Database connected")
    elif app.state.user_store_override is None:
        set_user_store(InMemoryUserStore())

    adapter = create_adapter_from_env(use_stub=use_stub_adapters())
    if adapter is None:
        logger.warning("No LLM provider configured, replies will use fallback content. Set OPENAI_API_KEY")
    else:
        logger.info("LLM adapter initialized", provider=adapter.provider)
    set_adapter(adapter)

    if app.state.tracker_override is None:
        set_quota_tracker(QuotaTracker(policy=TierPolicy.from_env()))
    tracker = get_quota_tracker()
    set_webhook_handler(None)

    sweeper = QuotaSweeper(tracker, interval=cleanup_interval_from_env())
    await sweeper.start()
    app.state.sweeper = sweeper

    logger.info(
        "Coach API ready",
        auth_mode=mode.value,
        provider=adapter.provider if adapter else "none",
        limits=dict(tracker.policy.limits),
    )
    if is_local_mode():
        logger.info("Tip: use tokens like 'coach_power_alice' or 'coach_guest_bob'")

    yield

    await sweeper.stop()

    if adapter is not None:
        await adapter.close()
    set_adapter(None)

    if is_prod_mode():
        await close_db()

    shutdown_tracing()
    logger.info("Coach API stopped")


# ============================================================
# FastAPI App
# ============================================================

def create_app(
    user_store=None,
    tracker: Optional[QuotaTracker] = None,
) -> FastAPI:
    """
    Build the application.

    A user store or tracker passed here is kept across the lifespan
    instead of being replaced at startup (tests).
    """
    if user_store is not None:
        set_user_store(user_store)
    if tracker is not None:
        set_quota_tracker(tracker)

    application = FastAPI(
        title="Coach API",
        description="Workplace coaching assistant with tiered daily quotas",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    application.state.user_store_override = user_store
    application.state.tracker_override = tracker

    # First added = innermost; observability wraps the routes, CORS wraps everything
    application.add_middleware(ObservabilityMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_allowed_origins() or (["*"] if not is_prod_mode() else []),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(chat_router)
    application.include_router(quota_router)
    application.include_router(stripe_router)

    _register_core_endpoints(application)
    _register_error_handlers(application)
    return application


# ============================================================
# Core Endpoints (not in routes)
# ============================================================

def _register_core_endpoints(application: FastAPI):

    @application.get("/")
    async def root():
        """API info."""
        return {
            "name": "Coach API",
            "version": __version__,
            "endpoints": {
                "chat": "POST /chat",
                "conflict_analysis": "POST /chat/conflict-analysis",
                "quota": "GET /quota",
                "quota_stats": "GET /quota/stats",
                "quota_cleanup": "POST /quota/cleanup",
                "stripe_webhook": "POST /stripe/webhook",
                "health": "GET /health",
                "ready": "GET /ready",
                "metrics": "GET /metrics",
            },
        }

    @application.get("/health")
    async def health_check():
        """Liveness: always 200 while the process is up."""
        return {
            "status": "healthy",
            "version": __version__,
            "mode": get_auth_mode().value,
            "quota": {
                "tracked_principals": await get_quota_tracker().tracked_principals(),
            },
        }

    @application.get("/ready")
    async def readiness_check():
        """
        Readiness check endpoint.

        503 until an LLM adapter is configured.
        """
        adapter = get_adapter()
        if adapter is None:
            return JSONResponse(
                status_code=503,
                content={
                    "status": "not_ready",
                    "reason": "No LLM provider configured"
                }
            )
        return {"status": "ready", "provider": adapter.provider}

    @application.get("/metrics")
    async def prometheus_metrics():
        """
        Prometheus metrics endpoint.

        Exposes all collected metrics in Prometheus text format.
        """
        return metrics_endpoint()


# ============================================================
# Error handlers
# ============================================================

def _error_response(error: ErrorDetails, status_code: int) -> JSONResponse:
    headers = {
        "X-Request-Id": error.request_id,
        "X-Error-Type": error.type.value,
        "X-Error-Code": error.code,
    }
    if error.retry_after:
        headers["Retry-After"] = str(error.retry_after)
    if error.provider:
        headers["X-Provider"] = error.provider

    return JSONResponse(status_code=status_code, content=error.to_dict(), headers=headers)


def _register_error_handlers(application: FastAPI):

    @application.exception_handler(CoachApiException)
    async def coach_exception_handler(request: Request, exc: CoachApiException):
        """Handle all canonical errors."""
        if not exc.error.request_id:
            exc.error.request_id = get_request_id(request)
        return _error_response(exc.error, exc.status_code)

    @application.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle standard HTTP exceptions."""
        if isinstance(exc.detail, str):
            message = exc.detail
        elif isinstance(exc.detail, dict):
            message = exc.detail.get("message", "Unknown error")
        else:
            message = "Unknown error"

        error = ErrorDetails(
            code="http_error",
            message=message,
            type=ErrorType.SEMANTIC if exc.status_code < 500 else ErrorType.INFRA,
            request_id=get_request_id(request),
            retryable=exc.status_code >= 500,
        )
        return _error_response(error, exc.status_code)

    @application.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Body and header validation failures."""
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = [str(part) for part in first.get("loc", ()) if part != "body"]

        error = ErrorDetails(
            code="invalid_request",
            message=first.get("msg", "Invalid request"),
            type=ErrorType.SEMANTIC,
            param=".".join(location) or None,
            request_id=get_request_id(request),
            retryable=False,
            details={"errors": [
                {"loc": [str(part) for part in e.get("loc", ())], "msg": e.get("msg", "")}
                for e in errors
            ]},
        )
        return _error_response(error, 400)

    @application.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        request_id = get_request_id(request)
        logger.exception("Unhandled exception", error=str(exc), error_type=type(exc).__name__)

        error = ErrorDetails(
            code="internal_error",
            message="An unexpected error occurred",
            type=ErrorType.INFRA,
            request_id=request_id,
            retryable=True,
        )
        return _error_response(error, 500)


app = create_app()


# ============================================================
# Run server
# ============================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "coach_api.server:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=is_local_mode(),
    )
