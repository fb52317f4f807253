"""
Coach API - Observability Middleware

One middleware that opens the server span, binds the log context, records
request metrics and stamps correlation headers on the response.

Usage:
    setup_observability()
    app.add_middleware(ObservabilityMiddleware)
"""

import os
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp
from opentelemetry.trace import Status, StatusCode

from .metrics import get_metrics, setup_metrics
from .tracing import get_tracing_manager, TraceContext, setup_tracing
from .logging import get_logger, LogContext, setup_logging


def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:24]}"


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Metrics, tracing and log correlation for every request."""

    # Probes and docs are not worth a span
    EXCLUDE_PATHS = {"/health", "/ready", "/metrics", "/openapi.json", "/docs", "/redoc"}

    def __init__(
        self,
        app: ASGIApp,
        exclude_paths: Optional[set] = None,
    ):
        super().__init__(app)
        self.exclude_paths = exclude_paths or self.EXCLUDE_PATHS
        self.logger = get_logger("coach_api.observability.middleware")

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        metrics = get_metrics()
        tracing = get_tracing_manager()
        headers = dict(request.headers)

        request_id = headers.get("x-request-id", "") or new_request_id()
        endpoint = request.url.path
        start_time = time.perf_counter()

        with tracing.start_server_span(
            name=f"{request.method} {endpoint}",
            headers=headers,
            attributes={
                "http.method": request.method,
                "http.route": endpoint,
                "http.scheme": request.url.scheme,
                "http.host": request.url.hostname or "",
                "coach.request_id": request_id,
            },
        ) as span:
            trace_ctx = TraceContext.from_span(span)

            log_ctx = LogContext(
                request_id=request_id,
                trace_id=trace_ctx.trace_id,
                span_id=trace_ctx.span_id,
                endpoint=endpoint,
            )
            LogContext.set_current(log_ctx)

            request.state.request_id = request_id
            request.state.trace_id = trace_ctx.trace_id
            request.state.span_id = trace_ctx.span_id
            request.state.log_context = log_ctx

            try:
                with metrics.track_active_request(endpoint):
                    response = await call_next(request)

                duration_seconds = time.perf_counter() - start_time
                span.set_attribute("http.status_code", response.status_code)
                if log_ctx.tier:
                    span.set_attribute("coach.tier", log_ctx.tier)

                if response.status_code >= 500:
                    span.set_status(Status(StatusCode.ERROR, f"HTTP {response.status_code}"))
                elif response.status_code >= 400:
                    span.set_attribute("http.error", True)
                else:
                    span.set_status(Status(StatusCode.OK))

                error_type = None
                if response.status_code >= 400:
                    error_type = response.headers.get("x-error-code", f"http_{response.status_code}")

                metrics.record_request(
                    endpoint=endpoint,
                    status_code=response.status_code,
                    duration_seconds=duration_seconds,
                    error_type=error_type,
                )

                self._log_request(request, response, duration_seconds * 1000)

                response.headers["X-Request-Id"] = request_id
                response.headers["X-Trace-Id"] = trace_ctx.trace_id
                response.headers["X-Span-Id"] = trace_ctx.span_id
                return response

            except Exception as e:
                duration_seconds = time.perf_counter() - start_time
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))

                metrics.record_request(
                    endpoint=endpoint,
                    status_code=500,
                    duration_seconds=duration_seconds,
                    error_type=type(e).__name__,
                )
                self.logger.exception(
                    "Request failed with exception",
                    error=str(e),
                    error_type=type(e).__name__,
                    duration_ms=round(duration_seconds * 1000, 2),
                )
                raise

            finally:
                LogContext.clear()

    def _log_request(self, request: Request, response: Response, duration_ms: float):
        status_code = response.status_code

        fields = {
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": round(duration_ms, 2),
            "client_ip": request.client.host if request.client else None,
        }

        if status_code >= 500:
            self.logger.error("Request completed with server error", **fields)
        elif status_code >= 400:
            self.logger.warning("Request completed with client error", **fields)
        else:
            self.logger.info("Request completed", **fields)


_observability_initialized = False


def setup_observability(
    service_name: str = "coach-api",
    service_version: str = "1.0.0",
    otlp_endpoint: Optional[str] = None,
    log_level: str = "INFO",
    tracing_enabled: bool = True,
) -> Dict[str, Any]:
    """
    Initialize logging, metrics and tracing. Safe to call more than once.

    LOG_LEVEL, LOG_FORMAT and OTEL_EXPORTER_OTLP_ENDPOINT override the
    arguments when set.
    """
    global _observability_initialized

    if otlp_endpoint is None:
        otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    log_level = os.getenv("LOG_LEVEL", log_level)

    setup_logging(
        level=log_level,
        json_output=os.getenv("LOG_FORMAT", "json").lower() == "json",
    )
    result: Dict[str, Any] = {"logging": True, "metrics": setup_metrics()}

    if tracing_enabled:
        result["tracing"] = setup_tracing(
            service_name=service_name,
            service_version=service_version,
            otlp_endpoint=otlp_endpoint,
        )

    if not _observability_initialized:
        get_logger("coach_api.observability").info(
            "Observability initialized",
            service_name=service_name,
            service_version=service_version,
            tracing_enabled=tracing_enabled,
            otlp_endpoint=otlp_endpoint or "none",
        )
        _observability_initialized = True

    return result


def bind_principal(request: Request, user_id: str, tier: str):
    """Attach the authenticated principal to the request's log context."""
    log_ctx = getattr(request.state, "log_context", None)
    if log_ctx:
        log_ctx.user_id = user_id
        log_ctx.tier = tier


def get_request_id(request: Request) -> str:
    """Request id assigned by the middleware, or a new one."""
    request_id = getattr(request.state, "request_id", "")
    if not request_id:
        request_id = new_request_id()
        request.state.request_id = request_id
    return request_id
