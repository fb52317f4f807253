"""
Coach API - Observability Module

- Prometheus metrics
- OpenTelemetry tracing with W3C context propagation
- Structured JSON logging with request context

Usage:
    from coach_api.observability import setup_observability, get_logger, get_metrics

    setup_observability()

    logger = get_logger(__name__)
    metrics = get_metrics()
"""

from .metrics import (
    MetricsCollector,
    get_metrics,
    set_metrics,
    setup_metrics,
    metrics_endpoint,
)
from .tracing import (
    TracingManager,
    get_tracing_manager,
    setup_tracing,
    shutdown_tracing,
    trace_provider_call,
)
from .logging import (
    StructuredLogger,
    get_logger,
    setup_logging,
    LogContext,
    TimedOperation,
)
from .middleware import (
    ObservabilityMiddleware,
    setup_observability,
    bind_principal,
    get_request_id,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "get_metrics",
    "set_metrics",
    "setup_metrics",
    "metrics_endpoint",
    # Tracing
    "TracingManager",
    "get_tracing_manager",
    "setup_tracing",
    "shutdown_tracing",
    "trace_provider_call",
    # Logging
    "StructuredLogger",
    "get_logger",
    "setup_logging",
    "LogContext",
    "TimedOperation",
    # Combined
    "ObservabilityMiddleware",
    "setup_observability",
    "bind_principal",
    "get_request_id",
]
