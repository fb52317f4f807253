"""
Coach API - Prometheus Metrics

Metrics exposed:
- coach_requests_total: requests by endpoint, status, error type
- coach_request_duration_seconds: request latency
- coach_active_requests: in-flight requests
- coach_quota_checks_total: admission decisions by tier and outcome
- coach_rate_limit_hits_total: quota denials by tier
- coach_tracked_principals: quota records currently held
- coach_quota_records_swept_total: stale records removed by cleanup
- coach_model_calls_total: LLM calls by tier, model, outcome
- coach_tokens_total: tokens consumed per model
- coach_webhook_events_total: Stripe events by type and outcome

Usage:
    from coach_api.observability.metrics import get_metrics, metrics_endpoint

    metrics = get_metrics()
    metrics.record_quota_check(tier="guest", allowed=False)

    @app.get("/metrics")
    async def metrics():
        return metrics_endpoint()
"""

from typing import Optional

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    Info,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)
from fastapi import Response


class MetricsCollector:
    """
    Owns every Prometheus collector of the service.

    Collectors are bound to one registry; use a fresh CollectorRegistry
    per collector in tests.
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.registry = registry

        self.info = Info(
            "coach",
            "Coach API service information",
            registry=registry,
        )
        self.info.info({
            "version": "1.0.0",
            "service": "coach-api",
        })

        # HTTP
        self.requests_total = Counter(
            "coach_requests_total",
            "Total number of requests",
            labelnames=["endpoint", "status", "error_type"],
            registry=registry,
        )

        # LLM calls dominate latency, so buckets stretch to a minute
        self.request_duration = Histogram(
            "coach_request_duration_seconds",
            "Request duration in seconds",
            labelnames=["endpoint"],
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, float("inf")),
            registry=registry,
        )

        self.active_requests = Gauge(
            "coach_active_requests",
            "Number of currently active requests",
            labelnames=["endpoint"],
            registry=registry,
        )

        # Quotas
        self.quota_checks = Counter(
            "coach_quota_checks_total",
            "Quota admission decisions",
            labelnames=["tier", "outcome"],  # outcome = allowed/denied
            registry=registry,
        )

        self.rate_limit_hits = Counter(
            "coach_rate_limit_hits_total",
            "Requests denied because the daily quota was used up",
            labelnames=["tier"],
            registry=registry,
        )

        self.tracked_principals = Gauge(
            "coach_tracked_principals",
            "Quota records currently held",
            registry=registry,
        )

        self.quota_records_swept = Counter(
            "coach_quota_records_swept_total",
            "Stale quota records removed by cleanup",
            registry=registry,
        )

        # LLM
        self.model_calls = Counter(
            "coach_model_calls_total",
            "LLM calls",
            labelnames=["tier", "model", "outcome"],  # outcome = success/fallback
            registry=registry,
        )

        self.tokens_total = Counter(
            "coach_tokens_total",
            "Total tokens used",
            labelnames=["model"],
            registry=registry,
        )

        # Billing
        self.webhook_events = Counter(
            "coach_webhook_events_total",
            "Stripe webhook events",
            labelnames=["event_type", "outcome"],
            registry=registry,
        )

    def record_request(
        self,
        endpoint: str,
        status_code: int,
        duration_seconds: float,
        error_type: Optional[str] = None,
    ):
        """Record a completed HTTP request."""
        self.requests_total.labels(
            endpoint=endpoint,
            status=str(status_code),
            error_type=error_type or "none",
        ).inc()
        self.request_duration.labels(endpoint=endpoint).observe(duration_seconds)

    def track_active_request(self, endpoint: str) -> "ActiveRequestTracker":
        """Context manager to track active requests."""
        return ActiveRequestTracker(self, endpoint)

    def record_quota_check(self, tier: str, allowed: bool):
        self.quota_checks.labels(
            tier=tier,
            outcome="allowed" if allowed else "denied",
        ).inc()

    def record_rate_limit_hit(self, tier: str):
        self.rate_limit_hits.labels(tier=tier).inc()

    def set_tracked_principals(self, count: int):
        self.tracked_principals.set(count)

    def record_quota_sweep(self, removed: int):
        if removed > 0:
            self.quota_records_swept.inc(removed)

    def record_model_call(self, tier: str, model: str, outcome: str):
        self.model_calls.labels(tier=tier, model=model, outcome=outcome).inc()

    def record_tokens(self, model: str, tokens: int):
        if tokens > 0:
            self.tokens_total.labels(model=model).inc(tokens)

    def record_webhook_event(self, event_type: str, outcome: str):
        self.webhook_events.labels(event_type=event_type, outcome=outcome).inc()


class ActiveRequestTracker:
    """Context manager for tracking active requests."""

    def __init__(self, collector: MetricsCollector, endpoint: str):
        self.collector = collector
        self.endpoint = endpoint

    def __enter__(self):
        self.collector.active_requests.labels(endpoint=self.endpoint).inc()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.collector.active_requests.labels(endpoint=self.endpoint).dec()


_metrics_instance: Optional[MetricsCollector] = None
_default_collector: Optional[MetricsCollector] = None


def setup_metrics(registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """
    Create the global collector.

    Safe to call more than once. Without a registry the current collector
    is kept; the default registry only ever gets one collector.
    """
    global _metrics_instance, _default_collector

    if _metrics_instance is not None and registry in (None, _metrics_instance.registry):
        return _metrics_instance

    if registry is None or registry is REGISTRY:
        if _default_collector is None:
            _default_collector = MetricsCollector(REGISTRY)
        _metrics_instance = _default_collector
    else:
        _metrics_instance = MetricsCollector(registry)
    return _metrics_instance


def get_metrics() -> MetricsCollector:
    """Get the global collector, creating it on the default registry if needed."""
    if _metrics_instance is None:
        return setup_metrics()
    return _metrics_instance


def set_metrics(collector: Optional[MetricsCollector]):
    """Replace the global collector (tests)."""
    global _metrics_instance
    _metrics_instance = collector


def metrics_endpoint() -> Response:
    """Prometheus exposition of the global collector's registry."""
    content = generate_latest(get_metrics().registry)
    return Response(
        content=content,
        media_type=CONTENT_TYPE_LATEST,
    )
