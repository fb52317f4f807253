"""
Coach API - OpenTelemetry Tracing

- W3C trace context propagation (traceparent header)
- Server span per HTTP request (opened by ObservabilityMiddleware)
- Client span per LLM provider call
- Optional OTLP export

Usage:
    from coach_api.observability.tracing import setup_tracing, trace_provider_call

    setup_tracing(otlp_endpoint="http://localhost:4317")

    with trace_provider_call("openai", "gpt-3.5-turbo", tier="guest") as span:
        response = await adapter.chat_completion(request)
"""

import os
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Optional

from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.propagate import extract, set_global_textmap
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)
from opentelemetry.trace import Span, SpanKind, Status, StatusCode
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

# OTLP export needs the optional opentelemetry-exporter-otlp package
try:
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    OTLP_AVAILABLE = True
except ImportError:
    OTLP_AVAILABLE = False


SERVICE = "coach-api"


@dataclass
class TraceContext:
    """Trace/span ids of a span, hex encoded."""
    trace_id: str
    span_id: str
    trace_flags: int = 1

    @classmethod
    def from_span(cls, span: Span) -> "TraceContext":
        ctx = span.get_span_context()
        return cls(
            trace_id=format(ctx.trace_id, "032x"),
            span_id=format(ctx.span_id, "016x"),
            trace_flags=ctx.trace_flags,
        )

    def to_traceparent(self) -> str:
        """W3C traceparent header value."""
        return f"00-{self.trace_id}-{self.span_id}-{self.trace_flags:02x}"


class TracingManager:
    """Owns the tracer provider and span helpers."""

    def __init__(
        self,
        service_name: str = SERVICE,
        service_version: str = "1.0.0",
        otlp_endpoint: Optional[str] = None,
        console_export: bool = False,
    ):
        self.service_name = service_name
        self.service_version = service_version

        resource = Resource.create({
            SERVICE_NAME: service_name,
            SERVICE_VERSION: service_version,
            "deployment.environment": os.getenv("MODE", "prod"),
        })
        self.provider = TracerProvider(resource=resource)

        if otlp_endpoint and OTLP_AVAILABLE:
            self.provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint))
            )

        if console_export:
            self.provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

        trace.set_tracer_provider(self.provider)
        set_global_textmap(TraceContextTextMapPropagator())

        # Bound to our provider even if a global one was already installed
        self.tracer = self.provider.get_tracer(service_name, service_version)

    def extract_context(self, headers: Dict[str, str]) -> Context:
        """Parent context from incoming HTTP headers."""
        return extract({k.lower(): v for k, v in headers.items()})

    def start_server_span(
        self,
        name: str,
        headers: Dict[str, str],
        attributes: Optional[Dict[str, Any]] = None,
    ):
        """Span for an incoming request, continuing any caller trace."""
        return self.tracer.start_as_current_span(
            name,
            kind=SpanKind.SERVER,
            attributes=attributes,
            context=self.extract_context(headers),
        )

    def start_client_span(
        self,
        name: str,
        attributes: Optional[Dict[str, Any]] = None,
    ):
        """Span for an outgoing call."""
        return self.tracer.start_as_current_span(
            name,
            kind=SpanKind.CLIENT,
            attributes=attributes,
        )

    def record_exception(self, exception: Exception):
        span = trace.get_current_span()
        if span:
            span.record_exception(exception)
            span.set_status(Status(StatusCode.ERROR, str(exception)))

    def shutdown(self):
        self.provider.shutdown()


_tracing_instance: Optional[TracingManager] = None


def setup_tracing(
    service_name: str = SERVICE,
    service_version: str = "1.0.0",
    otlp_endpoint: Optional[str] = None,
    console_export: bool = False,
) -> TracingManager:
    """
    Configure tracing. Reads OTEL_EXPORTER_OTLP_ENDPOINT and
    OTEL_CONSOLE_EXPORT when arguments are not given.
    """
    global _tracing_instance

    if otlp_endpoint is None:
        otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")

    if os.getenv("OTEL_CONSOLE_EXPORT", "").lower() == "true":
        console_export = True

    _tracing_instance = TracingManager(
        service_name=service_name,
        service_version=service_version,
        otlp_endpoint=otlp_endpoint,
        console_export=console_export,
    )
    return _tracing_instance


def get_tracing_manager() -> TracingManager:
    """Get the tracing manager, creating a default one if needed."""
    global _tracing_instance
    if _tracing_instance is None:
        _tracing_instance = TracingManager()
    return _tracing_instance


def shutdown_tracing():
    """Flush and drop the tracing manager."""
    global _tracing_instance
    if _tracing_instance is not None:
        _tracing_instance.shutdown()
        _tracing_instance = None


@contextmanager
def trace_provider_call(provider: str, model: str, tier: str = "", operation: str = "chat"):
    """
    Client span around an LLM provider call.

    Usage:
        with trace_provider_call("openai", "gpt-4-turbo-preview", tier="power") as span:
            response = await adapter.chat_completion(request)
            span.set_attribute("ai.tokens", response.usage.total_tokens)
    """
    tracing = get_tracing_manager()

    with tracing.start_client_span(
        name=f"{provider}.{operation}",
        attributes={
            "ai.provider": provider,
            "ai.model": model,
            "ai.operation": operation,
            "coach.tier": tier,
        },
    ) as span:
        yield span
