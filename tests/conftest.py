"""
Coach API - Pytest Configuration

Configures:
- Integration test markers (skip by default)
- Isolated global state (metrics registry, quota tracker, user store)
- Mock provider responses and a controllable clock
"""

import hashlib
import hmac
import json
import logging
import os
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import pytest
from prometheus_client import CollectorRegistry

from coach_api.api import dependencies as api_deps
from coach_api.db.services import set_user_store
from coach_api.observability.metrics import MetricsCollector, set_metrics
from coach_api.quota.tracker import set_quota_tracker


# ============================================================
# Environment Configuration
# ============================================================

def _is_truthy(value: Optional[str]) -> bool:
    """Check if environment variable is truthy."""
    if value is None:
        return False
    return value.lower() in ("1", "true", "yes", "on")


RUN_INTEGRATION = _is_truthy(os.getenv("RUN_INTEGRATION"))


# ============================================================
# Pytest Markers
# ============================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (requires RUN_INTEGRATION=1)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless RUN_INTEGRATION=1."""
    skip_integration = pytest.mark.skip(
        reason="Integration test - set RUN_INTEGRATION=1 to run"
    )

    for item in items:
        if "integration" in item.keywords and not RUN_INTEGRATION:
            item.add_marker(skip_integration)


# ============================================================
# Global State Isolation
# ============================================================

@pytest.fixture(autouse=True)
def isolated_state(monkeypatch):
    """
    Fresh metrics registry and no leftover services for every test.

    Also pins MODE=test and clears provider/Stripe settings so nothing
    reaches the network.
    """
    monkeypatch.setenv("MODE", "test")
    for name in (
        "OPENAI_API_KEY",
        "USE_STUB_ADAPTERS",
        "STRIPE_WEBHOOK_SECRET",
        "STRIPE_POWER_PRICE_ID",
        "ADMIN_USER_IDS",
        "OTEL_EXPORTER_OTLP_ENDPOINT",
        "QUOTA_LIMIT_GUEST",
        "QUOTA_LIMIT_ESSENTIAL",
        "QUOTA_LIMIT_POWER",
        "QUOTA_CLEANUP_INTERVAL",
    ):
        monkeypatch.delenv(name, raising=False)

    collector = MetricsCollector(CollectorRegistry())
    set_metrics(collector)
    set_quota_tracker(None)
    set_user_store(None)
    api_deps.set_adapter(None)
    api_deps.set_webhook_handler(None)

    yield collector

    set_quota_tracker(None)
    set_user_store(None)
    api_deps.set_adapter(None)
    api_deps.set_webhook_handler(None)


@pytest.fixture
def metrics(isolated_state) -> MetricsCollector:
    """The collector installed for this test."""
    return isolated_state


# ============================================================
# Clock
# ============================================================

class FakeClock:
    """Manually advanced UTC clock for quota window tests."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ============================================================
# Mock Providers (for unit tests)
# ============================================================

@pytest.fixture
def mock_openai_response():
    """Standard mock OpenAI chat response."""
    return {
        "id": "chatcmpl-test123",
        "object": "chat.completion",
        "created": 1234567890,
        "model": "gpt-3.5-turbo",
        "choices": [
            {
                "index": 0,
                "message": {
                    "role": "assistant",
                    "content": "Start by naming the shared goal, then propose two options."
                },
                "finish_reason": "stop"
            }
        ],
        "usage": {
            "prompt_tokens": 40,
            "completion_tokens": 12,
            "total_tokens": 52
        }
    }


@pytest.fixture
def mock_error_429():
    """Mock provider rate limit response."""
    return {
        "error": {
            "code": "rate_limit_exceeded",
            "message": "Rate limit exceeded",
            "type": "rate_limit_error"
        }
    }


# ============================================================
# Stripe Signatures
# ============================================================

def sign_stripe_payload(payload: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header for a payload (v1 HMAC-SHA256 scheme)."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def stripe_event(event_type: str, obj: Dict[str, Any], event_id: str = "evt_test") -> bytes:
    """Serialized Stripe event envelope."""
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }).encode("utf-8")


# ============================================================
# Logging Configuration
# ============================================================

@pytest.fixture(autouse=True)
def configure_test_logging():
    """Configure logging for tests."""
    logging.basicConfig(
        level=logging.DEBUG,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    yield


@pytest.fixture
def sign_stripe():
    return sign_stripe_payload


@pytest.fixture
def make_stripe_event():
    return stripe_event
