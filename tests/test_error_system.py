"""
Coach API - Error System Tests

Tests for the unified error handling system.
Verifies:
- Infra vs semantic classification is correct
- Error envelopes carry the fields clients rely on
- OpenAI HTTP errors map to canonical errors
"""

import pytest
from unittest.mock import MagicMock

import httpx

from coach_api.core.errors import (
    # Base classes
    CoachApiException,
    InfraError,
    SemanticError,
    ErrorType,
    ErrorDetails,
    # Specific errors
    ConnectionTimeoutError,
    ReadTimeoutError,
    UpstreamError,
    ProviderRateLimitedError,
    ServiceUnavailableError,
    WebhookConfigError,
    MissingTokenError,
    InvalidTokenError,
    PermissionDeniedError,
    InvalidRequestError,
    RequestTooLargeError,
    QuotaExceededError,
    WebhookSignatureError,
    # Provider mapping
    handle_openai_error,
)


def _status_error(status_code: int, body=None, headers=None) -> httpx.HTTPStatusError:
    response = MagicMock()
    response.status_code = status_code
    response.headers = headers or {}
    response.json.return_value = body or {}
    return httpx.HTTPStatusError("error", request=MagicMock(), response=response)


# ============================================================
# Error Classification Tests
# ============================================================

class TestErrorClassification:
    """Test infra vs semantic error classification."""

    def test_connection_timeout_is_infra(self):
        """ConnectionTimeoutError is infra and retryable."""
        error = ConnectionTimeoutError("openai", "req_123")
        assert isinstance(error, InfraError)
        assert error.error.type == ErrorType.INFRA
        assert error.error.retryable is True
        assert error.status_code == 504

    def test_service_unavailable_is_infra(self):
        error = ServiceUnavailableError("quota_unavailable", "Quota service unavailable")
        assert isinstance(error, InfraError)
        assert error.status_code == 503
        assert error.error.retry_after == 5

    def test_webhook_config_is_not_retryable(self):
        error = WebhookConfigError()
        assert isinstance(error, InfraError)
        assert error.status_code == 500
        assert error.error.retryable is False
        assert error.error.code == "webhook_not_configured"

    @pytest.mark.parametrize("error,status,code", [
        (MissingTokenError(), 401, "missing_token"),
        (InvalidTokenError(), 401, "invalid_token"),
        (PermissionDeniedError("admin"), 403, "permission_denied"),
        (InvalidRequestError("bad"), 400, "invalid_request"),
        (RequestTooLargeError("guest", 1000, 1200), 400, "request_too_large"),
        (WebhookSignatureError(), 400, "invalid_signature"),
    ])
    def test_client_errors_are_semantic(self, error, status, code):
        assert isinstance(error, SemanticError)
        assert isinstance(error, CoachApiException)
        assert error.error.type == ErrorType.SEMANTIC
        assert error.error.retryable is False
        assert error.status_code == status
        assert error.error.code == code


class TestQuotaExceeded:
    """The caller's own daily quota."""

    def test_status_and_retry(self):
        error = QuotaExceededError(
            tier="essential",
            limit=3,
            reset_time="2024-01-16T09:00:00+00:00",
            retry_after=3600,
            upgrade_url="/upgrade",
        )

        assert error.status_code == 429
        assert error.error.code == "rate_limit_exceeded"
        assert error.error.type == ErrorType.SEMANTIC
        assert error.error.retryable is True
        assert error.error.retry_after == 3600
        assert "3 queries" in error.error.message

    def test_details(self):
        error = QuotaExceededError("guest", 3, "2024-01-16T09:00:00+00:00", 10, upgrade_url="/upgrade")

        assert error.error.details == {
            "tier": "guest",
            "limit": 3,
            "reset_time": "2024-01-16T09:00:00+00:00",
            "upgrade_url": "/upgrade",
        }

    def test_upgrade_url_omitted_when_none(self):
        error = QuotaExceededError("power", 0, "2024-01-16T09:00:00+00:00", 10)
        assert "upgrade_url" not in error.error.details


# ============================================================
# Envelope Tests
# ============================================================

class TestErrorDetails:

    def test_to_dict_includes_required_fields(self):
        """to_dict must include all required fields."""
        details = ErrorDetails(
            code="provider_rate_limited",
            message="Rate limit exceeded",
            type=ErrorType.INFRA,
            request_id="req_123",
            retryable=True,
            retry_after=60,
            provider="openai"
        )
        error = details.to_dict()["error"]

        assert error["code"] == "provider_rate_limited"
        assert error["message"] == "Rate limit exceeded"
        assert error["type"] == "infra_error"
        assert error["request_id"] == "req_123"
        assert error["retryable"] is True
        assert error["retry_after"] == 60
        assert error["provider"] == "openai"

    def test_to_dict_excludes_empty_fields(self):
        """to_dict should exclude None optional fields."""
        details = ErrorDetails(
            code="invalid_request",
            message="Bad request",
            type=ErrorType.SEMANTIC,
            request_id="req_123",
        )
        error = details.to_dict()["error"]

        assert "provider" not in error
        assert "param" not in error
        assert "retry_after" not in error
        assert "details" not in error

    def test_invalid_request_param(self):
        error = InvalidRequestError("Missing request body", param="body").error.to_dict()["error"]
        assert error["param"] == "body"

    def test_request_too_large_details(self):
        error = RequestTooLargeError("essential", 2000, 2500, request_id="req_1")

        assert error.error.param == "message"
        assert error.error.details["estimated_tokens"] == 2500
        assert "essential tier" in error.error.message


# ============================================================
# Provider Error Handler Tests
# ============================================================

class TestOpenAIErrorHandler:
    """Test OpenAI error handler."""

    def test_passthrough(self):
        error = InvalidRequestError("bad")
        assert handle_openai_error(error) is error

    def test_handles_connect_timeout(self):
        """Timeout should map to ConnectionTimeoutError."""
        result = handle_openai_error(httpx.ConnectTimeout("Connection timed out"), "req_123")

        assert isinstance(result, ConnectionTimeoutError)
        assert result.error.code == "connection_timeout"
        assert result.error.provider == "openai"
        assert result.error.request_id == "req_123"

    def test_handles_read_timeout(self):
        result = handle_openai_error(httpx.ReadTimeout("slow"))
        assert isinstance(result, ReadTimeoutError)

    def test_handles_connect_error(self):
        result = handle_openai_error(httpx.ConnectError("refused"))
        assert isinstance(result, ConnectionTimeoutError)

    def test_handles_rate_limit(self):
        """429 should map to ProviderRateLimitedError."""
        error = _status_error(
            429,
            {"error": {"message": "Rate limit exceeded", "type": "rate_limit_error"}},
            {"retry-after": "30"},
        )
        result = handle_openai_error(error, "req_123")

        assert isinstance(result, ProviderRateLimitedError)
        assert result.error.code == "provider_rate_limited"
        assert result.error.retry_after == 30
        assert result.status_code == 503

    def test_rate_limit_with_bad_retry_after(self):
        result = handle_openai_error(_status_error(429, headers={"retry-after": "soon"}))
        assert result.error.retry_after == 60

    def test_handles_auth_error(self):
        """401 should map to SemanticError with provider_auth_error."""
        error = _status_error(401, {"error": {"message": "Invalid API key"}})
        result = handle_openai_error(error, "req_123")

        assert isinstance(result, SemanticError)
        assert result.error.code == "provider_auth_error"
        assert result.error.retryable is False
        assert "Invalid API key" in result.error.message

    def test_handles_server_error(self):
        error = _status_error(500, {"error": {"message": "boom"}}, {"x-request-id": "oa_1"})
        result = handle_openai_error(error)

        assert isinstance(result, UpstreamError)
        assert result.error.code == "upstream_500"
        assert result.error.provider_request_id == "oa_1"
        assert result.status_code == 502

    def test_handles_bad_request(self):
        result = handle_openai_error(_status_error(400, {"error": {"message": "bad model"}}))

        assert result.error.code == "provider_request_error"
        assert result.error.retryable is False

    def test_unknown_exception(self):
        result = handle_openai_error(RuntimeError("weird"))

        assert isinstance(result, InfraError)
        assert result.error.code == "provider_error"
        assert result.error.message == "weird"
