"""
Coach API - Error Definitions

Canonical error taxonomy with infra vs semantic classification.
Every error raised by the HTTP surface is one of these, so the
exception handlers in server.py can render a single JSON envelope.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorType(str, Enum):
    """Error classification."""
    INFRA = "infra_error"
    SEMANTIC = "semantic_error"


@dataclass
class ErrorDetails:
    """Full error information for API response."""
    # Core fields (always present)
    code: str
    message: str
    type: ErrorType

    # Context fields
    provider: Optional[str] = None
    param: Optional[str] = None

    # Trace fields
    request_id: str = ""
    provider_request_id: Optional[str] = None

    # Recovery fields
    retryable: bool = False
    retry_after: Optional[int] = None

    # Debug fields
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "code": self.code,
            "message": self.message,
            "type": self.type.value,
            "request_id": self.request_id,
            "retryable": self.retryable,
        }

        if self.provider:
            result["provider"] = self.provider
        if self.param:
            result["param"] = self.param
        if self.provider_request_id:
            result["provider_request_id"] = self.provider_request_id
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        if self.details:
            result["details"] = self.details

        return {"error": result}


class CoachApiException(Exception):
    """Base exception for all Coach API errors."""

    def __init__(self, error: ErrorDetails, status_code: int = 500):
        self.error = error
        self.status_code = status_code
        super().__init__(error.message)


# ============================================================
# Infra Errors (Retryable)
# ============================================================

class InfraError(CoachApiException):
    """Base class for infrastructure errors."""
    pass


class ConnectionTimeoutError(InfraError):
    """Failed to connect to provider."""

    def __init__(self, provider: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="connection_timeout",
                message=f"Failed to connect to {provider} API within timeout",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=True,
                retry_after=5
            ),
            status_code=504
        )


class ReadTimeoutError(InfraError):
    """Provider did not respond in time."""

    def __init__(self, provider: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="read_timeout",
                message=f"{provider} did not respond within timeout",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=True,
                retry_after=10
            ),
            status_code=504
        )


class UpstreamError(InfraError):
    """Provider returned server error."""

    def __init__(
        self,
        provider: str,
        status_code: int,
        message: str = "",
        request_id: str = "",
        provider_request_id: str = ""
    ):
        code_map = {
            500: "upstream_500",
            502: "upstream_502",
            503: "upstream_503",
            504: "upstream_504",
        }
        super().__init__(
            ErrorDetails(
                code=code_map.get(status_code, "upstream_error"),
                message=message or f"{provider} returned error {status_code}",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                provider_request_id=provider_request_id or None,
                retryable=True,
                retry_after=30
            ),
            status_code=502 if status_code == 500 else status_code
        )


class ProviderRateLimitedError(InfraError):
    """The LLM provider throttled us."""

    def __init__(self, provider: str, retry_after: int = 60, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="provider_rate_limited",
                message=f"{provider} rate limit exceeded. Retry after {retry_after} seconds.",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=True,
                retry_after=retry_after
            ),
            status_code=503
        )


class ServiceUnavailableError(InfraError):
    """A required collaborator is not initialized or failed."""

    def __init__(self, code: str, message: str, request_id: str = "", retry_after: int = 5):
        super().__init__(
            ErrorDetails(
                code=code,
                message=message,
                type=ErrorType.INFRA,
                request_id=request_id,
                retryable=True,
                retry_after=retry_after
            ),
            status_code=503
        )


class WebhookConfigError(InfraError):
    """Webhook processing is not configured on this deployment."""

    def __init__(self, message: str = "Stripe webhook secret not configured"):
        super().__init__(
            ErrorDetails(
                code="webhook_not_configured",
                message=message,
                type=ErrorType.INFRA,
                retryable=False
            ),
            status_code=500
        )


# ============================================================
# Semantic Errors (Not Retryable)
# ============================================================

class SemanticError(CoachApiException):
    """Base class for semantic errors (client must fix request)."""
    pass


class MissingTokenError(SemanticError):
    """No bearer token provided."""

    def __init__(self, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="missing_token",
                message="Authorization header required",
                type=ErrorType.SEMANTIC,
                request_id=request_id,
                retryable=False
            ),
            status_code=401
        )


class InvalidTokenError(SemanticError):
    """Bearer token failed validation."""

    def __init__(self, message: str = "Invalid or expired token", request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="invalid_token",
                message=message,
                type=ErrorType.SEMANTIC,
                request_id=request_id,
                retryable=False
            ),
            status_code=401
        )


class PermissionDeniedError(SemanticError):
    """Caller lacks a required permission."""

    def __init__(self, permission: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="permission_denied",
                message=f"Permission required: {permission}",
                type=ErrorType.SEMANTIC,
                request_id=request_id,
                retryable=False
            ),
            status_code=403
        )


class InvalidRequestError(SemanticError):
    """Request validation failed."""

    def __init__(
        self,
        message: str,
        param: str = "",
        request_id: str = "",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            ErrorDetails(
                code="invalid_request",
                message=message,
                type=ErrorType.SEMANTIC,
                param=param or None,
                request_id=request_id,
                retryable=False,
                details=details or {}
            ),
            status_code=400
        )


class RequestTooLargeError(SemanticError):
    """Message exceeds the token budget of the caller's tier."""

    def __init__(
        self,
        tier: str,
        max_tokens: int,
        estimated_tokens: int,
        request_id: str = ""
    ):
        super().__init__(
            ErrorDetails(
                code="request_too_large",
                message=(
                    f"Request too large for {tier} tier. Please shorten your message "
                    f"or upgrade to Power Strategist."
                ),
                type=ErrorType.SEMANTIC,
                param="message",
                request_id=request_id,
                retryable=False,
                details={
                    "tier": tier,
                    "max_tokens": max_tokens,
                    "estimated_tokens": estimated_tokens
                }
            ),
            status_code=400
        )


class QuotaExceededError(SemanticError):
    """The caller's own daily query quota is used up."""

    def __init__(
        self,
        tier: str,
        limit: int,
        reset_time: str,
        retry_after: int,
        upgrade_url: Optional[str] = None,
        request_id: str = ""
    ):
        details: Dict[str, Any] = {
            "tier": tier,
            "limit": limit,
            "reset_time": reset_time,
        }
        if upgrade_url:
            details["upgrade_url"] = upgrade_url

        super().__init__(
            ErrorDetails(
                code="rate_limit_exceeded",
                message=(
                    f"Daily query limit exceeded. You have used all {limit} "
                    f"queries for today."
                ),
                type=ErrorType.SEMANTIC,  # Semantic because it's the user's own quota
                request_id=request_id,
                retryable=True,  # Can retry once the window resets
                retry_after=retry_after,
                details=details
            ),
            status_code=429
        )


class WebhookSignatureError(SemanticError):
    """Webhook payload failed signature verification."""

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(
            ErrorDetails(
                code="invalid_signature",
                message=message,
                type=ErrorType.SEMANTIC,
                retryable=False
            ),
            status_code=400
        )


# ============================================================
# Provider error mapping
# ============================================================

def handle_openai_error(
    error: Exception,
    request_id: str = ""
) -> CoachApiException:
    """
    Convert an OpenAI HTTP error to a canonical exception.

    OpenAI error format:
    {
        "error": {
            "message": "...",
            "type": "invalid_request_error|authentication_error|...",
            "code": "invalid_api_key|model_not_found|...",
            "param": "..."
        }
    }
    """
    import httpx

    provider = "openai"

    if isinstance(error, CoachApiException):
        return error

    if isinstance(error, httpx.TimeoutException):
        if isinstance(error, httpx.ConnectTimeout):
            return ConnectionTimeoutError(provider, request_id)
        return ReadTimeoutError(provider, request_id)

    if isinstance(error, httpx.ConnectError):
        return ConnectionTimeoutError(provider, request_id)

    if isinstance(error, httpx.HTTPStatusError):
        status_code = error.response.status_code

        try:
            error_data = error.response.json()
            error_info = error_data.get("error", {})
            message = error_info.get("message", str(error))
            provider_req_id = error.response.headers.get("x-request-id", "")
        except Exception:
            message = str(error)
            provider_req_id = ""

        if status_code == 401:
            return SemanticError(
                ErrorDetails(
                    code="provider_auth_error",
                    message=f"OpenAI authentication failed: {message}",
                    type=ErrorType.SEMANTIC,
                    provider=provider,
                    request_id=request_id,
                    provider_request_id=provider_req_id or None,
                    retryable=False
                ),
                status_code=502
            )

        if status_code == 429:
            retry_after = error.response.headers.get("retry-after", "60")
            try:
                retry_seconds = int(float(retry_after))
            except ValueError:
                retry_seconds = 60
            return ProviderRateLimitedError(provider, retry_seconds, request_id)

        if status_code >= 500:
            return UpstreamError(
                provider,
                status_code,
                message=message,
                request_id=request_id,
                provider_request_id=provider_req_id
            )

        return SemanticError(
            ErrorDetails(
                code="provider_request_error",
                message=f"OpenAI rejected the request: {message}",
                type=ErrorType.SEMANTIC,
                provider=provider,
                request_id=request_id,
                provider_request_id=provider_req_id or None,
                retryable=False
            ),
            status_code=502
        )

    return InfraError(
        ErrorDetails(
            code="provider_error",
            message=str(error) or type(error).__name__,
            type=ErrorType.INFRA,
            provider=provider,
            request_id=request_id,
            retryable=True
        ),
        status_code=502
    )
