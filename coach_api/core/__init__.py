"""
Coach API Core Module

Domain enums, provider-neutral chat models and the canonical error layer.
"""

from .models import (
    # Enums
    Tier,
    Role,
    FinishReason,
    ChatActionType,
    ConflictType,
    ConflictSeverity,

    # Messages
    Message,

    # Requests / Responses
    ChatCompletionRequest,
    ChatCompletionResponse,
    Usage,

    # Helpers
    message_to_dict,
)
from .errors import (
    ErrorType,
    ErrorDetails,
    CoachApiException,
    InfraError,
    SemanticError,
    QuotaExceededError,
)

__all__ = [
    "Tier",
    "Role",
    "FinishReason",
    "ChatActionType",
    "ConflictType",
    "ConflictSeverity",
    "Message",
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    "Usage",
    "message_to_dict",
    "ErrorType",
    "ErrorDetails",
    "CoachApiException",
    "InfraError",
    "SemanticError",
    "QuotaExceededError",
]
