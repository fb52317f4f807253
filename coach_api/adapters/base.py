"""
Coach API - LLM Adapter Base

Abstract base class for LLM provider adapters. The coaching services
only talk to this interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..core.models import ChatCompletionRequest, ChatCompletionResponse, message_to_dict


@dataclass
class AdapterConfig:
    """Configuration for a provider adapter."""
    api_key: str
    base_url: Optional[str] = None
    timeout: int = 60


@dataclass
class ProviderHealth:
    """Health status of a provider."""
    provider: str
    is_healthy: bool
    avg_latency_ms: Optional[int] = None
    last_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "is_healthy": self.is_healthy,
            "avg_latency_ms": self.avg_latency_ms,
            "last_error": self.last_error,
        }


class BaseAdapter(ABC):
    """
    Abstract base class for LLM provider adapters.

    The adapter is responsible for:
    1. Converting ChatCompletionRequest to the provider's wire format
    2. Making the API call
    3. Converting the provider response to ChatCompletionResponse
    4. Mapping provider failures to CoachApiException subclasses
    """

    provider: str = ""

    def __init__(self, config: AdapterConfig):
        self.config = config

    @abstractmethod
    async def chat_completion(
        self,
        request: ChatCompletionRequest,
        request_id: str = ""
    ) -> ChatCompletionResponse:
        """
        Generate a chat completion.

        Raises:
            CoachApiException: Provider failure, already classified
        """
        pass

    @abstractmethod
    async def health_check(self) -> ProviderHealth:
        pass

    async def close(self):
        """Release network resources."""
        return

    def _normalize_messages(self, request: ChatCompletionRequest) -> List[Dict[str, Any]]:
        return [message_to_dict(msg) for msg in request.messages]
