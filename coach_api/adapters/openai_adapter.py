"""
Coach API - OpenAI Provider Adapter

Chat completions against OpenAI's /chat/completions endpoint over httpx.
"""

import time
from typing import Any, Dict, Optional

import httpx

from .base import AdapterConfig, BaseAdapter, ProviderHealth
from ..core.models import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    FinishReason,
    Usage,
)
from ..core.errors import handle_openai_error


class OpenAIAdapter(BaseAdapter):
    """
    Adapter for the OpenAI chat API.

    Supports JSON mode (response_format json_object) and the sampling
    penalties used by the coaching prompts.
    """

    provider = "openai"
    DEFAULT_BASE_URL = "https://api.openai.com/v1"

    FINISH_REASONS = {
        "stop": FinishReason.STOP,
        "length": FinishReason.LENGTH,
        "content_filter": FinishReason.CONTENT_FILTER,
    }

    def __init__(
        self,
        config: AdapterConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(config)
        self.base_url = config.base_url or self.DEFAULT_BASE_URL
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {config.api_key}",
                "Content-Type": "application/json",
            },
            timeout=config.timeout,
            transport=transport,
        )

    async def chat_completion(
        self,
        request: ChatCompletionRequest,
        request_id: str = ""
    ) -> ChatCompletionResponse:
        """Generate a chat completion using OpenAI."""
        payload = self._build_chat_payload(request)

        try:
            response = await self.client.post("/chat/completions", json=payload)
            response.raise_for_status()
            data = response.json()
        except Exception as e:
            raise handle_openai_error(e, request_id)

        return self._parse_chat_response(data, request.model)

    async def health_check(self) -> ProviderHealth:
        """Check OpenAI API reachability."""
        try:
            start = time.time()
            response = await self.client.get("/models")
            latency = int((time.time() - start) * 1000)

            return ProviderHealth(
                provider=self.provider,
                is_healthy=response.status_code == 200,
                avg_latency_ms=latency
            )
        except httpx.HTTPError as e:
            return ProviderHealth(
                provider=self.provider,
                is_healthy=False,
                last_error=str(e)
            )

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    # ============================================================
    # Private helper methods
    # ============================================================

    def _build_chat_payload(self, request: ChatCompletionRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model,
            "messages": self._normalize_messages(request),
        }

        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.max_tokens is not None:
            payload["max_tokens"] = request.max_tokens
        if request.presence_penalty is not None:
            payload["presence_penalty"] = request.presence_penalty
        if request.frequency_penalty is not None:
            payload["frequency_penalty"] = request.frequency_penalty
        if request.json_mode:
            payload["response_format"] = {"type": "json_object"}

        return payload

    def _parse_chat_response(self, data: Dict[str, Any], model: str) -> ChatCompletionResponse:
        """Parse an OpenAI response body."""
        choices = data.get("choices") or []
        if not choices:
            raise handle_openai_error(ValueError("OpenAI returned no choices"))

        choice = choices[0]
        content = (choice.get("message") or {}).get("content") or ""
        finish_reason = self.FINISH_REASONS.get(
            choice.get("finish_reason") or "stop",
            FinishReason.STOP
        )

        usage_data = data.get("usage") or {}
        usage = Usage(
            prompt_tokens=usage_data.get("prompt_tokens", 0),
            completion_tokens=usage_data.get("completion_tokens", 0),
            total_tokens=usage_data.get("total_tokens", 0)
        )

        return ChatCompletionResponse(
            id=data.get("id", ""),
            content=content,
            model=data.get("model", model),
            provider=self.provider,
            created=data.get("created", int(time.time())),
            usage=usage,
            finish_reason=finish_reason,
        )
