"""
Coach API - Stub Provider Adapter

Deterministic in-process adapter for local runs and tests.
No network calls, no provider key required.
"""

import json

from .base import AdapterConfig, BaseAdapter, ProviderHealth
from ..core.models import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    FinishReason,
    Usage,
)


STUB_REPLY = "stub: deterministic coaching response"

STUB_ANALYSIS = {
    "conflictType": "resource_allocation",
    "severity": "medium",
    "rootCause": "stub: unclear priorities between the parties",
    "stakeholders": [
        {
            "name": "Team Lead",
            "influenceLevel": "High",
            "interests": "Delivering the roadmap",
            "roleInResolution": "Decision maker",
        }
    ],
    "strategies": ["stub: schedule an alignment meeting"],
    "risks": "stub: delivery delays",
    "timeline": "stub: within one week",
}


class StubAdapter(BaseAdapter):
    """Deterministic adapter for tests and smoke checks."""

    provider = "stub"

    def __init__(self, config: AdapterConfig = None):
        super().__init__(config or AdapterConfig(api_key="stub"))
        self.calls = 0

    async def chat_completion(
        self,
        request: ChatCompletionRequest,
        request_id: str = "",
    ) -> ChatCompletionResponse:
        self.calls += 1
        content = json.dumps(STUB_ANALYSIS) if request.json_mode else STUB_REPLY
        return ChatCompletionResponse.create(
            content=content,
            model=request.model,
            provider=self.provider,
            usage=Usage(prompt_tokens=8, completion_tokens=6),
            finish_reason=FinishReason.STOP,
        )

    async def health_check(self) -> ProviderHealth:
        return ProviderHealth(provider=self.provider, is_healthy=True, avg_latency_ms=0)
