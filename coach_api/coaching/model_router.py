"""
Coach API - Model Router

Chooses model and prompt settings by subscription tier and forwards the
conversation to the LLM adapter. Provider failures degrade to canned
coaching content instead of surfacing as errors.
"""

import math
import random
import time
from typing import Dict, List, Optional

from ..adapters.base import BaseAdapter
from ..core.errors import RequestTooLargeError
from ..core.models import ChatActionType, ChatCompletionRequest, Message, Tier
from ..observability.logging import get_logger
from ..observability.metrics import get_metrics
from ..observability.tracing import trace_provider_call
from .fallback import POWER_ENHANCEMENTS, replies_for
from .models import CoachingRequest, ModelConfig, ModelResponse


logger = get_logger(__name__)


# ============================================================
# Tier configuration
# ============================================================

MODEL_CONFIGS: Dict[str, ModelConfig] = {
    Tier.POWER.value: ModelConfig(
        model_name="power-strategist-gpt",
        provider_model="gpt-4-turbo-preview",
        max_tokens=4000,
        temperature=0.7,
        features=["deep_context", "voice_input", "personalization"],
        system_prompt=(
            "You are a senior executive coach specializing in corporate politics and workplace influence. "
            "Provide sophisticated, strategic advice with deep contextual understanding. Include specific "
            "tactics, timing considerations, and risk assessments."
        ),
    ),
    Tier.ESSENTIAL.value: ModelConfig(
        model_name="essential-coach-gpt",
        provider_model="gpt-3.5-turbo",
        max_tokens=2000,
        temperature=0.6,
        features=["basic_coaching"],
        system_prompt=(
            "You are a professional workplace coach. Provide practical, actionable advice for corporate "
            "situations. Focus on clear strategies and professional communication."
        ),
    ),
    Tier.GUEST.value: ModelConfig(
        model_name="guest-advisor",
        provider_model="gpt-3.5-turbo",
        max_tokens=1000,
        temperature=0.5,
        features=["limited_advice"],
        system_prompt=(
            "You are a workplace advisor. Provide helpful but general advice for professional situations. "
            "Keep responses concise and focused."
        ),
    ),
}

ACTION_GUIDANCE: Dict[ChatActionType, str] = {
    ChatActionType.EVALUATE_SCENARIO: (
        "Focus on analyzing the situation, identifying key stakeholders, risks, and opportunities. "
        "Provide a structured evaluation."
    ),
    ChatActionType.PLAN_STRATEGY: (
        "Develop a comprehensive strategic plan with specific steps, timeline, and contingencies."
    ),
    ChatActionType.ANALYZE_STAKEHOLDERS: (
        "Provide detailed stakeholder mapping including influence levels, interests, and recommended "
        "engagement approaches."
    ),
    ChatActionType.SUMMARIZE_POLICY: (
        "Break down the policy into key components, implications, and actionable insights."
    ),
    ChatActionType.BRAINSTORM_INSIGHTS: (
        "Generate creative perspectives and innovative approaches to the challenge."
    ),
    ChatActionType.DRAFT_EMAIL: (
        "Create professional, persuasive email content with clear structure and appropriate tone."
    ),
}

DEFAULT_GUIDANCE = "Provide comprehensive workplace coaching advice tailored to the specific situation."

EMPTY_REPLY = "I apologize, but I was unable to generate a response. Please try again."

# Sampling penalties applied to every coaching call
PRESENCE_PENALTY = 0.1
FREQUENCY_PENALTY = 0.1


def estimate_tokens(text: str) -> int:
    """Rough token estimate, about four characters per token."""
    return math.ceil(len(text) / 4)


class ModelRouter:
    """
    Routes coaching chat to the model configured for the caller's tier.

    Usage:
        router = ModelRouter(adapter)
        response = await router.route_to_model(request, tier="essential")
    """

    def __init__(
        self,
        adapter: Optional[BaseAdapter],
        rng: Optional[random.Random] = None
    ):
        self.adapter = adapter
        self._rng = rng or random.Random()

    def get_model_config(self, tier: str) -> ModelConfig:
        """Config for a tier; unknown tiers get the guest config."""
        return MODEL_CONFIGS.get(tier, MODEL_CONFIGS[Tier.GUEST.value])

    def check_tier_budget(self, tier: str, message: str, request_id: str = "") -> None:
        """
        Reject messages larger than the tier's token budget.

        Raises:
            RequestTooLargeError: Estimated tokens exceed max_tokens (non-power tiers)
        """
        if tier == Tier.POWER.value:
            return

        config = self.get_model_config(tier)
        estimated = estimate_tokens(message)
        if estimated > config.max_tokens:
            raise RequestTooLargeError(
                tier=tier,
                max_tokens=config.max_tokens,
                estimated_tokens=estimated,
                request_id=request_id,
            )

    def build_messages(
        self,
        request: CoachingRequest,
        config: ModelConfig,
        context_data: Optional[List[str]] = None
    ) -> List[Message]:
        """
        Assemble the prompt in order: system prompt, deep context (tiers with
        the deep_context feature), history, action guidance, user message.
        """
        messages = [Message.system(config.system_prompt)]

        if context_data and config.has_feature("deep_context"):
            messages.append(Message.system(
                "Previous conversation context:\n" + "\n\n".join(context_data)
            ))

        for turn in request.history:
            messages.append(Message(role=turn.role, content=turn.content))

        if request.action_type is not None:
            messages.append(Message.system(
                ACTION_GUIDANCE.get(request.action_type, DEFAULT_GUIDANCE)
            ))

        messages.append(Message.user(request.message))
        return messages

    async def route_to_model(
        self,
        request: CoachingRequest,
        tier: str,
        context_data: Optional[List[str]] = None,
        request_id: str = ""
    ) -> ModelResponse:
        """
        Generate a coaching reply for the caller's tier.

        Raises:
            RequestTooLargeError: Message over the tier budget
        """
        start = time.perf_counter()
        config = self.get_model_config(tier)
        self.check_tier_budget(tier, request.message, request_id)

        messages = self.build_messages(request, config, context_data)
        metrics = get_metrics()

        if self.adapter is None:
            logger.warning("No LLM adapter configured, serving fallback", tier=tier)
            return self._fallback(request, config, context_data, tier)

        completion = ChatCompletionRequest(
            model=config.provider_model,
            messages=messages,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            presence_penalty=PRESENCE_PENALTY,
            frequency_penalty=FREQUENCY_PENALTY,
        )

        try:
            with trace_provider_call(self.adapter.provider, config.provider_model, tier=tier) as span:
                response = await self.adapter.chat_completion(completion, request_id)
                span.set_attribute("ai.tokens", response.usage.total_tokens)
        except Exception as e:
            logger.warning(
                "LLM call failed, serving fallback",
                tier=tier,
                model=config.provider_model,
                error=str(e),
                error_type=type(e).__name__,
            )
            return self._fallback(request, config, context_data, tier)

        tokens = response.usage.total_tokens
        metrics.record_model_call(tier, config.provider_model, "success")
        metrics.record_tokens(config.provider_model, tokens)

        return ModelResponse(
            reply=response.content or EMPTY_REPLY,
            context_used=list(context_data or []),
            cost_in_tokens=tokens,
            model_used=config.model_name,
            processing_time_ms=int((time.perf_counter() - start) * 1000),
        )

    def _fallback(
        self,
        request: CoachingRequest,
        config: ModelConfig,
        context_data: Optional[List[str]],
        tier: str
    ) -> ModelResponse:
        """Canned reply labelled as fallback; power tier gets one enhancement."""
        start = time.perf_counter()
        reply = self._rng.choice(replies_for(request.action_type))
        if config.model_name == MODEL_CONFIGS[Tier.POWER.value].model_name:
            reply += self._rng.choice(POWER_ENHANCEMENTS)

        get_metrics().record_model_call(tier, config.provider_model, "fallback")

        return ModelResponse(
            reply=reply,
            context_used=list(context_data or []),
            cost_in_tokens=0,
            model_used=f"{config.model_name} (fallback)",
            processing_time_ms=int((time.perf_counter() - start) * 1000),
            fallback=True,
        )
