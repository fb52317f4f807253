"""
Coach API - Conflict Analysis

Structured workplace conflict analysis via the LLM's JSON mode, with a
rule-based fallback when the provider call or JSON parsing fails.
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..adapters.base import BaseAdapter
from ..core.models import (
    ChatCompletionRequest,
    ConflictSeverity,
    ConflictType,
    Message,
    Tier,
)
from ..observability.logging import TimedOperation, get_logger
from ..observability.metrics import get_metrics
from ..observability.tracing import trace_provider_call
from .fallback import (
    FALLBACK_RISKS,
    FALLBACK_ROOT_CAUSE,
    FALLBACK_STRATEGIES,
    FALLBACK_TIMELINE,
)
from .models import (
    ConflictAnalysisInput,
    ConflictAnalysisResult,
    ModelConfig,
    StakeholderAnalysis,
)


logger = get_logger(__name__)

ANALYSIS_TEMPERATURE = 0.3

ANALYSIS_CONFIGS: Dict[str, ModelConfig] = {
    Tier.POWER.value: ModelConfig(
        model_name="power-conflict-analyst",
        provider_model="gpt-4-turbo-preview",
        max_tokens=3000,
        temperature=ANALYSIS_TEMPERATURE,
        features=[],
        system_prompt=(
            "You are a senior organizational psychologist and conflict resolution expert. Provide "
            "sophisticated, evidence-based conflict analysis with deep insights into organizational dynamics, "
            "stakeholder psychology, and strategic resolution approaches."
        ),
    ),
    Tier.ESSENTIAL.value: ModelConfig(
        model_name="essential-conflict-analyst",
        provider_model="gpt-3.5-turbo",
        max_tokens=2000,
        temperature=ANALYSIS_TEMPERATURE,
        features=[],
        system_prompt=(
            "You are a workplace conflict resolution specialist. Provide practical, actionable conflict "
            "analysis with clear strategies and stakeholder insights."
        ),
    ),
}

DEFAULT_ANALYSIS_CONFIG = ModelConfig(
    model_name="guest-conflict-analyst",
    provider_model="gpt-3.5-turbo",
    max_tokens=1500,
    temperature=ANALYSIS_TEMPERATURE,
    features=[],
    system_prompt=(
        "You are a workplace advisor specializing in conflict resolution. Provide helpful conflict analysis "
        "with practical recommendations."
    ),
)

RESPONSE_FORMAT = """
Please provide your analysis in the following JSON format:
{
  "conflictType": "one of: interpersonal, team_dynamics, resource_allocation, strategic_disagreement, communication_breakdown, power_struggle, cultural_clash, performance_related",
  "severity": "one of: low, medium, high, critical",
  "rootCause": "detailed analysis of the underlying causes",
  "stakeholders": [
    {
      "name": "stakeholder name or role",
      "influenceLevel": "High/Medium/Low",
      "interests": "their motivations and interests",
      "roleInResolution": "how they can contribute to resolution"
    }
  ],
  "strategies": ["specific actionable resolution strategy"],
  "risks": "assessment of risks if conflict remains unresolved",
  "timeline": "recommended timeline for resolution"
}"""


def map_conflict_type(value: Any) -> ConflictType:
    """Known conflict type, or interpersonal."""
    if isinstance(value, ConflictType):
        return value
    try:
        return ConflictType(str(value).strip().lower())
    except ValueError:
        return ConflictType.INTERPERSONAL


def map_severity(value: Any) -> ConflictSeverity:
    """Known severity, or medium."""
    if isinstance(value, ConflictSeverity):
        return value
    try:
        return ConflictSeverity(str(value).strip().lower())
    except ValueError:
        return ConflictSeverity.MEDIUM


def assess_complexity(request: ConflictAnalysisInput) -> str:
    """Low / Medium / High from stakeholders, context, type and severity."""
    score = 0
    if len(request.stakeholders) > 3:
        score += 1
    if request.organizational_context and len(request.organizational_context) > 100:
        score += 1
    if request.conflict_type in (ConflictType.POWER_STRUGGLE, ConflictType.STRATEGIC_DISAGREEMENT):
        score += 1
    if request.severity in (ConflictSeverity.HIGH, ConflictSeverity.CRITICAL):
        score += 1

    if score >= 3:
        return "High"
    if score >= 2:
        return "Medium"
    return "Low"


def build_analysis_prompt(request: ConflictAnalysisInput) -> str:
    lines = [
        "Analyze the following workplace conflict and provide a structured JSON response:",
        "",
        "CONFLICT DESCRIPTION:",
        request.conflict_description,
        "",
    ]
    if request.conflict_type:
        lines.append(f"CONFLICT TYPE: {request.conflict_type.value}")
    if request.severity:
        lines.append(f"PERCEIVED SEVERITY: {request.severity.value}")
    if request.stakeholders:
        lines.append(f"STAKEHOLDERS: {', '.join(request.stakeholders)}")
    if request.organizational_context:
        lines.append(f"ORGANIZATIONAL CONTEXT: {request.organizational_context}")
    if request.desired_outcome:
        lines.append(f"DESIRED OUTCOME: {request.desired_outcome}")

    return "\n".join(lines) + "\n" + RESPONSE_FORMAT


def parse_stakeholders(raw: Any) -> List[StakeholderAnalysis]:
    if not isinstance(raw, list):
        return []
    result = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        result.append(StakeholderAnalysis(
            name=item.get("name") or "Unknown Stakeholder",
            influence_level=item.get("influenceLevel") or "Medium",
            interests=item.get("interests") or "Interests not specified",
            role_in_resolution=item.get("roleInResolution") or "Role in resolution not specified",
        ))
    return result


def fallback_stakeholders(names: List[str]) -> List[StakeholderAnalysis]:
    if not names:
        return [StakeholderAnalysis(
            name="Primary Stakeholder",
            influence_level="High",
            interests="Resolution of the conflict",
            role_in_resolution="Key participant in resolution process",
        )]

    return [
        StakeholderAnalysis(
            name=name,
            influence_level="High" if index == 0 else "Medium",
            interests="Successful resolution of the conflict",
            role_in_resolution="Primary decision maker" if index == 0 else "Important contributor to resolution",
        )
        for index, name in enumerate(names)
    ]


class ConflictAnalysisService:
    """
    Usage:
        service = ConflictAnalysisService(adapter)
        result = await service.analyze_conflict(request, tier="power")
    """

    def __init__(self, adapter: Optional[BaseAdapter]):
        self.adapter = adapter

    def get_model_config(self, tier: str) -> ModelConfig:
        return ANALYSIS_CONFIGS.get(tier, DEFAULT_ANALYSIS_CONFIG)

    async def analyze_conflict(
        self,
        request: ConflictAnalysisInput,
        tier: str,
        request_id: str = ""
    ) -> ConflictAnalysisResult:
        """Analyze a conflict. Never raises for provider or parsing failures."""
        analysis_id = str(uuid.uuid4())
        timestamp = datetime.now(timezone.utc).isoformat()
        config = self.get_model_config(tier)
        metrics = get_metrics()

        if self.adapter is None:
            logger.warning("No LLM adapter configured, serving rule-based analysis", tier=tier)
            metrics.record_model_call(tier, config.provider_model, "fallback")
            return self._fallback_analysis(request, analysis_id, timestamp)

        completion = ChatCompletionRequest(
            model=config.provider_model,
            messages=[
                Message.system(config.system_prompt),
                Message.user(build_analysis_prompt(request)),
            ],
            temperature=ANALYSIS_TEMPERATURE,
            max_tokens=config.max_tokens,
            json_mode=True,
        )

        try:
            async with TimedOperation("conflict_analysis", logger, extra={"tier": tier}):
                with trace_provider_call(
                    self.adapter.provider, config.provider_model, tier=tier, operation="conflict_analysis"
                ):
                    response = await self.adapter.chat_completion(completion, request_id)
            data = json.loads(response.content or "{}")
            if not isinstance(data, dict):
                raise ValueError("analysis is not a JSON object")
        except Exception as e:
            logger.warning(
                "Conflict analysis failed, serving rule-based analysis",
                tier=tier,
                error=str(e),
                error_type=type(e).__name__,
            )
            metrics.record_model_call(tier, config.provider_model, "fallback")
            return self._fallback_analysis(request, analysis_id, timestamp)

        tokens = response.usage.total_tokens
        metrics.record_model_call(tier, config.provider_model, "success")
        metrics.record_tokens(config.provider_model, tokens)

        strategies = data.get("strategies")
        return ConflictAnalysisResult(
            id=analysis_id,
            timestamp=timestamp,
            identified_conflict_type=map_conflict_type(data.get("conflictType") or request.conflict_type),
            assessed_severity=map_severity(data.get("severity") or request.severity),
            root_cause_analysis=data.get("rootCause") or "Unable to determine root cause from provided information.",
            stakeholder_analysis=parse_stakeholders(data.get("stakeholders")),
            resolution_strategies=[str(s) for s in strategies] if isinstance(strategies, list) else [],
            risk_assessment=data.get("risks") or "Risk assessment unavailable.",
            recommended_timeline=data.get("timeline") or "Timeline assessment unavailable.",
            tokens_used=tokens,
            analysis_complexity=assess_complexity(request),
        )

    def _fallback_analysis(
        self,
        request: ConflictAnalysisInput,
        analysis_id: str,
        timestamp: str
    ) -> ConflictAnalysisResult:
        conflict_type = request.conflict_type or ConflictType.INTERPERSONAL
        return ConflictAnalysisResult(
            id=analysis_id,
            timestamp=timestamp,
            identified_conflict_type=conflict_type,
            assessed_severity=request.severity or ConflictSeverity.MEDIUM,
            root_cause_analysis=FALLBACK_ROOT_CAUSE,
            stakeholder_analysis=fallback_stakeholders(request.stakeholders),
            resolution_strategies=list(FALLBACK_STRATEGIES[conflict_type]),
            risk_assessment=FALLBACK_RISKS,
            recommended_timeline=FALLBACK_TIMELINE,
            tokens_used=0,
            analysis_complexity=assess_complexity(request),
            fallback=True,
        )
