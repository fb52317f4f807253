"""
Coach API - Coaching Data Models

Inputs and outputs of the model router and the conflict analysis service.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..core.models import ChatActionType, ConflictSeverity, ConflictType, Role


@dataclass
class ModelConfig:
    """Model and prompt settings for one tier."""
    model_name: str
    provider_model: str
    max_tokens: int
    temperature: float
    features: List[str]
    system_prompt: str

    def has_feature(self, feature: str) -> bool:
        return feature in self.features


@dataclass
class ChatTurn:
    """Earlier message of the conversation."""
    role: Role
    content: str


@dataclass
class CoachingRequest:
    """A chat message to route to the tier's model."""
    message: str
    action_type: Optional[ChatActionType] = None
    history: List[ChatTurn] = field(default_factory=list)


@dataclass
class ModelResponse:
    """Reply produced for a coaching request."""
    reply: str
    context_used: List[str]
    cost_in_tokens: int
    model_used: str
    processing_time_ms: int = 0
    fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reply": self.reply,
            "context_used": list(self.context_used),
            "cost_in_tokens": self.cost_in_tokens,
            "model_used": self.model_used,
            "processing_time_ms": self.processing_time_ms,
        }


@dataclass
class ConflictAnalysisInput:
    """Description of a workplace conflict to analyze."""
    conflict_description: str
    conflict_type: Optional[ConflictType] = None
    severity: Optional[ConflictSeverity] = None
    stakeholders: List[str] = field(default_factory=list)
    organizational_context: Optional[str] = None
    desired_outcome: Optional[str] = None


@dataclass
class StakeholderAnalysis:
    name: str
    influence_level: str
    interests: str
    role_in_resolution: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "influence_level": self.influence_level,
            "interests": self.interests,
            "role_in_resolution": self.role_in_resolution,
        }


@dataclass
class ConflictAnalysisResult:
    """Structured analysis of a conflict."""
    id: str
    timestamp: str
    identified_conflict_type: ConflictType
    assessed_severity: ConflictSeverity
    root_cause_analysis: str
    stakeholder_analysis: List[StakeholderAnalysis]
    resolution_strategies: List[str]
    risk_assessment: str
    recommended_timeline: str
    tokens_used: int = 0
    analysis_complexity: str = "Low"
    fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "identified_conflict_type": self.identified_conflict_type.value,
            "assessed_severity": self.assessed_severity.value,
            "root_cause_analysis": self.root_cause_analysis,
            "stakeholder_analysis": [s.to_dict() for s in self.stakeholder_analysis],
            "resolution_strategies": list(self.resolution_strategies),
            "risk_assessment": self.risk_assessment,
            "recommended_timeline": self.recommended_timeline,
            "usage": {
                "tokens_used": self.tokens_used,
                "analysis_complexity": self.analysis_complexity,
            },
        }
