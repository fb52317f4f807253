"""
Coach API - API Request/Response Models

Pydantic models for request validation and response documentation.
Requests accept both camelCase (web client) and snake_case field names.
"""

from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..coaching.models import ChatTurn, CoachingRequest, ConflictAnalysisInput
from ..core.models import ChatActionType, ConflictSeverity, ConflictType, Role


# ============================================================
# Chat
# ============================================================

class ChatTurnInput(BaseModel):
    """Earlier message of the conversation."""
    role: Role
    content: str = Field(..., max_length=32000)

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: Role) -> Role:
        if v == Role.SYSTEM:
            raise ValueError("history may only contain user and assistant turns")
        return v


class ChatRequest(BaseModel):
    """
    Coaching chat request.

    Example:
        {
            "message": "How do I push back on an unrealistic deadline?",
            "actionType": "plan_strategy"
        }
    """
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1, max_length=32000)
    action_type: Optional[ChatActionType] = Field(default=None, alias="actionType")
    history: List[ChatTurnInput] = Field(default_factory=list, max_length=50)
    context_data: List[str] = Field(default_factory=list, alias="contextData", max_length=20)

    @field_validator("message")
    @classmethod
    def validate_message(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message cannot be blank")
        return v

    def to_coaching_request(self) -> CoachingRequest:
        return CoachingRequest(
            message=self.message,
            action_type=self.action_type,
            history=[ChatTurn(role=turn.role, content=turn.content) for turn in self.history],
        )


class ChatResponse(BaseModel):
    """Coaching chat reply."""
    reply: str
    context_used: List[str]
    cost_in_tokens: int
    model_used: str
    processing_time_ms: int


# ============================================================
# Conflict Analysis
# ============================================================

class ConflictAnalysisRequest(BaseModel):
    """Workplace conflict to analyze."""
    model_config = ConfigDict(populate_by_name=True)

    conflict_description: str = Field(..., min_length=1, max_length=16000, alias="conflictDescription")
    conflict_type: Optional[ConflictType] = Field(default=None, alias="conflictType")
    severity: Optional[ConflictSeverity] = None
    stakeholders: List[str] = Field(default_factory=list, max_length=50)
    organizational_context: Optional[str] = Field(default=None, alias="organizationalContext")
    desired_outcome: Optional[str] = Field(default=None, alias="desiredOutcome")

    @field_validator("conflict_description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("conflictDescription cannot be blank")
        return v

    def to_input(self) -> ConflictAnalysisInput:
        return ConflictAnalysisInput(
            conflict_description=self.conflict_description,
            conflict_type=self.conflict_type,
            severity=self.severity,
            stakeholders=list(self.stakeholders),
            organizational_context=self.organizational_context,
            desired_outcome=self.desired_outcome,
        )


class StakeholderAnalysisOutput(BaseModel):
    name: str
    influence_level: str
    interests: str
    role_in_resolution: str


class AnalysisUsage(BaseModel):
    tokens_used: int
    analysis_complexity: str


class ConflictAnalysisResponse(BaseModel):
    """Structured conflict analysis."""
    id: str
    timestamp: str
    identified_conflict_type: ConflictType
    assessed_severity: ConflictSeverity
    root_cause_analysis: str
    stakeholder_analysis: List[StakeholderAnalysisOutput]
    resolution_strategies: List[str]
    risk_assessment: str
    recommended_timeline: str
    usage: AnalysisUsage


# ============================================================
# Quota
# ============================================================

class QuotaResponse(BaseModel):
    """Current principal's quota. Unlimited tiers report "unlimited"."""
    user_id: str
    tier: str
    limit: Union[int, str]
    remaining: Union[int, str]
    reset_time: str
    upgrade_url: Optional[str] = None


class UsageStatsResponse(BaseModel):
    total_principals: int
    active_principals: int
    tier_distribution: Dict[str, int]
    generated_at: Optional[str] = None


class CleanupResponse(BaseModel):
    removed: int
    remaining: int


# ============================================================
# Webhooks
# ============================================================

class WebhookAck(BaseModel):
    received: bool = True
