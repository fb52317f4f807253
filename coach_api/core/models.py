"""
Coach API - Core Data Models

Domain enums and the provider-neutral chat request/response shapes
passed between the coaching services and the LLM adapters.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# ============================================================
# Enums
# ============================================================

class Tier(str, Enum):
    """Subscription tiers."""
    GUEST = "guest"
    ESSENTIAL = "essential"
    POWER = "power"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Tier"]:
        """Return the matching tier, or None for unknown values."""
        if value is None:
            return None
        if isinstance(value, Tier):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class Role(str, Enum):
    """Message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class FinishReason(str, Enum):
    """Completion finish reasons."""
    STOP = "stop"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"
    ERROR = "error"


class ChatActionType(str, Enum):
    """Coaching actions a chat message can ask for."""
    GENERAL_CHAT = "general_chat"
    EVALUATE_SCENARIO = "evaluate_scenario"
    PLAN_STRATEGY = "plan_strategy"
    ANALYZE_STAKEHOLDERS = "analyze_stakeholders"
    SUMMARIZE_POLICY = "summarize_policy"
    BRAINSTORM_INSIGHTS = "brainstorm_insights"
    DRAFT_EMAIL = "draft_email"


class ConflictType(str, Enum):
    """Workplace conflict categories."""
    INTERPERSONAL = "interpersonal"
    TEAM_DYNAMICS = "team_dynamics"
    RESOURCE_ALLOCATION = "resource_allocation"
    STRATEGIC_DISAGREEMENT = "strategic_disagreement"
    COMMUNICATION_BREAKDOWN = "communication_breakdown"
    POWER_STRUGGLE = "power_struggle"
    CULTURAL_CLASH = "cultural_clash"
    PERFORMANCE_RELATED = "performance_related"


class ConflictSeverity(str, Enum):
    """Perceived conflict severity."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# ============================================================
# Messages
# ============================================================

@dataclass
class Message:
    """Single chat message."""
    role: Role
    content: str = ""

    @classmethod
    def system(cls, content: str) -> Message:
        """Create a system message."""
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        """Create a user message."""
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> Message:
        """Create an assistant message."""
        return cls(role=Role.ASSISTANT, content=content)


# ============================================================
# Request / Response
# ============================================================

@dataclass
class ChatCompletionRequest:
    """
    Provider-neutral chat completion request.

    Example:
        request = ChatCompletionRequest(
            model="gpt-3.5-turbo",
            messages=[
                Message.system("You are a workplace coach."),
                Message.user("How do I pitch this?")
            ],
            max_tokens=1000,
            temperature=0.5
        )
    """
    model: str
    messages: List[Message]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    json_mode: bool = False


@dataclass
class Usage:
    """Token usage information."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __post_init__(self):
        if self.total_tokens == 0:
            self.total_tokens = self.prompt_tokens + self.completion_tokens


@dataclass
class ChatCompletionResponse:
    """Provider-neutral chat completion response."""
    id: str
    content: str = ""
    model: str = ""
    provider: str = ""
    created: int = field(default_factory=lambda: int(time.time()))
    usage: Usage = field(default_factory=Usage)
    finish_reason: FinishReason = FinishReason.STOP

    @classmethod
    def create(
        cls,
        content: str,
        model: str,
        provider: str,
        usage: Usage,
        finish_reason: FinishReason = FinishReason.STOP,
    ) -> ChatCompletionResponse:
        """Helper to create a response."""
        return cls(
            id=f"chatcmpl-{uuid.uuid4().hex[:12]}",
            content=content,
            model=model,
            provider=provider,
            usage=usage,
            finish_reason=finish_reason,
        )


# ============================================================
# Serialization Helpers
# ============================================================

def message_to_dict(msg: Message) -> Dict[str, Any]:
    """Convert Message to dictionary for JSON serialization."""
    return {"role": msg.role.value, "content": msg.content}
