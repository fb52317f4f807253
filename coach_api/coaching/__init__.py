"""
Coach API Coaching Module

Tier-aware chat routing and conflict analysis on top of the LLM adapter.
"""

from .models import (
    ModelConfig,
    ChatTurn,
    CoachingRequest,
    ModelResponse,
    ConflictAnalysisInput,
    StakeholderAnalysis,
    ConflictAnalysisResult,
)
from .model_router import (
    MODEL_CONFIGS,
    ModelRouter,
    estimate_tokens,
)
from .conflict_analysis import (
    ConflictAnalysisService,
    assess_complexity,
)

__all__ = [
    # Models
    "ModelConfig",
    "ChatTurn",
    "CoachingRequest",
    "ModelResponse",
    "ConflictAnalysisInput",
    "StakeholderAnalysis",
    "ConflictAnalysisResult",

    # Router
    "MODEL_CONFIGS",
    "ModelRouter",
    "estimate_tokens",

    # Conflict analysis
    "ConflictAnalysisService",
    "assess_complexity",
]
