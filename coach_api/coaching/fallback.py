"""
Coach API - Canned Coaching Content

Replies served when the LLM provider is unavailable.
"""

from typing import Dict, List, Optional

from ..core.models import ChatActionType, ConflictType


FALLBACK_REPLIES: Dict[ChatActionType, List[str]] = {
    ChatActionType.EVALUATE_SCENARIO: [
        "Based on the scenario you've described, here are the key factors to consider: stakeholder interests, "
        "potential risks, and strategic opportunities. I recommend analyzing the power dynamics and identifying "
        "your key allies before proceeding.",
        "This situation requires careful evaluation. Consider the timing, the political climate in your "
        "organization, and the potential consequences of different approaches. What's your primary objective here?",
    ],
    ChatActionType.PLAN_STRATEGY: [
        "Here's a strategic approach: 1) Map out all stakeholders and their interests, 2) Identify potential allies "
        "and blockers, 3) Develop multiple scenarios with contingency plans, 4) Choose your timing carefully, "
        "5) Prepare your communication strategy.",
        "For this strategy, I recommend a phased approach. Start by building consensus among key influencers, then "
        "gradually expand your coalition. Consider the organizational culture and recent changes that might affect "
        "your approach.",
    ],
    ChatActionType.ANALYZE_STAKEHOLDERS: [
        "Let me help you map the stakeholder landscape. Consider these categories: Champions (strong supporters), "
        "Allies (supportive but not vocal), Neutrals (undecided), Skeptics (concerned but persuadable), and "
        "Blockers (strong opposition). Who falls into each category?",
        "Stakeholder analysis is crucial. Look at formal authority vs. informal influence, personal motivations, "
        "past behavior patterns, and current priorities. Who has the most to gain or lose from your proposal?",
    ],
    ChatActionType.SUMMARIZE_POLICY: [
        "I'll help you break down this policy into key components: objectives, scope, implementation requirements, "
        "stakeholder impacts, and potential challenges. What specific aspects would you like me to focus on?",
        "Policy summaries should highlight: the problem being solved, proposed solution, resource requirements, "
        "timeline, success metrics, and potential risks. Which policy document are you working with?",
    ],
    ChatActionType.BRAINSTORM_INSIGHTS: [
        "Let's explore some fresh perspectives on this challenge. Consider: What assumptions might you be making? "
        "What would an outsider see differently? What opportunities might emerge from this challenge? What "
        "patterns do you notice?",
        "Here are some angles to consider: the historical context, industry trends, generational differences in "
        "your workplace, and emerging technologies that might impact this situation. What resonates with your "
        "experience?",
    ],
    ChatActionType.DRAFT_EMAIL: [
        "For professional emails in sensitive situations, I recommend this structure: Clear subject line, brief "
        "context, specific request or proposal, rationale/benefits, next steps, and professional closing. What's "
        "the main message you want to convey?",
        "Email drafting tips: Start with the recipient's perspective, be concise but complete, use positive "
        "framing, include specific details, and always end with a clear call to action. Who is your audience and "
        "what outcome do you want?",
    ],
}

GENERAL_REPLIES: List[str] = [
    "I'm here to help you navigate workplace dynamics and corporate politics. Whether you need to evaluate a "
    "situation, plan a strategy, or draft communications, I can provide insights based on proven frameworks.",
    "Corporate influence requires understanding both formal structures and informal networks. What specific "
    "challenge are you facing? I can help you analyze the situation and develop an effective approach.",
    "Successful workplace navigation combines emotional intelligence, strategic thinking, and tactical "
    "execution. Tell me more about your situation and I'll provide tailored guidance.",
]

POWER_ENHANCEMENTS: List[str] = [
    "\n\n**Power Strategist Insight:** Consider the long-term implications and how this aligns with your "
    "career trajectory.",
    "\n\n**Advanced Strategy:** I can also help you develop a detailed implementation timeline with specific "
    "milestones.",
    "\n\n**Personalized Recommendation:** Based on your leadership style, you might want to consider a more "
    "collaborative approach.",
]


def replies_for(action_type: Optional[ChatActionType]) -> List[str]:
    """Canned replies for an action type; general chat for anything else."""
    if action_type is None:
        return GENERAL_REPLIES
    return FALLBACK_REPLIES.get(action_type, GENERAL_REPLIES)


# ============================================================
# Conflict analysis
# ============================================================

FALLBACK_STRATEGIES: Dict[ConflictType, List[str]] = {
    ConflictType.INTERPERSONAL: [
        "Facilitate one-on-one conversations with each party",
        "Arrange mediated discussion to address concerns",
        "Establish clear communication protocols",
        "Focus on shared goals and common ground",
    ],
    ConflictType.TEAM_DYNAMICS: [
        "Conduct team building exercises",
        "Clarify roles and responsibilities",
        "Implement regular team check-ins",
        "Address underlying team culture issues",
    ],
    ConflictType.RESOURCE_ALLOCATION: [
        "Review and clarify resource allocation criteria",
        "Involve senior management in priority setting",
        "Establish transparent resource request process",
        "Create resource sharing agreements",
    ],
    ConflictType.STRATEGIC_DISAGREEMENT: [
        "Escalate to senior leadership for direction",
        "Conduct stakeholder alignment sessions",
        "Document different perspectives and trade-offs",
        "Seek external expert consultation if needed",
    ],
    ConflictType.COMMUNICATION_BREAKDOWN: [
        "Implement structured communication protocols",
        "Provide communication skills training",
        "Establish regular status update meetings",
        "Use collaborative tools for transparency",
    ],
    ConflictType.POWER_STRUGGLE: [
        "Clarify authority and decision-making processes",
        "Involve HR or senior management",
        "Focus on organizational goals over personal agendas",
        "Consider organizational restructuring if necessary",
    ],
    ConflictType.CULTURAL_CLASH: [
        "Provide cultural awareness training",
        "Establish inclusive team norms",
        "Celebrate diversity and different perspectives",
        "Create safe spaces for cultural expression",
    ],
    ConflictType.PERFORMANCE_RELATED: [
        "Conduct performance reviews and feedback sessions",
        "Provide additional training or support",
        "Set clear performance expectations",
        "Implement performance improvement plans if needed",
    ],
}

FALLBACK_ROOT_CAUSE = (
    "Based on the conflict description, this appears to be a typical workplace disagreement that requires "
    "structured intervention and clear communication."
)
FALLBACK_RISKS = "If unresolved, this conflict may impact team productivity, morale, and project outcomes."
FALLBACK_TIMELINE = "Address within 1-2 weeks to prevent escalation."
