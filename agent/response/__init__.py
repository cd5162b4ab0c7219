from .contracts import AssistantResponse, ResponseKind, ResponseTier
from .renderer import CANCELLED_MESSAGE, HANDOFF_ACTION, question_actions, render_fallback_text, slot_actions

__all__ = [
    "AssistantResponse",
    "CANCELLED_MESSAGE",
    "HANDOFF_ACTION",
    "ResponseKind",
    "ResponseTier",
    "question_actions",
    "render_fallback_text",
    "slot_actions",
]
