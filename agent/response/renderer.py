from __future__ import annotations

import re
from typing import Mapping

from catalog import CapabilitySpec
from fallback import FallbackAction, FallbackResponse
from router import ClarifyingQuestionV1

CANCELLED_MESSAGE = "This request was cancelled before an answer was ready."
HANDOFF_ACTION = FallbackAction(
    action_id="HUMAN_HANDOFF",
    label="Talk to a financial counselor",
    action_type="handoff",
)


def _clean_line(text: str) -> str:
    line = re.sub(r"\s+", " ", str(text or "")).strip()
    return re.sub(r"\s+([,.;!?])", r"\1", line)


def _append_unique(lines: list[str], seen: set[str], line: str) -> None:
    text = _clean_line(line)
    if not text:
        return
    key = text.lstrip("-").strip().lower().rstrip(". ")
    if not key or key in seen:
        return
    seen.add(key)
    lines.append(text)


def render_fallback_text(fallback: FallbackResponse, question: ClarifyingQuestionV1 | None = None) -> str:
    lines: list[str] = []
    seen: set[str] = set()
    _append_unique(lines, seen, fallback.message)
    if question is not None:
        _append_unique(lines, seen, question.question_text)
        for option in question.options:
            _append_unique(lines, seen, f"- {option}")
    for suggestion in fallback.suggestions[:4]:
        _append_unique(lines, seen, f"- {suggestion.text}")
    return "\n".join(lines)


def question_actions(question: ClarifyingQuestionV1, capability_ids: Mapping[str, str]) -> list[FallbackAction]:
    """Turn clarifying options into ask actions; ``capability_ids`` maps option text to capability id."""
    actions: list[FallbackAction] = []
    for index, option in enumerate(question.options):
        capability_id = capability_ids.get(option)
        actions.append(
            FallbackAction(
                action_id=f"{question.question_id}:{index}",
                label=option,
                action_type="ask" if capability_id else "rephrase",
                capability_id=capability_id,
            )
        )
    return actions


def slot_actions(
    capability: CapabilitySpec,
    missing: list[str],
    suggestions: Mapping[str, list[str]],
    *,
    per_slot: int = 3,
) -> list[FallbackAction]:
    actions: list[FallbackAction] = []
    for name in missing:
        for index, option in enumerate([item for item in suggestions.get(name, []) if item][:per_slot]):
            actions.append(
                FallbackAction(
                    action_id=f"slot:{name}:{index}",
                    label=option,
                    action_type="ask",
                    capability_id=capability.capability_id,
                    params={name: option},
                )
            )
    if not actions:
        actions.append(FallbackAction(action_id="rephrase", label="Add the missing detail and ask again", action_type="rephrase"))
    return actions
