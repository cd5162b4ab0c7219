from __future__ import annotations

from catalog import CapabilityCatalog

from .contracts import ClarifyingQuestionV1, RouteDecisionV1


def build_clarifying_question(
    decision: RouteDecisionV1,
    catalog: CapabilityCatalog,
    *,
    max_options: int = 3,
) -> ClarifyingQuestionV1:
    options: list[str] = []
    for alternative in decision.alternatives:
        capability = catalog.get(alternative.capability_id)
        if capability is None or capability.name in options:
            continue
        options.append(capability.name)
        if len(options) >= max_options:
            break

    if len(options) >= 2:
        return ClarifyingQuestionV1(
            question_id="route_disambiguation",
            question_text="I want to get this right. Which of these did you mean?",
            options=options,
        )
    if options:
        return ClarifyingQuestionV1(
            question_id="route_confirmation",
            question_text=f"Did you want help with {options[0].lower()}?",
            options=[options[0], "Something else"],
        )
    return ClarifyingQuestionV1(
        question_id="generic_intent",
        question_text="I'm not sure what you're asking yet. Could you rephrase, or pick a topic?",
        options=["Budget status", "Goal progress", "Spending by category"],
    )
