from __future__ import annotations

import json
from typing import Sequence

from catalog import CapabilitySpec
from slots import TimeWindow

from .contracts import Fact, GenerationTier

PROMPT_VERSION = "answer_v1"


def build_answer_prompt(
    *,
    utterance: str,
    capability: CapabilitySpec,
    facts: Sequence[Fact],
    window: TimeWindow | None,
    tier: GenerationTier,
    disclaimer: str,
    corrective_feedback: str = "",
) -> str:
    context_json = json.dumps(
        {
            "prompt_version": PROMPT_VERSION,
            "capability": {
                "id": capability.capability_id,
                "name": capability.name,
                "content_kind": capability.content_kind,
            },
            "time_window": window.model_dump(mode="json") if window is not None else None,
            "facts": [{"fact_id": fact.fact_id, "label": fact.label, "value_text": fact.value_text} for fact in facts],
        },
        ensure_ascii=False,
    )
    rules = [
        "Answer in plain English in at most 4 short sentences.",
        "Use only the numbers that appear in facts; never compute new totals or invent figures.",
        "Copy currency amounts exactly as written in facts, including the $ sign.",
        "Only mention dates inside time_window.",
        "Never promise returns, never say an outcome is guaranteed, never suggest leverage or margin.",
        "Never recommend buying or selling specific securities.",
        "Do not hedge; if the facts do not answer the question, say which data is missing.",
    ]
    if capability.content_kind == "strategy":
        rules.append(f'End with this sentence verbatim: "{disclaimer}"')
    if tier == "escalated":
        rules.append("This is a careful second pass: cite at most the facts given and keep every claim verifiable.")

    prompt = (
        "You are a personal-finance assistant answering one user question.\n"
        "Rules:\n"
        + "\n".join(f"- {rule}" for rule in rules)
        + f"\nContext JSON:\n{context_json}\n"
        + f"User question: {utterance}\n"
    )
    if corrective_feedback:
        prompt += f"Fix these problems from the previous draft: {corrective_feedback}\n"
    return prompt + "Answer:"


def build_route_prompt(*, utterance: str, capabilities: Sequence[CapabilitySpec]) -> str:
    catalog_lines = "\n".join(f"- {item.capability_id}: {item.name}. {item.description}" for item in capabilities)
    return (
        "Classify the user request into at most 3 capabilities from the catalog.\n"
        "Return JSON only with this shape:\n"
        '{"schema_version":"route_extraction_v1","candidates":[{"capability_id":"ID","confidence":0.0}]}\n'
        "confidence is between 0 and 1. Return an empty candidates list when nothing fits.\n"
        f"Catalog:\n{catalog_lines}\n"
        f"User request: {utterance}\n"
    )
