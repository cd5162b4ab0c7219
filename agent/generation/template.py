from __future__ import annotations

import re
from typing import Sequence

from catalog import CapabilitySpec
from slots import TimeWindow

from .contracts import Fact, GenerationResult


def _clean_line(text: str) -> str:
    line = re.sub(r"\s+", " ", str(text or "")).strip()
    return re.sub(r"\s+([,.;!?])", r"\1", line)


def render_facts_only_answer(
    capability: CapabilitySpec,
    facts: Sequence[Fact],
    *,
    window: TimeWindow | None = None,
    disclaimer: str = "",
) -> str:
    """Deterministic answer built only from fact value texts."""
    heading = f"Here is what I found for {capability.name.lower()}"
    if window is not None:
        heading += f" ({window.label.replace('_', ' ')})"
    lines = [heading + ":"]
    seen: set[str] = set()
    for fact in facts:
        line = _clean_line(f"{fact.label}: {fact.value_text}" if fact.label else fact.value_text)
        key = line.lower()
        if not line or key in seen:
            continue
        seen.add(key)
        lines.append(f"- {line}")
    if len(lines) == 1:
        lines.append(f"- {capability.description or 'No figures are available yet.'}")
    if capability.content_kind == "strategy" and disclaimer:
        lines.append(disclaimer)
    return "\n".join(lines)


def template_generation(
    capability: CapabilitySpec,
    facts: Sequence[Fact],
    *,
    window: TimeWindow | None = None,
    disclaimer: str = "",
) -> GenerationResult:
    text = render_facts_only_answer(capability, facts, window=window, disclaimer=disclaimer)
    return GenerationResult(text=text, token_count=0, tier="template", model_id="template")
