from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable

from catalog import SlotType
from snapshot import ContextSnapshot

from .contracts import ResolvedSlot, SlotProvenance

_PROVENANCE_RANK: dict[str, int] = {
    "explicit": 3,
    "context": 2,
    "inferred": 1,
    "default": 0,
}
EXPLICIT_CONFIDENCE_FLOOR = 0.9


@dataclass(frozen=True)
class SlotCandidate:
    value: Any
    confidence: float
    provenance: SlotProvenance
    matched_text: str | None = None

    @property
    def span(self) -> int:
        return len(self.matched_text or "")


def pattern_provenance(confidence: float) -> SlotProvenance:
    """Pattern matches below the explicit floor are ranked as inferred."""
    return "explicit" if confidence >= EXPLICIT_CONFIDENCE_FLOOR else "inferred"


def select_best(candidates: Iterable[SlotCandidate]) -> SlotCandidate | None:
    """Explicit beats context beats inferred beats default, then longest span, then confidence."""
    ranked = sorted(
        candidates,
        key=lambda item: (_PROVENANCE_RANK.get(item.provenance, 0), item.span, item.confidence),
        reverse=True,
    )
    return ranked[0] if ranked else None


def phrase_pattern(phrase: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![a-z0-9]){re.escape(phrase.lower())}(?![a-z0-9])", re.IGNORECASE)


class BaseSlotResolver:
    slot_type: SlotType

    def candidates(self, utterance: str, snapshot: ContextSnapshot) -> list[SlotCandidate]:
        raise NotImplementedError

    def suggestions(self, snapshot: ContextSnapshot | None = None) -> list[str]:
        return []

    def resolve(self, utterance: str, snapshot: ContextSnapshot) -> ResolvedSlot | None:
        best = select_best(self.candidates(utterance, snapshot))
        if best is None:
            return None
        return ResolvedSlot(
            type=self.slot_type,
            value=best.value,
            confidence=best.confidence,
            provenance=best.provenance,
            matched_text=best.matched_text,
        )
