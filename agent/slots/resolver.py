from __future__ import annotations

import logging
from typing import Iterable, Mapping

from catalog import CapabilitySpec, SlotSpec, SlotType
from snapshot import ContextSnapshot

from .base import BaseSlotResolver
from .contracts import ResolvedSlot, SlotResolution, TimeWindow
from .entities import AccountResolver, CategoryResolver, GoalResolver, MerchantResolver
from .money import MoneyAmountResolver
from .time_period import TimePeriodResolver, default_time_window

logger = logging.getLogger(__name__)

SLOT_QUESTIONS: dict[str, str] = {
    "period": "Which time period?",
    "amount": "What amount?",
    "category": "Which category?",
    "merchant": "Which merchant?",
    "account": "Which account?",
    "goal_id": "Which goal?",
}


def default_resolvers() -> dict[SlotType, BaseSlotResolver]:
    return {
        "period": TimePeriodResolver(),
        "amount": MoneyAmountResolver(),
        "category": CategoryResolver(),
        "merchant": MerchantResolver(),
        "account": AccountResolver(),
        "goal_id": GoalResolver(),
    }


class SlotResolver:
    """Runs one independent resolver per slot type over the raw utterance."""

    def __init__(self, resolvers: Mapping[SlotType, BaseSlotResolver] | None = None) -> None:
        self._resolvers = dict(resolvers or default_resolvers())

    def slot_types(self) -> list[str]:
        return list(self._resolvers)

    def resolve_slot(self, slot_type: str, utterance: str, snapshot: ContextSnapshot) -> ResolvedSlot | None:
        resolver = self._resolvers.get(slot_type)  # type: ignore[arg-type]
        if resolver is None:
            logger.debug("Slot resolver missing: slot_type=%s", slot_type)
            return None
        try:
            return resolver.resolve(utterance, snapshot)
        except Exception as exc:
            logger.debug("Slot resolver failed, treating as no match: slot_type=%s error=%s", slot_type, exc)
            return None

    def resolve_time_window(self, utterance: str, snapshot: ContextSnapshot) -> TimeWindow:
        slot = self.resolve_slot("period", utterance, snapshot)
        if slot is not None and isinstance(slot.value, TimeWindow):
            return slot.value
        return default_time_window(snapshot.as_of)

    def resolve_slots(
        self,
        utterance: str,
        slot_specs: Iterable[SlotSpec],
        snapshot: ContextSnapshot,
    ) -> SlotResolution:
        resolution = SlotResolution()
        for spec in slot_specs:
            resolved = self.resolve_slot(spec.slot_type, utterance, snapshot)
            if resolved is not None:
                resolution.resolved[spec.name] = resolved
                continue
            if spec.required:
                resolution.missing.append(spec.name)
                resolution.suggestions[spec.name] = self.suggestions_for(spec.slot_type, snapshot)
        return resolution

    def resolve_for_capability(
        self,
        utterance: str,
        capability: CapabilitySpec,
        snapshot: ContextSnapshot,
    ) -> SlotResolution:
        return self.resolve_slots(utterance, capability.params, snapshot)

    def suggestions_for(self, slot_type: str, snapshot: ContextSnapshot | None = None) -> list[str]:
        resolver = self._resolvers.get(slot_type)  # type: ignore[arg-type]
        if resolver is None:
            return []
        try:
            return resolver.suggestions(snapshot)
        except Exception as exc:
            logger.debug("Slot suggestions failed: slot_type=%s error=%s", slot_type, exc)
            return []


def overall_confidence(resolution: SlotResolution) -> float:
    if not resolution.resolved:
        return 0.0
    total = sum(slot.confidence for slot in resolution.resolved.values())
    return round(total / len(resolution.resolved), 4)


def build_slot_question(
    capability: CapabilitySpec,
    missing: list[str],
    suggestions: Mapping[str, list[str]],
) -> str:
    if not missing:
        return ""
    slot_types = capability.slot_types()
    questions = [SLOT_QUESTIONS.get(slot_types.get(name, name), f"What {name}?") for name in missing]
    text = f"To {capability.name.lower()}, I need a bit more detail. " + " ".join(questions)
    picks: list[str] = []
    for name in missing:
        options = [item for item in suggestions.get(name, []) if item][:3]
        if options:
            picks.append(f"{name}: " + " ".join(f"[{item}]" for item in options))
    if picks:
        text += "\n\nQuick picks: " + ", ".join(picks)
    return text
