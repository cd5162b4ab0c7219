from __future__ import annotations

import logging
from typing import Dict

from catalog import CapabilityCatalog, CapabilitySpec
from snapshot import DATA_CATEGORIES, ContextSnapshot
from ttl_cache import TTLCache

from .contracts import AnswerabilityResult, DataQualityReport, GuidedSuggestion, MissingData
from .suggestions import GUIDED_PRIORITY, fallback_action_for_missing, suggestions_for_missing

logger = logging.getLogger(__name__)


def evaluate_answerability(capability: CapabilitySpec, counts: Dict[str, int]) -> AnswerabilityResult:
    """Compare per-category counts with the capability's declared thresholds."""
    required_total = capability.requirement_count()
    if required_total == 0:
        return AnswerabilityResult(capability_id=capability.capability_id, can_answer=True, confidence=1.0)

    satisfied = 0
    missing: list[MissingData] = []
    for category, threshold in capability.requires.items():
        available = int(counts.get(category, 0))
        if available >= threshold:
            satisfied += 1
        else:
            missing.append(MissingData(category=category, required=threshold, available=available))

    if capability.requires_any:
        group_ok = any(int(counts.get(cat, 0)) >= threshold for cat, threshold in capability.requires_any.items())
        if group_ok:
            satisfied += 1
        else:
            for category, threshold in capability.requires_any.items():
                missing.append(
                    MissingData(category=category, required=threshold, available=int(counts.get(category, 0)))
                )

    confidence = round(satisfied / required_total, 4)
    if not missing:
        return AnswerabilityResult(
            capability_id=capability.capability_id,
            can_answer=True,
            confidence=confidence,
        )

    categories = [item.category for item in missing]
    return AnswerabilityResult(
        capability_id=capability.capability_id,
        can_answer=False,
        confidence=confidence,
        missing_data=tuple(missing),
        suggestions=tuple(suggestions_for_missing(categories)),
        fallback_action=fallback_action_for_missing(
            categories,
            total_data_points=int(counts.get("total_data_points", 0)),
        ),
    )


class DataSufficiencyGate:
    def __init__(
        self,
        catalog: CapabilityCatalog,
        *,
        cache_ttl_seconds: float = 300.0,
        cache_max_entries: int = 512,
        cache: TTLCache[AnswerabilityResult] | None = None,
    ) -> None:
        self._catalog = catalog
        if cache is None:
            cache = TTLCache(ttl_seconds=cache_ttl_seconds, max_entries=cache_max_entries)
        self._cache: TTLCache[AnswerabilityResult] = cache

    def check(self, capability_id: str, snapshot: ContextSnapshot) -> AnswerabilityResult:
        capability = self._catalog.require(capability_id)
        key = (capability_id, snapshot.data_shape_fingerprint())
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        result = evaluate_answerability(capability, snapshot.data_counts())
        self._cache.put(key, result)
        if not result.can_answer:
            logger.info(
                "Answerability denied: capability=%s missing=%s confidence=%.2f",
                capability_id,
                ",".join(result.missing_categories()),
                result.confidence,
            )
        return result

    def available_capabilities(self, snapshot: ContextSnapshot) -> list[CapabilitySpec]:
        return [item for item in self._catalog if self.check(item.capability_id, snapshot).can_answer]

    def guided_suggestions(self, snapshot: ContextSnapshot, *, limit: int = 4) -> list[GuidedSuggestion]:
        ranked: list[tuple[float, int, CapabilitySpec]] = []
        for order, capability in enumerate(self.available_capabilities(snapshot)):
            priority = GUIDED_PRIORITY.get(capability.capability_id, capability.priority)
            if priority <= 0:
                continue
            ranked.append((priority, order, capability))
        ranked.sort(key=lambda item: (-item[0], item[1]))
        return [
            GuidedSuggestion(
                capability_id=capability.capability_id,
                name=capability.name,
                priority=priority,
                example_utterance=capability.example_utterance,
            )
            for priority, _, capability in ranked[: max(0, limit)]
        ]

    def data_quality(self, snapshot: ContextSnapshot) -> DataQualityReport:
        counts = snapshot.data_counts()
        populated = [category for category in DATA_CATEGORIES if counts.get(category, 0) > 0]
        empty = [category for category in DATA_CATEGORIES if counts.get(category, 0) == 0]
        return DataQualityReport(
            completeness=round(len(populated) / len(DATA_CATEGORIES), 4),
            counts=counts,
            populated_categories=populated,
            empty_categories=empty,
            answerable_capabilities=len(self.available_capabilities(snapshot)),
            total_capabilities=len(self._catalog),
        )

    def cache_stats(self) -> dict:
        return self._cache.stats()

    def clear_cache(self) -> None:
        self._cache.clear()
