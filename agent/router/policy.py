from __future__ import annotations

from typing import Dict, Iterable, Mapping

from .contracts import RouteAlternative, RouteCandidate, RouteDecisionV1, RouterPass

DEFAULT_PASS_WEIGHTS: Dict[RouterPass, float] = {"pattern": 0.4, "semantic": 0.4, "generative": 0.2}


def best_confidence(candidates: Iterable[RouteCandidate]) -> float:
    return max((candidate.confidence for candidate in candidates), default=0.0)


def should_run_generative(
    pattern_best: float,
    semantic_best: float,
    *,
    disagreement_gap: float = 0.3,
    weak_confidence: float = 0.5,
) -> bool:
    """The costly pass runs only when the cheap passes disagree or are both weak."""
    if abs(pattern_best - semantic_best) > disagreement_gap:
        return True
    return pattern_best < weak_confidence and semantic_best < weak_confidence


def _alternatives(
    ranked: list[tuple[str, float, float, RouteCandidate]],
    *,
    exclude: str | None,
    limit: int,
) -> list[RouteAlternative]:
    items = [
        RouteAlternative(capability_id=capability_id, confidence=raw, source=best.source)
        for capability_id, _, raw, best in ranked
        if capability_id != exclude
    ]
    return items[: max(0, limit)]


def accept_candidate(
    candidate: RouteCandidate,
    *,
    others: Iterable[RouteCandidate],
    passes_run: list[RouterPass],
    max_alternatives: int = 3,
) -> RouteDecisionV1:
    ranked = rank_candidates(others, weights=DEFAULT_PASS_WEIGHTS)
    return RouteDecisionV1(
        kind="capability",
        capability_id=candidate.capability_id,
        confidence=candidate.confidence,
        reason_code=candidate.reason_code,
        alternatives=_alternatives(ranked, exclude=candidate.capability_id, limit=max_alternatives),
        passes_run=list(passes_run),
        reason_codes=[f"accepted_by:{candidate.source}"],
    )


def rank_candidates(
    candidates: Iterable[RouteCandidate],
    *,
    weights: Mapping[str, float],
) -> list[tuple[str, float, float, RouteCandidate]]:
    """Sum weighted confidences per capability; returns (id, score, raw, best) best first."""
    scores: Dict[str, float] = {}
    best: Dict[str, RouteCandidate] = {}
    order: Dict[str, int] = {}
    for index, candidate in enumerate(candidates):
        capability_id = candidate.capability_id
        scores[capability_id] = scores.get(capability_id, 0.0) + weights.get(candidate.source, 0.0) * candidate.confidence
        order.setdefault(capability_id, index)
        current = best.get(capability_id)
        if current is None or candidate.confidence > current.confidence:
            best[capability_id] = candidate
    ranked = [
        (capability_id, round(score, 6), best[capability_id].confidence, best[capability_id])
        for capability_id, score in scores.items()
    ]
    ranked.sort(key=lambda item: (-item[1], -item[2], order[item[0]]))
    return ranked


def build_route_decision(
    candidates: list[RouteCandidate],
    *,
    passes_run: list[RouterPass],
    weights: Mapping[str, float] = DEFAULT_PASS_WEIGHTS,
    min_confidence: float = 0.3,
    max_alternatives: int = 3,
    reason_codes: list[str] | None = None,
) -> RouteDecisionV1:
    codes = list(reason_codes or [])
    if not candidates:
        return RouteDecisionV1(
            kind="unknown_fallback",
            confidence=0.0,
            reason_code="route_no_match",
            passes_run=list(passes_run),
            reason_codes=codes,
        )

    ranked = rank_candidates(candidates, weights=weights)
    winner_id, winner_score, winner_raw, winner = ranked[0]
    codes.append(f"weighted_score:{winner_score:.4f}")
    if winner_raw < min_confidence:
        return RouteDecisionV1(
            kind="guided_fallback",
            confidence=winner_raw,
            reason_code="route_low_confidence",
            alternatives=_alternatives(ranked, exclude=None, limit=max_alternatives),
            passes_run=list(passes_run),
            reason_codes=codes,
        )

    return RouteDecisionV1(
        kind="capability",
        capability_id=winner_id,
        confidence=winner_raw,
        reason_code=winner.reason_code,
        alternatives=_alternatives(ranked, exclude=winner_id, limit=max_alternatives),
        passes_run=list(passes_run),
        reason_codes=codes,
    )
