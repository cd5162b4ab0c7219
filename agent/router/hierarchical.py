from __future__ import annotations

import logging
from typing import Mapping

from catalog import CapabilityCatalog
from config import (
    ROUTER_ACCEPT_THRESHOLD,
    ROUTER_DISAGREEMENT_GAP,
    ROUTER_GENERATIVE_ENABLED,
    ROUTER_GENERATIVE_RATE_LIMIT,
    ROUTER_GENERATIVE_RATE_WINDOW_SECONDS,
    ROUTER_GENERATIVE_TIMEOUT,
    ROUTER_MAX_ALTERNATIVES,
    ROUTER_MIN_CONFIDENCE,
    ROUTER_SEMANTIC_TOP_K,
    ROUTER_WEAK_CONFIDENCE,
    ROUTER_WEIGHT_GENERATIVE,
    ROUTER_WEIGHT_PATTERN,
    ROUTER_WEIGHT_SEMANTIC,
)
from generation import GenerationFunction
from slots import SlotResolver
from snapshot import ContextSnapshot

from .contracts import RouteCandidate, RouteDecisionV1, RouterPass
from .generative import GenerativeRoutePass, SlidingWindowRateLimiter
from .policy import accept_candidate, best_confidence, build_route_decision, should_run_generative
from .rules import PatternRulePass
from .semantic import KeywordSemanticPass

logger = logging.getLogger(__name__)


class HierarchicalRouter:
    """Maps an utterance to one catalog capability using progressively costlier passes.

    Pattern rules run first and short-circuit on a confident match. Keyword overlap
    runs next, and the generative classifier is consulted only when the two cheap
    passes disagree or are both weak. Apart from the generative rate limiter the
    router keeps no mutable state, so calls are safe to repeat.
    """

    def __init__(
        self,
        catalog: CapabilityCatalog,
        *,
        slot_resolver: SlotResolver | None = None,
        generate: GenerationFunction | None = None,
        generative_enabled: bool = ROUTER_GENERATIVE_ENABLED,
        accept_threshold: float = ROUTER_ACCEPT_THRESHOLD,
        min_confidence: float = ROUTER_MIN_CONFIDENCE,
        weak_confidence: float = ROUTER_WEAK_CONFIDENCE,
        disagreement_gap: float = ROUTER_DISAGREEMENT_GAP,
        weights: Mapping[str, float] | None = None,
        semantic_top_k: int = ROUTER_SEMANTIC_TOP_K,
        max_alternatives: int = ROUTER_MAX_ALTERNATIVES,
        generative_timeout: float = ROUTER_GENERATIVE_TIMEOUT,
        rate_limiter: SlidingWindowRateLimiter | None = None,
    ) -> None:
        self.catalog = catalog
        self.slot_resolver = slot_resolver
        self.accept_threshold = accept_threshold
        self.min_confidence = min_confidence
        self.weak_confidence = weak_confidence
        self.disagreement_gap = disagreement_gap
        self.max_alternatives = max_alternatives
        self.weights = dict(
            weights
            or {
                "pattern": ROUTER_WEIGHT_PATTERN,
                "semantic": ROUTER_WEIGHT_SEMANTIC,
                "generative": ROUTER_WEIGHT_GENERATIVE,
            }
        )
        self.pattern_pass = PatternRulePass(catalog, accept_threshold=accept_threshold)
        self.semantic_pass = KeywordSemanticPass(catalog, top_k=semantic_top_k)
        if rate_limiter is None:
            rate_limiter = SlidingWindowRateLimiter(
                max_calls=ROUTER_GENERATIVE_RATE_LIMIT,
                window_seconds=ROUTER_GENERATIVE_RATE_WINDOW_SECONDS,
            )
        self.generative_pass = GenerativeRoutePass(
            catalog,
            generate if generative_enabled else None,
            timeout_seconds=generative_timeout,
            rate_limiter=rate_limiter,
        )

    def _first_accepted(self, candidates: list[RouteCandidate]) -> RouteCandidate | None:
        for candidate in candidates:
            if candidate.confidence >= self.accept_threshold:
                return candidate
        return None

    def _route_passes(self, utterance: str) -> RouteDecisionV1:
        passes_run: list[RouterPass] = ["pattern"]
        pattern = self.pattern_pass.candidates(utterance)
        accepted = self.pattern_pass.accepted(pattern)
        if accepted is not None:
            return accept_candidate(accepted, others=pattern, passes_run=passes_run, max_alternatives=self.max_alternatives)

        passes_run.append("semantic")
        semantic = self.semantic_pass.candidates(utterance)
        accepted = self._first_accepted(semantic)
        if accepted is not None:
            return accept_candidate(
                accepted,
                others=[*pattern, *semantic],
                passes_run=passes_run,
                max_alternatives=self.max_alternatives,
            )

        reason_codes: list[str] = []
        generative: list[RouteCandidate] = []
        if self.generative_pass.enabled and should_run_generative(
            best_confidence(pattern),
            best_confidence(semantic),
            disagreement_gap=self.disagreement_gap,
            weak_confidence=self.weak_confidence,
        ):
            passes_run.append("generative")
            generative, errors = self.generative_pass.candidates(utterance)
            reason_codes.extend(errors)
            accepted = self._first_accepted(generative)
            if accepted is not None:
                decision = accept_candidate(
                    accepted,
                    others=[*pattern, *semantic, *generative],
                    passes_run=passes_run,
                    max_alternatives=self.max_alternatives,
                )
                return decision.model_copy(update={"reason_codes": [*decision.reason_codes, *reason_codes]})

        return build_route_decision(
            [*pattern, *semantic, *generative],
            passes_run=passes_run,
            weights=self.weights,
            min_confidence=self.min_confidence,
            max_alternatives=self.max_alternatives,
            reason_codes=reason_codes,
        )

    def route(self, utterance: str, snapshot: ContextSnapshot | None = None) -> RouteDecisionV1:
        text = str(utterance or "").strip()
        decision = self._route_passes(text)

        if decision.kind == "capability" and decision.capability_id not in self.catalog:
            logger.error("Router produced unknown capability: capability=%s", decision.capability_id)
            decision = RouteDecisionV1(
                kind="unknown_fallback",
                reason_code="route_no_match",
                passes_run=decision.passes_run,
                reason_codes=[*decision.reason_codes, "unknown_capability_dropped"],
            )

        if decision.kind == "capability" and snapshot is not None and self.slot_resolver is not None:
            capability = self.catalog.require(str(decision.capability_id))
            resolution = self.slot_resolver.resolve_for_capability(text, capability, snapshot)
            decision = decision.model_copy(
                update={
                    "missing_slots": list(resolution.missing),
                    "slot_suggestions": dict(resolution.suggestions),
                    "params": resolution.params(),
                }
            )

        logger.info(
            "Route decided: kind=%s capability=%s confidence=%.2f reason=%s passes=%s",
            decision.kind,
            decision.capability_id,
            decision.confidence,
            decision.reason_code,
            ",".join(decision.passes_run),
        )
        return decision
