from __future__ import annotations

import re

from catalog import CapabilityCatalog

from .contracts import RouteCandidate

SEMANTIC_CONFIDENCE_CAP = 0.95
_TOKEN_PATTERN = re.compile(r"[a-z0-9]+")


def _stem(token: str) -> str:
    if len(token) > 4 and token.endswith("ies"):
        return token[:-3] + "y"
    if len(token) > 3 and token.endswith("s") and not token.endswith("ss"):
        return token[:-1]
    return token


def tokenize(text: str) -> set[str]:
    return {_stem(token) for token in _TOKEN_PATTERN.findall(str(text or "").lower())}


class KeywordSemanticPass:
    """Pass 2: keyword overlap score per capability, capped below certainty."""

    def __init__(self, catalog: CapabilityCatalog, *, top_k: int = 3, cap: float = SEMANTIC_CONFIDENCE_CAP) -> None:
        self.top_k = top_k
        self.cap = cap
        self._keywords: list[tuple[str, tuple[frozenset[str], ...]]] = []
        for capability in catalog:
            keyword_sets = tuple(frozenset(tokenize(keyword)) for keyword in capability.keywords if tokenize(keyword))
            if keyword_sets:
                self._keywords.append((capability.capability_id, keyword_sets))

    def candidates(self, utterance: str) -> list[RouteCandidate]:
        tokens = tokenize(utterance)
        if not tokens:
            return []
        scored: list[tuple[float, int, str]] = []
        for order, (capability_id, keyword_sets) in enumerate(self._keywords):
            matched = sum(1 for keyword in keyword_sets if keyword <= tokens)
            if matched == 0:
                continue
            score = min(self.cap, round(matched / len(keyword_sets), 4))
            scored.append((score, order, capability_id))
        scored.sort(key=lambda item: (-item[0], item[1]))
        return [
            RouteCandidate(
                capability_id=capability_id,
                confidence=score,
                reason_code="semantic_keyword_overlap",
                source="semantic",
            )
            for score, _, capability_id in scored[: self.top_k]
        ]
