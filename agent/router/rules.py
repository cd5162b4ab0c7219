from __future__ import annotations

import re
from dataclasses import dataclass

from catalog import CapabilityCatalog

from .contracts import RouteCandidate


@dataclass(frozen=True)
class PatternRule:
    capability_id: str
    pattern: re.Pattern[str]
    confidence: float


def compile_pattern_rules(catalog: CapabilityCatalog) -> tuple[PatternRule, ...]:
    rules: list[PatternRule] = []
    for capability in catalog:
        for item in capability.patterns:
            rules.append(
                PatternRule(
                    capability_id=capability.capability_id,
                    pattern=re.compile(item.regex, re.IGNORECASE),
                    confidence=item.confidence,
                )
            )
    return tuple(rules)


class PatternRulePass:
    """Pass 1: declarative regex table, evaluated in catalog order."""

    def __init__(self, catalog: CapabilityCatalog, *, accept_threshold: float = 0.6) -> None:
        self._rules = compile_pattern_rules(catalog)
        self.accept_threshold = accept_threshold

    @property
    def rules(self) -> tuple[PatternRule, ...]:
        return self._rules

    def candidates(self, utterance: str) -> list[RouteCandidate]:
        found: list[RouteCandidate] = []
        seen: set[str] = set()
        for rule in self._rules:
            if rule.capability_id in seen:
                continue
            match = rule.pattern.search(utterance)
            if match is None:
                continue
            # First matching rule per capability decides its confidence.
            seen.add(rule.capability_id)
            found.append(
                RouteCandidate(
                    capability_id=rule.capability_id,
                    confidence=rule.confidence,
                    reason_code="pattern_match",
                    source="pattern",
                    matched_text=match.group(0),
                )
            )
        return found

    def accepted(self, candidates: list[RouteCandidate]) -> RouteCandidate | None:
        for candidate in candidates:
            if candidate.confidence >= self.accept_threshold:
                return candidate
        return None
