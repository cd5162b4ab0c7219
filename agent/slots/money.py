from __future__ import annotations

import re
from typing import Callable

from snapshot import ContextSnapshot

from .base import BaseSlotResolver, SlotCandidate, pattern_provenance

MIN_AMOUNT_EXCLUSIVE = 0.0
MAX_AMOUNT_EXCLUSIVE = 10_000_000.0

_NUMBER = r"(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)"
# Bare numbers that are really durations, percentages, ordinals or quarters.
_NOT_AN_AMOUNT = r"(?!\s*-?\s*(?:%|percent|days?|weeks?|months?|years?|yrs?|st\b|nd\b|rd\b|th\b))"
_YEAR = re.compile(r"(?:19|20)\d{2}")
_DATE_CONTEXT = re.compile(
    r"(?:\b(?:in|since|during|until|through|before|after|by|year|fy|q[1-4]|jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?"
    r"|apr(?:il)?|may|june?|july?|aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\.?|\d,?)\s+$",
    re.IGNORECASE,
)


def _parse_number(raw: str) -> float:
    return float(raw.replace(",", ""))


def _times(multiplier: float) -> Callable[[re.Match[str]], float]:
    def extract(match: re.Match[str]) -> float:
        return _parse_number(match.group(1)) * multiplier

    return extract


def _bare_amount(match: re.Match[str]) -> float:
    if _YEAR.fullmatch(match.group(1)) and _DATE_CONTEXT.search(match.string, 0, match.start()):
        raise ValueError(f"year, not an amount: {match.group(1)}")
    return _parse_number(match.group(1))


AMOUNT_RULES: tuple[tuple[re.Pattern[str], Callable[[re.Match[str]], float], float], ...] = (
    (re.compile(rf"\$\s?{_NUMBER}\s?k\b", re.I), _times(1_000), 0.9),
    (re.compile(rf"\$\s?{_NUMBER}\s?m\b", re.I), _times(1_000_000), 0.9),
    (re.compile(rf"\$\s?{_NUMBER}(?!\s?[km]\b)(?![\d.,])", re.I), _times(1), 0.95),
    (re.compile(rf"\b{_NUMBER}\s*dollars?\b", re.I), _times(1), 0.9),
    (re.compile(rf"\b{_NUMBER}\s*bucks?\b", re.I), _times(1), 0.8),
    (re.compile(rf"(?<![$\d.,]){_NUMBER}k\b", re.I), _times(1_000), 0.9),
    (re.compile(rf"\b{_NUMBER}\s*thousand\b", re.I), _times(1_000), 0.9),
    (re.compile(rf"(?<![$\d.,]){_NUMBER}m\b", re.I), _times(1_000_000), 0.9),
    (re.compile(rf"\b{_NUMBER}\s*million\b", re.I), _times(1_000_000), 0.9),
    (
        re.compile(rf"(?<![$\d.,/\-q]){_NUMBER}(?![\d.,])(?![km]\b)(?![/\-]\d){_NOT_AN_AMOUNT}", re.I),
        _bare_amount,
        0.6,
    ),
)


def is_valid_amount(amount: float) -> bool:
    return MIN_AMOUNT_EXCLUSIVE < amount < MAX_AMOUNT_EXCLUSIVE


class MoneyAmountResolver(BaseSlotResolver):
    slot_type = "amount"

    def candidates(self, utterance: str, snapshot: ContextSnapshot) -> list[SlotCandidate]:
        found: list[SlotCandidate] = []
        for pattern, extract, confidence in AMOUNT_RULES:
            for match in pattern.finditer(utterance):
                try:
                    amount = round(extract(match), 2)
                except ValueError:
                    continue
                if not is_valid_amount(amount):
                    continue
                found.append(
                    SlotCandidate(
                        value=amount,
                        confidence=confidence,
                        provenance=pattern_provenance(confidence),
                        matched_text=match.group(0).strip(),
                    )
                )
        return found

    def suggestions(self, snapshot: ContextSnapshot | None = None) -> list[str]:
        return ["$100", "$500", "$1000", "$2000", "$5000"]
