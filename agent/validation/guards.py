from __future__ import annotations

import re
from datetime import date
from typing import Callable, Iterable, NamedTuple

from config import STRATEGY_DISCLAIMER
from slots import TimeWindow
from snapshot import ContextSnapshot

from .contracts import GeneratedAnswer, GuardBatteryReport, GuardFailureCode, GuardReport

AMOUNT_EPSILON = 0.01
SPEND_LOOKBEHIND_CHARS = 40

_MONEY_PATTERN = re.compile(
    r"(?P<lead>-)?\$\s*(?P<inner>-)?(?P<number>\d[\d,]*(?:\.\d+)?)(?P<suffix>\s?(?:k|m|million|thousand)\b)?",
    re.IGNORECASE,
)
_NEGATIVE_WORD_PATTERN = re.compile(r"\b(?:negative|minus)\s+$", re.IGNORECASE)
# A dash right after an amount joins a range or a subtraction, it is not a sign.
_RANGE_JOIN_PATTERN = re.compile(r"(?:\d|\d\s?(?:k|m|million|thousand)|\))\s*$", re.IGNORECASE)
_REMAINING_AFTER_PATTERN = re.compile(r"^\s+(?:remaining|left)\b", re.IGNORECASE)
_REMAINING_BEFORE_PATTERN = re.compile(
    r"\b(?:remaining|left)(?:\s+(?:budget|balance|amount))?(?:\s+(?:is|was)|\s*:)\s*$",
    re.IGNORECASE,
)
_TOTAL_BEFORE_PATTERN = re.compile(
    r"\btotal\s+(?P<subject>budgeted|budget|spent|spending|expenses|debits|remaining|left|saved|savings|goals?|debt|income|credits)"
    r"(?:\s+(?:is|was|of|came to|comes to))?\s*:?\s*$",
    re.IGNORECASE,
)
_SPEND_PROPOSAL_PATTERN = re.compile(
    r"\b(?:can|could|should|may|might|afford to|safe to|okay to|ok to)\s+(?:\w+\s+){0,2}spend\b|\bspend up to\b",
    re.IGNORECASE,
)

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
_ISO_DATE_PATTERN = re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b")
_US_DATE_PATTERN = re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4}|\d{2})\b")
_NAMED_DATE_PATTERN = re.compile(
    r"\b(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
    r"\.?\s+(\d{1,2})(?:st|nd|rd|th)?(?:,?\s+(\d{4}))?\b",
    re.IGNORECASE,
)

FORBIDDEN_PHRASES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bguarantee[ds]?\b", re.I), "guarantee language"),
    (re.compile(r"\b(?:can'?t|cannot|can not|won'?t) (?:possibly )?lose\b", re.I), "no-loss promise"),
    (re.compile(r"\brisk[- ]free\b|\bno risk\b|\bzero risk\b", re.I), "risk-free claim"),
    (re.compile(r"\bsure thing\b|\bsure bet\b", re.I), "certainty claim"),
    (re.compile(r"\bdouble your money\b|\bget rich quick\b", re.I), "outsized return promise"),
    (re.compile(r"\b(?:use|using|take on|buy on|trade on)\s+(?:some\s+)?(?:margin|leverage)\b", re.I), "leverage suggestion"),
    (re.compile(r"\bleveraged (?:etfs?|investments?|positions?|trading)\b", re.I), "leverage suggestion"),
    (re.compile(r"\bborrow(?:ing)? (?:money )?to invest\b", re.I), "borrow-to-invest suggestion"),
)


class MoneyMention(NamedTuple):
    value: float
    negative: bool
    start: int
    end: int
    text: str


def _suffix_multiplier(suffix: str | None) -> float:
    token = (suffix or "").strip().lower()
    if token in {"k", "thousand"}:
        return 1_000.0
    if token in {"m", "million"}:
        return 1_000_000.0
    return 1.0


def extract_money_mentions(text: str) -> list[MoneyMention]:
    mentions: list[MoneyMention] = []
    for match in _MONEY_PATTERN.finditer(text):
        try:
            value = float(match.group("number").replace(",", ""))
        except ValueError:
            continue
        value *= _suffix_multiplier(match.group("suffix"))
        start = match.start()
        before = text[max(0, start - 12) : start]
        lead = bool(match.group("lead"))
        if lead and _RANGE_JOIN_PATTERN.search(before):
            lead = False
            start += 1
        negative = bool(lead or match.group("inner") or _NEGATIVE_WORD_PATTERN.search(before))
        mentions.append(MoneyMention(round(value, 2), negative, start, match.end(), text[start : match.end()].strip()))
    return mentions


def _matches_any(value: float, references: Iterable[float]) -> bool:
    return any(abs(value - reference) <= AMOUNT_EPSILON for reference in references)


def _window_flows(snapshot: ContextSnapshot, window: TimeWindow | None) -> tuple[float, float]:
    debits = 0.0
    credits = 0.0
    for item in snapshot.transactions:
        if window is not None and not window.contains(item.posted_on):
            continue
        if item.direction == "debit":
            debits += item.amount
        else:
            credits += item.amount
    return round(debits, 2), round(credits, 2)


def _total_references(subject: str, snapshot: ContextSnapshot, window: TimeWindow | None) -> list[float]:
    totals = snapshot.totals()
    window_debits, window_credits = _window_flows(snapshot, window)
    subject = subject.lower()
    if subject in {"budget", "budgeted"}:
        return [totals.total_budget]
    if subject in {"spent", "spending", "expenses", "debits"}:
        return [totals.total_spent, totals.total_debits, window_debits]
    if subject in {"remaining", "left"}:
        return [totals.total_remaining]
    if subject in {"saved", "savings"}:
        return [totals.total_goal_saved]
    if subject in {"goal", "goals"}:
        return [totals.total_goal_target, totals.total_goal_saved]
    if subject == "debt":
        return [totals.total_debt]
    return [totals.total_credits, window_credits]


def _remaining_references(snapshot: ContextSnapshot) -> list[float]:
    references = list(snapshot.remaining_by_budget().values())
    if snapshot.budgets:
        references.append(snapshot.totals().total_remaining)
    references.extend(round(max(0.0, goal.target_amount - goal.current_amount), 2) for goal in snapshot.goals)
    return references


def _spend_limit(snapshot: ContextSnapshot) -> float | None:
    if not snapshot.budgets:
        return None
    return max([snapshot.totals().total_remaining, *(item.remaining for item in snapshot.budgets)])


def _report(guard: str, failures: list[GuardFailureCode], details: list[str]) -> GuardReport:
    unique: list[GuardFailureCode] = []
    for code in failures:
        if code not in unique:
            unique.append(code)
    return GuardReport(guard=guard, passed=not unique, failures=tuple(unique), details=tuple(details))  # type: ignore[arg-type]


def numeric_guard(answer: GeneratedAnswer, snapshot: ContextSnapshot, window: TimeWindow | None = None) -> GuardReport:
    """Currency figures must be non-negative, match snapshot totals and respect remaining budget."""
    text = answer.text
    failures: list[GuardFailureCode] = []
    details: list[str] = []
    remaining_refs = _remaining_references(snapshot)
    spend_limit = _spend_limit(snapshot)

    for mention in extract_money_mentions(text):
        if mention.negative:
            failures.append("numeric_negative_amount")
            details.append(f"negative amount: {mention.text}")
            continue

        before = text[max(0, mention.start - SPEND_LOOKBEHIND_CHARS) : mention.start]
        after = text[mention.end : mention.end + 16]

        total_match = _TOTAL_BEFORE_PATTERN.search(before)
        if total_match is not None:
            references = _total_references(total_match.group("subject"), snapshot, window)
            if not _matches_any(mention.value, references):
                failures.append("numeric_sum_mismatch")
                details.append(
                    f"total {total_match.group('subject').lower()} {mention.text} does not match "
                    + ", ".join(f"{value:.2f}" for value in references)
                )
            continue

        if _REMAINING_AFTER_PATTERN.search(after) or _REMAINING_BEFORE_PATTERN.search(before):
            if remaining_refs and not _matches_any(mention.value, remaining_refs):
                failures.append("numeric_sum_mismatch")
                details.append(
                    f"remaining {mention.text} does not match "
                    + ", ".join(f"{value:.2f}" for value in remaining_refs)
                )
            continue

        if spend_limit is not None and _SPEND_PROPOSAL_PATTERN.search(before):
            if mention.value > spend_limit + AMOUNT_EPSILON:
                failures.append("numeric_budget_limit_exceeded")
                details.append(f"proposed spend {mention.text} exceeds remaining {spend_limit:.2f}")

    return _report("numeric", failures, details)


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def extract_dates(text: str, *, default_years: Iterable[int]) -> list[tuple[str, list[date]]]:
    """Each mention with its candidate dates; a mention without a year gets one per default year."""
    years = list(dict.fromkeys(default_years))
    found: list[tuple[str, list[date]]] = []
    for match in _ISO_DATE_PATTERN.finditer(text):
        parsed = _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        if parsed is not None:
            found.append((match.group(0), [parsed]))
    for match in _US_DATE_PATTERN.finditer(text):
        year = int(match.group(3))
        if year < 100:
            year += 2000
        parsed = _safe_date(year, int(match.group(1)), int(match.group(2)))
        if parsed is not None:
            found.append((match.group(0), [parsed]))
    for match in _NAMED_DATE_PATTERN.finditer(text):
        month = _MONTHS[match.group(1)[:3].lower()]
        day = int(match.group(2))
        if match.group(3):
            candidates = [_safe_date(int(match.group(3)), month, day)]
        else:
            candidates = [_safe_date(year, month, day) for year in years]
        dates = [item for item in candidates if item is not None]
        if dates:
            found.append((match.group(0), dates))
    return found


def window_guard(answer: GeneratedAnswer, snapshot: ContextSnapshot, window: TimeWindow | None = None) -> GuardReport:
    if window is None:
        return _report("window", [], ["no active window"])
    failures: list[GuardFailureCode] = []
    details: list[str] = []
    for mention, candidates in extract_dates(answer.text, default_years=(window.end.year, window.start.year)):
        if not any(window.contains(item) for item in candidates):
            failures.append("date_out_of_window")
            details.append(f"{mention} outside {window.start.isoformat()}..{window.end.isoformat()}")
    return _report("window", failures, details)


def _normalize_space(text: str) -> str:
    return re.sub(r"\s+", " ", str(text or "")).strip().lower()


def claim_guard(
    answer: GeneratedAnswer,
    snapshot: ContextSnapshot | None = None,
    window: TimeWindow | None = None,
    *,
    disclaimer: str = STRATEGY_DISCLAIMER,
) -> GuardReport:
    failures: list[GuardFailureCode] = []
    details: list[str] = []
    for pattern, label in FORBIDDEN_PHRASES:
        match = pattern.search(answer.text)
        if match is not None:
            failures.append("claim_forbidden_phrasing")
            details.append(f"{label}: {match.group(0)}")
    if answer.content_kind == "strategy" and _normalize_space(disclaimer) not in _normalize_space(answer.text):
        failures.append("claim_missing_disclaimer")
        details.append("strategy answer without required disclaimer")
    return _report("claim", failures, details)


GuardFunction = Callable[[GeneratedAnswer, ContextSnapshot, "TimeWindow | None"], GuardReport]
DEFAULT_GUARDS: tuple[GuardFunction, ...] = (numeric_guard, window_guard, claim_guard)


def run_guard_battery(
    answer: GeneratedAnswer,
    snapshot: ContextSnapshot,
    window: TimeWindow | None = None,
    *,
    guards: Iterable[GuardFunction] = DEFAULT_GUARDS,
) -> GuardBatteryReport:
    """Run every guard and report the union of their failures."""
    reports = tuple(guard(answer, snapshot, window) for guard in guards)
    failures: list[GuardFailureCode] = []
    for report in reports:
        for code in report.failures:
            if code not in failures:
                failures.append(code)
    return GuardBatteryReport(passed=not failures, failures=tuple(failures), reports=reports)
