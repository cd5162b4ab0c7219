from __future__ import annotations

import logging
import re

from snapshot import ContextSnapshot

from .contracts import CriticIssue, CriticReport, GeneratedAnswer, GuardBatteryReport, RiskLevel

logger = logging.getLogger(__name__)

REASON_AMBIGUITY = "critic flags unresolved ambiguity"
REASON_UNSUPPORTED_CLAIM = "unsupported claim detected"
REASON_HIGH_STAKES = "high-stakes task detected"
REASON_STRATEGY = "strategic planning requested"

HEDGING_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\bmaybe\b",
        r"\bperhaps\b",
        r"\bpossibly\b",
        r"\bmight\b",
        r"\bit depends\b",
        r"\bdepends on\b",
        r"\bnot sure\b",
        r"\bhard to say\b",
        r"\bunclear\b",
        r"\bone option\b",
        r"\balternatively\b",
        r"\bup to you\b",
    )
)

UNSUPPORTED_CLAIM_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\bmarket data (shows|suggests|indicates)\b",
        r"\b(the )?market (will|is going to)\b",
        r"\byour credit score (is|of) \d+",
        r"\bbased on (your )?(credit report|tax return|employer|investment portfolio)\b",
        r"\binterest rates? (will|are going to) (rise|fall|drop|go up|go down)\b",
        r"\b(studies|experts|research) (show|say|prove)s?\b",
        r"\byour (net worth|credit limit) is\b",
    )
)

_CATEGORY_REFERENCE_PATTERNS: dict[str, re.Pattern[str]] = {
    "debts": re.compile(r"\byour (debts?|loans?|credit card balances?)\b", re.IGNORECASE),
    "goals": re.compile(r"\byour (savings )?goals?\b", re.IGNORECASE),
    "budgets": re.compile(r"\byour (\w+ )?budgets?\b", re.IGNORECASE),
    "recurring_expenses": re.compile(r"\byour (recurring|upcoming) (bills?|expenses?|payments?)\b", re.IGNORECASE),
}

HIGH_STAKES_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\brebuild\b.*\b(savings|emergency fund|finances|budget|credit)\b",
        r"\bretire(ment)?\b.*\b(plan|early|enough|save)\b",
        r"\b(estate|inheritance|will and trust|trust fund)\b",
        r"\bpay ?off\b.*\b(all|every)\b.*\bdebts?\b",
        r"\bbankruptcy\b",
    )
)

HIGH_STAKES_KEYWORDS: tuple[str, ...] = (
    "retirement",
    "retire",
    "401k",
    "ira",
    "pension",
    "estate",
    "inheritance",
    "mortgage",
    "debt",
    "payoff",
    "consolidate",
    "refinance",
    "rebuild",
    "savings",
    "emergency",
)

_STRATEGY_REQUEST_PATTERN = re.compile(r"\b(strateg(y|ies|ic)|plan(s|ning)?|optimi[sz]e|invest(ing|ment)?)\b", re.IGNORECASE)
_WORD_PATTERN = re.compile(r"[a-z0-9]+")


def _first_matches(patterns: tuple[re.Pattern[str], ...], text: str) -> list[str]:
    found: list[str] = []
    for pattern in patterns:
        match = pattern.search(text)
        if match is not None:
            found.append(match.group(0))
    return found


def detect_ambiguity(text: str) -> list[str]:
    return _first_matches(HEDGING_PATTERNS, text)


def detect_unsupported_claims(text: str, snapshot: ContextSnapshot) -> list[str]:
    found = _first_matches(UNSUPPORTED_CLAIM_PATTERNS, text)
    counts = snapshot.data_counts()
    for category, pattern in _CATEGORY_REFERENCE_PATTERNS.items():
        if counts.get(category, 0) > 0:
            continue
        match = pattern.search(text)
        if match is not None:
            found.append(f"{match.group(0)} (no {category} on file)")
    return found


def detect_high_stakes(utterance: str) -> bool:
    """Explicit high-stakes phrasing, or two or more distinct high-stakes keywords."""
    if any(pattern.search(utterance) for pattern in HIGH_STAKES_PATTERNS):
        return True
    tokens = set(_WORD_PATTERN.findall(utterance.lower()))
    hits = {keyword for keyword in HIGH_STAKES_KEYWORDS if keyword in tokens}
    return len(hits) >= 2


def detect_strategy_request(utterance: str) -> bool:
    return _STRATEGY_REQUEST_PATTERN.search(utterance) is not None


class CascadeCritic:
    """Folds guard results and answer-level heuristics into one escalate/accept verdict.

    Precedence, first match wins: guard failure, ambiguity, unsupported claim,
    high stakes, explicit strategy request.
    """

    def review(
        self,
        utterance: str,
        answer: GeneratedAnswer,
        guard_report: GuardBatteryReport,
        snapshot: ContextSnapshot,
    ) -> CriticReport:
        issues: list[CriticIssue] = []
        for code in guard_report.failures:
            issues.append(CriticIssue(kind="guard_failure", note=code))

        hedges = detect_ambiguity(answer.text)
        if hedges:
            issues.append(CriticIssue(kind="ambiguity", note=", ".join(hedges)))

        unsupported = detect_unsupported_claims(answer.text, snapshot)
        for note in unsupported:
            issues.append(CriticIssue(kind="unsupported_claim", note=note))

        high_stakes = detect_high_stakes(utterance)
        if high_stakes:
            issues.append(CriticIssue(kind="high_stakes", note="high-stakes topic in request"))

        strategy = detect_strategy_request(utterance)
        if strategy:
            issues.append(CriticIssue(kind="strategy_request", note="request asks for a strategy or plan"))

        reason: str | None = None
        if guard_report.failures:
            reason = guard_report.failures[0]
        elif hedges:
            reason = REASON_AMBIGUITY
        elif unsupported:
            reason = REASON_UNSUPPORTED_CLAIM
        elif high_stakes:
            reason = REASON_HIGH_STAKES
        elif strategy:
            reason = REASON_STRATEGY

        risk_level: RiskLevel = "low"
        if high_stakes or any(code.startswith("claim_") for code in guard_report.failures):
            risk_level = "high"
        elif issues:
            risk_level = "medium"

        report = CriticReport(
            passed=reason is None,
            issues=tuple(issues),
            risk_level=risk_level,
            escalate=reason is not None,
            escalation_reason=reason,
        )
        if report.escalate:
            logger.info(
                "Critic escalation: reason=%s risk=%s issues=%d",
                report.escalation_reason,
                report.risk_level,
                len(report.issues),
            )
        return report
