from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Sequence

from .contracts import ACTION_RANK, SEVERITY_RANK, SafetyAction, SafetyMatch, SafetyScope, SafetySeverity, SafetyVerdict

logger = logging.getLogger(__name__)

BLOCKED_MESSAGE = (
    "I can't help with that request. I can share general education and your own budget, "
    "goal and spending numbers, but not investment picks or sensitive personal identifiers."
)
HANDOFF_MESSAGE = (
    "If you're dealing with an urgent money problem, you don't have to sort it out alone. "
    "A nonprofit credit counselor can help you look at options."
)
TAX_DISCLAIMER = "This isn't tax advice; a qualified tax professional can confirm what applies to you."
LEGAL_DISCLAIMER = "This isn't legal advice; consider speaking with a licensed attorney."
MEDICAL_DISCLAIMER = "This isn't medical or insurance advice; check with your provider for specifics."


@dataclass(frozen=True)
class SafetyRule:
    name: str
    pattern: re.Pattern[str]
    action: SafetyAction
    severity: SafetySeverity
    category: str
    scope: SafetyScope = "answer"
    disclaimer: str = ""


def _rule(
    name: str,
    regex: str,
    action: SafetyAction,
    severity: SafetySeverity,
    category: str,
    *,
    scope: SafetyScope = "answer",
    disclaimer: str = "",
) -> SafetyRule:
    return SafetyRule(name, re.compile(regex, re.IGNORECASE), action, severity, category, scope, disclaimer)


DEFAULT_SAFETY_RULES: tuple[SafetyRule, ...] = (
    _rule(
        "buy_sell_securities",
        r"\b(you should|i (would )?recommend|i'd recommend|consider|go ahead and)\s+(buy(ing)?|sell(ing)?|short(ing)?|dump(ing)?)\b"
        r".{0,40}\b(stocks?|shares?|crypto|bitcoin|ethereum|etfs?|options|securities)\b",
        "block",
        "high",
        "investment_advice",
    ),
    _rule(
        "security_recommendation",
        r"\brecommend(ed|s)?\b.{0,40}\b(stocks?|crypto(currency)?|bitcoin|etfs?|mutual funds?|securities)\b",
        "block",
        "high",
        "investment_advice",
    ),
    _rule("ssn", r"\b\d{3}-\d{2}-\d{4}\b|\bsocial security number\b.{0,20}\d", "block", "critical", "personal_identifier"),
    _rule(
        "account_number",
        r"\b(account|routing|card) (number|no\.?|#)\s*:?\s*\d{6,}\b",
        "block",
        "critical",
        "personal_identifier",
    ),
    _rule(
        "financial_crisis",
        r"\b(financial emergency|evict(ed|ion)|foreclos(e|ure)|debt collectors?|payday loans?"
        r"|can'?t (afford|pay) (my )?rent|going bankrupt|file for bankruptcy)\b",
        "escalate",
        "high",
        "financial_crisis",
        scope="both",
    ),
    _rule(
        "tax_topic",
        r"\b(tax(es)?|irs|deductions?|write[- ]offs?|tax return)\b",
        "modify",
        "medium",
        "tax",
        scope="both",
        disclaimer=TAX_DISCLAIMER,
    ),
    _rule(
        "legal_topic",
        r"\b(legal|lawsuit|sue|attorney|lawyer|court)\b",
        "modify",
        "medium",
        "legal",
        scope="both",
        disclaimer=LEGAL_DISCLAIMER,
    ),
    _rule(
        "medical_topic",
        r"\b(medical|hospital|doctor|health insurance|prescriptions?)\b",
        "modify",
        "low",
        "medical",
        scope="both",
        disclaimer=MEDICAL_DISCLAIMER,
    ),
)


class SafetyClassifier:
    """Severity-ranked deny/modify list applied to outgoing text."""

    def __init__(self, rules: Sequence[SafetyRule] = DEFAULT_SAFETY_RULES) -> None:
        self._rules = tuple(rules)

    def _matches(self, text: str, utterance: str) -> list[tuple[SafetyRule, SafetyMatch]]:
        found: list[tuple[SafetyRule, SafetyMatch]] = []
        for rule in self._rules:
            targets: list[str] = []
            if rule.scope in {"answer", "both"}:
                targets.append(text)
            if rule.scope in {"utterance", "both"}:
                targets.append(utterance)
            for target in targets:
                match = rule.pattern.search(target or "")
                if match is None:
                    continue
                found.append(
                    (
                        rule,
                        SafetyMatch(
                            rule=rule.name,
                            category=rule.category,
                            action=rule.action,
                            severity=rule.severity,
                            matched_text=match.group(0),
                        ),
                    )
                )
                break
        found.sort(key=lambda item: (-SEVERITY_RANK[item[1].severity], -ACTION_RANK[item[1].action]))
        return found

    def classify(self, text: str, *, utterance: str = "") -> SafetyVerdict:
        matches = self._matches(text, utterance)
        if not matches:
            return SafetyVerdict(text=text)

        top = matches[0][1]
        if any(match.action == "block" for _, match in matches):
            top = next(match for _, match in matches if match.action == "block")
            logger.info("Safety block: rule=%s severity=%s", top.rule, top.severity)
            return SafetyVerdict(
                action="block",
                severity=top.severity,
                matches=tuple(match for _, match in matches),
                text=BLOCKED_MESSAGE,
            )

        disclaimers = tuple(dict.fromkeys(rule.disclaimer for rule, _ in matches if rule.disclaimer))
        handoff = any(match.action == "escalate" for _, match in matches)
        parts = [text.rstrip()]
        parts.extend(item for item in disclaimers if item not in text)
        if handoff:
            parts.append(HANDOFF_MESSAGE)
        action: SafetyAction = "escalate" if handoff else "modify"
        severity = max((match.severity for _, match in matches), key=lambda value: SEVERITY_RANK[value])
        if handoff:
            logger.info("Safety escalation: rule=%s severity=%s", top.rule, severity)
        return SafetyVerdict(
            action=action,
            severity=severity,
            matches=tuple(match for _, match in matches),
            text="\n\n".join(part for part in parts if part),
            disclaimers=disclaimers,
            handoff=handoff,
        )
