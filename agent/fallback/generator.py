from __future__ import annotations

import logging
import re
from typing import Iterable

from answerability import AnswerabilityResult, DataSufficiencyGate, suggestions_for_missing
from catalog import CapabilityCatalog
from snapshot import ContextSnapshot

from .collector import UnknownQueryCollector
from .contracts import FallbackAction, FallbackKind, FallbackResponse, FallbackSuggestion

logger = logging.getLogger(__name__)

GUIDED_REASON_CODES = frozenset(
    {
        "route_low_confidence",
        "insufficient_data",
        "execution_failed",
        "generation_failed",
        "slot_missing",
    }
)

_EXPLANATION_PATTERN = re.compile(
    r"\b(explain|define|definition of|meaning of|difference between|what (is|are|does) (a|an|the)\b"
    r"|what's (a|an)\b|how (does|do) (a |an |the )?\w+( \w+)? work)",
    re.IGNORECASE,
)

_SETUP_ACTIONS: tuple[tuple[str, str], ...] = (
    ("CONNECT_ACCOUNT", "Connect a bank account"),
    ("CREATE_FIRST_BUDGET", "Create your first budget"),
    ("CREATE_FIRST_GOAL", "Set a savings goal"),
)
_ACTION_LABELS = {
    "CONNECT_ACCOUNT": "Connect a bank account",
    "CREATE_FIRST_BUDGET": "Create your first budget",
    "CREATE_FIRST_GOAL": "Set a savings goal",
    "ADD_RECURRING_EXPENSE": "Add a recurring bill",
    "ADD_DEBT": "Add a loan or card balance",
    "SETUP_FINANCIAL_TRACKING": "Set up financial tracking",
    "GUIDED_SETUP": "Walk through guided setup",
}


def is_explanation_seeking(utterance: str) -> bool:
    return _EXPLANATION_PATTERN.search(str(utterance or "")) is not None


def _setup_action(action_id: str) -> FallbackAction:
    return FallbackAction(action_id=action_id, label=_ACTION_LABELS.get(action_id, action_id.title()), action_type="setup")


class FallbackGenerator:
    """Builds the non-answer response when routing, data or generation cannot produce one."""

    def __init__(
        self,
        catalog: CapabilityCatalog,
        gate: DataSufficiencyGate,
        collector: UnknownQueryCollector,
        *,
        guided_limit: int = 4,
    ) -> None:
        self._catalog = catalog
        self._gate = gate
        self._collector = collector
        self.guided_limit = guided_limit

    @property
    def collector(self) -> UnknownQueryCollector:
        return self._collector

    def select_kind(self, utterance: str, snapshot: ContextSnapshot, *, reason_code: str) -> FallbackKind:
        if snapshot.total_data_points == 0:
            return "setup"
        if is_explanation_seeking(utterance):
            return "educational"
        if reason_code in GUIDED_REASON_CODES:
            return "guided"
        return "unknown_collector"

    def generate(
        self,
        utterance: str,
        snapshot: ContextSnapshot,
        *,
        reason_code: str,
        answerability: AnswerabilityResult | None = None,
        candidate_capabilities: Iterable[str] = (),
    ) -> FallbackResponse:
        kind = self.select_kind(utterance, snapshot, reason_code=reason_code)
        if kind == "setup":
            response = self._setup(answerability, reason_code=reason_code)
        elif kind == "educational":
            response = self._educational(reason_code=reason_code)
        elif kind == "guided":
            response = self._guided(snapshot, answerability, reason_code=reason_code)
        else:
            response = self._unknown(utterance, snapshot, reason_code=reason_code, candidates=candidate_capabilities)
        logger.info(
            "Fallback generated: kind=%s reason=%s actions=%d",
            response.kind,
            reason_code,
            len(response.actions),
        )
        return response

    def _setup(self, answerability: AnswerabilityResult | None, *, reason_code: str) -> FallbackResponse:
        categories = ["transactions", "budgets", "goals"]
        if answerability is not None and answerability.missing_data:
            categories = answerability.missing_categories()
        actions: list[FallbackAction] = []
        if answerability is not None and answerability.fallback_action:
            actions.append(_setup_action(answerability.fallback_action))
        for action_id, _ in _SETUP_ACTIONS:
            if all(item.action_id != action_id for item in actions):
                actions.append(_setup_action(action_id))
        return FallbackResponse(
            kind="setup",
            message=(
                "I don't have any of your financial data yet, so I can't answer that. "
                "Once you connect an account or add a budget or goal, I can give you real numbers."
            ),
            suggestions=tuple(FallbackSuggestion(text=text) for text in suggestions_for_missing(categories)),
            actions=tuple(actions),
            reason_code=reason_code,
        )

    def _educational(self, *, reason_code: str) -> FallbackResponse:
        topics = self._catalog.by_content_kind("educational")
        suggestions = [
            FallbackSuggestion(text=item.example_utterance or item.name, capability_id=item.capability_id)
            for item in topics
        ]
        actions = [
            FallbackAction(
                action_id=f"ask:{item.capability_id}",
                label=item.name,
                action_type="ask",
                capability_id=item.capability_id,
                params={"utterance": item.example_utterance},
            )
            for item in topics
        ]
        if not actions:
            actions.append(FallbackAction(action_id="rephrase", label="Rephrase your question", action_type="rephrase"))
        return FallbackResponse(
            kind="educational",
            message="I can't explain that one yet, but here are topics I can walk you through.",
            suggestions=tuple(suggestions),
            actions=tuple(actions),
            reason_code=reason_code,
        )

    def _guided(
        self,
        snapshot: ContextSnapshot,
        answerability: AnswerabilityResult | None,
        *,
        reason_code: str,
    ) -> FallbackResponse:
        guided = self._gate.guided_suggestions(snapshot, limit=self.guided_limit)
        suggestions: list[FallbackSuggestion] = []
        actions: list[FallbackAction] = []

        if reason_code == "insufficient_data" and answerability is not None and answerability.missing_data:
            missing = ", ".join(category.replace("_", " ") for category in answerability.missing_categories())
            message = f"To answer that I need more data ({missing}). Meanwhile, here's what I can help with."
            suggestions.extend(FallbackSuggestion(text=text) for text in answerability.suggestions)
            if answerability.fallback_action:
                actions.append(_setup_action(answerability.fallback_action))
        elif reason_code in {"execution_failed", "generation_failed"}:
            message = "I couldn't put that answer together right now. Here are some things I can show you instead."
        else:
            message = "I'm not sure I understood. Here are a few things I can help with."

        for item in guided:
            suggestions.append(FallbackSuggestion(text=item.example_utterance or item.name, capability_id=item.capability_id))
            actions.append(
                FallbackAction(
                    action_id=f"ask:{item.capability_id}",
                    label=item.name,
                    action_type="ask",
                    capability_id=item.capability_id,
                    params={"utterance": item.example_utterance},
                )
            )
        if not actions:
            actions.append(_setup_action("GUIDED_SETUP"))
        return FallbackResponse(
            kind="guided",
            message=message,
            suggestions=tuple(suggestions),
            actions=tuple(actions),
            reason_code=reason_code,
        )

    def _unknown(
        self,
        utterance: str,
        snapshot: ContextSnapshot,
        *,
        reason_code: str,
        candidates: Iterable[str],
    ) -> FallbackResponse:
        suggested = [item for item in candidates if item in self._catalog]
        record = self._collector.record(utterance, suggested_capabilities=suggested)
        actions = [
            FallbackAction(action_id="rephrase", label="Try asking another way", action_type="rephrase"),
            FallbackAction(
                action_id=f"feedback:{record.record_id}",
                label="Tell us what you were looking for",
                action_type="feedback",
                params={"record_id": record.record_id},
            ),
        ]
        suggestions = [
            FallbackSuggestion(text=item.example_utterance or item.name, capability_id=item.capability_id)
            for item in self._gate.guided_suggestions(snapshot, limit=2)
        ]
        return FallbackResponse(
            kind="unknown_collector",
            message="I don't know how to help with that yet. I've noted the question so we can add it.",
            suggestions=tuple(suggestions),
            actions=tuple(actions),
            reason_code=reason_code,
            record_id=record.record_id,
        )
