from __future__ import annotations

import sys
import threading
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
AGENT_ROOT = ROOT / "agent"
if str(AGENT_ROOT) not in sys.path:
    sys.path.insert(0, str(AGENT_ROOT))

from answerability import DataSufficiencyGate  # noqa: E402
from catalog import load_capability_catalog  # noqa: E402
from config import STRATEGY_DISCLAIMER  # noqa: E402
from fallback import FallbackGenerator, UnknownQueryCollector  # noqa: E402
from generation import GenerationResult  # noqa: E402
from graph import AssistantOrchestrator, run_assistant  # noqa: E402
from observability import EventDispatcher  # noqa: E402
from response import CANCELLED_MESSAGE  # noqa: E402
from router import HierarchicalRouter  # noqa: E402
from slots import SlotResolver  # noqa: E402
from snapshot import empty_snapshot, snapshot_from_payload  # noqa: E402
from tools import CapabilityExecutor  # noqa: E402
from ttl_cache import TTLCache  # noqa: E402
from validation import REASON_HIGH_STAKES  # noqa: E402

CATALOG = load_capability_catalog(AGENT_ROOT / "catalog" / "capabilities_v1.json")

SNAPSHOT_PAYLOAD = {
    "as_of": "2024-05-15",
    "budgets": [
        {"budget_id": "bud_groceries", "name": "Groceries", "category": "groceries", "amount": 500, "spent": 320},
    ],
    "goals": [
        {"goal_id": "goal_emergency", "name": "Emergency fund", "category": "emergency", "target_amount": 6000, "current_amount": 2400},
    ],
    "transactions": [
        {"transaction_id": "txn_1", "amount": 3200, "direction": "credit", "merchant": "Acme Payroll", "category": "income", "posted_on": "2024-05-01"},
        {"transaction_id": "txn_2", "amount": 86.4, "merchant": "Trader Joe's", "category": "groceries", "posted_on": "2024-05-03"},
        {"transaction_id": "txn_3", "amount": 42.1, "merchant": "Chipotle", "category": "dining", "posted_on": "2024-05-04"},
        {"transaction_id": "txn_4", "amount": 15.99, "merchant": "Netflix", "category": "entertainment", "posted_on": "2024-05-05"},
        {"transaction_id": "txn_5", "amount": 60, "merchant": "Shell", "category": "transportation", "posted_on": "2024-05-06"},
        {"transaction_id": "txn_6", "amount": 233.6, "merchant": "Costco", "category": "groceries", "posted_on": "2024-05-10"},
    ],
}


class _FakeGenerator:
    def __init__(self, text: str = "", *, error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return GenerationResult(text=self.text, token_count=25, tier=request.tier)


class _RecordingSink:
    def __init__(self) -> None:
        self.events = []

    def emit(self, event) -> None:
        self.events.append(event)


class _ExplodingRouter:
    def route(self, utterance, snapshot=None):
        raise RuntimeError("router exploded")


def _snapshot():
    return snapshot_from_payload(SNAPSHOT_PAYLOAD)


def _orchestrator(standard=None, escalated=None, **overrides) -> AssistantOrchestrator:
    resolver = SlotResolver()
    options = {
        "router": HierarchicalRouter(CATALOG, slot_resolver=resolver, generative_enabled=False),
        "slot_resolver": resolver,
        "executor": CapabilityExecutor(CATALOG, local=True),
        "standard_generate": standard,
        "escalated_generate": escalated,
        "max_attempts": 1,
    }
    options.update(overrides)
    return AssistantOrchestrator(CATALOG, **options)


class AnswerPathTests(unittest.TestCase):
    def test_clean_budget_answer_is_released_from_standard_tier(self) -> None:
        standard = _FakeGenerator("You have $180 remaining of $500.")
        escalated = _FakeGenerator("unused")

        response = _orchestrator(standard, escalated).run("How's my grocery budget doing?", _snapshot())

        self.assertEqual(response.kind, "answer")
        self.assertEqual(response.capability_id, "BUDGET_STATUS")
        self.assertGreaterEqual(response.confidence, 0.8)
        self.assertTrue(response.answerability.can_answer)
        self.assertEqual(response.tier, "standard")
        self.assertFalse(response.low_confidence)
        self.assertEqual(response.guard_failures, [])
        self.assertEqual(response.text, "You have $180 remaining of $500.")
        self.assertEqual(response.safety.action, "allow")
        self.assertEqual(len(standard.requests), 1)
        self.assertEqual(escalated.requests, [])
        self.assertEqual(response.token_count, 25)

    def test_guard_failure_escalates_to_second_tier(self) -> None:
        standard = _FakeGenerator("You have $220 remaining of $500.")
        escalated = _FakeGenerator("You have $180 remaining of $500.")

        response = _orchestrator(standard, escalated).run("How's my grocery budget?", _snapshot())

        self.assertEqual(response.kind, "answer")
        self.assertEqual(response.tier, "escalated")
        self.assertFalse(response.low_confidence)
        self.assertIn("numeric_sum_mismatch", response.guard_failures)
        self.assertEqual(response.critic.escalation_reason, "numeric_sum_mismatch")
        self.assertEqual(response.text, "You have $180 remaining of $500.")
        self.assertEqual(len(escalated.requests), 1)
        self.assertEqual(escalated.requests[0].tier, "escalated")
        self.assertIn("numeric_sum_mismatch", escalated.requests[0].prompt)

    def test_failed_guard_without_escalated_tier_uses_template(self) -> None:
        standard = _FakeGenerator("You have $220 remaining of $500.")

        response = _orchestrator(standard).run("How's my grocery budget?", _snapshot())

        self.assertEqual(response.kind, "answer")
        self.assertEqual(response.tier, "template")
        self.assertTrue(response.low_confidence)
        self.assertNotIn("$220", response.text)
        self.assertIn("$180 remaining", response.text)

    def test_high_stakes_request_is_escalated(self) -> None:
        standard = _FakeGenerator(f"Set aside $300 each month toward your emergency fund. {STRATEGY_DISCLAIMER}")
        escalated = _FakeGenerator(
            f"Move $300 a month into your emergency fund until it reaches $6,000. {STRATEGY_DISCLAIMER}"
        )

        response = _orchestrator(standard, escalated).run("Help me rebuild my 6-month savings plan", _snapshot())

        self.assertEqual(response.kind, "answer")
        self.assertEqual(response.capability_id, "SAVINGS_PROJECTION")
        self.assertEqual(response.critic.escalation_reason, REASON_HIGH_STAKES)
        self.assertEqual(response.critic.risk_level, "high")
        self.assertEqual(response.tier, "escalated")
        self.assertIn(STRATEGY_DISCLAIMER, response.text)
        for hedge in ("maybe", "perhaps", "might"):
            self.assertNotIn(hedge, response.text.lower())
        self.assertIn(STRATEGY_DISCLAIMER, escalated.requests[0].prompt)

    def test_generation_failure_falls_back_to_template(self) -> None:
        standard = _FakeGenerator(error=RuntimeError("model offline"))

        response = _orchestrator(standard).run("How's my grocery budget?", _snapshot())

        self.assertEqual(response.kind, "answer")
        self.assertEqual(response.tier, "template")
        self.assertTrue(response.low_confidence)
        self.assertIn("generation:standard:GenerationError", response.external_failures)

    def test_no_generator_configured_uses_template(self) -> None:
        response = _orchestrator().run("How's my grocery budget?", _snapshot())

        self.assertEqual(response.kind, "answer")
        self.assertEqual(response.tier, "template")
        self.assertIn("Groceries budget", response.text)


class NonAnswerPathTests(unittest.TestCase):
    def test_empty_snapshot_gets_setup_guidance(self) -> None:
        standard = _FakeGenerator("unused")

        response = _orchestrator(standard).run("how am I doing?", empty_snapshot())

        self.assertEqual(response.kind, "fallback")
        self.assertEqual(response.capability_id, "OVERVIEW")
        self.assertFalse(response.answerability.can_answer)
        self.assertEqual(response.fallback.kind, "setup")
        self.assertTrue(response.low_confidence)
        self.assertGreaterEqual(len(response.actions), 1)
        self.assertEqual(standard.requests, [])

    def test_missing_slots_ask_a_clarifying_question(self) -> None:
        standard = _FakeGenerator("unused")

        response = _orchestrator(standard).run("Create a budget", _snapshot())

        self.assertEqual(response.kind, "clarification")
        self.assertEqual(response.capability_id, "BUDGET_CREATE")
        self.assertEqual(response.route.missing_slots, ["category", "amount"])
        slot_ids = [item.action_id for item in response.actions]
        self.assertTrue(any(action_id.startswith("slot:category:") for action_id in slot_ids))
        self.assertTrue(any(action_id.startswith("slot:amount:") for action_id in slot_ids))
        self.assertEqual(standard.requests, [])

    def test_unknown_request_is_collected(self) -> None:
        gate = DataSufficiencyGate(CATALOG)
        collector = UnknownQueryCollector()
        orchestrator = _orchestrator(gate=gate, fallback_generator=FallbackGenerator(CATALOG, gate, collector))

        response = orchestrator.run("blorp zzz", _snapshot())

        self.assertEqual(response.kind, "fallback")
        self.assertIsNone(response.capability_id)
        self.assertEqual(response.fallback.kind, "unknown_collector")
        self.assertIsNotNone(collector.get(response.fallback.record_id))

    def test_empty_input_is_rejected(self) -> None:
        response = _orchestrator().run("   ", _snapshot())

        self.assertEqual(response.kind, "rejected")
        self.assertEqual(response.input_decision.decision, "reject")
        self.assertIsNone(response.route)
        self.assertTrue(response.text)

    def test_cancelled_request_returns_cancellation_notice(self) -> None:
        standard = _FakeGenerator("unused")
        sink = _RecordingSink()
        dispatcher = EventDispatcher(sink, pool_size=1)
        cache = TTLCache(ttl_seconds=60, max_entries=10)
        cancel = threading.Event()
        cancel.set()

        response = _orchestrator(standard, dispatcher=dispatcher, response_cache=cache).run(
            "How's my grocery budget?", _snapshot(), cancel_event=cancel
        )
        dispatcher.shutdown()

        self.assertEqual(response.kind, "cancelled")
        self.assertEqual(response.text, CANCELLED_MESSAGE)
        self.assertEqual(standard.requests, [])
        self.assertEqual(len(cache), 0)
        self.assertEqual(len(sink.events), 1)
        self.assertEqual(sink.events[0]["response_kind"], "cancelled")

    def test_unexpected_error_returns_generic_fallback(self) -> None:
        orchestrator = _orchestrator(router=_ExplodingRouter())

        with self.assertLogs("graph", level="ERROR"):
            response = orchestrator.run("How's my grocery budget?", _snapshot(), trace_id="trc_boom")

        self.assertEqual(response.kind, "fallback")
        self.assertEqual(response.trace_id, "trc_boom")
        self.assertEqual(response.fallback.reason_code, "pipeline_error")


class CachingAndEventsTests(unittest.TestCase):
    def test_confident_answers_are_cached_per_snapshot(self) -> None:
        standard = _FakeGenerator("You have $180 remaining of $500.")
        cache = TTLCache(ttl_seconds=60, max_entries=10)
        orchestrator = _orchestrator(standard, response_cache=cache)

        first = orchestrator.run("How's my grocery budget?", _snapshot(), trace_id="trc_one")
        second = orchestrator.run("how's my   GROCERY budget?", _snapshot(), trace_id="trc_two")

        self.assertFalse(first.cache_hit)
        self.assertTrue(second.cache_hit)
        self.assertEqual(second.trace_id, "trc_two")
        self.assertEqual(second.text, first.text)
        self.assertEqual(len(standard.requests), 1)

        changed = dict(SNAPSHOT_PAYLOAD, budgets=[dict(SNAPSHOT_PAYLOAD["budgets"][0], spent=330)])
        third = orchestrator.run("How's my grocery budget?", snapshot_from_payload(changed))
        self.assertFalse(third.cache_hit)

    def test_low_confidence_answers_are_not_cached(self) -> None:
        cache = TTLCache(ttl_seconds=60, max_entries=10)
        orchestrator = _orchestrator(_FakeGenerator(error=RuntimeError("offline")), response_cache=cache)

        response = orchestrator.run("How's my grocery budget?", _snapshot())

        self.assertTrue(response.low_confidence)
        self.assertEqual(len(cache), 0)

    def test_pipeline_event_summarizes_the_request(self) -> None:
        sink = _RecordingSink()
        dispatcher = EventDispatcher(sink, pool_size=1)
        orchestrator = _orchestrator(_FakeGenerator("You have $180 remaining of $500."), dispatcher=dispatcher)

        orchestrator.run("How's my grocery budget?", _snapshot(), trace_id="trc_event", user_id="u-7")
        dispatcher.shutdown()

        self.assertEqual(len(sink.events), 1)
        event = sink.events[0]
        self.assertEqual(event["trace_id"], "trc_event")
        self.assertEqual(event["user_id"], "u-7")
        self.assertEqual(event["capability_id"], "BUDGET_STATUS")
        self.assertEqual(event["passes_run"], ["pattern"])
        self.assertTrue(event["answerability_can_answer"])
        self.assertEqual(event["tier"], "standard")
        self.assertNotIn("How's my grocery budget?", str(event))


class RunAssistantTests(unittest.TestCase):
    def test_context_payload_is_used_directly(self) -> None:
        orchestrator = _orchestrator(_FakeGenerator("You have $180 remaining of $500."))

        result = run_assistant(
            "How's my grocery budget?",
            SNAPSHOT_PAYLOAD,
            trace_id="trc_payload",
            orchestrator=orchestrator,
        )

        self.assertEqual(result["trace_id"], "trc_payload")
        self.assertEqual(result["kind"], "answer")
        self.assertEqual(result["capability_id"], "BUDGET_STATUS")
        self.assertEqual(result["external_failures"], [])

    def test_invalid_payload_degrades_to_empty_snapshot(self) -> None:
        orchestrator = _orchestrator(_FakeGenerator("unused"))

        result = run_assistant(
            "How's my grocery budget?",
            {"budgets": "not a list"},
            orchestrator=orchestrator,
        )

        self.assertEqual(result["kind"], "fallback")
        self.assertIn("context:invalid_payload", result["external_failures"])
        self.assertEqual(result["fallback"]["kind"], "setup")


if __name__ == "__main__":
    unittest.main()
