from __future__ import annotations

import json
import sys
import unittest
from datetime import date
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
AGENT_ROOT = ROOT / "agent"
if str(AGENT_ROOT) not in sys.path:
    sys.path.insert(0, str(AGENT_ROOT))

from catalog import load_capability_catalog  # noqa: E402
from generation import GenerationResult  # noqa: E402
from router import (  # noqa: E402
    HierarchicalRouter,
    SlidingWindowRateLimiter,
    build_clarifying_question,
    should_run_generative,
)
from slots import SlotResolver  # noqa: E402
from snapshot import snapshot_from_payload  # noqa: E402

CATALOG = load_capability_catalog(AGENT_ROOT / "catalog" / "capabilities_v1.json")


def _snapshot():
    return snapshot_from_payload(
        {
            "as_of": date(2024, 5, 15).isoformat(),
            "budgets": [
                {"budget_id": "bud_groceries", "name": "Groceries", "category": "groceries", "amount": 500, "spent": 320},
            ],
        }
    )


def _generator(payload, calls=None):
    def generate(request):
        if calls is not None:
            calls.append(request)
        return GenerationResult(text=json.dumps(payload), tier=request.tier)

    return generate


class HierarchicalRouterTests(unittest.TestCase):
    def test_pattern_pass_short_circuits(self) -> None:
        calls = []
        router = HierarchicalRouter(CATALOG, generate=_generator({"candidates": []}, calls))

        decision = router.route("How's my grocery budget?")

        self.assertEqual(decision.kind, "capability")
        self.assertEqual(decision.capability_id, "BUDGET_STATUS")
        self.assertGreaterEqual(decision.confidence, 0.8)
        self.assertEqual(decision.passes_run, ["pattern"])
        self.assertIn("accepted_by:pattern", decision.reason_codes)
        self.assertEqual(calls, [])

    def test_slots_are_resolved_for_the_chosen_capability(self) -> None:
        router = HierarchicalRouter(CATALOG, slot_resolver=SlotResolver(), generative_enabled=False)

        status = router.route("How's my grocery budget?", _snapshot())
        self.assertEqual(status.params["category"], "groceries")
        self.assertEqual(status.params["period"]["label"], "this_month")
        self.assertEqual(status.missing_slots, [])

        create = router.route("Create a budget", _snapshot())
        self.assertEqual(create.capability_id, "BUDGET_CREATE")
        self.assertEqual(create.missing_slots, ["category", "amount"])
        self.assertIn("amount", create.slot_suggestions)

    def test_semantic_pass_accepts_strong_keyword_overlap(self) -> None:
        router = HierarchicalRouter(CATALOG, generative_enabled=False)

        decision = router.route("is my safety cushion big enough for emergencies")

        self.assertEqual(decision.capability_id, "EMERGENCY_FUND_TRACKER")
        self.assertEqual(decision.passes_run, ["pattern", "semantic"])
        self.assertIn("accepted_by:semantic", decision.reason_codes)

    def test_generative_pass_runs_when_cheap_passes_are_weak(self) -> None:
        calls = []
        router = HierarchicalRouter(
            CATALOG,
            generate=_generator({"candidates": [{"capability_id": "debt_list", "confidence": 0.8}]}, calls),
        )

        decision = router.route("blorp zzz")

        self.assertEqual(len(calls), 1)
        self.assertEqual(calls[0].purpose, "route")
        self.assertEqual(decision.kind, "capability")
        self.assertEqual(decision.capability_id, "DEBT_LIST")
        self.assertEqual(decision.reason_code, "generative_classification")
        self.assertEqual(decision.passes_run, ["pattern", "semantic", "generative"])

    def test_generative_unknown_capability_is_dropped(self) -> None:
        router = HierarchicalRouter(
            CATALOG,
            generate=_generator({"candidates": [{"capability_id": "WIRE_MONEY", "confidence": 0.99}]}),
        )

        decision = router.route("blorp zzz")

        self.assertEqual(decision.kind, "unknown_fallback")
        self.assertIsNone(decision.capability_id)
        self.assertIn("unknown_capability:WIRE_MONEY", decision.reason_codes)

    def test_generative_rate_limit(self) -> None:
        limiter = SlidingWindowRateLimiter(max_calls=1, window_seconds=60, clock=lambda: 100.0)
        calls = []
        router = HierarchicalRouter(CATALOG, generate=_generator({"candidates": []}, calls), rate_limiter=limiter)

        router.route("blorp zzz")
        second = router.route("blorp zzz")

        self.assertEqual(len(calls), 1)
        self.assertIn("generative_rate_limited", second.reason_codes)
        self.assertEqual(second.reason_code, "route_no_match")

    def test_invalid_generative_output_is_ignored(self) -> None:
        def generate(request):
            return GenerationResult(text="I think it is about debts", tier=request.tier)

        router = HierarchicalRouter(CATALOG, generate=generate)
        decision = router.route("blorp zzz")

        self.assertEqual(decision.kind, "unknown_fallback")
        self.assertIn("invalid_json", decision.reason_codes)

    def test_nothing_matches(self) -> None:
        router = HierarchicalRouter(CATALOG, generative_enabled=False)

        decision = router.route("blorp zzz")

        self.assertEqual(decision.kind, "unknown_fallback")
        self.assertEqual(decision.reason_code, "route_no_match")
        self.assertEqual(decision.confidence, 0.0)

    def test_weak_match_becomes_guided_fallback_with_confirmation(self) -> None:
        router = HierarchicalRouter(CATALOG, generative_enabled=False)

        decision = router.route("yield")

        self.assertEqual(decision.kind, "guided_fallback")
        self.assertEqual(decision.reason_code, "route_low_confidence")
        self.assertEqual(decision.alternatives[0].capability_id, "EDUCATION_APR_VS_APY")

        question = build_clarifying_question(decision, CATALOG)
        self.assertEqual(question.question_id, "route_confirmation")
        self.assertEqual(question.options, ["APR vs APY explained", "Something else"])

    def test_routing_is_repeatable(self) -> None:
        router = HierarchicalRouter(CATALOG, generative_enabled=False)
        first = router.route("what are my top spending categories")
        second = router.route("what are my top spending categories")
        self.assertEqual(first, second)


class GenerativePolicyTests(unittest.TestCase):
    def test_disagreement_or_weakness_triggers_generative(self) -> None:
        self.assertTrue(should_run_generative(0.9, 0.2))
        self.assertTrue(should_run_generative(0.2, 0.3))
        self.assertFalse(should_run_generative(0.55, 0.5))

    def test_rate_limiter_window_slides(self) -> None:
        now = [0.0]
        limiter = SlidingWindowRateLimiter(max_calls=2, window_seconds=10, clock=lambda: now[0])

        self.assertTrue(limiter.try_acquire())
        self.assertTrue(limiter.try_acquire())
        self.assertFalse(limiter.try_acquire())
        now[0] = 10.5
        self.assertTrue(limiter.try_acquire())
        self.assertEqual(limiter.in_window(), 1)


if __name__ == "__main__":
    unittest.main()
