from __future__ import annotations

import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
AGENT_ROOT = ROOT / "agent"
if str(AGENT_ROOT) not in sys.path:
    sys.path.insert(0, str(AGENT_ROOT))

from answerability import DataSufficiencyGate, evaluate_answerability  # noqa: E402
from catalog import load_capability_catalog  # noqa: E402
from snapshot import empty_snapshot, snapshot_from_payload  # noqa: E402
from ttl_cache import TTLCache  # noqa: E402

CATALOG = load_capability_catalog(AGENT_ROOT / "catalog" / "capabilities_v1.json")


def _transactions(count: int):
    return [
        {"transaction_id": f"t{i}", "amount": 10 + i, "merchant": "Shop", "category": "shopping", "posted_on": "2024-05-02"}
        for i in range(count)
    ]


def _snapshot(*, budgets: int = 0, goals: int = 0, transactions: int = 0):
    return snapshot_from_payload(
        {
            "as_of": "2024-05-15",
            "budgets": [{"name": f"Budget {i}", "amount": 100, "spent": 10} for i in range(budgets)],
            "goals": [{"name": f"Goal {i}", "target_amount": 1000} for i in range(goals)],
            "transactions": _transactions(transactions),
        }
    )


class EvaluateAnswerabilityTests(unittest.TestCase):
    def test_budget_status_with_one_budget(self) -> None:
        result = evaluate_answerability(CATALOG.require("BUDGET_STATUS"), _snapshot(budgets=1).data_counts())
        self.assertTrue(result.can_answer)
        self.assertEqual(result.confidence, 1.0)
        self.assertEqual(result.missing_data, ())

    def test_partial_requirements_report_what_is_missing(self) -> None:
        result = evaluate_answerability(
            CATALOG.require("SAVINGS_PROJECTION"),
            _snapshot(goals=1, transactions=2).data_counts(),
        )

        self.assertFalse(result.can_answer)
        self.assertEqual(result.confidence, 0.5)
        self.assertEqual(result.missing_categories(), ["transactions"])
        self.assertEqual(result.missing_data[0].required, 5)
        self.assertEqual(result.missing_data[0].available, 2)
        self.assertEqual(result.fallback_action, "CONNECT_ACCOUNT")
        self.assertIn("Connect your bank account to import transactions", result.suggestions)

    def test_threshold_is_inclusive(self) -> None:
        capability = CATALOG.require("SUBSCRIPTIONS_DETECT")
        self.assertFalse(evaluate_answerability(capability, _snapshot(transactions=9).data_counts()).can_answer)
        self.assertTrue(evaluate_answerability(capability, _snapshot(transactions=10).data_counts()).can_answer)

    def test_any_of_group_lists_every_member_when_unsatisfied(self) -> None:
        result = evaluate_answerability(CATALOG.require("OVERVIEW"), empty_snapshot().data_counts())

        self.assertFalse(result.can_answer)
        self.assertEqual(result.confidence, 0.0)
        self.assertEqual(sorted(result.missing_categories()), ["budgets", "goals", "transactions"])
        self.assertEqual(result.fallback_action, "SETUP_FINANCIAL_TRACKING")

    def test_any_of_group_needs_only_one_member(self) -> None:
        result = evaluate_answerability(CATALOG.require("OVERVIEW"), _snapshot(goals=1).data_counts())
        self.assertTrue(result.can_answer)

    def test_educational_capability_needs_no_data(self) -> None:
        result = evaluate_answerability(CATALOG.require("EDUCATION_APR_VS_APY"), empty_snapshot().data_counts())
        self.assertTrue(result.can_answer)
        self.assertEqual(result.confidence, 1.0)


class DataSufficiencyGateTests(unittest.TestCase):
    def test_results_are_cached_by_data_shape(self) -> None:
        gate = DataSufficiencyGate(CATALOG)
        first = gate.check("BUDGET_STATUS", _snapshot(budgets=1))
        second = gate.check(
            "BUDGET_STATUS",
            snapshot_from_payload({"budgets": [{"name": "Other", "amount": 900, "spent": 800}]}),
        )

        self.assertIs(first, second)
        self.assertEqual(gate.cache_stats()["hits"], 1)

        gate.clear_cache()
        self.assertEqual(gate.cache_stats()["entries"], 0)

    def test_cache_entries_expire(self) -> None:
        now = [0.0]
        cache = TTLCache(ttl_seconds=300, max_entries=10, clock=lambda: now[0])
        gate = DataSufficiencyGate(CATALOG, cache=cache)

        first = gate.check("BUDGET_STATUS", _snapshot(budgets=1))
        now[0] = 301.0
        second = gate.check("BUDGET_STATUS", _snapshot(budgets=1))

        self.assertIsNot(first, second)
        self.assertEqual(first, second)

    def test_unknown_capability_raises(self) -> None:
        gate = DataSufficiencyGate(CATALOG)
        with self.assertRaises(KeyError):
            gate.check("NOPE", empty_snapshot())

    def test_guided_suggestions_rank_by_priority(self) -> None:
        gate = DataSufficiencyGate(CATALOG)

        suggestions = gate.guided_suggestions(_snapshot(budgets=1), limit=3)

        self.assertEqual([item.capability_id for item in suggestions[:2]], ["OVERVIEW", "BUDGET_STATUS"])
        self.assertLessEqual(len(suggestions), 3)
        for item in suggestions:
            self.assertTrue(item.example_utterance)

    def test_data_quality_report(self) -> None:
        gate = DataSufficiencyGate(CATALOG)

        report = gate.data_quality(_snapshot(budgets=2, goals=1))

        self.assertEqual(report.populated_categories, ["budgets", "goals"])
        self.assertIn("transactions", report.empty_categories)
        self.assertEqual(report.total_capabilities, len(CATALOG))
        self.assertGreater(report.answerable_capabilities, 0)
        self.assertLess(report.completeness, 1.0)


class TTLCacheTests(unittest.TestCase):
    def test_eviction_keeps_newest_entries(self) -> None:
        now = [0.0]
        cache = TTLCache(ttl_seconds=60, max_entries=2, clock=lambda: now[0])

        cache.put("a", 1)
        now[0] = 1.0
        cache.put("b", 2)
        now[0] = 2.0
        cache.put("c", 3)

        self.assertIsNone(cache.get("a"))
        self.assertEqual(cache.get("b"), 2)
        self.assertEqual(cache.get("c"), 3)
        self.assertEqual(len(cache), 2)


if __name__ == "__main__":
    unittest.main()
