from __future__ import annotations

import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
AGENT_ROOT = ROOT / "agent"
if str(AGENT_ROOT) not in sys.path:
    sys.path.insert(0, str(AGENT_ROOT))

from answerability import DataSufficiencyGate  # noqa: E402
from catalog import load_capability_catalog  # noqa: E402
from fallback import FallbackGenerator, UnknownQueryCollector, is_explanation_seeking  # noqa: E402
from snapshot import empty_snapshot, snapshot_from_payload  # noqa: E402

CATALOG = load_capability_catalog(AGENT_ROOT / "catalog" / "capabilities_v1.json")


def _snapshot(*, goals: int = 1, transactions: int = 2):
    return snapshot_from_payload(
        {
            "as_of": "2024-05-15",
            "goals": [{"goal_id": f"g{i}", "name": f"Goal {i}", "target_amount": 1000} for i in range(goals)],
            "transactions": [
                {"transaction_id": f"t{i}", "amount": 20, "merchant": "Shop", "posted_on": "2024-05-02"}
                for i in range(transactions)
            ],
        }
    )


class FallbackGeneratorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.gate = DataSufficiencyGate(CATALOG)
        self.collector = UnknownQueryCollector()
        self.generator = FallbackGenerator(CATALOG, self.gate, self.collector)

    def test_empty_snapshot_gets_setup_guidance(self) -> None:
        snapshot = empty_snapshot()
        answerability = self.gate.check("OVERVIEW", snapshot)

        response = self.generator.generate(
            "how am I doing?",
            snapshot,
            reason_code="insufficient_data",
            answerability=answerability,
        )

        self.assertEqual(response.kind, "setup")
        self.assertGreaterEqual(len(response.actions), 1)
        self.assertEqual(response.actions[0].action_id, "SETUP_FINANCIAL_TRACKING")
        self.assertIn("CREATE_FIRST_BUDGET", [item.action_id for item in response.actions])
        self.assertIn("Create your first budget to track spending", [item.text for item in response.suggestions])

    def test_setup_takes_precedence_over_explanations(self) -> None:
        kind = self.generator.select_kind("explain what an APR is", empty_snapshot(), reason_code="route_no_match")
        self.assertEqual(kind, "setup")

    def test_explanation_request_gets_educational_topics(self) -> None:
        response = self.generator.generate("explain crypto staking", _snapshot(), reason_code="route_no_match")

        self.assertEqual(response.kind, "educational")
        capability_ids = {item.capability_id for item in response.actions}
        self.assertIn("EDUCATION_APR_VS_APY", capability_ids)
        self.assertTrue(all(item.action_type == "ask" for item in response.actions))

    def test_insufficient_data_names_missing_categories(self) -> None:
        snapshot = _snapshot(goals=1, transactions=2)
        answerability = self.gate.check("SAVINGS_PROJECTION", snapshot)

        response = self.generator.generate(
            "project my savings",
            snapshot,
            reason_code="insufficient_data",
            answerability=answerability,
        )

        self.assertEqual(response.kind, "guided")
        self.assertIn("transactions", response.message)
        self.assertEqual(response.actions[0].action_id, "CONNECT_ACCOUNT")
        ask_ids = [item.capability_id for item in response.actions if item.action_type == "ask"]
        self.assertIn("OVERVIEW", ask_ids)
        self.assertNotIn("SAVINGS_PROJECTION", ask_ids)

    def test_low_confidence_route_is_guided(self) -> None:
        response = self.generator.generate("yield", _snapshot(), reason_code="route_low_confidence")
        self.assertEqual(response.kind, "guided")
        self.assertEqual(response.reason_code, "route_low_confidence")
        self.assertTrue(response.actions)

    def test_unknown_request_is_collected(self) -> None:
        first = self.generator.generate(
            "book me a flight to Lisbon",
            _snapshot(),
            reason_code="route_no_match",
            candidate_capabilities=["TRANSACTION_SEARCH", "NOT_A_CAPABILITY"],
        )
        second = self.generator.generate("Book me a flight to Lisbon", _snapshot(), reason_code="route_no_match")

        self.assertEqual(first.kind, "unknown_collector")
        self.assertEqual(first.record_id, second.record_id)
        self.assertEqual(len(self.collector), 1)
        record = self.collector.get(first.record_id)
        self.assertEqual(record.frequency, 2)
        self.assertEqual(record.suggested_capabilities, ("TRANSACTION_SEARCH",))
        self.assertEqual([item.action_type for item in first.actions], ["rephrase", "feedback"])

    def test_explanation_detection(self) -> None:
        self.assertTrue(is_explanation_seeking("What is a Roth IRA?"))
        self.assertTrue(is_explanation_seeking("how does compound interest work"))
        self.assertFalse(is_explanation_seeking("book me a flight"))


if __name__ == "__main__":
    unittest.main()
