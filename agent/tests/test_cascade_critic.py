from __future__ import annotations

import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
AGENT_ROOT = ROOT / "agent"
if str(AGENT_ROOT) not in sys.path:
    sys.path.insert(0, str(AGENT_ROOT))

from snapshot import empty_snapshot, snapshot_from_payload  # noqa: E402
from validation import (  # noqa: E402
    REASON_AMBIGUITY,
    REASON_HIGH_STAKES,
    REASON_STRATEGY,
    REASON_UNSUPPORTED_CLAIM,
    CascadeCritic,
    GeneratedAnswer,
    GuardBatteryReport,
    detect_high_stakes,
)

PASSED = GuardBatteryReport(passed=True)


def _snapshot():
    return snapshot_from_payload(
        {"budgets": [{"name": "Groceries", "category": "groceries", "amount": 500, "spent": 320}]}
    )


class CascadeCriticTests(unittest.TestCase):
    def setUp(self) -> None:
        self.critic = CascadeCritic()

    def test_clean_factual_answer_is_accepted(self) -> None:
        report = self.critic.review(
            "How's my grocery budget?",
            GeneratedAnswer(text="You have $180 remaining of $500."),
            PASSED,
            _snapshot(),
        )

        self.assertTrue(report.passed)
        self.assertFalse(report.escalate)
        self.assertIsNone(report.escalation_reason)
        self.assertEqual(report.risk_level, "low")

    def test_guard_failure_takes_precedence(self) -> None:
        failed = GuardBatteryReport(passed=False, failures=("numeric_sum_mismatch",))

        report = self.critic.review(
            "Help me plan my budget",
            GeneratedAnswer(text="Maybe you have $220 remaining."),
            failed,
            _snapshot(),
        )

        self.assertTrue(report.escalate)
        self.assertEqual(report.escalation_reason, "numeric_sum_mismatch")
        kinds = {issue.kind for issue in report.issues}
        self.assertTrue({"guard_failure", "ambiguity", "strategy_request"} <= kinds)

    def test_hedging_escalates(self) -> None:
        report = self.critic.review(
            "How's my grocery budget?",
            GeneratedAnswer(text="It depends on what you buy next week."),
            PASSED,
            _snapshot(),
        )
        self.assertEqual(report.escalation_reason, REASON_AMBIGUITY)
        self.assertEqual(report.risk_level, "medium")

    def test_reference_to_missing_data_is_unsupported(self) -> None:
        report = self.critic.review(
            "How am I doing?",
            GeneratedAnswer(text="Your goals are on track."),
            PASSED,
            _snapshot(),
        )
        self.assertEqual(report.escalation_reason, REASON_UNSUPPORTED_CLAIM)

    def test_invented_sources_are_unsupported(self) -> None:
        report = self.critic.review(
            "What's an index fund?",
            GeneratedAnswer(text="Market data shows index funds are popular."),
            PASSED,
            empty_snapshot(),
        )
        self.assertEqual(report.escalation_reason, REASON_UNSUPPORTED_CLAIM)

    def test_high_stakes_request(self) -> None:
        report = self.critic.review(
            "Help me rebuild my 6-month savings plan",
            GeneratedAnswer(text="Set aside $200 each month toward your emergency fund."),
            PASSED,
            _snapshot(),
        )
        self.assertEqual(report.escalation_reason, REASON_HIGH_STAKES)
        self.assertEqual(report.risk_level, "high")

    def test_strategy_request(self) -> None:
        report = self.critic.review(
            "What's the best strategy for groceries?",
            GeneratedAnswer(text="Shop with a list."),
            PASSED,
            _snapshot(),
        )
        self.assertEqual(report.escalation_reason, REASON_STRATEGY)

    def test_adding_guard_failures_never_lowers_escalation(self) -> None:
        failed = GuardBatteryReport(passed=False, failures=("numeric_sum_mismatch",))
        cases = (
            ("How's my grocery budget?", "You have $180 remaining of $500."),
            ("What's the best strategy for groceries?", "Shop with a list."),
            ("Help me rebuild my 6-month savings plan", "Set aside $200 each month."),
        )
        for utterance, text in cases:
            with self.subTest(utterance=utterance):
                answer = GeneratedAnswer(text=text)
                before = self.critic.review(utterance, answer, PASSED, _snapshot())
                after = self.critic.review(utterance, answer, failed, _snapshot())

                self.assertTrue(after.escalate)
                self.assertGreaterEqual(len(after.issues), len(before.issues))
                self.assertEqual(after.escalation_reason, "numeric_sum_mismatch")


class HighStakesDetectionTests(unittest.TestCase):
    def test_keyword_pairs_and_patterns(self) -> None:
        self.assertTrue(detect_high_stakes("should I refinance my mortgage"))
        self.assertTrue(detect_high_stakes("am I close to bankruptcy"))
        self.assertFalse(detect_high_stakes("how much did I spend on coffee"))
        self.assertFalse(detect_high_stakes("what is my savings rate"))


if __name__ == "__main__":
    unittest.main()
