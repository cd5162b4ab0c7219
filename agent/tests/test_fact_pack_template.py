from __future__ import annotations

import sys
import unittest
from datetime import date
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
AGENT_ROOT = ROOT / "agent"
if str(AGENT_ROOT) not in sys.path:
    sys.path.insert(0, str(AGENT_ROOT))

from catalog import load_capability_catalog  # noqa: E402
from config import STRATEGY_DISCLAIMER  # noqa: E402
from generation import (  # noqa: E402
    build_answer_prompt,
    build_fact_pack,
    fmt_money,
    render_facts_only_answer,
    snapshot_facts,
    template_generation,
)
from slots import TimeWindow  # noqa: E402
from snapshot import snapshot_from_payload  # noqa: E402
from validation import GeneratedAnswer, run_guard_battery  # noqa: E402

CATALOG = load_capability_catalog(AGENT_ROOT / "catalog" / "capabilities_v1.json")
MAY_2024 = TimeWindow(label="this_month", start=date(2024, 5, 1), end=date(2024, 5, 31))


def _snapshot():
    return snapshot_from_payload(
        {
            "as_of": "2024-05-15",
            "budgets": [
                {"name": "Groceries", "category": "groceries", "amount": 500, "spent": 320},
                {"name": "Dining", "category": "dining", "amount": 200, "spent": 230},
            ],
            "transactions": [
                {"amount": 3200, "direction": "credit", "merchant": "Payroll", "category": "income", "posted_on": "2024-05-01"},
                {"amount": 120, "merchant": "Trader Joe's", "category": "groceries", "posted_on": "2024-05-03"},
                {"amount": 45.5, "merchant": "Chipotle", "category": "dining", "posted_on": "2024-05-04"},
                {"amount": 99, "merchant": "Old purchase", "category": "shopping", "posted_on": "2024-04-20"},
            ],
            "debts": [
                {"name": "Car loan", "balance": 8400, "apr": 6.5, "minimum_payment": 310},
                {"name": "Visa card", "balance": 2300, "apr": 22.9, "minimum_payment": 65},
            ],
        }
    )


class MoneyFormattingTests(unittest.TestCase):
    def test_fmt_money(self) -> None:
        self.assertEqual(fmt_money(180), "$180")
        self.assertEqual(fmt_money(1250.5), "$1,250.50")
        self.assertEqual(fmt_money(-40), "$40")
        self.assertEqual(fmt_money("$2,000"), "$2,000")
        self.assertEqual(fmt_money(None), "$0")


class SnapshotFactsTests(unittest.TestCase):
    def test_budget_facts_filter_by_category(self) -> None:
        facts = snapshot_facts(CATALOG.require("BUDGET_STATUS"), _snapshot(), params={"category": "groceries"}, window=MAY_2024)

        budget_facts = [fact for fact in facts if fact.fact_id.startswith("budget.")]
        self.assertEqual(len(budget_facts), 1)
        self.assertEqual(budget_facts[0].fact_id, "budget.groceries.status")
        self.assertEqual(budget_facts[0].value_text, "$320 spent of $500, $180 remaining")

    def test_over_budget_wording(self) -> None:
        facts = snapshot_facts(CATALOG.require("BUDGET_STATUS"), _snapshot(), params={"category": "dining"})
        self.assertEqual(facts[0].value_text, "$230 spent of $200, over by $30")

    def test_transaction_facts_respect_window(self) -> None:
        facts = snapshot_facts(CATALOG.require("CASHFLOW_SUMMARY"), _snapshot(), window=MAY_2024)
        by_id = {fact.fact_id: fact for fact in facts}

        self.assertEqual(by_id["spending.window_total"].value_text, "$165.50 across 3 transactions")
        self.assertEqual(by_id["income.window_total"].value, 3200.0)
        self.assertNotIn("spending.category.shopping", by_id)

    def test_debts_sorted_by_apr_with_total_first(self) -> None:
        facts = snapshot_facts(CATALOG.require("DEBT_LIST"), _snapshot())
        self.assertEqual([fact.fact_id for fact in facts], ["debt.total", "debt.visa_card", "debt.car_loan"])
        self.assertEqual(facts[0].value_text, "total debt $10,700")


class FactPackTests(unittest.TestCase):
    def test_executor_facts_come_first_and_budget_caps_pack(self) -> None:
        payload = {
            "facts": [
                {"fact_id": "budget.groceries.status", "label": "Groceries budget", "value_text": "$180 remaining", "value": 180},
                {"fact_id": "note", "label": "", "value_text": ""},
                "not a fact",
            ]
        }

        pack = build_fact_pack(
            CATALOG.require("BUDGET_STATUS"),
            _snapshot(),
            execution_payload=payload,
            window=MAY_2024,
            fact_budget=3,
        )

        self.assertEqual(len(pack), 3)
        self.assertEqual(pack[0].source, "executor")
        self.assertEqual(pack[0].value_text, "$180 remaining")
        self.assertEqual(len({fact.fact_id for fact in pack}), 3)


class TemplateAnswerTests(unittest.TestCase):
    def test_template_answer_lists_facts_and_passes_guards(self) -> None:
        snapshot = _snapshot()
        capability = CATALOG.require("BUDGET_STATUS")
        facts = snapshot_facts(capability, snapshot, params={"category": "groceries"}, window=MAY_2024)

        result = template_generation(capability, facts, window=MAY_2024)

        self.assertEqual(result.tier, "template")
        self.assertTrue(result.text.startswith("Here is what I found for budget status (this month):"))
        self.assertIn("- Groceries budget: $320 spent of $500, $180 remaining", result.text)
        report = run_guard_battery(GeneratedAnswer(text=result.text, tier="template"), snapshot, MAY_2024)
        self.assertTrue(report.passed, report.failures)

    def test_strategy_template_carries_disclaimer(self) -> None:
        capability = CATALOG.require("SAVINGS_PROJECTION")
        text = render_facts_only_answer(capability, [], disclaimer=STRATEGY_DISCLAIMER)
        self.assertTrue(text.endswith(STRATEGY_DISCLAIMER))
        self.assertIn(capability.description, text)

    def test_answer_prompt_includes_rules_and_feedback(self) -> None:
        capability = CATALOG.require("SAVINGS_PROJECTION")
        prompt = build_answer_prompt(
            utterance="Help me rebuild my savings plan",
            capability=capability,
            facts=[],
            window=MAY_2024,
            tier="escalated",
            disclaimer=STRATEGY_DISCLAIMER,
            corrective_feedback="numeric_sum_mismatch",
        )
        self.assertIn(STRATEGY_DISCLAIMER, prompt)
        self.assertIn("careful second pass", prompt)
        self.assertIn("Fix these problems from the previous draft: numeric_sum_mismatch", prompt)
        self.assertTrue(prompt.endswith("Answer:"))


if __name__ == "__main__":
    unittest.main()
