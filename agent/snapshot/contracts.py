from __future__ import annotations

import hashlib
import json
from datetime import date
from typing import Any, Dict, Literal

from pydantic import BaseModel, ConfigDict, Field

DataCategory = Literal["budgets", "goals", "transactions", "recurring_expenses", "debts", "accounts"]
DATA_CATEGORIES: tuple[DataCategory, ...] = (
    "budgets",
    "goals",
    "transactions",
    "recurring_expenses",
    "debts",
    "accounts",
)
AccountType = Literal["checking", "savings", "credit", "investment", "loan", "other"]


class _Record(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class BudgetRecord(_Record):
    budget_id: str = ""
    name: str = Field(min_length=1)
    category: str = ""
    amount: float = Field(ge=0.0)
    spent: float = Field(default=0.0, ge=0.0)
    period: str = "monthly"

    @property
    def remaining(self) -> float:
        return round(self.amount - self.spent, 2)


class GoalRecord(_Record):
    goal_id: str = ""
    name: str = Field(min_length=1)
    category: str = ""
    target_amount: float = Field(ge=0.0)
    current_amount: float = Field(default=0.0, ge=0.0)
    target_date: date | None = None


class TransactionRecord(_Record):
    transaction_id: str = ""
    amount: float = Field(ge=0.0)
    direction: Literal["debit", "credit"] = "debit"
    merchant: str = ""
    category: str = ""
    account_id: str = ""
    posted_on: date


class RecurringExpenseRecord(_Record):
    name: str = Field(min_length=1)
    amount: float = Field(ge=0.0)
    category: str = ""
    next_due: date | None = None


class DebtRecord(_Record):
    name: str = Field(min_length=1)
    balance: float = Field(ge=0.0)
    apr: float = Field(default=0.0, ge=0.0, le=100.0)
    minimum_payment: float = Field(default=0.0, ge=0.0)


class AccountRecord(_Record):
    account_id: str = ""
    name: str = Field(min_length=1)
    account_type: AccountType = "other"
    balance: float = 0.0


class SnapshotTotals(_Record):
    total_budget: float
    total_spent: float
    total_remaining: float
    total_goal_target: float
    total_goal_saved: float
    total_debt: float
    total_debits: float
    total_credits: float


class ContextSnapshot(_Record):
    """Read-only view of the user's financial data for one request."""

    schema_version: str = "context_snapshot_v1"
    as_of: date = Field(default_factory=date.today)
    budgets: tuple[BudgetRecord, ...] = ()
    goals: tuple[GoalRecord, ...] = ()
    transactions: tuple[TransactionRecord, ...] = ()
    recurring_expenses: tuple[RecurringExpenseRecord, ...] = ()
    debts: tuple[DebtRecord, ...] = ()
    accounts: tuple[AccountRecord, ...] = ()

    def data_counts(self) -> Dict[str, int]:
        counts = {category: len(getattr(self, category)) for category in DATA_CATEGORIES}
        counts["total_data_points"] = sum(counts.values())
        return counts

    @property
    def total_data_points(self) -> int:
        return sum(len(getattr(self, category)) for category in DATA_CATEGORIES)

    def data_shape_fingerprint(self) -> str:
        counts = self.data_counts()
        shape = "|".join(f"{key}:{counts[key]}" for key in sorted(counts))
        return hashlib.sha256(shape.encode("utf-8")).hexdigest()[:16]

    def content_fingerprint(self) -> str:
        payload = json.dumps(self.model_dump(mode="json"), sort_keys=True)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]

    def totals(self) -> SnapshotTotals:
        total_budget = sum(item.amount for item in self.budgets)
        total_spent = sum(item.spent for item in self.budgets)
        return SnapshotTotals(
            total_budget=round(total_budget, 2),
            total_spent=round(total_spent, 2),
            total_remaining=round(total_budget - total_spent, 2),
            total_goal_target=round(sum(item.target_amount for item in self.goals), 2),
            total_goal_saved=round(sum(item.current_amount for item in self.goals), 2),
            total_debt=round(sum(item.balance for item in self.debts), 2),
            total_debits=round(sum(t.amount for t in self.transactions if t.direction == "debit"), 2),
            total_credits=round(sum(t.amount for t in self.transactions if t.direction == "credit"), 2),
        )

    def remaining_by_budget(self) -> Dict[str, float]:
        return {item.budget_id or item.name: item.remaining for item in self.budgets}


def empty_snapshot(*, as_of: date | None = None) -> ContextSnapshot:
    if as_of is None:
        return ContextSnapshot()
    return ContextSnapshot(as_of=as_of)


def snapshot_from_payload(payload: Dict[str, Any] | None) -> ContextSnapshot:
    """Build a snapshot from a provider payload, ignoring categories we do not model."""
    if not payload:
        return ContextSnapshot()
    allowed = set(ContextSnapshot.model_fields)
    cleaned = {key: value for key, value in dict(payload).items() if key in allowed}
    for category in DATA_CATEGORIES:
        if cleaned.get(category) is None:
            cleaned.pop(category, None)
    return ContextSnapshot.model_validate(cleaned)
