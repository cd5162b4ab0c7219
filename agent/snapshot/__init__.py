from .contracts import (
    DATA_CATEGORIES,
    AccountRecord,
    BudgetRecord,
    ContextSnapshot,
    DataCategory,
    DebtRecord,
    GoalRecord,
    RecurringExpenseRecord,
    SnapshotTotals,
    TransactionRecord,
    empty_snapshot,
    snapshot_from_payload,
)

__all__ = [
    "DATA_CATEGORIES",
    "AccountRecord",
    "BudgetRecord",
    "ContextSnapshot",
    "DataCategory",
    "DebtRecord",
    "GoalRecord",
    "RecurringExpenseRecord",
    "SnapshotTotals",
    "TransactionRecord",
    "empty_snapshot",
    "snapshot_from_payload",
]
