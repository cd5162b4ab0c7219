from __future__ import annotations

from .contracts import FallbackActionName

MISSING_DATA_SUGGESTIONS: dict[str, tuple[str, ...]] = {
    "transactions": (
        "Connect your bank account to import transactions",
        "Add some manual transactions to get started",
    ),
    "budgets": (
        "Create your first budget to track spending",
        "Set a monthly limit for a category you spend on often",
    ),
    "goals": (
        "Set up a savings goal",
        "Pick a target amount and date for something you're saving toward",
    ),
    "recurring_expenses": (
        "Add your recurring bills like rent or subscriptions",
        "Connect an account so recurring charges can be detected",
    ),
    "debts": (
        "Add your loans or credit card balances",
        "Connect a credit account to track balances automatically",
    ),
    "accounts": (
        "Connect a checking or savings account",
        "Add an account manually with its current balance",
    ),
}

_CATEGORY_ACTIONS: dict[str, FallbackActionName] = {
    "transactions": "CONNECT_ACCOUNT",
    "accounts": "CONNECT_ACCOUNT",
    "budgets": "CREATE_FIRST_BUDGET",
    "goals": "CREATE_FIRST_GOAL",
    "recurring_expenses": "ADD_RECURRING_EXPENSE",
    "debts": "ADD_DEBT",
}

GUIDED_PRIORITY: dict[str, float] = {
    "OVERVIEW": 0.9,
    "BUDGET_STATUS": 0.8,
    "GOAL_PROGRESS": 0.8,
    "CASHFLOW_SUMMARY": 0.7,
    "SPENDING_BY_CATEGORY": 0.7,
    "EDUCATION_BUDGETS_VS_GOALS": 0.6,
}


def suggestions_for_missing(categories: list[str]) -> list[str]:
    out: list[str] = []
    for category in categories:
        for text in MISSING_DATA_SUGGESTIONS.get(category, (f"Add some {category.replace('_', ' ')} data",)):
            if text not in out:
                out.append(text)
    return out


def fallback_action_for_missing(categories: list[str], *, total_data_points: int) -> FallbackActionName:
    if total_data_points == 0:
        return "SETUP_FINANCIAL_TRACKING"
    if len(categories) == 1:
        return _CATEGORY_ACTIONS.get(categories[0], "GUIDED_SETUP")
    return "GUIDED_SETUP"
