from __future__ import annotations

import re
from collections import defaultdict
from typing import Any, Dict, Iterable

from catalog import CapabilitySpec
from slots import TimeWindow
from snapshot import ContextSnapshot, TransactionRecord

from .contracts import Fact


def safe_float(value: Any, default: float = 0.0) -> float:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().replace(",", "").lstrip("$")
    if not text:
        return default
    try:
        return float(text)
    except ValueError:
        return default


def fmt_money(value: Any) -> str:
    numeric = round(abs(safe_float(value)), 2)
    if abs(numeric - round(numeric)) < 0.01:
        return f"${int(round(numeric)):,}"
    return f"${numeric:,.2f}"


def fmt_pct(ratio: float) -> str:
    return f"{ratio * 100:.0f}%"


def _slug(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "_", str(text or "").lower()).strip("_")
    return slug or "item"


def _in_window(transactions: Iterable[TransactionRecord], window: TimeWindow | None) -> list[TransactionRecord]:
    return [item for item in transactions if window is None or window.contains(item.posted_on)]


def _matches(value: str, wanted: Any) -> bool:
    if not wanted:
        return True
    return str(value or "").strip().lower() == str(wanted).strip().lower()


def _budget_facts(snapshot: ContextSnapshot, params: Dict[str, Any]) -> list[Fact]:
    facts: list[Fact] = []
    category = params.get("category")
    for budget in snapshot.budgets:
        if category and not (_matches(budget.category, category) or _matches(budget.name, category)):
            continue
        slug = _slug(budget.name)
        if budget.remaining >= 0:
            value_text = f"{fmt_money(budget.spent)} spent of {fmt_money(budget.amount)}, {fmt_money(budget.remaining)} remaining"
        else:
            value_text = f"{fmt_money(budget.spent)} spent of {fmt_money(budget.amount)}, over by {fmt_money(budget.remaining)}"
        facts.append(
            Fact(
                fact_id=f"budget.{slug}.status",
                label=f"{budget.name} budget",
                value_text=value_text,
                value=budget.remaining,
            )
        )
    if len(snapshot.budgets) > 1 and not category:
        totals = snapshot.totals()
        facts.append(
            Fact(
                fact_id="budget.total",
                label="All budgets",
                value_text=f"total budget {fmt_money(totals.total_budget)}, total spent {fmt_money(totals.total_spent)}",
                value=totals.total_budget,
            )
        )
    return facts


def _goal_facts(snapshot: ContextSnapshot, params: Dict[str, Any]) -> list[Fact]:
    facts: list[Fact] = []
    wanted = params.get("goal")
    for goal in snapshot.goals:
        if wanted and not (_matches(goal.goal_id, wanted) or _matches(goal.name, wanted)):
            continue
        progress = goal.current_amount / goal.target_amount if goal.target_amount > 0 else 0.0
        facts.append(
            Fact(
                fact_id=f"goal.{_slug(goal.name)}.progress",
                label=f"{goal.name} goal",
                value_text=f"{fmt_money(goal.current_amount)} saved of {fmt_money(goal.target_amount)} ({fmt_pct(min(progress, 1.0))})",
                value=goal.current_amount,
            )
        )
    return facts


def _transaction_facts(snapshot: ContextSnapshot, params: Dict[str, Any], window: TimeWindow | None) -> list[Fact]:
    rows = [
        item
        for item in _in_window(snapshot.transactions, window)
        if _matches(item.category, params.get("category"))
        and _matches(item.merchant, params.get("merchant"))
        and _matches(item.account_id, params.get("account"))
    ]
    if not rows:
        return []
    label = window.label.replace("_", " ") if window is not None else "all time"
    debits = round(sum(item.amount for item in rows if item.direction == "debit"), 2)
    credits = round(sum(item.amount for item in rows if item.direction == "credit"), 2)
    net = round(credits - debits, 2)
    facts = [
        Fact(
            fact_id="spending.window_total",
            label=f"Spending ({label})",
            value_text=f"{fmt_money(debits)} across {len(rows)} transactions",
            value=debits,
        )
    ]
    if credits > 0:
        facts.append(Fact(fact_id="income.window_total", label=f"Income ({label})", value_text=fmt_money(credits), value=credits))
        flow = "net inflow" if net >= 0 else "net outflow"
        facts.append(Fact(fact_id="cashflow.net", label=f"Cash flow ({label})", value_text=f"{flow} of {fmt_money(net)}", value=net))

    by_category: Dict[str, float] = defaultdict(float)
    for item in rows:
        if item.direction == "debit":
            by_category[item.category or "uncategorized"] += item.amount
    ranked = sorted(by_category.items(), key=lambda pair: (-pair[1], pair[0]))
    for name, amount in ranked[:3]:
        facts.append(
            Fact(
                fact_id=f"spending.category.{_slug(name)}",
                label=f"{name.title()} spending ({label})",
                value_text=fmt_money(amount),
                value=round(amount, 2),
            )
        )
    return facts


def _recurring_facts(snapshot: ContextSnapshot) -> list[Fact]:
    facts = [
        Fact(
            fact_id=f"recurring.{_slug(item.name)}",
            label=f"{item.name} (recurring)",
            value_text=fmt_money(item.amount),
            value=item.amount,
        )
        for item in snapshot.recurring_expenses
    ]
    if len(facts) > 1:
        total = round(sum(item.amount for item in snapshot.recurring_expenses), 2)
        facts.insert(0, Fact(fact_id="recurring.total", label="Recurring bills", value_text=f"{fmt_money(total)} per cycle", value=total))
    return facts


def _debt_facts(snapshot: ContextSnapshot) -> list[Fact]:
    facts: list[Fact] = []
    for debt in sorted(snapshot.debts, key=lambda item: (-item.apr, item.name)):
        facts.append(
            Fact(
                fact_id=f"debt.{_slug(debt.name)}",
                label=f"{debt.name} balance",
                value_text=f"{fmt_money(debt.balance)} at {debt.apr:g}% APR, minimum {fmt_money(debt.minimum_payment)}",
                value=debt.balance,
            )
        )
    if len(facts) > 1:
        total = snapshot.totals().total_debt
        facts.insert(0, Fact(fact_id="debt.total", label="Debt", value_text=f"total debt {fmt_money(total)}", value=total))
    return facts


def _account_facts(snapshot: ContextSnapshot, params: Dict[str, Any]) -> list[Fact]:
    wanted = params.get("account")
    facts: list[Fact] = []
    for account in snapshot.accounts:
        if wanted and not (_matches(account.account_type, wanted) or _matches(account.name, wanted) or _matches(account.account_id, wanted)):
            continue
        if account.balance < 0:
            value_text = f"owes {fmt_money(account.balance)}"
        else:
            value_text = fmt_money(account.balance)
        facts.append(
            Fact(
                fact_id=f"account.{_slug(account.name)}",
                label=f"{account.name} ({account.account_type})",
                value_text=value_text,
                value=account.balance,
            )
        )
    return facts


def snapshot_facts(
    capability: CapabilitySpec,
    snapshot: ContextSnapshot,
    *,
    params: Dict[str, Any] | None = None,
    window: TimeWindow | None = None,
) -> list[Fact]:
    """Derive the facts a capability can cite, most relevant categories first."""
    params = dict(params or {})
    categories: list[str] = []
    for category in [*capability.requires, *capability.requires_any, *capability.optional]:
        if category not in categories:
            categories.append(category)

    facts: list[Fact] = []
    for category in categories:
        if category == "budgets":
            facts.extend(_budget_facts(snapshot, params))
        elif category == "goals":
            facts.extend(_goal_facts(snapshot, params))
        elif category == "transactions":
            facts.extend(_transaction_facts(snapshot, params, window))
        elif category == "recurring_expenses":
            facts.extend(_recurring_facts(snapshot))
        elif category == "debts":
            facts.extend(_debt_facts(snapshot))
        elif category == "accounts":
            facts.extend(_account_facts(snapshot, params))
    return facts


def _facts_from_payload(payload: Dict[str, Any]) -> list[Fact]:
    facts: list[Fact] = []
    raw_facts = payload.get("facts")
    if not isinstance(raw_facts, list):
        return facts
    for index, raw in enumerate(raw_facts):
        if not isinstance(raw, dict):
            continue
        value_text = str(raw.get("value_text") or "").strip()
        if not value_text:
            continue
        value = raw.get("value")
        facts.append(
            Fact(
                fact_id=str(raw.get("fact_id") or f"executor.{index}"),
                label=str(raw.get("label") or "").strip(),
                value_text=value_text,
                value=safe_float(value) if value is not None else None,
                source=str(raw.get("source") or "executor"),
            )
        )
    return facts


def build_fact_pack(
    capability: CapabilitySpec,
    snapshot: ContextSnapshot,
    *,
    execution_payload: Dict[str, Any] | None = None,
    params: Dict[str, Any] | None = None,
    window: TimeWindow | None = None,
    fact_budget: int = 8,
) -> list[Fact]:
    """Executor facts first, then snapshot facts, deduplicated and capped at ``fact_budget``."""
    ordered = _facts_from_payload(execution_payload or {})
    ordered.extend(snapshot_facts(capability, snapshot, params=params, window=window))
    pack: list[Fact] = []
    seen: set[str] = set()
    for fact in ordered:
        if fact.fact_id in seen:
            continue
        seen.add(fact.fact_id)
        pack.append(fact)
        if len(pack) >= max(0, fact_budget):
            break
    return pack
