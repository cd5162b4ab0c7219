from __future__ import annotations

import re

from snapshot import ContextSnapshot

from .base import BaseSlotResolver, SlotCandidate, pattern_provenance, phrase_pattern

CATEGORY_KEYWORDS: dict[str, str] = {
    "groceries": "groceries",
    "grocery": "groceries",
    "food": "groceries",
    "supermarket": "groceries",
    "dining": "dining",
    "restaurant": "dining",
    "restaurants": "dining",
    "eating out": "dining",
    "takeout": "dining",
    "delivery": "dining",
    "transportation": "transportation",
    "transport": "transportation",
    "gas": "transportation",
    "fuel": "transportation",
    "gasoline": "transportation",
    "taxi": "transportation",
    "parking": "transportation",
    "tolls": "transportation",
    "entertainment": "entertainment",
    "movies": "entertainment",
    "games": "entertainment",
    "gaming": "entertainment",
    "hobbies": "entertainment",
    "utilities": "utilities",
    "electric": "utilities",
    "electricity": "utilities",
    "water": "utilities",
    "internet": "utilities",
    "phone": "utilities",
    "cable": "utilities",
    "heating": "utilities",
    "healthcare": "healthcare",
    "medical": "healthcare",
    "doctor": "healthcare",
    "pharmacy": "healthcare",
    "dental": "healthcare",
    "shopping": "shopping",
    "clothes": "shopping",
    "clothing": "shopping",
    "retail": "shopping",
    "rent": "housing",
    "mortgage": "housing",
    "housing": "housing",
    "travel": "travel",
    "vacation": "travel",
    "flights": "travel",
}
_CATEGORY_RULES = tuple((phrase_pattern(keyword), category) for keyword, category in CATEGORY_KEYWORDS.items())

KNOWN_MERCHANTS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bamazon\b", re.I), "Amazon"),
    (re.compile(r"\bstarbucks\b", re.I), "Starbucks"),
    (re.compile(r"\bmcdonald'?s?\b", re.I), "McDonald's"),
    (re.compile(r"\bwalmart\b", re.I), "Walmart"),
    (re.compile(r"\btarget\b(?! (amount|date))", re.I), "Target"),
    (re.compile(r"\bcostco\b", re.I), "Costco"),
    (re.compile(r"\bwhole foods\b", re.I), "Whole Foods"),
    (re.compile(r"\btrader joe'?s?\b", re.I), "Trader Joe's"),
    (re.compile(r"\buber\b", re.I), "Uber"),
    (re.compile(r"\blyft\b", re.I), "Lyft"),
    (re.compile(r"\bnetflix\b", re.I), "Netflix"),
    (re.compile(r"\bspotify\b", re.I), "Spotify"),
)

ACCOUNT_RULES: tuple[tuple[re.Pattern[str], str, float], ...] = (
    (re.compile(r"\bchecking( account)?\b", re.I), "checking", 0.95),
    (re.compile(r"\bsavings account\b", re.I), "savings", 0.95),
    (re.compile(r"\bcredit card( account)?\b|\bcredit account\b", re.I), "credit", 0.95),
    (re.compile(r"\binvestment accounts?\b|\bbrokerage\b", re.I), "investment", 0.95),
    (re.compile(r"\bdebit( card)?\b", re.I), "checking", 0.9),
    (re.compile(r"\bcash\b(?! ?flow)", re.I), "checking", 0.8),
)


class CategoryResolver(BaseSlotResolver):
    slot_type = "category"

    def candidates(self, utterance: str, snapshot: ContextSnapshot) -> list[SlotCandidate]:
        found: list[SlotCandidate] = []
        for pattern, category in _CATEGORY_RULES:
            match = pattern.search(utterance)
            if match:
                found.append(SlotCandidate(category, 0.9, "explicit", match.group(0)))
        for budget in snapshot.budgets:
            for label in {budget.name.strip().lower(), budget.category.strip().lower()}:
                if not label:
                    continue
                match = phrase_pattern(label).search(utterance)
                if match:
                    found.append(SlotCandidate(budget.category or budget.name, 0.8, "context", match.group(0)))
        return found

    def suggestions(self, snapshot: ContextSnapshot | None = None) -> list[str]:
        defaults = ["groceries", "dining", "transportation", "entertainment", "utilities", "healthcare", "shopping"]
        if snapshot is None or not snapshot.budgets:
            return defaults
        names = [budget.name for budget in snapshot.budgets]
        return list(dict.fromkeys([*names, *defaults]))[:7]


class MerchantResolver(BaseSlotResolver):
    slot_type = "merchant"

    def candidates(self, utterance: str, snapshot: ContextSnapshot) -> list[SlotCandidate]:
        found: list[SlotCandidate] = []
        for pattern, merchant in KNOWN_MERCHANTS:
            match = pattern.search(utterance)
            if match:
                found.append(SlotCandidate(merchant, 0.95, "explicit", match.group(0)))
        seen: set[str] = set()
        for transaction in snapshot.transactions:
            merchant = transaction.merchant.strip()
            if not merchant or merchant.lower() in seen:
                continue
            seen.add(merchant.lower())
            match = phrase_pattern(merchant).search(utterance)
            if match:
                found.append(SlotCandidate(merchant, 0.8, "context", match.group(0)))
        return found

    def suggestions(self, snapshot: ContextSnapshot | None = None) -> list[str]:
        defaults = ["Amazon", "Starbucks", "McDonald's", "Walmart", "Target", "Costco", "Uber", "Netflix"]
        if snapshot is None or not snapshot.transactions:
            return defaults
        merchants = [item.merchant for item in snapshot.transactions if item.merchant]
        return list(dict.fromkeys([*merchants, *defaults]))[:8]


class AccountResolver(BaseSlotResolver):
    slot_type = "account"

    def candidates(self, utterance: str, snapshot: ContextSnapshot) -> list[SlotCandidate]:
        found: list[SlotCandidate] = []
        for pattern, account_type, confidence in ACCOUNT_RULES:
            match = pattern.search(utterance)
            if match:
                found.append(SlotCandidate(account_type, confidence, pattern_provenance(confidence), match.group(0)))
        for account in snapshot.accounts:
            match = phrase_pattern(account.name).search(utterance)
            if match:
                found.append(SlotCandidate(account.account_id or account.name, 0.9, "explicit", match.group(0)))
        return found

    def suggestions(self, snapshot: ContextSnapshot | None = None) -> list[str]:
        if snapshot is not None and snapshot.accounts:
            return [account.name for account in snapshot.accounts][:5]
        return ["checking", "savings", "credit card", "investment"]


class GoalResolver(BaseSlotResolver):
    slot_type = "goal_id"

    def candidates(self, utterance: str, snapshot: ContextSnapshot) -> list[SlotCandidate]:
        found: list[SlotCandidate] = []
        for goal in snapshot.goals:
            goal_ref = goal.goal_id or goal.name
            match = phrase_pattern(goal.name).search(utterance)
            if match:
                found.append(SlotCandidate(goal_ref, 0.9, "explicit", match.group(0)))
                continue
            if goal.category:
                match = phrase_pattern(goal.category).search(utterance)
                if match:
                    found.append(SlotCandidate(goal_ref, 0.8, "context", match.group(0)))
        if not found and len(snapshot.goals) == 1:
            only = snapshot.goals[0]
            found.append(SlotCandidate(only.goal_id or only.name, 0.6, "inferred", None))
        return found

    def suggestions(self, snapshot: ContextSnapshot | None = None) -> list[str]:
        if snapshot is None:
            return []
        return [goal.name for goal in snapshot.goals][:5]
