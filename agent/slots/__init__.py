from .base import BaseSlotResolver, SlotCandidate, select_best
from .contracts import ResolvedSlot, SlotProvenance, SlotResolution, TimeWindow
from .entities import AccountResolver, CategoryResolver, GoalResolver, MerchantResolver
from .money import MoneyAmountResolver, is_valid_amount
from .resolver import SlotResolver, build_slot_question, default_resolvers, overall_confidence
from .time_period import TimePeriodResolver, default_time_window

__all__ = [
    "AccountResolver",
    "BaseSlotResolver",
    "CategoryResolver",
    "GoalResolver",
    "MerchantResolver",
    "MoneyAmountResolver",
    "ResolvedSlot",
    "SlotCandidate",
    "SlotProvenance",
    "SlotResolution",
    "SlotResolver",
    "TimePeriodResolver",
    "TimeWindow",
    "build_slot_question",
    "default_resolvers",
    "default_time_window",
    "is_valid_amount",
    "overall_confidence",
    "select_best",
]
