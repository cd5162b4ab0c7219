from __future__ import annotations

import calendar
import re
from datetime import date, timedelta
from typing import Callable

from snapshot import ContextSnapshot

from .base import BaseSlotResolver, SlotCandidate, pattern_provenance
from .contracts import ResolvedSlot, TimeWindow

DEFAULT_PERIOD_CONFIDENCE = 0.5
_MAX_RELATIVE_UNITS = 3650


def _month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def _shift_months(value: date, months: int) -> date:
    month_index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(month_index, 12)
    day = min(value.day, calendar.monthrange(year, month + 1)[1])
    return date(year, month + 1, day)


def _this_month(today: date, _: int) -> TimeWindow:
    start, end = _month_bounds(today.year, today.month)
    return TimeWindow(label="this_month", start=start, end=end)


def _last_month(today: date, _: int) -> TimeWindow:
    previous = _shift_months(today.replace(day=1), -1)
    start, end = _month_bounds(previous.year, previous.month)
    return TimeWindow(label="last_month", start=start, end=end)


def _this_week(today: date, _: int) -> TimeWindow:
    start = today - timedelta(days=today.weekday())
    return TimeWindow(label="this_week", start=start, end=start + timedelta(days=6))


def _last_week(today: date, _: int) -> TimeWindow:
    start = today - timedelta(days=today.weekday() + 7)
    return TimeWindow(label="last_week", start=start, end=start + timedelta(days=6))


def _this_year(today: date, _: int) -> TimeWindow:
    return TimeWindow(label="this_year", start=date(today.year, 1, 1), end=date(today.year, 12, 31))


def _last_year(today: date, _: int) -> TimeWindow:
    year = today.year - 1
    return TimeWindow(label="last_year", start=date(year, 1, 1), end=date(year, 12, 31))


def _today(today: date, _: int) -> TimeWindow:
    return TimeWindow(label="today", start=today, end=today)


def _yesterday(today: date, _: int) -> TimeWindow:
    day = today - timedelta(days=1)
    return TimeWindow(label="yesterday", start=day, end=day)


def _last_days(today: date, count: int) -> TimeWindow:
    return TimeWindow(label=f"last_{count}_days", start=today - timedelta(days=count - 1), end=today)


def _last_weeks(today: date, count: int) -> TimeWindow:
    return TimeWindow(label=f"last_{count}_weeks", start=today - timedelta(days=count * 7 - 1), end=today)


def _last_months(today: date, count: int) -> TimeWindow:
    start = _shift_months(today, -count) + timedelta(days=1)
    return TimeWindow(label=f"last_{count}_months", start=start, end=today)


def _quarter(number: int) -> Callable[[date, int], TimeWindow]:
    def build(today: date, _: int) -> TimeWindow:
        first_month = (number - 1) * 3 + 1
        end = _month_bounds(today.year, first_month + 2)[1]
        return TimeWindow(label=f"q{number}", start=date(today.year, first_month, 1), end=end)

    return build


def _recently(today: date, _: int) -> TimeWindow:
    return TimeWindow(label="last_30_days", start=today - timedelta(days=29), end=today)


def _year_to_date(today: date, _: int) -> TimeWindow:
    return TimeWindow(label="ytd", start=date(today.year, 1, 1), end=today)


PERIOD_RULES: tuple[tuple[re.Pattern[str], Callable[[date, int], TimeWindow], float], ...] = (
    (re.compile(r"\b(this month|current month|mtd|month to date)\b", re.I), _this_month, 0.95),
    (re.compile(r"\b(last month|previous month)\b", re.I), _last_month, 0.95),
    (re.compile(r"\b(this week|current week|wtd|week to date)\b", re.I), _this_week, 0.95),
    (re.compile(r"\b(last week|previous week)\b", re.I), _last_week, 0.95),
    (re.compile(r"\b(this year|current year|ytd|year to date)\b", re.I), _this_year, 0.95),
    (re.compile(r"\b(last year|previous year)\b", re.I), _last_year, 0.95),
    (re.compile(r"\btoday\b", re.I), _today, 0.95),
    (re.compile(r"\byesterday\b", re.I), _yesterday, 0.95),
    (re.compile(r"\b(?:last|past) (\d+) days?\b", re.I), _last_days, 0.9),
    (re.compile(r"\b(?:last|past) (\d+) weeks?\b", re.I), _last_weeks, 0.9),
    (re.compile(r"\b(?:last|past) (\d+) months?\b", re.I), _last_months, 0.9),
    (re.compile(r"\b(q1|first quarter)\b", re.I), _quarter(1), 0.9),
    (re.compile(r"\b(q2|second quarter)\b", re.I), _quarter(2), 0.9),
    (re.compile(r"\b(q3|third quarter)\b", re.I), _quarter(3), 0.9),
    (re.compile(r"\b(q4|fourth quarter)\b", re.I), _quarter(4), 0.9),
    (re.compile(r"\b(recently|lately)\b", re.I), _recently, 0.7),
    (re.compile(r"\b(so far|up to now)\b", re.I), _year_to_date, 0.8),
)


def default_time_window(today: date) -> TimeWindow:
    return _this_month(today, 0)


class TimePeriodResolver(BaseSlotResolver):
    slot_type = "period"

    def candidates(self, utterance: str, snapshot: ContextSnapshot) -> list[SlotCandidate]:
        today = snapshot.as_of
        found: list[SlotCandidate] = []
        for pattern, build, confidence in PERIOD_RULES:
            match = pattern.search(utterance)
            if match is None:
                continue
            count = 0
            if match.groups() and match.group(1) and match.group(1).isdigit():
                count = int(match.group(1))
                if count < 1 or count > _MAX_RELATIVE_UNITS:
                    continue
            found.append(
                SlotCandidate(
                    value=build(today, count),
                    confidence=confidence,
                    provenance=pattern_provenance(confidence),
                    matched_text=match.group(0),
                )
            )
        return found

    def resolve(self, utterance: str, snapshot: ContextSnapshot) -> ResolvedSlot:
        resolved = super().resolve(utterance, snapshot)
        if resolved is not None:
            return resolved
        return ResolvedSlot(
            type="period",
            value=default_time_window(snapshot.as_of),
            confidence=DEFAULT_PERIOD_CONFIDENCE,
            provenance="default",
        )

    def suggestions(self, snapshot: ContextSnapshot | None = None) -> list[str]:
        return [
            "this month",
            "last 30 days",
            "this week",
            "last week",
            "this year",
            "last 3 months",
            "last 6 months",
        ]
