"""Week anchors and delivery dates.

Weeks are anchored on their Monday. Week numbers follow the shop's own
counting (day of year plus the weekday of January 1st, Sunday first) rather
than ISO-8601, so they can differ from the ISO week by one around the new year.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence

from .domain import DeliveryDay

DELIVERY_DAY_OFFSETS: Dict[DeliveryDay, int] = {
    DeliveryDay.MERCREDI: 2,
    DeliveryDay.JEUDI: 3,
    DeliveryDay.VENDREDI: 4,
    DeliveryDay.SAMEDI: 5,
}

# Python weekday() numbering, Monday is 0.
_DAY_BY_WEEKDAY: Dict[int, DeliveryDay] = {
    offset: day for day, offset in DELIVERY_DAY_OFFSETS.items()
}

FALLBACK_DELIVERY_DAY = DeliveryDay.MERCREDI

FRENCH_MONTH_ABBREVIATIONS = (
    "janv.",
    "févr.",
    "mars",
    "avr.",
    "mai",
    "juin",
    "juil.",
    "août",
    "sept.",
    "oct.",
    "nov.",
    "déc.",
)


@dataclass(frozen=True, slots=True)
class WeekInfo:
    """One selectable week of the order book."""

    week_number: int
    start_date: date
    end_date: date
    label: str

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


def _sunday_first_weekday(day: date) -> int:
    return (day.weekday() + 1) % 7


def week_start(day: date) -> date:
    """Return the Monday of the week containing ``day``."""
    weekday = _sunday_first_weekday(day)
    shift = -6 if weekday == 0 else 1 - weekday
    return day + timedelta(days=shift)


def week_number(day: date) -> int:
    first_day = date(day.year, 1, 1)
    past_days = (day - first_day).days
    return math.ceil((past_days + _sunday_first_weekday(first_day) + 1) / 7)


def format_day_month(day: date) -> str:
    return f"{day.day} {FRENCH_MONTH_ABBREVIATIONS[day.month - 1]}"


def build_week(start: date) -> WeekInfo:
    end = start + timedelta(days=6)
    number = week_number(start)
    label = f"Semaine {number} ({format_day_month(start)} - {format_day_month(end)})"
    return WeekInfo(week_number=number, start_date=start, end_date=end, label=label)


def upcoming_weeks(today: Optional[date] = None, count: int = 3) -> List[WeekInfo]:
    """Current week followed by the next ``count - 1`` weeks."""
    today = today or date.today()
    first = week_start(today)
    return [build_week(first + timedelta(weeks=index)) for index in range(count)]


def delivery_date_for_day(start: date, day: DeliveryDay) -> date:
    return start + timedelta(days=DELIVERY_DAY_OFFSETS[day])


def day_for_date(day: date) -> DeliveryDay:
    """Map a calendar date back to its delivery day.

    Dates outside Wednesday..Saturday have no delivery day and fall back to
    ``mercredi``; the mapping is not a validated inverse for those.
    """
    return _DAY_BY_WEEKDAY.get(day.weekday(), FALLBACK_DELIVERY_DAY)


def week_containing(weeks: Sequence[WeekInfo], day: date) -> Optional[WeekInfo]:
    for week in weeks:
        if week.contains(day):
            return week
    return None


def adjacent_week(weeks: Sequence[WeekInfo], current: WeekInfo, step: int) -> WeekInfo:
    """Move ``step`` weeks from ``current``, staying on the ends of ``weeks``."""
    index = next(
        (position for position, week in enumerate(weeks) if week.week_number == current.week_number),
        0,
    )
    target = min(max(index + step, 0), len(weeks) - 1)
    return weeks[target]


__all__ = [
    "DELIVERY_DAY_OFFSETS",
    "FALLBACK_DELIVERY_DAY",
    "WeekInfo",
    "week_start",
    "week_number",
    "format_day_month",
    "build_week",
    "upcoming_weeks",
    "delivery_date_for_day",
    "day_for_date",
    "week_containing",
    "adjacent_week",
]
