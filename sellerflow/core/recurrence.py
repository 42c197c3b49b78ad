"""
SellerFlow — Recurring expense date generation
Expands a recurring template into concrete occurrence dates.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from dateutil.relativedelta import relativedelta

FREQUENCY_ALIASES = {
    "bi-weekly": "biweekly",
}

# Fixed-step frequencies (days between occurrences)
DAY_STEPS = {
    "daily": 1,
    "weekly": 7,
    "biweekly": 14,
}

# Calendar-step frequencies (months between occurrences)
MONTH_STEPS = {
    "monthly": 1,
    "2-months": 2,
    "3-months": 3,
    "yearly": 12,
}

VALID_FREQUENCIES = set(DAY_STEPS) | set(MONTH_STEPS) | {"weekdays"} | set(FREQUENCY_ALIASES)


@dataclass(frozen=True)
class RecurringTemplate:
    id: str
    amount: Decimal
    frequency: str
    start_date: date
    end_date: Optional[date] = None
    is_active: bool = True
    description: Optional[str] = None


def normalize_frequency(frequency: str) -> str:
    f = frequency.strip().lower()
    f = FREQUENCY_ALIASES.get(f, f)
    if f not in VALID_FREQUENCIES:
        raise ValueError(f"Unknown recurrence frequency: {frequency!r}")
    return f


def generate_recurring_dates(
    template: RecurringTemplate, range_start: date, range_end: date
) -> List[date]:
    """
    All occurrence dates of `template` within [range_start, range_end],
    also bounded by the template's own [start_date, end_date].
    Monthly steps are computed from start_date so day 31 clamps without drifting.
    """
    if not template.is_active:
        return []

    frequency = normalize_frequency(template.frequency)
    last = range_end
    if template.end_date is not None and template.end_date < last:
        last = template.end_date
    if last < template.start_date or last < range_start:
        return []

    dates: List[date] = []

    if frequency == "weekdays":
        current = max(template.start_date, range_start)
        while current <= last:
            if current.weekday() < 5:
                dates.append(current)
            current += timedelta(days=1)
        return dates

    if frequency in DAY_STEPS:
        step = DAY_STEPS[frequency]
        offset = 0
        if range_start > template.start_date:
            # jump straight to the first occurrence on/after range_start
            gap = (range_start - template.start_date).days
            offset = -(-gap // step) * step
        current = template.start_date + timedelta(days=offset)
        while current <= last:
            dates.append(current)
            current += timedelta(days=step)
        return dates

    months = MONTH_STEPS[frequency]
    k = 0
    current = template.start_date
    while current <= last:
        if current >= range_start:
            dates.append(current)
        k += 1
        current = template.start_date + relativedelta(months=months * k)
    return dates


def next_occurrence(template: RecurringTemplate, after: date) -> Optional[date]:
    """First occurrence on or after `after`, looking two years ahead."""
    found = generate_recurring_dates(template, after, after + relativedelta(years=2))
    return found[0] if found else None


def occurs_on(template: RecurringTemplate, day: date) -> bool:
    return bool(generate_recurring_dates(template, day, day))
