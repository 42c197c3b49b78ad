"""
SellerFlow — Daily Balance Simulator
Walks the normalized event stream day by day from the real bank balance.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sellerflow.config import get_settings
from sellerflow.core.decimal_utils import ZERO
from sellerflow.core.exceptions import InvalidHorizonError, MissingBalanceError
from sellerflow.services.events import INFLOW, CashFlowEvent


@dataclass
class DailyBalancePoint:
    date: date
    balance: Decimal  # running total after all same-day events
    inflow: Decimal
    outflow: Decimal
    event_count: int

    @property
    def net_change(self) -> Decimal:
        return self.inflow - self.outflow


def project_daily_balances(
    events: Iterable[CashFlowEvent],
    current_balance: Optional[Decimal],
    horizon_days: int,
    as_of: date,
) -> List[DailyBalancePoint]:
    """
    One point per day for day 0 (`as_of`) through day `horizon_days` inclusive.

    Negative balances are reported as-is. Events outside the window are ignored.
    """
    if current_balance is None:
        raise MissingBalanceError()
    if not isinstance(current_balance, Decimal):
        raise TypeError(f"current_balance must be Decimal, got {type(current_balance)}")
    if not current_balance.is_finite():
        raise TypeError(f"current_balance must be finite, got {current_balance}")
    max_days = get_settings().MAX_PROJECTION_HORIZON_DAYS
    if horizon_days < 0 or horizon_days > max_days:
        raise InvalidHorizonError(horizon_days, max_days)

    end = as_of + timedelta(days=horizon_days)
    inflows: Dict[date, Decimal] = {}
    outflows: Dict[date, Decimal] = {}
    counts: Dict[date, int] = {}

    for event in events:
        if event.date < as_of or event.date > end:
            continue
        bucket = inflows if event.type == INFLOW else outflows
        bucket[event.date] = bucket.get(event.date, ZERO) + event.amount
        counts[event.date] = counts.get(event.date, 0) + 1

    points: List[DailyBalancePoint] = []
    running = current_balance
    for offset in range(horizon_days + 1):
        day = as_of + timedelta(days=offset)
        day_in = inflows.get(day, ZERO)
        day_out = outflows.get(day, ZERO)
        running = running + day_in - day_out
        points.append(
            DailyBalancePoint(
                date=day,
                balance=running,
                inflow=day_in,
                outflow=day_out,
                event_count=counts.get(day, 0),
            )
        )
    return points


def lowest_balance(points: List[DailyBalancePoint]) -> DailyBalancePoint:
    """First point holding the minimum projected balance."""
    if not points:
        raise ValueError("No balance points to inspect")
    lowest = points[0]
    for point in points[1:]:
        if point.balance < lowest.balance:
            lowest = point
    return lowest
