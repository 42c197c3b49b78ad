"""
SellerFlow — Buying-Opportunity / Safe-Spend Analyzer
How much can be spent on a given day without the projected balance
dipping below the reserve on any later day of the horizon.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sellerflow.core.decimal_utils import ZERO
from sellerflow.services.projection import DailyBalancePoint


@dataclass
class BuyingOpportunity:
    date: date
    max_safe_amount: Decimal
    constraining_date: date  # day whose low balance caps the amount
    reserve: Decimal


def compute_buying_opportunities(
    daily_balances: List[DailyBalancePoint],
    reserve_amount: Decimal,
) -> List[BuyingOpportunity]:
    """
    Single backward pass over the series keeping the suffix minimum.
    max_safe_amount(d) = max(0, min(balance[d:]) - reserve); ties on the
    minimum resolve to the earliest date.
    """
    if not isinstance(reserve_amount, Decimal):
        raise TypeError(f"reserve_amount must be Decimal, got {type(reserve_amount)}")
    if reserve_amount < ZERO:
        raise ValueError("reserve_amount must be >= 0")

    result: List[Optional[BuyingOpportunity]] = [None] * len(daily_balances)
    suffix_min: Optional[Decimal] = None
    suffix_min_date: Optional[date] = None

    for i in range(len(daily_balances) - 1, -1, -1):
        point = daily_balances[i]
        if suffix_min is None or point.balance <= suffix_min:
            suffix_min = point.balance
            suffix_min_date = point.date
        result[i] = BuyingOpportunity(
            date=point.date,
            max_safe_amount=max(ZERO, suffix_min - reserve_amount),
            constraining_date=suffix_min_date,
            reserve=reserve_amount,
        )

    return [opp for opp in result if opp is not None]


def safe_spending_limit(opportunities: List[BuyingOpportunity]) -> Decimal:
    """What can be spent today; ZERO when nothing is safe."""
    if not opportunities:
        return ZERO
    return opportunities[0].max_safe_amount


def distinct_buying_opportunities(
    opportunities: List[BuyingOpportunity],
) -> List[BuyingOpportunity]:
    """
    First day of each positive safe-spend plateau.
    The safe amount only steps up once a low point is behind us, so each
    entry is a new, larger opportunity.
    """
    distinct: List[BuyingOpportunity] = []
    previous: Optional[Decimal] = None
    for opp in opportunities:
        if opp.max_safe_amount != previous and opp.max_safe_amount > ZERO:
            distinct.append(opp)
        previous = opp.max_safe_amount
    return distinct
