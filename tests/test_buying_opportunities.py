"""
SellerFlow — Buying-Opportunity / Safe-Spend Analyzer Tests
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import List

import pytest

from sellerflow.services.buying_opportunities import (
    compute_buying_opportunities,
    distinct_buying_opportunities,
    safe_spending_limit,
)
from sellerflow.services.projection import DailyBalancePoint

AS_OF = date(2024, 6, 1)
ZERO = Decimal("0")


def series(*balances: str) -> List[DailyBalancePoint]:
    return [
        DailyBalancePoint(
            date=AS_OF + timedelta(days=i),
            balance=Decimal(b),
            inflow=ZERO,
            outflow=ZERO,
            event_count=0,
        )
        for i, b in enumerate(balances)
    ]


class TestComputeBuyingOpportunities:
    def test_dip_constrains_earlier_days(self):
        opps = compute_buying_opportunities(
            series("1000", "1000", "1000", "200", "1000"), Decimal("100")
        )
        assert opps[0].max_safe_amount == Decimal("100")
        assert opps[0].constraining_date == AS_OF + timedelta(days=3)
        assert opps[4].max_safe_amount == Decimal("900")
        assert opps[4].constraining_date == AS_OF + timedelta(days=4)

    def test_never_negative(self):
        opps = compute_buying_opportunities(series("50", "-300", "20"), Decimal("100"))
        assert [o.max_safe_amount for o in opps] == [ZERO, ZERO, ZERO]

    def test_matches_direct_suffix_minimum(self):
        balances = ["500", "320", "800", "150", "150", "900", "610", "700"]
        points = series(*balances)
        reserve = Decimal("25")
        opps = compute_buying_opportunities(points, reserve)
        for i, opp in enumerate(opps):
            suffix_min = min(p.balance for p in points[i:])
            assert opp.max_safe_amount == max(ZERO, suffix_min - reserve)
            assert opp.reserve == reserve

    def test_tie_resolves_to_earliest_date(self):
        opps = compute_buying_opportunities(series("500", "150", "300", "150"), ZERO)
        assert opps[0].constraining_date == AS_OF + timedelta(days=1)
        assert opps[2].constraining_date == AS_OF + timedelta(days=3)

    def test_empty_series(self):
        assert compute_buying_opportunities([], Decimal("10")) == []

    def test_negative_reserve_rejected(self):
        with pytest.raises(ValueError):
            compute_buying_opportunities(series("10"), Decimal("-1"))

    def test_float_reserve_rejected(self):
        with pytest.raises(TypeError):
            compute_buying_opportunities(series("10"), 1.0)


class TestSafeSpendSummary:
    def test_safe_spending_limit_is_day_zero(self):
        opps = compute_buying_opportunities(series("1000", "400", "900"), Decimal("100"))
        assert safe_spending_limit(opps) == Decimal("300")
        assert safe_spending_limit([]) == ZERO

    def test_distinct_opportunities_are_step_ups(self):
        opps = compute_buying_opportunities(
            series("1000", "150", "1000", "600", "2000"), Decimal("100")
        )
        distinct = distinct_buying_opportunities(opps)
        assert [(o.date, o.max_safe_amount) for o in distinct] == [
            (AS_OF, Decimal("50")),
            (AS_OF + timedelta(days=2), Decimal("500")),
            (AS_OF + timedelta(days=4), Decimal("1900")),
        ]

    def test_zero_plateaus_skipped(self):
        opps = compute_buying_opportunities(series("50", "50", "500"), Decimal("100"))
        distinct = distinct_buying_opportunities(opps)
        assert [o.date for o in distinct] == [AS_OF + timedelta(days=2)]
