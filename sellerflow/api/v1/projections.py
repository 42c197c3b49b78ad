"""
SellerFlow — API v1: Daily Balance Projection & Buying Opportunities
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from sellerflow.config import get_settings
from sellerflow.core.decimal_utils import monetary
from sellerflow.services.buying_opportunities import (
    compute_buying_opportunities,
    distinct_buying_opportunities,
    safe_spending_limit,
)
from sellerflow.services.events import normalize_events
from sellerflow.services.projection import lowest_balance, project_daily_balances

router = APIRouter(prefix="/projections", tags=["projections"])


class ProjectionRequest(BaseModel):
    current_balance: Optional[str] = None
    as_of: Optional[date] = None
    horizon_days: Optional[int] = None
    reserve_amount: str = "0"
    vendor_transactions: List[Dict[str, Any]] = []
    income: List[Dict[str, Any]] = []
    recurring_expenses: List[Dict[str, Any]] = []
    recurring_exceptions: List[Dict[str, Any]] = []
    credit_cards: List[Dict[str, Any]] = []
    amazon_payouts: List[Dict[str, Any]] = []


class BalancePointResponse(BaseModel):
    date: str
    balance: str
    inflow: str
    outflow: str
    event_count: int


class OpportunityResponse(BaseModel):
    date: str
    max_safe_amount: str
    constraining_date: str


class ProjectionResponse(BaseModel):
    as_of: str
    horizon_days: int
    event_count: int
    lowest_balance: str
    lowest_balance_date: str
    safe_spending_limit: str
    daily_balances: List[BalancePointResponse]
    buying_opportunities: List[OpportunityResponse]
    distinct_opportunities: List[OpportunityResponse]


def _decimal_field(name: str, raw: str) -> Decimal:
    try:
        return monetary(raw)
    except TypeError:
        raise HTTPException(status_code=422, detail=f"{name} must be a valid decimal")


def _opportunity(opp) -> OpportunityResponse:
    return OpportunityResponse(
        date=str(opp.date),
        max_safe_amount=str(opp.max_safe_amount),
        constraining_date=str(opp.constraining_date),
    )


@router.post("/daily-balances", response_model=ProjectionResponse)
def project_balances(req: ProjectionRequest):
    settings = get_settings()
    as_of = req.as_of or date.today()
    horizon = (
        req.horizon_days
        if req.horizon_days is not None
        else settings.DEFAULT_PROJECTION_HORIZON_DAYS
    )
    balance = (
        _decimal_field("current_balance", req.current_balance)
        if req.current_balance is not None
        else None
    )
    reserve = _decimal_field("reserve_amount", req.reserve_amount)

    events = normalize_events(
        as_of=as_of,
        horizon_end=as_of + timedelta(days=max(horizon, 0)),
        vendor_transactions=req.vendor_transactions,
        income=req.income,
        recurring_expenses=req.recurring_expenses,
        recurring_exceptions=req.recurring_exceptions,
        credit_cards=req.credit_cards,
        amazon_payouts=req.amazon_payouts,
    )
    points = project_daily_balances(events, balance, horizon, as_of)
    try:
        opportunities = compute_buying_opportunities(points, reserve)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    low = lowest_balance(points)

    return ProjectionResponse(
        as_of=str(as_of),
        horizon_days=horizon,
        event_count=len(events),
        lowest_balance=str(low.balance),
        lowest_balance_date=str(low.date),
        safe_spending_limit=str(safe_spending_limit(opportunities)),
        daily_balances=[
            BalancePointResponse(
                date=str(p.date),
                balance=str(p.balance),
                inflow=str(p.inflow),
                outflow=str(p.outflow),
                event_count=p.event_count,
            )
            for p in points
        ],
        buying_opportunities=[_opportunity(o) for o in opportunities],
        distinct_opportunities=[
            _opportunity(o) for o in distinct_buying_opportunities(opportunities)
        ],
    )
