"""
SellerFlow — API v1: Amazon Payout Forecasts, Settlements & Accuracy
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from sellerflow.core.decimal_utils import monetary
from sellerflow.database import get_db
from sellerflow.services.forecast_accuracy import compute_accuracy_metrics
from sellerflow.services.payout_forecasting import PayoutForecastService

router = APIRouter(prefix="/accounts/{account_id}", tags=["payout-forecasts"])


class RegenerateRequest(BaseModel):
    as_of: Optional[date] = None
    transactions: List[Dict[str, Any]] = []


class RolloverRequest(BaseModel):
    as_of: Optional[date] = None


class ConfirmSettlementRequest(BaseModel):
    settlement_id: str
    payout_date: date
    total_amount: str


class ForecastResponse(BaseModel):
    payout_date: str
    amount: str
    status: str
    method: Optional[str]
    model_inputs: Optional[Dict[str, Any]] = None


class SettlementResponse(BaseModel):
    id: str
    settlement_id: str
    payout_date: str
    total_amount: str
    status: str
    original_forecast_amount: Optional[str]
    forecast_accuracy_percentage: Optional[str]


class RolloverResponse(BaseModel):
    rolled_over: bool
    rolled_amount: str
    cleaned_count: int
    message: str


class AccuracyResponse(BaseModel):
    total_comparisons: int
    records_used: int
    outliers_excluded: int
    overall_accuracy: str
    average_absolute_error: str
    mape: str
    average_bias: str
    bias_percentage: str
    improvement_rate: str
    by_method: Dict[str, Dict[str, Any]]
    trends: List[Dict[str, Any]]
    insights: List[str]
    recent_comparisons: List[Dict[str, Any]]


@router.post(
    "/payout-forecasts/regenerate",
    response_model=List[ForecastResponse],
    status_code=status.HTTP_201_CREATED,
)
def regenerate_forecasts(
    account_id: str,
    req: RegenerateRequest,
    db: Session = Depends(get_db),
):
    service = PayoutForecastService(db)
    records = service.regenerate_for_account(
        account_id, req.as_of or date.today(), transactions=req.transactions
    )
    return [
        ForecastResponse(
            payout_date=str(r.date),
            amount=str(r.amount),
            status=r.status,
            method=r.method,
            model_inputs=r.model_inputs,
        )
        for r in records
    ]


@router.get("/payout-forecasts", response_model=List[ForecastResponse])
def list_forecasts(
    account_id: str,
    status_filter: str = Query("forecasted", alias="status"),
    db: Session = Depends(get_db),
):
    service = PayoutForecastService(db)
    return [
        ForecastResponse(
            payout_date=str(row.payout_date),
            amount=str(row.total_amount),
            status=row.status,
            method=row.modeling_method,
            model_inputs=row.model_inputs,
        )
        for row in service.list_forecasts(account_id, status_filter)
    ]


@router.post("/payout-forecasts/rollover", response_model=RolloverResponse)
def rollover_forecasts(
    account_id: str,
    req: RolloverRequest,
    db: Session = Depends(get_db),
):
    result = PayoutForecastService(db).roll_over_past_forecasts(
        account_id, req.as_of or date.today()
    )
    return RolloverResponse(
        rolled_over=result.rolled_over,
        rolled_amount=str(result.rolled_amount),
        cleaned_count=result.cleaned_count,
        message=result.message,
    )


@router.post(
    "/settlements",
    response_model=SettlementResponse,
    status_code=status.HTTP_201_CREATED,
)
def confirm_settlement(
    account_id: str,
    req: ConfirmSettlementRequest,
    db: Session = Depends(get_db),
):
    try:
        amount = monetary(req.total_amount)
    except TypeError:
        raise HTTPException(status_code=422, detail="total_amount must be a valid decimal")

    row = PayoutForecastService(db).confirm_settlement(
        account_id, req.settlement_id, req.payout_date, amount
    )
    return SettlementResponse(
        id=row.id,
        settlement_id=row.settlement_id,
        payout_date=str(row.payout_date),
        total_amount=str(row.total_amount),
        status=row.status,
        original_forecast_amount=(
            str(row.original_forecast_amount)
            if row.original_forecast_amount is not None
            else None
        ),
        forecast_accuracy_percentage=(
            str(row.forecast_accuracy_percentage)
            if row.forecast_accuracy_percentage is not None
            else None
        ),
    )


@router.get("/forecast-accuracy", response_model=AccuracyResponse)
def forecast_accuracy(account_id: str, db: Session = Depends(get_db)):
    matched = PayoutForecastService(db).load_matched_forecasts(account_id)
    metrics = compute_accuracy_metrics(matched)
    return AccuracyResponse(
        total_comparisons=metrics.total_comparisons,
        records_used=metrics.records_used,
        outliers_excluded=metrics.outliers_excluded,
        overall_accuracy=str(metrics.overall_accuracy),
        average_absolute_error=str(metrics.average_absolute_error),
        mape=str(metrics.mape),
        average_bias=str(metrics.average_bias),
        bias_percentage=str(metrics.bias_percentage),
        improvement_rate=str(metrics.improvement_rate),
        by_method={
            m.method: {"count": m.count, "average_accuracy": str(m.average_accuracy)}
            for m in metrics.by_method.values()
        },
        trends=[
            {"month": t.month, "count": t.count, "accuracy": str(t.accuracy)}
            for t in metrics.trends
        ],
        insights=metrics.insights,
        recent_comparisons=[
            {
                "payout_date": str(r.payout_date),
                "forecast_amount": str(r.forecast_amount),
                "actual_amount": str(r.actual_amount),
                "accuracy": str(r.accuracy),
            }
            for r in metrics.recent_comparisons
        ],
    )
