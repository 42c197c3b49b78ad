"""
SellerFlow — Amazon Payout Forecasting Service
Two interchangeable models (daily settlement, periodic seasonality) behind
one ForecastModel interface, plus the replace-all persistence of forecast rows,
rollover of stale forecasts and settlement confirmation.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sellerflow.config import get_settings
from sellerflow.core.dates import coerce_date, optional_date
from sellerflow.core.decimal_utils import (
    HUNDRED,
    ZERO,
    display_round,
    mean,
    monetary,
    safe_ratio,
)
from sellerflow.core.exceptions import (
    AccountNotFoundError,
    ConsistencyError,
    InputDataError,
    InsufficientHistoryError,
    UnknownForecastModelError,
)
from sellerflow.core.locks import AccountLockRegistry, account_locks
from sellerflow.models.accounts import SellerAccount
from sellerflow.models.payouts import AmazonPayout
from sellerflow.services.forecast_accuracy import (
    MatchedForecast,
    forecast_accuracy_percentage,
)

logger = logging.getLogger(__name__)

ONE = Decimal("1")

METHOD_DAILY = "daily"
METHOD_SEASONAL = "seasonal-biweekly"

STATUS_FORECASTED = "forecasted"
STATUS_OPEN = "open"
STATUS_CONFIRMED = "confirmed"
STATUS_ROLLED_OVER = "rolled_over"


# ─── DTOs ─────────────────────────────────────────────────────────────────────


@dataclass
class PayoutForecastRecord:
    date: date
    amount: Decimal
    method: str  # daily | seasonal-biweekly
    model_inputs: Dict[str, Any] = field(default_factory=dict)
    status: str = STATUS_FORECASTED


@dataclass
class RiskSettings:
    safety_net_level: str = "medium"  # low | medium | high | maximum
    risk_adjustment_pct: Optional[Decimal] = None  # daily haircut; settings default


@dataclass
class HistoricalPayout:
    payout_date: date
    total_amount: Decimal
    status: str  # confirmed | open | forecasted
    settlement_id: Optional[str] = None
    amazon_account_id: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "HistoricalPayout":
        rid = record.get("id") or record.get("settlement_id")
        try:
            payout_date = coerce_date(record.get("payout_date"))
            amount = monetary(record.get("total_amount"))
        except (ValueError, TypeError) as exc:
            raise InputDataError("amazon_payout", rid, str(exc))
        return cls(
            payout_date=payout_date,
            total_amount=amount,
            status=str(record.get("status") or STATUS_CONFIRMED).lower(),
            settlement_id=record.get("settlement_id"),
            amazon_account_id=record.get("amazon_account_id"),
        )


@dataclass
class SettlementTransaction:
    id: str
    transaction_type: str
    amount: Decimal  # signed
    transaction_date: date
    order_id: Optional[str] = None
    purchase_date: Optional[date] = None
    delivery_date: Optional[date] = None
    description: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "SettlementTransaction":
        rid = record.get("id")
        try:
            return cls(
                id=str(rid),
                transaction_type=str(record.get("transaction_type") or ""),
                amount=monetary(record.get("amount")),
                transaction_date=coerce_date(
                    record.get("transaction_date") or record.get("purchase_date")
                ),
                order_id=record.get("order_id"),
                purchase_date=optional_date(record.get("purchase_date")),
                delivery_date=optional_date(record.get("delivery_date")),
                description=record.get("description"),
            )
        except (ValueError, TypeError) as exc:
            raise InputDataError("amazon_transaction", rid, str(exc))


@dataclass
class ForecastInputs:
    payouts: List[HistoricalPayout] = field(default_factory=list)
    transactions: List[SettlementTransaction] = field(default_factory=list)

    @classmethod
    def from_records(
        cls,
        payouts: Iterable[Union[Mapping[str, Any], HistoricalPayout]] = (),
        transactions: Iterable[Union[Mapping[str, Any], SettlementTransaction]] = (),
    ) -> "ForecastInputs":
        """Parse raw rows; a malformed row is logged and dropped."""
        inputs = cls()
        for row in payouts:
            try:
                inputs.payouts.append(
                    row if isinstance(row, HistoricalPayout) else HistoricalPayout.from_record(row)
                )
            except InputDataError as exc:
                logger.warning("Skipping payout record: %s", exc.message)
        for row in transactions:
            try:
                inputs.transactions.append(
                    row
                    if isinstance(row, SettlementTransaction)
                    else SettlementTransaction.from_record(row)
                )
            except InputDataError as exc:
                logger.warning("Skipping transaction record: %s", exc.message)
        return inputs

    def confirmed(self) -> List[HistoricalPayout]:
        """Confirmed payouts, newest first."""
        rows = [p for p in self.payouts if p.status == STATUS_CONFIRMED]
        return sorted(rows, key=lambda p: p.payout_date, reverse=True)


@dataclass
class RolloverResult:
    rolled_over: bool
    rolled_amount: Decimal
    cleaned_count: int
    message: str


# ─── Forecast models ──────────────────────────────────────────────────────────


class ForecastModel(ABC):
    """Common contract: history in, one generation of forecast records out."""

    method: str = ""

    @abstractmethod
    def build(
        self, inputs: ForecastInputs, risk: RiskSettings, as_of: date
    ) -> List[PayoutForecastRecord]:
        ...


class DailySettlementModel(ForecastModel):
    """
    Daily disbursement sellers: each order's cash unlocks a fixed delay
    after delivery; everything unlocked since the last cash-out is available.
    """

    method = METHOD_DAILY

    ORDER_ID_PATTERN = re.compile(r"^\d{3}-\d{7}-\d{7}$")
    ORDER_TYPES = {"order"}
    EXCLUDED_KEYWORDS = ("removal", "liquidation", "disposal")

    def __init__(
        self,
        unlock_delay_days: Optional[int] = None,
        delivery_estimate_days: Optional[int] = None,
        forecast_days: Optional[int] = None,
        known_unlock_days: Optional[int] = None,
        trailing_window_days: Optional[int] = None,
    ) -> None:
        s = get_settings()
        self.unlock_delay_days = (
            s.DAILY_UNLOCK_DELAY_DAYS if unlock_delay_days is None else unlock_delay_days
        )
        self.delivery_estimate_days = (
            s.DELIVERY_ESTIMATE_DAYS
            if delivery_estimate_days is None
            else delivery_estimate_days
        )
        self.forecast_days = s.DAILY_FORECAST_DAYS if forecast_days is None else forecast_days
        self.known_unlock_days = (
            s.DAILY_KNOWN_UNLOCK_DAYS if known_unlock_days is None else known_unlock_days
        )
        self.trailing_window_days = (
            s.DAILY_TRAILING_WINDOW_DAYS
            if trailing_window_days is None
            else trailing_window_days
        )

    # ── Transaction classification ────────────────────────────────────────────

    def is_order(self, tx: SettlementTransaction) -> bool:
        return tx.transaction_type.strip().lower() in self.ORDER_TYPES

    def is_eligible_order(self, tx: SettlementTransaction) -> bool:
        text = f"{tx.transaction_type} {tx.description or ''}".lower()
        if any(word in text for word in self.EXCLUDED_KEYWORDS):
            return False
        if tx.amount <= ZERO:
            return False
        return bool(tx.order_id and self.ORDER_ID_PATTERN.match(tx.order_id.strip()))

    def unlock_date(self, tx: SettlementTransaction) -> date:
        delivery = tx.delivery_date
        if delivery is None:
            purchased = tx.purchase_date or tx.transaction_date
            delivery = purchased + timedelta(days=self.delivery_estimate_days)
        return delivery + timedelta(days=self.unlock_delay_days)

    def daily_unlocks(self, transactions: Sequence[SettlementTransaction]) -> Dict[date, Decimal]:
        """order cash unlocking per day plus signed non-order flows per day."""
        order_unlock: Dict[date, Decimal] = {}
        other_flows: Dict[date, Decimal] = {}
        for tx in transactions:
            if self.is_order(tx):
                if not self.is_eligible_order(tx):
                    continue
                day = self.unlock_date(tx)
                order_unlock[day] = order_unlock.get(day, ZERO) + tx.amount
            else:
                day = tx.transaction_date
                other_flows[day] = other_flows.get(day, ZERO) + tx.amount

        unlocked: Dict[date, Decimal] = {}
        for day in set(order_unlock) | set(other_flows):
            unlocked[day] = order_unlock.get(day, ZERO) + other_flows.get(day, ZERO)
        return unlocked

    # ── Trailing statistics ───────────────────────────────────────────────────

    def trailing_profile(
        self, unlocked: Dict[date, Decimal], as_of: date
    ) -> Tuple[Decimal, Dict[int, Decimal], Decimal]:
        """(average daily unlock, weekday means, 7-day growth factor)."""
        window = [as_of - timedelta(days=k) for k in range(1, self.trailing_window_days + 1)]
        average = mean(unlocked.get(d, ZERO) for d in window)

        by_weekday: Dict[int, List[Decimal]] = {}
        for d in window:
            by_weekday.setdefault(d.weekday(), []).append(unlocked.get(d, ZERO))
        weekday_profile = {wd: mean(by_weekday.get(wd, [])) for wd in range(7)}

        last_7 = sum((unlocked.get(as_of - timedelta(days=k), ZERO) for k in range(1, 8)), ZERO)
        prior_7 = sum((unlocked.get(as_of - timedelta(days=k), ZERO) for k in range(8, 15)), ZERO)
        growth = safe_ratio(last_7, prior_7, ONE)
        return average, weekday_profile, growth

    # ── Build ─────────────────────────────────────────────────────────────────

    def build(
        self, inputs: ForecastInputs, risk: RiskSettings, as_of: date
    ) -> List[PayoutForecastRecord]:
        if not inputs.transactions:
            raise InsufficientHistoryError(self.method, 1, 0)

        unlocked = self.daily_unlocks(inputs.transactions)
        average, weekday_profile, growth = self.trailing_profile(unlocked, as_of)

        confirmed = inputs.confirmed()
        last_cashout = (
            confirmed[0].payout_date
            if confirmed
            else as_of - timedelta(days=self.trailing_window_days)
        )
        pct = (
            risk.risk_adjustment_pct
            if risk.risk_adjustment_pct is not None
            else get_settings().risk_adjustment_pct_decimal
        )
        haircut = ONE - pct / HUNDRED
        known_until = as_of + timedelta(days=self.known_unlock_days)
        horizon = Decimal(self.forecast_days)

        def unlock_for(day: date) -> Tuple[Decimal, str]:
            if day <= known_until:
                return unlocked.get(day, ZERO), "actual"
            day_index = Decimal((day - as_of).days)
            trend = ONE + (growth - ONE) * day_index / horizon
            return weekday_profile[day.weekday()] * trend, "projected"

        records: List[PayoutForecastRecord] = []
        cursor = last_cashout
        for i in range(self.forecast_days):
            day = as_of + timedelta(days=i)
            backlog = ZERO
            d = cursor + timedelta(days=1)
            while d < day:
                backlog += unlock_for(d)[0]
                d += timedelta(days=1)
            today_unlock, source = unlock_for(day)
            available = max(ZERO, backlog + today_unlock)
            amount = display_round(available * haircut)
            records.append(
                PayoutForecastRecord(
                    date=day,
                    amount=amount,
                    method=self.method,
                    model_inputs={
                        "backlog": str(display_round(backlog)),
                        "today_unlock": str(display_round(today_unlock)),
                        "unlock_source": source,
                        "available": str(display_round(available)),
                        "avg_daily_unlock": str(display_round(average)),
                        "weekday_baseline": str(display_round(weekday_profile[day.weekday()])),
                        "growth_factor": str(display_round(growth, 4)),
                        "risk_adjustment_pct": str(pct),
                        "last_cashout_date": cursor.isoformat(),
                    },
                )
            )
            # a daily seller withdraws each published amount
            if day > cursor:
                cursor = day

        logger.info(
            "Daily forecast: avg unlock %s/day, growth %s, %d days from %s",
            display_round(average),
            display_round(growth, 4),
            len(records),
            as_of,
        )
        return records


class PeriodicSeasonalModel(ForecastModel):
    """
    Fixed-cycle sellers: recent average payout scaled by month seasonality,
    90-day growth trend, 30-day momentum and the seller's safety net.
    """

    method = METHOD_SEASONAL

    def __init__(
        self,
        seasonality: Optional[Dict[int, Decimal]] = None,
        safety_multipliers: Optional[Dict[str, Decimal]] = None,
        cycle_days: Optional[int] = None,
        periods: Optional[int] = None,
        min_history: Optional[int] = None,
    ) -> None:
        s = get_settings()
        self.seasonality = seasonality or s.seasonality_decimal
        self.safety_multipliers = safety_multipliers or s.safety_multipliers_decimal
        self.cycle_days = s.SEASONAL_CYCLE_DAYS if cycle_days is None else cycle_days
        self.periods = s.SEASONAL_FORECAST_PERIODS if periods is None else periods
        self.min_history = s.MIN_SEASONAL_HISTORY if min_history is None else min_history

    @staticmethod
    def window_ratio(confirmed: Sequence[HistoricalPayout], as_of: date, days: int) -> Decimal:
        """mean(payouts in last `days`) / mean(payouts in the `days` before); 1 if either is empty."""
        recent_start = as_of - timedelta(days=days)
        prior_start = as_of - timedelta(days=2 * days)
        recent = [p.total_amount for p in confirmed if recent_start <= p.payout_date <= as_of]
        prior = [p.total_amount for p in confirmed if prior_start <= p.payout_date < recent_start]
        if not recent or not prior:
            return ONE
        return safe_ratio(mean(recent), mean(prior), ONE)

    def safety_multiplier(self, level: str) -> Decimal:
        multiplier = self.safety_multipliers.get((level or "").lower())
        if multiplier is None:
            logger.warning("Unknown safety net level %r; using medium", level)
            multiplier = self.safety_multipliers["medium"]
        return multiplier

    def first_forecast_date(self, inputs: ForecastInputs, as_of: date) -> date:
        """
        One cycle after the latest open settlement (or, failing that, the
        latest confirmed payout), advanced by whole cycles past `as_of`.
        """
        open_dates = [p.payout_date for p in inputs.payouts if p.status == STATUS_OPEN]
        if open_dates:
            anchor = max(open_dates)
        else:
            anchor = inputs.confirmed()[0].payout_date
        step = timedelta(days=self.cycle_days)
        first = anchor + step
        while first <= as_of:
            first += step
        return first

    def forecast_amount(
        self,
        avg_payout: Decimal,
        month: int,
        growth_trend: Decimal,
        momentum_factor: Decimal,
        safety_multiplier: Decimal,
    ) -> Decimal:
        return display_round(
            avg_payout
            * self.seasonality[month]
            * growth_trend
            * momentum_factor
            * safety_multiplier
        )

    def build(
        self, inputs: ForecastInputs, risk: RiskSettings, as_of: date
    ) -> List[PayoutForecastRecord]:
        confirmed = inputs.confirmed()
        if len(confirmed) < self.min_history:
            raise InsufficientHistoryError(self.method, self.min_history, len(confirmed))

        avg_payout = mean(p.total_amount for p in confirmed[:3])
        growth_trend = self.window_ratio(confirmed, as_of, 90)
        momentum_factor = self.window_ratio(confirmed, as_of, 30)
        safety = self.safety_multiplier(risk.safety_net_level)
        first = self.first_forecast_date(inputs, as_of)

        records: List[PayoutForecastRecord] = []
        for period in range(self.periods):
            day = first + timedelta(days=period * self.cycle_days)
            records.append(
                PayoutForecastRecord(
                    date=day,
                    amount=self.forecast_amount(
                        avg_payout, day.month, growth_trend, momentum_factor, safety
                    ),
                    method=self.method,
                    model_inputs={
                        "avg_payout": str(display_round(avg_payout)),
                        "seasonality": str(self.seasonality[day.month]),
                        "growth_trend": str(display_round(growth_trend, 4)),
                        "momentum_factor": str(display_round(momentum_factor, 4)),
                        "safety_net_level": risk.safety_net_level,
                        "safety_multiplier": str(safety),
                        "cycle_days": self.cycle_days,
                    },
                )
            )

        logger.info(
            "Seasonal forecast: avg %s, growth %s, momentum %s, safety %s, first %s",
            display_round(avg_payout),
            display_round(growth_trend, 4),
            display_round(momentum_factor, 4),
            safety,
            first,
        )
        return records


DAILY_ALIASES = {"daily", METHOD_DAILY}
SEASONAL_ALIASES = {
    METHOD_SEASONAL,
    "seasonal",
    "seasonality",
    "bi-weekly",
    "biweekly",
    "periodic",
}


def resolve_forecast_model(
    payout_model: Optional[str] = None, payout_frequency: Optional[str] = None
) -> ForecastModel:
    """Pick the model from an account's payout_model / payout_frequency flags."""
    model = (payout_model or "").strip().lower()
    frequency = (payout_frequency or "").strip().lower()
    if model in DAILY_ALIASES or frequency in DAILY_ALIASES:
        return DailySettlementModel()
    if model in SEASONAL_ALIASES or (not model and frequency in SEASONAL_ALIASES | {""}):
        return PeriodicSeasonalModel()
    raise UnknownForecastModelError(payout_model or payout_frequency or "")


# ─── Persistence service ──────────────────────────────────────────────────────


class PayoutForecastService:
    """Generates, stores, rolls over and confirms payout forecasts for one account at a time."""

    MATCH_WINDOW_DAYS = 1

    def __init__(self, session: Session, locks: Optional[AccountLockRegistry] = None) -> None:
        self._session = session
        self._locks = locks or account_locks

    # ── Generate (replace-all) ────────────────────────────────────────────────

    def generate_forecast(
        self,
        account_id: str,
        model: Union[ForecastModel, str],
        historical_payouts: Iterable[Union[Mapping[str, Any], HistoricalPayout]],
        risk_settings: Optional[RiskSettings] = None,
        as_of: Optional[date] = None,
        transactions: Iterable[Union[Mapping[str, Any], SettlementTransaction]] = (),
        amazon_account_id: Optional[str] = None,
        currency_code: str = "USD",
    ) -> List[PayoutForecastRecord]:
        """
        Build a new forecast generation and swap it in for the account's
        existing `forecasted` rows in one transaction.

        The model runs before anything is deleted, so InsufficientHistoryError
        leaves stored forecasts untouched.
        """
        if as_of is None:
            raise ValueError("as_of is required")
        if isinstance(model, str):
            model = resolve_forecast_model(model)
        risk = risk_settings or RiskSettings()

        inputs = ForecastInputs.from_records(historical_payouts, transactions)
        records = model.build(inputs, risk, as_of)

        if amazon_account_id is None:
            amazon_account_id = next(
                (p.amazon_account_id for p in inputs.confirmed() if p.amazon_account_id),
                None,
            )
        payout_type = "daily" if model.method == METHOD_DAILY else "bi-weekly"

        with self._locks.hold(account_id):
            try:
                deleted = (
                    self._session.query(AmazonPayout)
                    .filter(
                        AmazonPayout.account_id == account_id,
                        AmazonPayout.status == STATUS_FORECASTED,
                    )
                    .delete(synchronize_session=False)
                )
                self._session.add_all(
                    [
                        AmazonPayout(
                            account_id=account_id,
                            amazon_account_id=amazon_account_id,
                            settlement_id=f"FORECAST-{r.method}-{r.date.isoformat()}",
                            payout_date=r.date,
                            total_amount=r.amount,
                            currency_code=currency_code,
                            status=STATUS_FORECASTED,
                            payout_type=payout_type,
                            modeling_method=r.method,
                            model_inputs=r.model_inputs,
                        )
                        for r in records
                    ]
                )
                self._session.commit()
            except SQLAlchemyError as exc:
                self._session.rollback()
                raise ConsistencyError(account_id, str(exc)) from exc

        logger.info(
            "Account %s: replaced %d forecasts with %d (%s)",
            account_id,
            deleted,
            len(records),
            model.method,
        )
        return records

    def regenerate_for_account(
        self,
        account_id: str,
        as_of: date,
        transactions: Iterable[Union[Mapping[str, Any], SettlementTransaction]] = (),
    ) -> List[PayoutForecastRecord]:
        """Regenerate from stored history using the account's configured model and risk."""
        account = self._get_account(account_id)
        model = resolve_forecast_model(account.payout_model, account.payout_frequency)
        history = (
            self._session.query(AmazonPayout)
            .filter(
                AmazonPayout.account_id == account_id,
                AmazonPayout.status.in_((STATUS_CONFIRMED, STATUS_OPEN)),
            )
            .all()
        )
        return self.generate_forecast(
            account_id=account_id,
            model=model,
            historical_payouts=[
                HistoricalPayout(
                    payout_date=row.payout_date,
                    total_amount=Decimal(str(row.total_amount)),
                    status=row.status,
                    settlement_id=row.settlement_id,
                    amazon_account_id=row.amazon_account_id,
                )
                for row in history
            ],
            risk_settings=RiskSettings(
                safety_net_level=account.safety_net_level,
                risk_adjustment_pct=Decimal(str(account.risk_adjustment_pct)),
            ),
            as_of=as_of,
            transactions=transactions,
            amazon_account_id=account.amazon_account_id,
            currency_code=account.currency,
        )

    def list_forecasts(self, account_id: str, status: str = STATUS_FORECASTED) -> List[AmazonPayout]:
        return (
            self._session.query(AmazonPayout)
            .filter(AmazonPayout.account_id == account_id, AmazonPayout.status == status)
            .order_by(AmazonPayout.payout_date.asc())
            .all()
        )

    # ── Rollover ──────────────────────────────────────────────────────────────

    def roll_over_past_forecasts(self, account_id: str, as_of: date) -> RolloverResult:
        """
        Fold forecasts dated before `as_of` into today's forecast.
        Only amounts dated after the last confirmed payout are carried; every
        past forecast is marked rolled_over either way.
        """
        with self._locks.hold(account_id):
            last_confirmed = (
                self._session.query(AmazonPayout.payout_date)
                .filter(
                    AmazonPayout.account_id == account_id,
                    AmazonPayout.status == STATUS_CONFIRMED,
                )
                .order_by(AmazonPayout.payout_date.desc())
                .first()
            )
            floor = last_confirmed[0] if last_confirmed else date.min

            past = (
                self._session.query(AmazonPayout)
                .filter(
                    AmazonPayout.account_id == account_id,
                    AmazonPayout.status == STATUS_FORECASTED,
                    AmazonPayout.payout_date < as_of,
                )
                .order_by(AmazonPayout.payout_date.asc())
                .all()
            )
            if not past:
                return RolloverResult(False, ZERO, 0, "No past forecasts to process")

            to_add = sum(
                (Decimal(str(f.total_amount)) for f in past if f.payout_date > floor),
                ZERO,
            )
            today = (
                self._session.query(AmazonPayout)
                .filter(
                    AmazonPayout.account_id == account_id,
                    AmazonPayout.status == STATUS_FORECASTED,
                    AmazonPayout.payout_date == as_of,
                )
                .first()
            )
            if today is None:
                if to_add > ZERO:
                    logger.error(
                        "Account %s: %s to roll over but no forecast for %s",
                        account_id,
                        to_add,
                        as_of,
                    )
                    return RolloverResult(
                        False, ZERO, 0, "No forecast exists for today. Cannot roll over funds safely."
                    )
                return RolloverResult(False, ZERO, 0, "No forecast for today, nothing changed.")

            now = datetime.utcnow()
            try:
                if to_add > ZERO:
                    today.total_amount = Decimal(str(today.total_amount)) + to_add
                    today.updated_at = now
                for f in past:
                    f.status = STATUS_ROLLED_OVER
                    f.updated_at = now
                self._session.commit()
            except SQLAlchemyError as exc:
                self._session.rollback()
                raise ConsistencyError(account_id, str(exc)) from exc

        return RolloverResult(
            True,
            to_add,
            len(past),
            f"Carried forward {to_add}. Cleaned up {len(past)} past forecasts.",
        )

    # ── Settlement confirmation ───────────────────────────────────────────────

    def confirm_settlement(
        self,
        account_id: str,
        settlement_id: str,
        payout_date: date,
        total_amount: Decimal,
        replaced_at: Optional[datetime] = None,
    ) -> AmazonPayout:
        """
        Record a realized settlement. The nearest forecast within ±1 day becomes
        the confirmed row and keeps its forecast amount for accuracy scoring.
        """
        if not isinstance(total_amount, Decimal):
            raise TypeError(f"total_amount must be Decimal, got {type(total_amount)}")
        self._get_account(account_id)

        with self._locks.hold(account_id):
            window = timedelta(days=self.MATCH_WINDOW_DAYS)
            candidates = (
                self._session.query(AmazonPayout)
                .filter(
                    AmazonPayout.account_id == account_id,
                    AmazonPayout.status == STATUS_FORECASTED,
                    AmazonPayout.payout_date.between(payout_date - window, payout_date + window),
                )
                .all()
            )
            now = replaced_at or datetime.utcnow()
            try:
                if candidates:
                    row = min(
                        candidates,
                        key=lambda c: (abs((c.payout_date - payout_date).days), c.payout_date),
                    )
                    forecast = Decimal(str(row.total_amount))
                    row.original_forecast_amount = forecast
                    row.forecast_accuracy_percentage = forecast_accuracy_percentage(
                        forecast, total_amount
                    )
                    row.forecast_replaced_at = now
                    row.total_amount = total_amount
                    row.payout_date = payout_date
                    row.settlement_id = settlement_id
                    row.status = STATUS_CONFIRMED
                    row.updated_at = now
                else:
                    row = AmazonPayout(
                        account_id=account_id,
                        settlement_id=settlement_id,
                        payout_date=payout_date,
                        total_amount=total_amount,
                        status=STATUS_CONFIRMED,
                    )
                    self._session.add(row)
                self._session.commit()
            except SQLAlchemyError as exc:
                self._session.rollback()
                raise ConsistencyError(account_id, str(exc)) from exc

        self._session.refresh(row)
        return row

    def load_matched_forecasts(self, account_id: str) -> List[MatchedForecast]:
        rows = (
            self._session.query(AmazonPayout)
            .filter(
                AmazonPayout.account_id == account_id,
                AmazonPayout.status == STATUS_CONFIRMED,
                AmazonPayout.original_forecast_amount.isnot(None),
                AmazonPayout.forecast_replaced_at.isnot(None),
            )
            .order_by(AmazonPayout.payout_date.desc())
            .all()
        )
        return [
            MatchedForecast(
                payout_date=r.payout_date,
                forecast_amount=Decimal(str(r.original_forecast_amount)),
                actual_amount=Decimal(str(r.total_amount)),
                modeling_method=r.modeling_method,
                forecast_accuracy_percentage=(
                    Decimal(str(r.forecast_accuracy_percentage))
                    if r.forecast_accuracy_percentage is not None
                    else None
                ),
            )
            for r in rows
        ]

    def _get_account(self, account_id: str) -> SellerAccount:
        account = self._session.query(SellerAccount).filter_by(id=account_id).first()
        if account is None:
            raise AccountNotFoundError(account_id)
        return account
