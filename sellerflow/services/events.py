"""
SellerFlow — Event Normalizer
Turns raw source rows (purchase orders, income, recurring expenses,
credit cards, Amazon payouts) into one ascending CashFlowEvent stream.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Callable, Iterable, List, Mapping, Optional, Set, Tuple

from sellerflow.config import get_settings
from sellerflow.core.dates import coerce_date, optional_date
from sellerflow.core.decimal_utils import ZERO, monetary
from sellerflow.core.exceptions import InputDataError
from sellerflow.core.recurrence import (
    RecurringTemplate,
    generate_recurring_dates,
    normalize_frequency,
)

logger = logging.getLogger(__name__)

INFLOW = "inflow"
OUTFLOW = "outflow"
CREDIT_PAYMENT = "credit-payment"
EVENT_TYPES = (INFLOW, OUTFLOW, CREDIT_PAYMENT)

Record = Mapping[str, Any]


@dataclass(frozen=True)
class CashFlowEvent:
    id: str
    type: str  # inflow | outflow | credit-payment
    amount: Decimal  # non-negative; sign comes from type
    date: date  # balance-impact date
    description: Optional[str] = None
    source_ref: Optional[str] = None
    display_date: Optional[date] = None  # shown to users; defaults to `date`

    def __post_init__(self) -> None:
        if self.type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type {self.type!r}")
        if not isinstance(self.amount, Decimal):
            raise TypeError(f"amount must be Decimal, got {type(self.amount)}")
        if not self.amount.is_finite():
            raise ValueError(f"amount must be finite, got {self.amount}")
        if self.amount < ZERO:
            raise ValueError("amount must be non-negative; direction is carried by type")
        if self.display_date is None:
            object.__setattr__(self, "display_date", self.date)

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.type == INFLOW else -self.amount


# ─── Field helpers ────────────────────────────────────────────────────────────


def _required_date(source: str, record: Record, *fields: str) -> date:
    """First present date among `fields`; raises InputDataError if none parse."""
    for name in fields:
        raw = record.get(name)
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            continue
        try:
            return coerce_date(raw)
        except ValueError as exc:
            raise InputDataError(source, record.get("id"), f"{name}: {exc}")
    raise InputDataError(source, record.get("id"), f"missing {' / '.join(fields)}")


def _amount(source: str, record: Record, field: str = "amount") -> Decimal:
    raw = record.get(field)
    if raw is None:
        raise InputDataError(source, record.get("id"), f"missing {field}")
    try:
        return monetary(raw)
    except TypeError as exc:
        raise InputDataError(source, record.get("id"), str(exc))


def _status(record: Record) -> str:
    return str(record.get("status") or "").strip().lower()


# ─── Per-source converters ────────────────────────────────────────────────────


def _vendor_event(record: Record) -> Optional[CashFlowEvent]:
    if _status(record) == "completed":
        return None
    when = _required_date("vendor_transaction", record, "due_date", "transaction_date")
    return CashFlowEvent(
        id=f"vendor-tx-{record.get('id')}",
        type=OUTFLOW,
        amount=abs(_amount("vendor_transaction", record)),
        date=when,
        description=record.get("description"),
        source_ref=str(record.get("id")),
    )


def _income_event(record: Record) -> Optional[CashFlowEvent]:
    """Income stays expected until marked received, so overdue rows still project as inflows."""
    if _status(record) == "received":
        return None
    when = _required_date("income", record, "payment_date")
    return CashFlowEvent(
        id=f"income-{record.get('id')}",
        type=INFLOW,
        amount=abs(_amount("income", record)),
        date=when,
        description=record.get("description"),
        source_ref=str(record.get("id")),
    )


def _credit_card_event(record: Record) -> Optional[CashFlowEvent]:
    balance = _amount("credit_card", record, "balance")
    if balance <= ZERO:
        return None
    when = _required_date("credit_card", record, "payment_due_date")
    return CashFlowEvent(
        id=f"credit-card-{record.get('id')}",
        type=CREDIT_PAYMENT,
        amount=balance,
        date=when,
        description=record.get("name") or "Credit card payment",
        source_ref=str(record.get("id")),
    )


def _payout_event(record: Record, as_of: date, delay_days: int) -> Optional[CashFlowEvent]:
    if _status(record) == "rolled_over":
        return None
    payout_date = _required_date("amazon_payout", record, "payout_date")
    if payout_date < as_of:
        return None
    return CashFlowEvent(
        id=f"amazon-payout-{record.get('id')}",
        type=INFLOW,
        amount=abs(_amount("amazon_payout", record, "total_amount")),
        date=payout_date + timedelta(days=delay_days),
        display_date=payout_date,
        description=f"Amazon payout ({_status(record) or 'unknown'})",
        source_ref=str(record.get("id")),
    )


def _recurring_template(record: Record) -> RecurringTemplate:
    rid = record.get("id")
    try:
        frequency = normalize_frequency(str(record.get("frequency") or ""))
        end_date = optional_date(record.get("end_date"))
    except ValueError as exc:
        raise InputDataError("recurring_expense", rid, str(exc))
    return RecurringTemplate(
        id=str(rid),
        amount=abs(_amount("recurring_expense", record)),
        frequency=frequency,
        start_date=_required_date("recurring_expense", record, "start_date"),
        end_date=end_date,
        is_active=bool(record.get("is_active", True)),
        description=record.get("description") or record.get("transaction_name"),
    )


def _exception_keys(exceptions: Iterable[Record]) -> Set[Tuple[str, date]]:
    keys: Set[Tuple[str, date]] = set()
    for exc_row in exceptions:
        try:
            keys.add(
                (
                    str(exc_row["recurring_expense_id"]),
                    coerce_date(exc_row.get("exception_date")),
                )
            )
        except (KeyError, ValueError) as exc:
            logger.warning("Skipping malformed recurring exception %r: %s", exc_row, exc)
    return keys


def _recurring_events(
    record: Record,
    range_start: date,
    range_end: date,
    suppressed: Set[Tuple[str, date]],
) -> List[CashFlowEvent]:
    template = _recurring_template(record)
    events = []
    for occurrence in generate_recurring_dates(template, range_start, range_end):
        if (template.id, occurrence) in suppressed:
            continue
        events.append(
            CashFlowEvent(
                id=f"recurring-{template.id}-{occurrence.isoformat()}",
                type=OUTFLOW,
                amount=template.amount,
                date=occurrence,
                description=template.description,
                source_ref=template.id,
            )
        )
    return events


def _collect(
    source: str,
    records: Iterable[Record],
    convert: Callable[[Record], Any],
    out: List[CashFlowEvent],
) -> int:
    """Convert each record, skipping (and logging) malformed ones. Returns skip count."""
    skipped = 0
    for record in records:
        try:
            produced = convert(record)
        except InputDataError as exc:
            skipped += 1
            logger.warning("Skipping %s record: %s", source, exc.message)
            continue
        if produced is None:
            continue
        if isinstance(produced, CashFlowEvent):
            out.append(produced)
        else:
            out.extend(produced)
    return skipped


# ─── Public entry point ───────────────────────────────────────────────────────


def normalize_events(
    as_of: date,
    horizon_end: date,
    vendor_transactions: Iterable[Record] = (),
    income: Iterable[Record] = (),
    recurring_expenses: Iterable[Record] = (),
    recurring_exceptions: Iterable[Record] = (),
    credit_cards: Iterable[Record] = (),
    amazon_payouts: Iterable[Record] = (),
    payout_transfer_delay_days: Optional[int] = None,
) -> List[CashFlowEvent]:
    """
    Build the ascending event stream for one projection run.

    Events whose balance-impact date falls before `as_of` are dropped;
    events after `horizon_end` are kept (the simulator ignores them),
    except recurring occurrences, which are only expanded up to `horizon_end`.
    A malformed record is logged and skipped; the pass never aborts on one.
    """
    delay = (
        get_settings().PAYOUT_TRANSFER_DELAY_DAYS
        if payout_transfer_delay_days is None
        else payout_transfer_delay_days
    )
    suppressed = _exception_keys(recurring_exceptions)

    events: List[CashFlowEvent] = []
    skipped = 0
    skipped += _collect("vendor_transaction", vendor_transactions, _vendor_event, events)
    skipped += _collect("income", income, _income_event, events)
    skipped += _collect(
        "recurring_expense",
        recurring_expenses,
        lambda r: _recurring_events(r, as_of, horizon_end, suppressed),
        events,
    )
    skipped += _collect("credit_card", credit_cards, _credit_card_event, events)
    skipped += _collect(
        "amazon_payout",
        amazon_payouts,
        lambda r: _payout_event(r, as_of, delay),
        events,
    )

    current = [e for e in events if e.date >= as_of]
    if len(current) != len(events):
        logger.debug("Dropped %d events dated before %s", len(events) - len(current), as_of)
    if skipped:
        logger.info("Normalization skipped %d malformed records", skipped)

    # sorted() is stable: same-day events keep source order
    return sorted(current, key=lambda e: e.date)
