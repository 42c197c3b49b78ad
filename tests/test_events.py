"""
SellerFlow — Event Normalizer Tests
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from sellerflow.services.events import (
    CREDIT_PAYMENT,
    INFLOW,
    OUTFLOW,
    CashFlowEvent,
    normalize_events,
)

AS_OF = date(2024, 6, 1)
END = date(2024, 6, 30)


class TestCashFlowEvent:
    def test_display_date_defaults_to_date(self):
        e = CashFlowEvent(id="x", type=INFLOW, amount=Decimal("1"), date=AS_OF)
        assert e.display_date == AS_OF

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            CashFlowEvent(id="x", type=OUTFLOW, amount=Decimal("-1"), date=AS_OF)

    def test_float_amount_rejected(self):
        with pytest.raises(TypeError):
            CashFlowEvent(id="x", type=OUTFLOW, amount=1.5, date=AS_OF)

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            CashFlowEvent(id="x", type="transfer", amount=Decimal("1"), date=AS_OF)

    def test_signed_amount(self):
        assert CashFlowEvent("a", OUTFLOW, Decimal("5"), AS_OF).signed_amount == Decimal("-5")
        assert CashFlowEvent("b", CREDIT_PAYMENT, Decimal("5"), AS_OF).signed_amount == Decimal("-5")
        assert CashFlowEvent("c", INFLOW, Decimal("5"), AS_OF).signed_amount == Decimal("5")


class TestNormalizeEvents:
    def test_vendor_uses_due_date_and_skips_completed(self):
        events = normalize_events(
            AS_OF,
            END,
            vendor_transactions=[
                {"id": 1, "amount": "-250.00", "due_date": "2024-06-10", "transaction_date": "2024-06-02"},
                {"id": 2, "amount": "99", "transaction_date": "2024-06-05"},
                {"id": 3, "amount": "10", "transaction_date": "2024-06-05", "status": "completed"},
            ],
        )
        assert [(e.id, e.type, e.amount, e.date) for e in events] == [
            ("vendor-tx-2", OUTFLOW, Decimal("99"), date(2024, 6, 5)),
            ("vendor-tx-1", OUTFLOW, Decimal("250.00"), date(2024, 6, 10)),
        ]

    def test_income_skips_received(self):
        events = normalize_events(
            AS_OF,
            END,
            income=[
                {"id": "i1", "amount": "500", "payment_date": "2024-06-03", "status": "pending"},
                {"id": "i2", "amount": "700", "payment_date": "2024-06-04", "status": "received"},
            ],
        )
        assert [e.id for e in events] == ["income-i1"]
        assert events[0].type == INFLOW

    def test_income_overdue_and_unlabelled_still_expected(self):
        events = normalize_events(
            AS_OF,
            END,
            income=[
                {"id": "i1", "amount": "500", "payment_date": "2024-06-03", "status": "pending"},
                {"id": "i2", "amount": "700", "payment_date": "2024-06-04", "status": "overdue"},
                {"id": "i3", "amount": "900", "payment_date": "2024-06-05"},
                {"id": "i4", "amount": "100", "payment_date": "2024-06-06", "status": "Received"},
            ],
        )
        assert [e.id for e in events] == ["income-i1", "income-i2", "income-i3"]
        assert all(e.type == INFLOW for e in events)

    def test_credit_card_only_positive_balance(self):
        events = normalize_events(
            AS_OF,
            END,
            credit_cards=[
                {"id": "cc1", "balance": "1200.50", "payment_due_date": "2024-06-20"},
                {"id": "cc2", "balance": "0", "payment_due_date": "2024-06-21"},
            ],
        )
        assert len(events) == 1
        assert events[0].type == CREDIT_PAYMENT
        assert events[0].amount == Decimal("1200.50")

    def test_payout_shifted_by_transfer_delay(self):
        events = normalize_events(
            AS_OF,
            END,
            amazon_payouts=[
                {"id": "p1", "payout_date": "2024-06-07", "total_amount": "4000", "status": "forecasted"},
                {"id": "p2", "payout_date": "2024-06-08", "total_amount": "10", "status": "rolled_over"},
                {"id": "p3", "payout_date": "2024-05-20", "total_amount": "10", "status": "confirmed"},
            ],
        )
        assert len(events) == 1
        assert events[0].date == date(2024, 6, 8)
        assert events[0].display_date == date(2024, 6, 7)

    def test_explicit_delay_override(self):
        events = normalize_events(
            AS_OF,
            END,
            amazon_payouts=[{"id": "p1", "payout_date": "2024-06-07", "total_amount": "1"}],
            payout_transfer_delay_days=0,
        )
        assert events[0].date == date(2024, 6, 7)

    def test_recurring_expanded_with_exceptions(self):
        events = normalize_events(
            AS_OF,
            END,
            recurring_expenses=[
                {"id": "rent", "amount": "2000", "frequency": "weekly", "start_date": "2024-05-27"},
            ],
            recurring_exceptions=[
                {"recurring_expense_id": "rent", "exception_date": "2024-06-10"},
            ],
        )
        assert [e.date for e in events] == [date(2024, 6, 3), date(2024, 6, 17), date(2024, 6, 24)]
        assert events[0].id == "recurring-rent-2024-06-03"
        assert all(e.type == OUTFLOW for e in events)

    def test_events_before_as_of_dropped(self):
        events = normalize_events(
            AS_OF,
            END,
            vendor_transactions=[{"id": 1, "amount": "5", "due_date": "2024-05-31"}],
        )
        assert events == []

    def test_malformed_records_skipped_not_raised(self, caplog):
        events = normalize_events(
            AS_OF,
            END,
            vendor_transactions=[
                {"id": 1, "amount": "abc", "due_date": "2024-06-10"},
                {"id": 2, "amount": "5"},
                {"id": 3, "amount": "5", "due_date": "2024-06-10"},
            ],
            recurring_expenses=[
                {"id": "r", "amount": "1", "frequency": "hourly", "start_date": "2024-06-01"},
            ],
        )
        assert [e.id for e in events] == ["vendor-tx-3"]
        assert "Skipping vendor_transaction record" in caplog.text

    def test_non_finite_amounts_skipped(self):
        events = normalize_events(
            AS_OF,
            END,
            vendor_transactions=[
                {"id": "bad", "amount": "NaN", "due_date": "2024-06-10"},
                {"id": "inf", "amount": "Infinity", "due_date": "2024-06-11"},
                {"id": "ok", "amount": "100", "due_date": "2024-06-12"},
            ],
            credit_cards=[{"id": "cc", "balance": "NaN", "payment_due_date": "2024-06-20"}],
            amazon_payouts=[{"id": "p", "payout_date": "2024-06-07", "total_amount": "-Infinity"}],
        )
        assert [e.id for e in events] == ["vendor-tx-ok"]

    def test_nan_event_amount_rejected(self):
        with pytest.raises(ValueError):
            CashFlowEvent(id="x", type=INFLOW, amount=Decimal("NaN"), date=AS_OF)

    def test_ascending_and_stable(self):
        events = normalize_events(
            AS_OF,
            END,
            vendor_transactions=[{"id": "v", "amount": "1", "due_date": "2024-06-05"}],
            income=[
                {"id": "a", "amount": "1", "payment_date": "2024-06-05"},
                {"id": "b", "amount": "1", "payment_date": "2024-06-02"},
            ],
        )
        assert [e.id for e in events] == ["income-b", "vendor-tx-v", "income-a"]
        assert all(e.amount >= 0 for e in events)
