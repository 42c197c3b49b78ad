"""
SellerFlow — Amazon payout rows: realized settlements and generated forecasts
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional, TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sellerflow.database import Base

if TYPE_CHECKING:
    from sellerflow.models.accounts import SellerAccount

PAYOUT_STATUSES = ("forecasted", "open", "confirmed", "rolled_over")


class AmazonPayout(Base):
    """
    One Amazon disbursement. Forecast rows (status="forecasted") are replaced
    wholesale on every forecast run; a forecast becomes "confirmed" when the
    real settlement arrives and then keeps its original forecast amount.
    """

    __tablename__ = "amazon_payouts"

    id: Mapped[str] = mapped_column(
        String, primary_key=True, index=True, default=lambda: str(uuid.uuid4())
    )
    account_id: Mapped[str] = mapped_column(
        String, ForeignKey("seller_accounts.id"), nullable=False, index=True
    )
    amazon_account_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    settlement_id: Mapped[str] = mapped_column(String, nullable=False)
    payout_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    status: Mapped[str] = mapped_column(
        Enum(*PAYOUT_STATUSES, name="payout_status_enum"),
        nullable=False,
        default="confirmed",
    )
    payout_type: Mapped[str] = mapped_column(String(20), default="bi-weekly")
    modeling_method: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    model_inputs: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    # Populated when a realized settlement replaces a forecast
    original_forecast_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(18, 2), nullable=True
    )
    forecast_accuracy_percentage: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(7, 2), nullable=True
    )
    forecast_replaced_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_amazon_payouts_account_status", "account_id", "status"),
    )

    account: Mapped["SellerAccount"] = relationship(
        "SellerAccount", back_populates="payouts"
    )
