"""
SellerFlow — Seller account settings that drive payout forecasting
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Enum, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sellerflow.database import Base

if TYPE_CHECKING:
    from sellerflow.models.payouts import AmazonPayout


class SellerAccount(Base):
    __tablename__ = "seller_accounts"

    id: Mapped[str] = mapped_column(
        String, primary_key=True, index=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    amazon_account_id: Mapped[Optional[str]] = mapped_column(String, index=True)
    marketplace_name: Mapped[str] = mapped_column(String, default="Amazon.com")
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    # "daily" selects the daily-settlement model; anything else is periodic
    payout_model: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    payout_frequency: Mapped[str] = mapped_column(
        String(20), nullable=False, default="bi-weekly"
    )
    safety_net_level: Mapped[str] = mapped_column(
        Enum("low", "medium", "high", "maximum", name="safety_net_level_enum"),
        nullable=False,
        default="medium",
    )
    risk_adjustment_pct: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("5")
    )
    reserve_amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    payouts: Mapped[List["AmazonPayout"]] = relationship(
        "AmazonPayout", back_populates="account"
    )
