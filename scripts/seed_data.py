#!/usr/bin/env python3
"""
Seed SellerFlow with a demo seller for local development.
"""

import sys
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from sellerflow.database import SessionLocal, init_db
from sellerflow.models.accounts import SellerAccount
from sellerflow.models.payouts import AmazonPayout
from sellerflow.services.payout_forecasting import PayoutForecastService


def main():
    print("Seeding demo data...")
    init_db()

    session = SessionLocal()
    try:
        # ── Seller account ────────────────────────────────────────────────────
        account = SellerAccount(
            name="Demo Outdoor Gear",
            amazon_account_id="A1DEMOSELLER",
            payout_frequency="bi-weekly",
            safety_net_level="medium",
            risk_adjustment_pct=Decimal("5"),
            reserve_amount=Decimal("2500.00"),
        )
        session.add(account)
        session.flush()

        # ── Settlement history: 8 confirmed bi-weekly payouts ─────────────────
        today = date.today()
        amounts = ["8420.10", "9105.44", "8876.02", "9640.75", "10012.30", "9788.16", "10455.90", "10890.25"]
        for i, amount in enumerate(amounts):
            payout_date = today - timedelta(days=14 * (len(amounts) - i))
            session.add(
                AmazonPayout(
                    account_id=account.id,
                    amazon_account_id=account.amazon_account_id,
                    settlement_id=f"SETTLE-{payout_date:%Y%m%d}",
                    payout_date=payout_date,
                    total_amount=Decimal(amount),
                    status="confirmed",
                )
            )

        # ── Current open settlement ───────────────────────────────────────────
        session.add(
            AmazonPayout(
                account_id=account.id,
                amazon_account_id=account.amazon_account_id,
                settlement_id=f"SETTLE-{today:%Y%m%d}-OPEN",
                payout_date=today - timedelta(days=2),
                total_amount=Decimal("4210.00"),
                status="open",
            )
        )
        session.commit()
        print(f"Created seller account {account.id} with {len(amounts)} confirmed payouts.")

        forecasts = PayoutForecastService(session).regenerate_for_account(account.id, today)
        for f in forecasts:
            print(f"  {f.date}  {f.amount:>12}  ({f.method})")
        print(f"Generated {len(forecasts)} payout forecasts.")
        print("\nSeed complete!")
    finally:
        session.close()


if __name__ == "__main__":
    main()
