"""
SellerFlow — Shared pytest fixtures.
"""

from __future__ import annotations

import os
from datetime import date, timedelta
from decimal import Decimal
from typing import Generator, List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# ─── Environment setup (before any app imports) ───────────────────────────────

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "development")

# ─── App imports (after env is set) ───────────────────────────────────────────

from sellerflow.database import Base  # noqa: E402
from sellerflow.models.accounts import SellerAccount  # noqa: E402
from sellerflow.models.payouts import AmazonPayout  # noqa: E402

# ─────────────────────────────────────────────────────────────────────────────
# DATABASE FIXTURES
# ─────────────────────────────────────────────────────────────────────────────


def _make_engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def set_pragmas(dbapi_conn, _):
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Fresh in-memory SQLite session per test function."""
    engine = _make_engine()
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture(scope="function")
def file_session_factory(tmp_path):
    """sessionmaker over a temporary SQLite file, for tests that use several threads."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'sellerflow.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    yield factory
    engine.dispose()


# ─────────────────────────────────────────────────────────────────────────────
# FASTAPI CLIENT FIXTURE
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """FastAPI TestClient with overridden DB dependency."""
    from sellerflow.database import get_db
    from sellerflow.main import app

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


# ─────────────────────────────────────────────────────────────────────────────
# SELLER ACCOUNT FIXTURES
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture(scope="function")
def seller_account(db_session: Session) -> SellerAccount:
    account = SellerAccount(
        name="Test Seller",
        amazon_account_id="A1TESTSELLER",
        payout_frequency="bi-weekly",
        safety_net_level="low",
        risk_adjustment_pct=Decimal("5"),
        reserve_amount=Decimal("1000.00"),
    )
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture(scope="function")
def daily_account(db_session: Session) -> SellerAccount:
    account = SellerAccount(
        name="Daily Seller",
        amazon_account_id="A1DAILYSELLER",
        payout_model="daily",
        payout_frequency="daily",
        safety_net_level="medium",
        risk_adjustment_pct=Decimal("0"),
    )
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture(scope="function")
def confirmed_history(db_session: Session, seller_account: SellerAccount) -> List[AmazonPayout]:
    """Three flat bi-weekly payouts of 10,000 ending 2024-06-07."""
    rows = []
    for k in range(3):
        payout_date = date(2024, 6, 7) - timedelta(days=14 * k)
        row = AmazonPayout(
            account_id=seller_account.id,
            amazon_account_id=seller_account.amazon_account_id,
            settlement_id=f"S-{payout_date:%Y%m%d}",
            payout_date=payout_date,
            total_amount=Decimal("10000.00"),
            status="confirmed",
        )
        db_session.add(row)
        rows.append(row)
    db_session.commit()
    return rows
