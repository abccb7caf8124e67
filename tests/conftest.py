"""Pytest fixtures for testing"""

import os

# Point the app at SQLite before budgetsync.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from datetime import date, datetime
from decimal import Decimal
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from budgetsync.api.dependencies import get_today
from budgetsync.api.main import create_app
from budgetsync.domain.models import Account, DayOfMonth, Transaction
from budgetsync.infrastructure.database.models import (
    AccountRow,
    Base,
    BillerRow,
    InstallmentRow,
    TransactionRow,
)
from budgetsync.infrastructure.database.session import get_db


# Test database: one shared in-memory connection
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TODAY = date(2026, 2, 20)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database and a fixed 'today'"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_today] = lambda: TODAY
    return TestClient(app)


@pytest.fixture
def seeded_db(db: Session) -> Session:
    """
    A credit card billed on the 15th, a debit account, and a few months of
    transactions, plus a linked Loans biller, a utility biller and an
    installment.
    """
    db.add_all(
        [
            AccountRow(id="cc", bank="Visa", type="Credit", balance=Decimal("500.00"),
                       credit_limit=Decimal("50000.00"), billing_date="2025-06-15"),
            AccountRow(id="debit", bank="Savings", type="Debit", balance=Decimal("10000.00")),
        ]
    )
    db.add_all(
        [
            TransactionRow(id="t1", name="Groceries", date=datetime(2026, 1, 10, 9, 30),
                           amount=Decimal("200.00"), payment_method_id="cc"),
            TransactionRow(id="t2", name="Fuel", date=datetime(2026, 1, 20, 18, 0),
                           amount=Decimal("300.00"), payment_method_id="cc"),
            TransactionRow(id="t3", name="Electric Bill Payment", date=datetime(2026, 1, 28, 12, 0),
                           amount=Decimal("1500.50"), payment_method_id="debit"),
            TransactionRow(id="t4", name="Laptop Installment", date=datetime(2026, 1, 25, 12, 0),
                           amount=Decimal("2500.00"), payment_method_id="cc"),
        ]
    )
    db.add_all(
        [
            BillerRow(id="electric", name="Electric Bill", category="Utilities",
                      expected_amount=Decimal("1500.00"), timing="1/2",
                      activation_month="January", activation_year=2026),
            BillerRow(id="card-loan", name="Visa Card", category="Loans - Credit Card",
                      expected_amount=Decimal("1000.00"), timing="2/2",
                      activation_month="January", activation_year=2026,
                      linked_account_id="cc"),
            InstallmentRow(id="laptop", name="Laptop Installment", total_amount=Decimal("30000.00"),
                           monthly_amount=Decimal("2500.00"), term_duration="12 months",
                           start_date="2026-01", account_id="cc"),
        ]
    )
    db.commit()
    return db


@pytest.fixture
def credit_account() -> Account:
    """Credit card billed on the 15th"""
    return Account(
        id="cc",
        type="Credit",
        balance=Decimal("0"),
        credit_limit=Decimal("50000"),
        billing_anchor=DayOfMonth(15),
        name="Visa",
    )


@pytest.fixture
def sample_transactions() -> list[Transaction]:
    """Card transactions around the January 2026 statement"""
    return [
        Transaction(id="jan10", name="Groceries", date=datetime(2026, 1, 10, 9, 30),
                    amount=Decimal("200.00"), payment_method_id="cc"),
        Transaction(id="jan20", name="Fuel", date=datetime(2026, 1, 20, 18, 0),
                    amount=Decimal("300.00"), payment_method_id="cc"),
        Transaction(id="feb03", name="Pharmacy", date=datetime(2026, 2, 3, 11, 0),
                    amount=Decimal("45.25"), payment_method_id="cc"),
        Transaction(id="other", name="Groceries", date=datetime(2026, 1, 12, 8, 0),
                    amount=Decimal("999.00"), payment_method_id="debit"),
    ]
