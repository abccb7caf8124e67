"""SQLAlchemy ORM models for the hosted store tables"""

import uuid
from sqlalchemy import Column, String, Integer, Numeric, DateTime, Date, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class AccountRow(Base):
    """Debit or credit account"""

    __tablename__ = "accounts"

    id = Column(Text, primary_key=True, default=_new_id)
    bank = Column(Text, nullable=False, default="")
    type = Column(String(16), nullable=False)  # Debit | Credit
    balance = Column(Numeric(14, 2), nullable=False, default=0)
    credit_limit = Column(Numeric(14, 2), nullable=True)
    billing_date = Column(Text, nullable=True)  # "2026-01-15" or "15"
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class BillerRow(Base):
    """Recurring monthly bill"""

    __tablename__ = "billers"

    id = Column(Text, primary_key=True, default=_new_id)
    name = Column(Text, nullable=False)
    category = Column(Text, nullable=False)
    expected_amount = Column(Numeric(14, 2), nullable=False)
    timing = Column(String(8), nullable=True)  # 1/2 | 2/2
    activation_month = Column(Text, nullable=False)
    activation_year = Column(Integer, nullable=False)
    deactivation_month = Column(Text, nullable=True)
    deactivation_year = Column(Integer, nullable=True)
    linked_account_id = Column(Text, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)
    status = Column(Text, nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class InstallmentRow(Base):
    """Fixed-term installment purchase"""

    __tablename__ = "installments"

    id = Column(Text, primary_key=True, default=_new_id)
    name = Column(Text, nullable=False)
    total_amount = Column(Numeric(14, 2), nullable=False)
    monthly_amount = Column(Numeric(14, 2), nullable=False)
    term_duration = Column(Text, nullable=False)  # "12 months"
    start_date = Column(Text, nullable=True)  # "YYYY-MM"
    account_id = Column(Text, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)
    timing = Column(String(8), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PaymentScheduleRow(Base):
    """One obligation period: exactly one row per (source, month, year)"""

    __tablename__ = "monthly_payment_schedules"
    __table_args__ = (
        UniqueConstraint("source_type", "source_id", "month", "year", name="uq_schedule_period"),
    )

    id = Column(Text, primary_key=True, default=_new_id)
    source_type = Column(String(16), nullable=False)  # biller | installment
    source_id = Column(Text, nullable=False, index=True)
    month = Column(Text, nullable=False)
    year = Column(Integer, nullable=False)
    payment_number = Column(Integer, nullable=True)
    expected_amount = Column(Numeric(14, 2), nullable=False)
    amount_paid = Column(Numeric(14, 2), nullable=False, default=0)
    status = Column(Text, nullable=False, default="pending")
    date_paid = Column(Date, nullable=True)
    receipt = Column(Text, nullable=True)
    account_id = Column(Text, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class TransactionRow(Base):
    """Raw transaction; optionally linked to the schedule entry it pays"""

    __tablename__ = "transactions"

    id = Column(Text, primary_key=True, default=_new_id)
    name = Column(Text, nullable=False)
    date = Column(DateTime(timezone=False), nullable=False, index=True)
    amount = Column(Numeric(14, 2), nullable=False)
    payment_method_id = Column(Text, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True, index=True)
    payment_schedule_id = Column(
        Text, ForeignKey("monthly_payment_schedules.id", ondelete="SET NULL"), nullable=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
