"""Data access layer: row <-> domain conversion and paired payment writes"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from budgetsync.domain.cycles import parse_anchor
from budgetsync.domain.exceptions import (
    AccountNotFoundError,
    LedgerSyncError,
    ObligationNotFoundError,
    ScheduleNotFoundError,
    TransactionNotFoundError,
)
from budgetsync.domain.ledger import apply_transaction, post_schedule_payment, reverse_schedule_payment
from budgetsync.domain.matching import DEFAULT_RULES
from budgetsync.domain.models import (
    Account,
    Biller,
    Installment,
    MonthYear,
    PaymentScheduleEntry,
    Transaction,
)
from budgetsync.domain.schedules import ScheduleSync, merge_schedule, sync_schedule
from budgetsync.utils.date_utils import month_number
from budgetsync.infrastructure.database.models import (
    AccountRow,
    BillerRow,
    InstallmentRow,
    PaymentScheduleRow,
    TransactionRow,
)


def _decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value or 0))


def to_account(row: AccountRow) -> Account:
    return Account(
        id=row.id,
        type=row.type,
        balance=_decimal(row.balance),
        credit_limit=_decimal(row.credit_limit) if row.credit_limit is not None else None,
        billing_anchor=parse_anchor(row.billing_date),
        name=row.bank,
    )


def to_transaction(row: TransactionRow) -> Transaction:
    return Transaction(
        id=row.id,
        name=row.name,
        date=row.date,
        amount=_decimal(row.amount),
        payment_method_id=row.payment_method_id,
        payment_schedule_id=row.payment_schedule_id,
    )


def to_biller(row: BillerRow) -> Biller:
    deactivation = None
    if row.deactivation_month and row.deactivation_year:
        deactivation = MonthYear(month=row.deactivation_month, year=row.deactivation_year)
    return Biller(
        id=row.id,
        name=row.name,
        category=row.category,
        expected_amount=_decimal(row.expected_amount),
        activation=MonthYear(month=row.activation_month, year=row.activation_year),
        deactivation=deactivation,
        timing=row.timing,
        linked_account_id=row.linked_account_id,
        status=row.status,
    )


def to_installment(row: InstallmentRow) -> Installment:
    return Installment(
        id=row.id,
        name=row.name,
        total_amount=_decimal(row.total_amount),
        monthly_amount=_decimal(row.monthly_amount),
        term_duration=row.term_duration,
        start_date=row.start_date,
        account_id=row.account_id,
        timing=row.timing,
    )


def to_schedule_entry(row: PaymentScheduleRow) -> PaymentScheduleEntry:
    return PaymentScheduleEntry(
        id=row.id,
        source_type=row.source_type,
        source_id=row.source_id,
        month=row.month,
        year=row.year,
        expected_amount=_decimal(row.expected_amount),
        amount_paid=_decimal(row.amount_paid),
        status=row.status,
        date_paid=row.date_paid,
        account_id=row.account_id,
        receipt=row.receipt,
        payment_number=row.payment_number,
    )


def _copy_entry_to_row(entry: PaymentScheduleEntry, row: PaymentScheduleRow) -> None:
    row.amount_paid = entry.amount_paid
    row.status = entry.status
    row.date_paid = entry.date_paid
    row.account_id = entry.account_id
    row.receipt = entry.receipt


class AccountRepository:
    """Repository for accounts and their transactions"""

    def __init__(self, db: Session):
        self.db = db

    def get_account(self, account_id: str) -> Account:
        row = self.db.get(AccountRow, account_id)
        if row is None:
            raise AccountNotFoundError(f"Account {account_id} not found")
        return to_account(row)

    def list_accounts(self) -> List[Account]:
        return [to_account(row) for row in self.db.query(AccountRow).all()]

    def get_transactions(self, account_id: Optional[str] = None) -> List[Transaction]:
        """All transactions, or one account's, oldest first"""
        query = self.db.query(TransactionRow)
        if account_id is not None:
            query = query.filter(TransactionRow.payment_method_id == account_id)
        return [to_transaction(row) for row in query.order_by(TransactionRow.date).all()]


class ObligationRepository:
    """Repository for billers and installments"""

    def __init__(self, db: Session):
        self.db = db

    def get_biller(self, biller_id: str) -> Biller:
        row = self.db.get(BillerRow, biller_id)
        if row is None:
            raise ObligationNotFoundError(f"Biller {biller_id} not found")
        return to_biller(row)

    def get_installment(self, installment_id: str) -> Installment:
        row = self.db.get(InstallmentRow, installment_id)
        if row is None:
            raise ObligationNotFoundError(f"Installment {installment_id} not found")
        return to_installment(row)

    def update_biller(self, biller_id: str, changes: Dict[str, Any]) -> Tuple[Biller, Biller]:
        """Apply column changes; returns the biller before and after"""
        row = self.db.get(BillerRow, biller_id)
        if row is None:
            raise ObligationNotFoundError(f"Biller {biller_id} not found")
        before = to_biller(row)
        for column, value in changes.items():
            setattr(row, column, value)
        self.db.flush()
        return before, to_biller(row)

    def update_installment(self, installment_id: str, changes: Dict[str, Any]) -> Tuple[Installment, Installment]:
        row = self.db.get(InstallmentRow, installment_id)
        if row is None:
            raise ObligationNotFoundError(f"Installment {installment_id} not found")
        before = to_installment(row)
        for column, value in changes.items():
            setattr(row, column, value)
        self.db.flush()
        return before, to_installment(row)

    def list_installments(self, account_id: Optional[str] = None) -> List[Installment]:
        query = self.db.query(InstallmentRow)
        if account_id is not None:
            query = query.filter(InstallmentRow.account_id == account_id)
        return [to_installment(row) for row in query.all()]


class ScheduleRepository:
    """Repository for monthly payment schedule entries"""

    def __init__(self, db: Session):
        self.db = db

    def get_entries(self, source_type: str, source_id: str) -> List[PaymentScheduleEntry]:
        rows = (
            self.db.query(PaymentScheduleRow)
            .filter(
                PaymentScheduleRow.source_type == source_type,
                PaymentScheduleRow.source_id == source_id,
            )
            .all()
        )
        entries = [to_schedule_entry(row) for row in rows]
        return sorted(entries, key=lambda e: (e.year, month_number(e.month) or 0))

    def get_entry_for_period(self, source_type: str, source_id: str, month: str, year: int) -> Optional[PaymentScheduleEntry]:
        row = (
            self.db.query(PaymentScheduleRow)
            .filter(
                PaymentScheduleRow.source_type == source_type,
                PaymentScheduleRow.source_id == source_id,
                PaymentScheduleRow.month == month,
                PaymentScheduleRow.year == year,
            )
            .first()
        )
        return to_schedule_entry(row) if row else None

    def upsert_entries(self, generated: List[PaymentScheduleEntry]) -> List[PaymentScheduleEntry]:
        """
        Insert generated entries that don't exist yet (by source, month, year).

        Regenerating with unchanged parameters inserts nothing. Returns the
        entries actually created, with their new ids.
        """
        if not generated:
            return []
        source_type, source_id = generated[0].source_type, generated[0].source_id
        existing = self.get_entries(source_type, source_id)

        created = self._insert(merge_schedule(existing, generated))
        self.db.flush()
        return [to_schedule_entry(row) for row in created]

    def sync_entries(
        self,
        source_type: str,
        source_id: str,
        generated: List[PaymentScheduleEntry],
    ) -> ScheduleSync:
        """
        Apply a regenerated schedule: create missing periods, update unpaid
        entries and remove unpaid entries that are no longer scheduled.
        Entries with payments are never changed. Returns the applied changes,
        created entries carrying their new ids.
        """
        sync = sync_schedule(self.get_entries(source_type, source_id), generated)

        for entry in sync.to_update:
            row = self.db.get(PaymentScheduleRow, entry.id)
            row.expected_amount = entry.expected_amount
            row.payment_number = entry.payment_number
        for entry in sync.to_remove:
            self.db.delete(self.db.get(PaymentScheduleRow, entry.id))
        created = self._insert(sync.to_create)
        self.db.flush()
        sync.to_create = [to_schedule_entry(row) for row in created]
        return sync

    def _insert(self, entries: List[PaymentScheduleEntry]) -> List[PaymentScheduleRow]:
        rows = []
        for entry in entries:
            row = PaymentScheduleRow(
                id=str(uuid.uuid4()),
                source_type=entry.source_type,
                source_id=entry.source_id,
                month=entry.month,
                year=entry.year,
                payment_number=entry.payment_number,
                expected_amount=entry.expected_amount,
                amount_paid=entry.amount_paid,
                status=entry.status,
                account_id=entry.account_id,
            )
            self.db.add(row)
            rows.append(row)
        return rows


class PaymentRepository:
    """Paired balance + schedule writes for payment transactions"""

    def __init__(self, db: Session):
        self.db = db

    def record_payment(
        self,
        schedule_id: str,
        account_id: str,
        name: str,
        amount: Decimal,
        paid_at: datetime,
        receipt: Optional[str] = None,
        tolerance: Decimal = DEFAULT_RULES.amount_tolerance,
    ) -> Tuple[Transaction, PaymentScheduleEntry, Account]:
        """
        Create a payment transaction linked to a schedule entry, updating
        the entry's amount_paid/status and the account balance together.

        Raises LedgerSyncError (after rolling back) if the writes fail.
        """
        schedule_row = self.db.get(PaymentScheduleRow, schedule_id)
        if schedule_row is None:
            raise ScheduleNotFoundError(f"Schedule {schedule_id} not found")
        account_row = self.db.get(AccountRow, account_id)
        if account_row is None:
            raise AccountNotFoundError(f"Account {account_id} not found")

        transaction = Transaction(
            id=str(uuid.uuid4()),
            name=name,
            date=paid_at,
            amount=amount,
            payment_method_id=account_id,
            payment_schedule_id=schedule_id,
        )
        account, entry = post_schedule_payment(
            to_account(account_row), to_schedule_entry(schedule_row), transaction, receipt, tolerance
        )

        try:
            self.db.add(
                TransactionRow(
                    id=transaction.id,
                    name=transaction.name,
                    date=transaction.date,
                    amount=transaction.amount,
                    payment_method_id=transaction.payment_method_id,
                    payment_schedule_id=transaction.payment_schedule_id,
                )
            )
            _copy_entry_to_row(entry, schedule_row)
            account_row.balance = account.balance
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise LedgerSyncError(
                f"Failed to record payment: {e}", schedule_id=schedule_id, account_id=account_id
            ) from e

        return transaction, entry, account

    def delete_transaction(
        self,
        transaction_id: str,
        tolerance: Decimal = DEFAULT_RULES.amount_tolerance,
    ) -> Tuple[Transaction, Optional[PaymentScheduleEntry], Optional[Account]]:
        """
        Delete a transaction and reverse what it did: restore the account
        balance and, if it paid a schedule entry, subtract it from amount_paid.

        Raises LedgerSyncError (after rolling back) if the writes fail.
        """
        tx_row = self.db.get(TransactionRow, transaction_id)
        if tx_row is None:
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found")
        transaction = to_transaction(tx_row)

        account_row = self.db.get(AccountRow, tx_row.payment_method_id) if tx_row.payment_method_id else None
        schedule_row = self.db.get(PaymentScheduleRow, tx_row.payment_schedule_id) if tx_row.payment_schedule_id else None
        remaining_payments = []
        if schedule_row is not None:
            remaining_payments = [
                to_transaction(row)
                for row in self.db.query(TransactionRow).filter(
                    TransactionRow.payment_schedule_id == schedule_row.id,
                    TransactionRow.id != transaction_id,
                )
            ]

        account, entry = reverse_schedule_payment(
            to_account(account_row) if account_row else None,
            to_schedule_entry(schedule_row) if schedule_row else None,
            transaction,
            remaining_payments,
            tolerance,
        )

        try:
            if account_row is not None:
                account_row.balance = account.balance
            if schedule_row is not None:
                _copy_entry_to_row(entry, schedule_row)
            self.db.delete(tx_row)
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise LedgerSyncError(
                f"Failed to reverse transaction {transaction_id}: {e}",
                schedule_id=transaction.payment_schedule_id,
                account_id=transaction.payment_method_id,
            ) from e

        return transaction, entry, account

    def add_transaction(self, transaction: Transaction) -> Tuple[Transaction, Account]:
        """
        Insert an ingested transaction and apply it to its account balance
        in the same flush.

        Raises LedgerSyncError (after rolling back) if the writes fail.
        """
        account_row = self.db.get(AccountRow, transaction.payment_method_id) if transaction.payment_method_id else None
        if account_row is None:
            raise AccountNotFoundError(f"Account {transaction.payment_method_id} not found")

        account = apply_transaction(to_account(account_row), transaction)

        try:
            self.db.add(
                TransactionRow(
                    id=transaction.id,
                    name=transaction.name,
                    date=transaction.date,
                    amount=transaction.amount,
                    payment_method_id=transaction.payment_method_id,
                )
            )
            account_row.balance = account.balance
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise LedgerSyncError(
                f"Failed to add transaction {transaction.id}: {e}", account_id=transaction.payment_method_id
            ) from e

        return transaction, account
