"""Balance and schedule side effects of recording or reversing a payment"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from budgetsync.domain.matching import DEFAULT_RULES, derive_status
from budgetsync.domain.models import Account, PaymentScheduleEntry, Transaction


def balance_impact(account_type: str, amount: Decimal) -> Decimal:
    """
    Signed change a transaction applies to its account balance.

    Debit accounts: spending reduces the balance.
    Credit accounts: spending increases the balance (usage owed).
    """
    if account_type == "Debit":
        return -amount
    if account_type == "Credit":
        return amount
    return Decimal("0")


def apply_transaction(account: Account, transaction: Transaction) -> Account:
    return replace(account, balance=account.balance + balance_impact(account.type, transaction.amount))


def reverse_transaction(account: Account, transaction: Transaction) -> Account:
    """Undo apply_transaction exactly"""
    return replace(account, balance=account.balance - balance_impact(account.type, transaction.amount))


def record_payment(
    entry: PaymentScheduleEntry,
    amount: Decimal,
    date_paid: date,
    account_id: Optional[str] = None,
    receipt: Optional[str] = None,
    tolerance: Decimal = DEFAULT_RULES.amount_tolerance,
) -> PaymentScheduleEntry:
    """Add a payment to a schedule entry and re-derive its status"""
    total_paid = entry.amount_paid + amount
    return replace(
        entry,
        amount_paid=total_paid,
        status=derive_status(total_paid, entry.expected_amount, tolerance),
        date_paid=date_paid,
        account_id=account_id,
        receipt=receipt,
    )


def revert_payment(
    entry: PaymentScheduleEntry,
    amount: Decimal,
    latest_remaining: Optional[Transaction] = None,
    tolerance: Decimal = DEFAULT_RULES.amount_tolerance,
) -> PaymentScheduleEntry:
    """
    Remove a payment from a schedule entry.

    amount_paid never drops below zero; once nothing is paid the payment
    details (date, receipt, account) are cleared. While something is still
    paid, date_paid and account_id follow latest_remaining, the most recent
    payment still linked to the entry. The receipt belongs to the entry and
    is kept. expected_amount is untouched.
    """
    remaining = max(Decimal("0"), entry.amount_paid - amount)
    reverted = replace(entry, amount_paid=remaining, status=derive_status(remaining, entry.expected_amount, tolerance))
    if remaining == 0:
        reverted = replace(reverted, date_paid=None, receipt=None, account_id=None)
    elif latest_remaining is not None:
        reverted = replace(
            reverted,
            date_paid=latest_remaining.date.date(),
            account_id=latest_remaining.payment_method_id,
        )
    return reverted


def post_schedule_payment(
    account: Account,
    entry: PaymentScheduleEntry,
    transaction: Transaction,
    receipt: Optional[str] = None,
    tolerance: Decimal = DEFAULT_RULES.amount_tolerance,
) -> Tuple[Account, PaymentScheduleEntry]:
    """Both halves of recording a payment; persist them together or not at all"""
    updated_entry = record_payment(
        entry,
        transaction.amount,
        transaction.date.date(),
        account_id=account.id,
        receipt=receipt,
        tolerance=tolerance,
    )
    return apply_transaction(account, transaction), updated_entry


def reverse_schedule_payment(
    account: Optional[Account],
    entry: Optional[PaymentScheduleEntry],
    transaction: Transaction,
    remaining_payments: Iterable[Transaction] = (),
    tolerance: Decimal = DEFAULT_RULES.amount_tolerance,
) -> Tuple[Optional[Account], Optional[PaymentScheduleEntry]]:
    """
    Both halves of deleting a payment transaction; either side may be absent.

    remaining_payments are the entry's other linked payments, used to keep
    its payment details pointing at one that still exists.
    """
    reversed_account = reverse_transaction(account, transaction) if account is not None else None
    reversed_entry = None
    if entry is not None:
        others = [tx for tx in remaining_payments if tx.id != transaction.id]
        latest = max(others, key=lambda tx: tx.date) if others else None
        reversed_entry = revert_payment(entry, transaction.amount, latest, tolerance)
    return reversed_account, reversed_entry


def calculate_account_balance(
    account: Account,
    transactions: Iterable[Transaction],
    baseline: Optional[Decimal] = None,
) -> Decimal:
    """Replay an account's transactions chronologically from a baseline balance"""
    balance = account.balance if baseline is None else baseline
    own = sorted(
        (tx for tx in transactions if tx.payment_method_id == account.id),
        key=lambda tx: tx.date,
    )
    for tx in own:
        balance += balance_impact(account.type, tx.amount)
    return balance


def available_balance(account: Account, balance: Decimal) -> Decimal:
    """Credit accounts: limit minus usage. Debit accounts: the balance itself."""
    if account.type == "Credit" and account.credit_limit:
        return account.credit_limit - balance
    return balance
