"""Expected amounts for Loans billers linked to a credit account's billing cycles"""

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from budgetsync.domain.cycles import CYCLE_WINDOW, aggregate_by_cycle, resolve_cycle
from budgetsync.domain.models import Account, Biller, ExpectedAmount, PaymentScheduleEntry, Transaction


def uses_linked_account(biller: Biller) -> bool:
    """Loans-category billers with a linked account take their amount from cycle totals"""
    return biller.category.startswith("Loans") and bool(biller.linked_account_id)


def find_linked_account(biller: Biller, accounts: Iterable[Account]) -> Optional[Account]:
    """The biller's linked account, only if it is a Credit account with a billing anchor"""
    if not biller.linked_account_id:
        return None
    account = next((acc for acc in accounts if acc.id == biller.linked_account_id), None)
    if account is None or account.type != "Credit" or account.billing_anchor is None:
        return None
    return account


def linked_account_amount(
    account: Account,
    month: str,
    year: int | str,
    transactions: Iterable[Transaction],
    today: date | None = None,
    window: int = CYCLE_WINDOW,
    inclusive_start: bool = False,
) -> Optional[Decimal]:
    """Total of the account's transactions in the cycle that closes in (month, year)"""
    if account.billing_anchor is None:
        return None

    cycle = resolve_cycle(month, year, account.billing_anchor, today, window)
    if cycle is None:
        return None

    account_transactions = [tx for tx in transactions if tx.payment_method_id == account.id]
    aggregate = aggregate_by_cycle([cycle], account_transactions, inclusive_start)[0]
    return aggregate.total_amount


def schedule_expected_amount(
    biller: Biller,
    entry: PaymentScheduleEntry,
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
    today: date | None = None,
    window: int = CYCLE_WINDOW,
    inclusive_start: bool = False,
) -> ExpectedAmount:
    """
    Expected amount for one biller schedule entry.

    Linked Loans billers use the linked credit account's cycle total; every
    other case, and every failure along the way, falls back to the flat
    figure stored on the entry (or the biller when the entry has none).
    """
    flat = ExpectedAmount(amount=entry.expected_amount or biller.expected_amount, from_linked_account=False)
    if not uses_linked_account(biller):
        return flat

    account = find_linked_account(biller, accounts)
    if account is None:
        logging.warning(
            "Linked account not found or invalid",
            extra={"biller_id": biller.id, "linked_account_id": biller.linked_account_id},
        )
        return flat

    amount = linked_account_amount(account, entry.month, entry.year, transactions, today, window, inclusive_start)
    if amount is None:
        logging.warning(
            "Could not calculate amount from linked account",
            extra={"biller_id": biller.id, "month": entry.month, "year": entry.year},
        )
        return flat

    return ExpectedAmount(amount=amount, from_linked_account=True)


def schedule_display_label(
    entry: PaymentScheduleEntry,
    account: Optional[Account],
    today: date | None = None,
) -> str:
    """Cycle date range for linked schedules, "January 2026" otherwise"""
    fallback = f"{entry.month} {entry.year}"
    if account is None or account.billing_anchor is None:
        return fallback
    cycle = resolve_cycle(entry.month, entry.year, account.billing_anchor, today)
    return cycle.label if cycle else fallback
