"""Payment matching - reconcile monthly obligations against raw transactions"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Mapping, Optional, Union

from budgetsync.domain.exceptions import InvalidTransactionDataError
from budgetsync.domain.models import PaymentStatus, Transaction
from budgetsync.utils.date_utils import (
    clamped_date,
    last_day_of_month,
    month_number,
    normalize_year,
    parse_timestamp,
)

DEFAULT_DUE_DAY = 15


@dataclass(frozen=True)
class MatchRules:
    """
    Matching heuristics.

    - amount_tolerance: max absolute difference from the expected amount
    - min_name_length: shortest name allowed to act as a substring match
    - grace_days: days after month end a late posting still counts
    """

    amount_tolerance: Decimal = Decimal("1")
    min_name_length: int = 3
    grace_days: int = 7


DEFAULT_RULES = MatchRules()


def to_amount(value: Union[Decimal, int, float, str]) -> Decimal:
    """Coerce a numeric or numeric-string amount, raising for anything else"""
    if isinstance(value, bool):
        raise InvalidTransactionDataError(f"Amount must be numeric, got {value!r}")
    if isinstance(value, Decimal):
        return value
    try:
        # str() keeps float inputs at their printed precision (1500.5 -> 1500.5)
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise InvalidTransactionDataError(f"Amount must be numeric, got {value!r}") from e
    if not amount.is_finite():
        raise InvalidTransactionDataError(f"Amount must be finite, got {value!r}")
    return amount


def transaction_from_record(record: Mapping[str, Any]) -> Transaction:
    """
    Build a Transaction from a raw store record.

    Expects id, name, date (ISO-8601 string), amount and payment_method_id;
    payment_schedule_id is optional. Bad dates and amounts raise
    InvalidTransactionDataError.
    """
    name = record.get("name")
    if not isinstance(name, str) or not name.strip():
        raise InvalidTransactionDataError(f"Transaction name is required, got {name!r}")
    try:
        when = parse_timestamp(record.get("date"))
    except ValueError as e:
        raise InvalidTransactionDataError(f"Invalid transaction date: {record.get('date')!r}") from e

    return Transaction(
        id=str(record.get("id") or uuid.uuid4()),
        name=name.strip(),
        date=when,
        amount=to_amount(record.get("amount")),
        payment_method_id=record.get("payment_method_id"),
        payment_schedule_id=record.get("payment_schedule_id"),
    )


def names_match(obligation_name: str, transaction_name: str, min_length: int = 3) -> bool:
    """
    Case-insensitive containment in either direction.

    The contained name must be at least min_length characters so that short
    names like "A" or "Gas" fragments don't match everything.
    """
    obligation = obligation_name.strip().lower()
    candidate = transaction_name.strip().lower()
    if not obligation or not candidate:
        return False
    return (
        (obligation in candidate and len(obligation) >= min_length)
        or (candidate in obligation and len(candidate) >= min_length)
    )


def amounts_match(transaction_amount: Decimal, expected_amount: Decimal, tolerance: Decimal) -> bool:
    return abs(transaction_amount - expected_amount) <= tolerance


def dates_match(tx_date: Union[datetime, date], month: int, year: int, grace_days: int) -> bool:
    """
    A transaction counts toward (month, year) when it is dated:
    1. in that calendar month, or
    2. in December of the prior year for a January period, or
    3. within grace_days after the month's last day (late postings)
    """
    if isinstance(tx_date, datetime):
        tx_date = tx_date.date()

    if tx_date.month == month and tx_date.year == year:
        return True
    if month == 1 and tx_date.month == 12 and tx_date.year == year - 1:
        return True

    days_late = (tx_date - last_day_of_month(year, month)).days
    return 0 < days_late <= grace_days


def find_matching_transactions(
    obligation_name: str,
    expected_amount: Union[Decimal, int, float, str],
    month: str,
    year: Union[int, str],
    transactions: Iterable[Transaction],
    rules: MatchRules = DEFAULT_RULES,
) -> List[Transaction]:
    """All transactions plausibly paying this obligation for the given period"""
    expected = to_amount(expected_amount)
    target_month = month_number(month)
    target_year = normalize_year(year)
    if target_month is None or target_year is None:
        logging.warning("Invalid budget period", extra={"month": month, "year": str(year)})
        return []

    return [
        tx for tx in transactions
        if names_match(obligation_name, tx.name, rules.min_name_length)
        and amounts_match(tx.amount, expected, rules.amount_tolerance)
        and dates_match(tx.date, target_month, target_year, rules.grace_days)
    ]


def derive_status(amount_paid: Decimal, expected_amount: Decimal, tolerance: Decimal = Decimal("0")) -> str:
    """pending when nothing is paid, paid when the expected amount is covered, else partial"""
    if amount_paid <= 0:
        return "pending"
    if amount_paid >= expected_amount - tolerance:
        return "paid"
    return "partial"


def implied_due_date(month: str, year: Union[int, str], due_day: int = DEFAULT_DUE_DAY, timing: str | None = None) -> Optional[date]:
    """
    Due date of a budget period.

    Second-half ("2/2") obligations fall due on the last day of the month,
    everything else on due_day (clamped to the month's length).
    """
    target_month = month_number(month)
    target_year = normalize_year(year)
    if target_month is None or target_year is None:
        return None
    if timing == "2/2":
        return last_day_of_month(target_year, target_month)
    return clamped_date(target_year, target_month, due_day)


def classify_status(
    status: str,
    month: str,
    year: Union[int, str],
    today: date | None = None,
    due_day: int = DEFAULT_DUE_DAY,
    timing: str | None = None,
) -> str:
    """
    Time-dependent view of a stored status: unpaid or partially paid periods
    whose due date has passed read as overdue. Never persist the result.
    """
    if status not in ("pending", "partial"):
        return status
    due = implied_due_date(month, year, due_day, timing)
    if due is None:
        return status
    if today is None:
        today = date.today()
    return "overdue" if today > due else status


def compute_payment_status(
    obligation_name: str,
    expected_amount: Union[Decimal, int, float, str],
    month: str,
    year: Union[int, str],
    transactions: Iterable[Transaction],
    rules: MatchRules = DEFAULT_RULES,
    today: date | None = None,
    due_day: int = DEFAULT_DUE_DAY,
    timing: str | None = None,
) -> PaymentStatus:
    """
    Main entry point: match transactions for one obligation period and
    derive its paid/partial/pending/overdue status.
    """
    expected = to_amount(expected_amount)
    matches = find_matching_transactions(obligation_name, expected, month, year, transactions, rules)

    paid_amount = sum((tx.amount for tx in matches), Decimal("0"))
    status = derive_status(paid_amount, expected, rules.amount_tolerance)
    latest = max(matches, key=lambda tx: tx.date) if matches else None

    return PaymentStatus(
        matched=bool(matches),
        paid_amount=paid_amount,
        is_paid=status == "paid",
        status=classify_status(status, month, year, today, due_day, timing),
        date_paid=latest.date if latest else None,
        transaction_ids=[tx.id for tx in matches],
    )


def check_sync(stored_amount: Decimal, computed: PaymentStatus, tolerance: Decimal = Decimal("1")) -> dict:
    """
    Compare a stored amount_paid against the transaction-derived figure.

    Returns {"in_sync", "difference", "recommendation"}.
    """
    difference = abs(stored_amount - computed.paid_amount)
    in_sync = difference <= tolerance

    recommendation = ""
    if not in_sync:
        if stored_amount > computed.paid_amount:
            recommendation = "Stored amount exceeds matched transactions; payment may not be recorded as a transaction."
        else:
            recommendation = "Matched transactions exceed stored amount; schedule entry may need updating."

    return {"in_sync": in_sync, "difference": difference, "recommendation": recommendation}
