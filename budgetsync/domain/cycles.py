"""Billing cycle generation, aggregation and month/year resolution for credit accounts"""

import logging
import re
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Union

from budgetsync.domain.models import (
    Account,
    AnchorSpec,
    Cycle,
    CycleAggregate,
    DayOfMonth,
    FullDate,
    Transaction,
)
from budgetsync.utils.date_utils import (
    MONTH_ABBREVIATIONS,
    add_months,
    clamped_date,
    month_number,
    normalize_year,
)

CYCLE_WINDOW = 24
DIRECTIONS = ("past", "future", "both")

_FULL_DATE = re.compile(r"(\d{4})-(\d{1,2})-(\d{1,2})")
_DIGITS = re.compile(r"\d+")


def parse_anchor(billing_date: Union[str, int, None]) -> Optional[AnchorSpec]:
    """
    Parse a stored billing date into an anchor.

    "2026-01-15" or "2026-01-15T00:00:00Z" -> FullDate
    "15", "15th", 15 -> DayOfMonth
    Anything else -> None
    """
    if billing_date is None or isinstance(billing_date, bool):
        return None
    if isinstance(billing_date, int):
        return DayOfMonth(billing_date)

    full = _FULL_DATE.search(billing_date)
    if full:
        try:
            return FullDate(date(int(full.group(1)), int(full.group(2)), int(full.group(3))))
        except ValueError:
            logging.warning("Unparseable billing date", extra={"billing_date": billing_date})
            return None

    digits = _DIGITS.search(billing_date)
    if not digits:
        logging.warning("Unparseable billing date", extra={"billing_date": billing_date})
        return None
    return DayOfMonth(int(digits.group(0)))


def anchor_day(anchor: Union[AnchorSpec, int, None]) -> Optional[int]:
    """Day-of-month for an anchor, None unless it is within 1-31"""
    if isinstance(anchor, FullDate):
        day = anchor.value.day
    elif isinstance(anchor, DayOfMonth):
        day = anchor.day
    elif isinstance(anchor, int) and not isinstance(anchor, bool):
        day = anchor
    else:
        return None
    return day if 1 <= day <= 31 else None


def format_cycle_label(start: date, end: date) -> str:
    """Render a cycle as "Dec 15 – Jan 14, 2026" (year on the end date only)"""
    return (
        f"{MONTH_ABBREVIATIONS[start.month - 1]} {start.day} – "
        f"{MONTH_ABBREVIATIONS[end.month - 1]} {end.day}, {end.year}"
    )


def cycle_starting_in(year: int, month: int, day: int) -> Cycle:
    """The cycle opening in the given month at the (clamped) anchor day"""
    start = clamped_date(year, month, day)
    next_year, next_month = add_months(year, month, 1)
    end = clamped_date(next_year, next_month, day) - timedelta(days=1)
    return Cycle(start_date=start, end_date=end, label=format_cycle_label(start, end))


def generate_cycles(
    anchor: Union[AnchorSpec, int, None],
    count: int = 6,
    direction: str = "past",
    today: date | None = None,
) -> List[Cycle]:
    """
    Generate contiguous monthly billing cycles around the current month.

    Offset 0 is the cycle that opens in the current month.
    - past:   count-1 cycles before it, ending with the current one
    - future: the current cycle and count-1 after it
    - both:   ceil(count/2) cycles up to and including the current one,
              the remainder after it

    Each cycle starts on the anchor day clamped to its month and ends the day
    before the next cycle starts, so cycle[i].end_date + 1 day ==
    cycle[i+1].start_date.

    Returns [] for an invalid anchor so callers can fall back to flat amounts.
    """
    if direction not in DIRECTIONS:
        raise ValueError(f"direction must be one of {DIRECTIONS}, got {direction!r}")

    day = anchor_day(anchor)
    if day is None or count <= 0:
        return []

    if today is None:
        today = date.today()

    if direction == "past":
        offsets = range(-(count - 1), 1)
    elif direction == "future":
        offsets = range(0, count)
    else:
        past_count = (count + 1) // 2
        offsets = range(-(past_count - 1), count - past_count + 1)

    cycles = []
    for offset in offsets:
        year, month = add_months(today.year, today.month, offset)
        cycles.append(cycle_starting_in(year, month, day))
    return cycles


def generate_cycles_for_years(
    anchor: Union[AnchorSpec, int, None],
    start_year: int,
    end_year: int,
) -> List[Cycle]:
    """Bounded mode: one cycle per month opening within start_year..end_year (inclusive)"""
    day = anchor_day(anchor)
    if day is None or end_year < start_year:
        return []
    return [
        cycle_starting_in(year, month, day)
        for year in range(start_year, end_year + 1)
        for month in range(1, 13)
    ]


def _calendar_date(value: Union[datetime, date]) -> date:
    return value.date() if isinstance(value, datetime) else value


def transaction_in_cycle(transaction: Transaction, cycle: Cycle, inclusive_start: bool = False) -> bool:
    """
    Cycle membership on the transaction's calendar date.

    Default is (start, end]: strictly after the start date, on or before the
    end date. inclusive_start=True uses [start, end].
    """
    tx_date = _calendar_date(transaction.date)
    if inclusive_start:
        return cycle.start_date <= tx_date <= cycle.end_date
    return cycle.start_date < tx_date <= cycle.end_date


def aggregate_by_cycle(
    cycles: Sequence[Cycle],
    transactions: Iterable[Transaction],
    inclusive_start: bool = False,
) -> List[CycleAggregate]:
    """Bucket transactions into cycles; totals are plain sums of signed amounts"""
    transactions = list(transactions)
    aggregates = []
    for cycle in cycles:
        members = [tx for tx in transactions if transaction_in_cycle(tx, cycle, inclusive_start)]
        total = sum((tx.amount for tx in members), Decimal("0"))
        aggregates.append(CycleAggregate(cycle=cycle, transactions=members, total_amount=total))
    return aggregates


def aggregate_account_cycles(
    account: Account,
    transactions: Iterable[Transaction],
    count: int = 6,
    direction: str = "past",
    exclude_names: Iterable[str] = (),
    today: date | None = None,
    inclusive_start: bool = False,
) -> List[CycleAggregate]:
    """
    Statement view for one credit account.

    Only Credit accounts with a billing anchor produce cycles. Transactions
    whose name matches an excluded name (case-insensitive, e.g. installment
    charges) are left out so totals reflect regular purchases.
    """
    if account.type != "Credit" or account.billing_anchor is None:
        return []

    excluded = {name.lower() for name in exclude_names}
    account_transactions = [
        tx for tx in transactions
        if tx.payment_method_id == account.id and tx.name.lower() not in excluded
    ]
    cycles = generate_cycles(account.billing_anchor, count, direction, today)
    return aggregate_by_cycle(cycles, account_transactions, inclusive_start)


def resolve_cycle(
    month: str,
    year: Union[int, str],
    anchor: Union[AnchorSpec, int, None],
    today: date | None = None,
    window: int = CYCLE_WINDOW,
) -> Optional[Cycle]:
    """
    Map a budget period to the cycle that closes in it.

    A statement belongs to the month its end date falls in: with anchor day
    13, the Dec 13 - Jan 12 cycle is the "January" cycle. Searches a window
    of cycles spanning past and future and returns the first match in
    chronological order, or None.
    """
    target_month = month_number(month)
    target_year = normalize_year(year)
    if target_month is None or target_year is None:
        return None

    for cycle in generate_cycles(anchor, max(window, CYCLE_WINDOW), "both", today):
        if cycle.end_date.month == target_month and cycle.end_date.year == target_year:
            return cycle
    return None
