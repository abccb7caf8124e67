"""Monthly payment schedule generation for billers and installments"""

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional, Union

from budgetsync.domain.models import Biller, Installment, MonthYear, PaymentScheduleEntry
from budgetsync.utils.date_utils import add_months, month_name, month_number

DEFAULT_HORIZON_MONTHS = 12

_START_MONTH = re.compile(r"^\s*(\d{4})-(\d{1,2})")
_DIGITS = re.compile(r"\d+")


def parse_term_duration(value: Union[int, str, None]) -> Optional[int]:
    """
    Term length in months from 12, "12", or "12 months".

    Returns None for missing, non-integer or non-positive terms.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        term = value
    elif isinstance(value, float):
        if not value.is_integer():
            return None
        term = int(value)
    elif isinstance(value, str):
        if re.search(r"\d+\.\d+", value):
            return None
        match = _DIGITS.search(value)
        if not match:
            return None
        term = int(match.group(0))
    else:
        return None
    return term if term > 0 else None


def parse_start_month(value: Optional[str]) -> Optional[MonthYear]:
    """Parse a "YYYY-MM" (or longer ISO date) start date into a MonthYear"""
    if not value:
        return None
    match = _START_MONTH.match(value)
    if not match:
        return None
    month = int(match.group(2))
    if not 1 <= month <= 12:
        return None
    return MonthYear(month=month_name(month), year=int(match.group(1)))


def _month_index(period: MonthYear) -> Optional[int]:
    number = month_number(period.month)
    if number is None:
        return None
    return period.year * 12 + number - 1


def generate_biller_schedule(
    biller: Biller,
    horizon_months: int = DEFAULT_HORIZON_MONTHS,
) -> List[PaymentScheduleEntry]:
    """
    Generate one unpaid entry per month starting at the activation month.

    Stops after horizon_months entries or at the deactivation month
    (inclusive), whichever comes first. Inactive billers get no entries.
    """
    if biller.status != "active" or horizon_months <= 0:
        return []

    start = _month_index(biller.activation)
    if start is None:
        logging.warning(
            "Biller has invalid activation month",
            extra={"biller_id": biller.id, "activation_month": biller.activation.month},
        )
        return []

    last = start + horizon_months - 1
    if biller.deactivation is not None:
        end = _month_index(biller.deactivation)
        if end is not None:
            last = min(last, end)

    entries = []
    for index in range(start, last + 1):
        year, month = divmod(index, 12)
        entries.append(
            PaymentScheduleEntry(
                source_type="biller",
                source_id=biller.id,
                month=month_name(month + 1),
                year=year,
                expected_amount=biller.expected_amount,
            )
        )
    return entries


def generate_installment_schedule(installment: Installment) -> List[PaymentScheduleEntry]:
    """
    Generate exactly term_duration monthly entries from the start month.

    Each entry expects monthly_amount and carries its 1-based payment number.
    """
    start = parse_start_month(installment.start_date)
    if start is None:
        logging.warning(
            "Installment has no valid start date, cannot generate schedules",
            extra={"installment_id": installment.id, "start_date": installment.start_date},
        )
        return []

    term = parse_term_duration(installment.term_duration)
    if term is None:
        logging.warning(
            "Invalid term duration",
            extra={"installment_id": installment.id, "term_duration": str(installment.term_duration)},
        )
        return []

    start_month = month_number(start.month)
    entries = []
    for i in range(term):
        year, month = add_months(start.year, start_month, i)
        entries.append(
            PaymentScheduleEntry(
                source_type="installment",
                source_id=installment.id,
                month=month_name(month),
                year=year,
                expected_amount=installment.monthly_amount,
                account_id=installment.account_id,
                payment_number=i + 1,
            )
        )
    return entries


def merge_schedule(
    existing: Iterable[PaymentScheduleEntry],
    generated: Iterable[PaymentScheduleEntry],
) -> List[PaymentScheduleEntry]:
    """Return only generated entries whose (source, month, year) is not already stored"""
    seen = {entry.key for entry in existing}
    new_entries = []
    for entry in generated:
        if entry.key in seen:
            continue
        seen.add(entry.key)
        new_entries.append(entry)
    return new_entries


def biller_needs_regeneration(old: Biller, new: Biller) -> bool:
    """Schedules are rebuilt only when amount, active window or status changes"""
    return (
        old.expected_amount != new.expected_amount
        or old.activation != new.activation
        or old.deactivation != new.deactivation
        or old.status != new.status
    )


def installment_needs_regeneration(old: Installment, new: Installment) -> bool:
    return (
        old.monthly_amount != new.monthly_amount
        or parse_term_duration(old.term_duration) != parse_term_duration(new.term_duration)
        or old.start_date != new.start_date
    )


@dataclass
class ScheduleSync:
    """Changes that bring stored entries in line with a regenerated schedule"""

    to_create: List[PaymentScheduleEntry] = field(default_factory=list)
    to_update: List[PaymentScheduleEntry] = field(default_factory=list)
    to_remove: List[PaymentScheduleEntry] = field(default_factory=list)


def sync_schedule(
    existing: Iterable[PaymentScheduleEntry],
    generated: Iterable[PaymentScheduleEntry],
) -> ScheduleSync:
    """
    Plan the regeneration of a source's schedule.

    Entries with any amount paid are left exactly as they are. Unpaid
    entries take the regenerated expected amount and payment number, or are
    removed when their period is no longer scheduled. Missing periods are
    created.
    """
    existing = list(existing)
    generated = list(generated)
    wanted = {entry.key: entry for entry in generated}

    sync = ScheduleSync(to_create=merge_schedule(existing, generated))
    for entry in existing:
        if entry.amount_paid > 0:
            continue
        target = wanted.get(entry.key)
        if target is None:
            sync.to_remove.append(entry)
        elif (target.expected_amount, target.payment_number) != (entry.expected_amount, entry.payment_number):
            sync.to_update.append(
                replace(entry, expected_amount=target.expected_amount, payment_number=target.payment_number)
            )
    return sync
