"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Union


@dataclass(frozen=True)
class FullDate:
    """Billing anchor given as a full date string, e.g. "2026-01-15" """

    value: date


@dataclass(frozen=True)
class DayOfMonth:
    """Billing anchor given as a bare day, e.g. "15" or "15th" """

    day: int


AnchorSpec = Union[FullDate, DayOfMonth]


@dataclass(frozen=True)
class MonthYear:
    """Budget period key"""

    month: str  # Full English month name, e.g. "January"
    year: int


@dataclass
class Account:
    """Debit or credit account owning transactions"""

    id: str
    type: str  # "Debit" or "Credit"
    balance: Decimal
    credit_limit: Optional[Decimal] = None
    billing_anchor: Optional[AnchorSpec] = None  # Parsed once from the stored billing date
    name: str = ""


@dataclass
class Transaction:
    """Raw transaction from the store"""

    id: str
    name: str
    date: datetime
    amount: Decimal
    payment_method_id: Optional[str] = None
    payment_schedule_id: Optional[str] = None


@dataclass(frozen=True)
class Cycle:
    """One statement period, start_date through end_date"""

    start_date: date
    end_date: date
    label: str


@dataclass
class CycleAggregate:
    """Transactions bucketed into a single cycle"""

    cycle: Cycle
    transactions: List[Transaction] = field(default_factory=list)
    total_amount: Decimal = Decimal("0")

    @property
    def transaction_count(self) -> int:
        return len(self.transactions)


@dataclass
class Biller:
    """Recurring monthly bill"""

    id: str
    name: str
    category: str
    expected_amount: Decimal
    activation: MonthYear
    deactivation: Optional[MonthYear] = None
    timing: Optional[str] = None  # "1/2" or "2/2"
    linked_account_id: Optional[str] = None
    status: str = "active"


@dataclass
class Installment:
    """Fixed-term purchase paid monthly"""

    id: str
    name: str
    total_amount: Decimal
    monthly_amount: Decimal
    term_duration: Union[int, str]  # 12 or "12 months"
    start_date: Optional[str]  # "YYYY-MM"
    account_id: Optional[str] = None
    timing: Optional[str] = None


@dataclass
class PaymentScheduleEntry:
    """One period's expected-vs-actual payment record for an obligation"""

    source_type: str  # "biller" or "installment"
    source_id: str
    month: str
    year: int
    expected_amount: Decimal
    amount_paid: Decimal = Decimal("0")
    status: str = "pending"
    date_paid: Optional[date] = None
    account_id: Optional[str] = None
    receipt: Optional[str] = None
    payment_number: Optional[int] = None
    id: Optional[str] = None

    @property
    def key(self) -> tuple:
        """Natural key: one entry per obligation per month"""
        return (self.source_type, self.source_id, self.month, self.year)


@dataclass
class PaymentStatus:
    """Result of reconciling an obligation period against transactions"""

    matched: bool
    paid_amount: Decimal
    is_paid: bool
    status: str  # pending | partial | paid | overdue
    date_paid: Optional[datetime] = None
    transaction_ids: List[str] = field(default_factory=list)


@dataclass
class ExpectedAmount:
    """Expected amount for a schedule entry and where it came from"""

    amount: Decimal
    from_linked_account: bool
