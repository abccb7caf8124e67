"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field, field_validator
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Union


class CycleSchema(BaseModel):
    """One billing cycle"""

    start_date: date
    end_date: date
    label: str


class CycleAggregateSchema(CycleSchema):
    """Billing cycle with its transaction total"""

    total_amount: Decimal
    transaction_count: int
    transaction_ids: List[str]


class CyclesResponse(BaseModel):
    """Response for GET /v1/accounts/{account_id}/cycles"""

    account_id: str
    cycles: List[CycleAggregateSchema]


class ScheduleEntrySchema(BaseModel):
    """Single monthly payment schedule entry"""

    id: Optional[str] = None
    source_type: str
    source_id: str
    month: str
    year: int
    payment_number: Optional[int] = None
    expected_amount: Decimal
    amount_paid: Decimal
    status: str
    date_paid: Optional[date] = None
    account_id: Optional[str] = None


class ScheduleGenerationResponse(BaseModel):
    """Response for schedule generation endpoints"""

    source_type: str
    source_id: str
    created: List[ScheduleEntrySchema]
    total_entries: int


class BillerUpdate(BaseModel):
    """Request body for PATCH /v1/billers/{biller_id}; omitted fields are unchanged"""

    name: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = None
    expected_amount: Optional[Decimal] = Field(None, gt=0)
    timing: Optional[str] = None
    activation_month: Optional[str] = None
    activation_year: Optional[int] = Field(None, ge=1900, le=9999)
    deactivation_month: Optional[str] = None
    deactivation_year: Optional[int] = Field(None, ge=1900, le=9999)
    linked_account_id: Optional[str] = None
    status: Optional[str] = Field(None, pattern="^(active|inactive)$")


class InstallmentUpdate(BaseModel):
    """Request body for PATCH /v1/installments/{installment_id}"""

    name: Optional[str] = Field(None, min_length=1)
    total_amount: Optional[Decimal] = Field(None, gt=0)
    monthly_amount: Optional[Decimal] = Field(None, gt=0)
    term_duration: Optional[Union[int, str]] = None
    start_date: Optional[str] = None
    account_id: Optional[str] = None
    timing: Optional[str] = None


class ScheduleSyncResponse(BaseModel):
    """Result of updating an obligation; schedules are synced when key fields change"""

    source_type: str
    source_id: str
    regenerated: bool
    created: List[ScheduleEntrySchema] = []
    updated: List[ScheduleEntrySchema] = []
    removed_ids: List[str] = []


class BillerStatusResponse(BaseModel):
    """Response for GET /v1/billers/{biller_id}/status"""

    biller_id: str
    month: str
    year: int
    label: str
    expected_amount: Decimal
    from_linked_account: bool
    matched: bool
    paid_amount: Decimal
    is_paid: bool
    status: str
    date_paid: Optional[datetime] = None
    transaction_ids: List[str]


class PaymentRequest(BaseModel):
    """Request body for POST /v1/schedules/{schedule_id}/payments"""

    account_id: str = Field(..., min_length=1, description="Account the payment is drawn from")
    name: str = Field(..., min_length=1, description="Transaction name")
    amount: Decimal = Field(..., gt=0, description="Payment amount")
    date: datetime = Field(..., description="When the payment was made (ISO-8601)")
    receipt: Optional[str] = None

    @field_validator("date")
    @classmethod
    def drop_timezone(cls, value: datetime) -> datetime:
        # Transactions are stored as naive local timestamps
        return value.replace(tzinfo=None)


class TransactionRecord(BaseModel):
    """Request body for POST /v1/transactions, as exported by the hosted store"""

    id: Optional[str] = None
    name: str
    date: str = Field(..., description="ISO-8601 timestamp or date")
    amount: Union[str, int, float]
    payment_method_id: str = Field(..., min_length=1)


class PaymentResponse(BaseModel):
    """Result of recording or reversing a payment"""

    transaction_id: str
    schedule: Optional[ScheduleEntrySchema] = None
    account_id: Optional[str] = None
    account_balance: Optional[Decimal] = None


def entry_schema(entry) -> ScheduleEntrySchema:
    """Serialize a domain PaymentScheduleEntry"""
    return ScheduleEntrySchema(
        id=entry.id,
        source_type=entry.source_type,
        source_id=entry.source_id,
        month=entry.month,
        year=entry.year,
        payment_number=entry.payment_number,
        expected_amount=entry.expected_amount,
        amount_paid=entry.amount_paid,
        status=entry.status,
        date_paid=entry.date_paid,
        account_id=entry.account_id,
    )
