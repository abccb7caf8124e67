"""Schedule generation, obligation updates and biller payment status endpoints"""

import logging
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from budgetsync.api.dependencies import get_match_rules, get_today
from budgetsync.api.v1.schemas import (
    BillerStatusResponse,
    BillerUpdate,
    InstallmentUpdate,
    ScheduleGenerationResponse,
    ScheduleSyncResponse,
    entry_schema,
)
from budgetsync.config import settings
from budgetsync.domain.exceptions import ObligationNotFoundError
from budgetsync.domain.linked_accounts import (
    find_linked_account,
    schedule_display_label,
    schedule_expected_amount,
)
from budgetsync.domain.matching import MatchRules, compute_payment_status
from budgetsync.domain.models import PaymentScheduleEntry
from budgetsync.domain.schedules import (
    biller_needs_regeneration,
    generate_biller_schedule,
    generate_installment_schedule,
    installment_needs_regeneration,
)
from budgetsync.infrastructure.database.repositories import (
    AccountRepository,
    ObligationRepository,
    ScheduleRepository,
)
from budgetsync.infrastructure.database.session import get_db
from budgetsync.infrastructure.observability.metrics import (
    record_expected_amount_source,
    record_schedule_entries,
)
from budgetsync.utils.date_utils import month_number

router = APIRouter()


def _persist_schedule(db: Session, source_type: str, source_id: str, generated: list) -> ScheduleGenerationResponse:
    schedule_repo = ScheduleRepository(db)
    try:
        created = schedule_repo.upsert_entries(generated)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Schedule generation failed: {e}", extra={"source_type": source_type, "source_id": source_id})
        raise HTTPException(status_code=500, detail="Failed to store payment schedules")

    record_schedule_entries(source_type, len(created))
    logging.info(
        "Schedules generated",
        extra={
            "source_type": source_type,
            "source_id": source_id,
            "generated_count": len(generated),
            "created_count": len(created),
        },
    )
    return ScheduleGenerationResponse(
        source_type=source_type,
        source_id=source_id,
        created=[entry_schema(entry) for entry in created],
        total_entries=len(schedule_repo.get_entries(source_type, source_id)),
    )


@router.post("/billers/{biller_id}/schedules", response_model=ScheduleGenerationResponse)
def generate_biller_schedules(
    biller_id: str,
    horizon_months: int = Query(settings.default_horizon_months, ge=1, le=120),
    db: Session = Depends(get_db),
):
    """
    Create one schedule entry per active month, starting at activation.

    Safe to call repeatedly: existing (month, year) entries are left alone.
    """
    try:
        biller = ObligationRepository(db).get_biller(biller_id)
    except ObligationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return _persist_schedule(db, "biller", biller_id, generate_biller_schedule(biller, horizon_months))


@router.post("/installments/{installment_id}/schedules", response_model=ScheduleGenerationResponse)
def generate_installment_schedules(installment_id: str, db: Session = Depends(get_db)):
    """Create one schedule entry per month of the installment term"""
    try:
        installment = ObligationRepository(db).get_installment(installment_id)
    except ObligationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    generated = generate_installment_schedule(installment)
    if not generated:
        raise HTTPException(status_code=422, detail="Installment has no valid start date or term duration")

    return _persist_schedule(db, "installment", installment_id, generated)


@router.get("/billers/{biller_id}/status", response_model=BillerStatusResponse)
def get_biller_status(
    biller_id: str,
    month: str = Query(..., description="Full month name, e.g. January"),
    year: int = Query(..., ge=1900, le=9999),
    db: Session = Depends(get_db),
    rules: MatchRules = Depends(get_match_rules),
    today: date = Depends(get_today),
):
    """
    Reconcile one biller period against all transactions.

    Linked Loans billers take their expected amount from the linked credit
    account's cycle total; the status is re-derived on every read.
    """
    if month_number(month) is None:
        raise HTTPException(status_code=422, detail=f"Invalid month: {month}")

    try:
        biller = ObligationRepository(db).get_biller(biller_id)
    except ObligationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    account_repo = AccountRepository(db)
    accounts = account_repo.list_accounts()
    transactions = account_repo.get_transactions()

    entry = ScheduleRepository(db).get_entry_for_period("biller", biller_id, month, year)
    if entry is None:
        entry = PaymentScheduleEntry(
            source_type="biller",
            source_id=biller_id,
            month=month,
            year=year,
            expected_amount=biller.expected_amount,
        )

    expected = schedule_expected_amount(
        biller,
        entry,
        accounts,
        transactions,
        today=today,
        window=settings.cycle_window,
        inclusive_start=settings.cycle_inclusive_start,
    )
    record_expected_amount_source(expected.from_linked_account)

    status = compute_payment_status(
        biller.name,
        expected.amount,
        month,
        year,
        transactions,
        rules=rules,
        today=today,
        due_day=settings.default_due_day,
        timing=biller.timing,
    )

    linked_account = find_linked_account(biller, accounts) if expected.from_linked_account else None

    return BillerStatusResponse(
        biller_id=biller_id,
        month=month,
        year=year,
        label=schedule_display_label(entry, linked_account, today),
        expected_amount=expected.amount,
        from_linked_account=expected.from_linked_account,
        matched=status.matched,
        paid_amount=status.paid_amount,
        is_paid=status.is_paid,
        status=status.status,
        date_paid=status.date_paid,
        transaction_ids=status.transaction_ids,
    )


_REQUIRED_BILLER_FIELDS = {"name", "category", "expected_amount", "activation_month", "activation_year", "status"}


def _commit_or_500(db: Session, source_type: str, source_id: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Schedule sync failed: {e}", extra={"source_type": source_type, "source_id": source_id})
        raise HTTPException(status_code=500, detail="Failed to update payment schedules")


def _sync_schedule(db: Session, source_type: str, source_id: str, generated: list) -> ScheduleSyncResponse:
    sync = ScheduleRepository(db).sync_entries(source_type, source_id, generated)
    _commit_or_500(db, source_type, source_id)

    record_schedule_entries(source_type, len(sync.to_create))
    logging.info(
        "Schedules synced",
        extra={
            "source_type": source_type,
            "source_id": source_id,
            "created_count": len(sync.to_create),
            "updated_count": len(sync.to_update),
            "removed_count": len(sync.to_remove),
        },
    )
    return ScheduleSyncResponse(
        source_type=source_type,
        source_id=source_id,
        regenerated=True,
        created=[entry_schema(entry) for entry in sync.to_create],
        updated=[entry_schema(entry) for entry in sync.to_update],
        removed_ids=[entry.id for entry in sync.to_remove],
    )


@router.patch("/billers/{biller_id}", response_model=ScheduleSyncResponse)
def update_biller(
    biller_id: str,
    update: BillerUpdate,
    horizon_months: int = Query(settings.default_horizon_months, ge=1, le=120),
    db: Session = Depends(get_db),
):
    """
    Update a biller and, when its amount, active window or status changed,
    bring its schedule in line. Entries that already have payments are kept
    as they are.
    """
    changes = update.model_dump(exclude_unset=True)
    missing = sorted(key for key in _REQUIRED_BILLER_FIELDS & changes.keys() if changes[key] is None)
    if missing:
        raise HTTPException(status_code=422, detail=f"Fields cannot be cleared: {', '.join(missing)}")
    for key in ("activation_month", "deactivation_month"):
        if changes.get(key) is not None and month_number(changes[key]) is None:
            raise HTTPException(status_code=422, detail=f"Invalid month: {changes[key]}")

    try:
        before, after = ObligationRepository(db).update_biller(biller_id, changes)
    except ObligationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if not biller_needs_regeneration(before, after):
        _commit_or_500(db, "biller", biller_id)
        return ScheduleSyncResponse(source_type="biller", source_id=biller_id, regenerated=False)

    return _sync_schedule(db, "biller", biller_id, generate_biller_schedule(after, horizon_months))


@router.patch("/installments/{installment_id}", response_model=ScheduleSyncResponse)
def update_installment(installment_id: str, update: InstallmentUpdate, db: Session = Depends(get_db)):
    """Update an installment; a new amount, term or start month resyncs its schedule"""
    changes = update.model_dump(exclude_unset=True)
    if "term_duration" in changes and changes["term_duration"] is not None:
        changes["term_duration"] = str(changes["term_duration"])
    cleared = [key for key in ("name", "total_amount", "monthly_amount", "term_duration") if key in changes and changes[key] is None]
    if cleared:
        raise HTTPException(status_code=422, detail=f"Fields cannot be cleared: {', '.join(cleared)}")

    try:
        before, after = ObligationRepository(db).update_installment(installment_id, changes)
    except ObligationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if not installment_needs_regeneration(before, after):
        _commit_or_500(db, "installment", installment_id)
        return ScheduleSyncResponse(source_type="installment", source_id=installment_id, regenerated=False)

    generated = generate_installment_schedule(after)
    if not generated:
        db.rollback()
        raise HTTPException(status_code=422, detail="Installment has no valid start date or term duration")

    return _sync_schedule(db, "installment", installment_id, generated)
