"""GET /v1/accounts/{account_id}/cycles - Billing cycle statements for credit accounts"""

import logging
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from budgetsync.api.dependencies import get_today
from budgetsync.api.v1.schemas import CycleAggregateSchema, CycleSchema, CyclesResponse
from budgetsync.config import settings
from budgetsync.domain.cycles import aggregate_account_cycles, resolve_cycle
from budgetsync.domain.exceptions import AccountNotFoundError
from budgetsync.infrastructure.database.repositories import AccountRepository, ObligationRepository
from budgetsync.infrastructure.database.session import get_db

router = APIRouter()


@router.get("/accounts/{account_id}/cycles", response_model=CyclesResponse)
def get_account_cycles(
    account_id: str,
    count: int = Query(6, ge=1, le=120, description="Number of cycles"),
    direction: str = Query("past", pattern="^(past|future|both)$"),
    exclude_installments: bool = Query(False, description="Leave installment charges out of totals"),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    """
    Statement view: transactions grouped into billing cycles.

    Returns an empty list for debit accounts and credit accounts without a
    usable billing date.
    """
    account_repo = AccountRepository(db)
    try:
        account = account_repo.get_account(account_id)
    except AccountNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    exclude_names = []
    if exclude_installments:
        exclude_names = [inst.name for inst in ObligationRepository(db).list_installments(account_id)]

    aggregates = aggregate_account_cycles(
        account,
        account_repo.get_transactions(account_id),
        count=count,
        direction=direction,
        exclude_names=exclude_names,
        today=today,
        inclusive_start=settings.cycle_inclusive_start,
    )
    if not aggregates:
        logging.info("No billing cycles for account", extra={"account_id": account_id, "account_type": account.type})

    return CyclesResponse(
        account_id=account_id,
        cycles=[
            CycleAggregateSchema(
                start_date=agg.cycle.start_date,
                end_date=agg.cycle.end_date,
                label=agg.cycle.label,
                total_amount=agg.total_amount,
                transaction_count=agg.transaction_count,
                transaction_ids=[tx.id for tx in agg.transactions],
            )
            for agg in aggregates
        ],
    )


@router.get("/accounts/{account_id}/cycles/resolve", response_model=CycleSchema)
def resolve_account_cycle(
    account_id: str,
    month: str = Query(..., description="Full month name, e.g. January"),
    year: int = Query(..., ge=1900, le=9999),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    """Cycle whose end date falls in the requested month"""
    try:
        account = AccountRepository(db).get_account(account_id)
    except AccountNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    cycle = resolve_cycle(month, year, account.billing_anchor, today, settings.cycle_window)
    if cycle is None:
        raise HTTPException(status_code=404, detail=f"No billing cycle closes in {month} {year}")

    return CycleSchema(start_date=cycle.start_date, end_date=cycle.end_date, label=cycle.label)
