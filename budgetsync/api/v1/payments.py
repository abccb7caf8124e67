"""Record and reverse schedule payments, and ingest raw transactions - balance and schedule change together"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from budgetsync.api.dependencies import get_match_rules, get_request_id
from budgetsync.api.v1.schemas import PaymentRequest, PaymentResponse, TransactionRecord, entry_schema
from budgetsync.domain.exceptions import (
    AccountNotFoundError,
    InvalidTransactionDataError,
    LedgerSyncError,
    ScheduleNotFoundError,
    TransactionNotFoundError,
)
from budgetsync.domain.matching import MatchRules, transaction_from_record
from budgetsync.infrastructure.database.repositories import PaymentRepository
from budgetsync.infrastructure.database.session import get_db
from budgetsync.infrastructure.observability.logging import log_payment_event
from budgetsync.infrastructure.observability.metrics import (
    ledger_sync_failure_counter,
    record_payment_action,
)

router = APIRouter()


def _commit(db: Session, action: str, schedule_id: str | None, account_id: str | None) -> None:
    """Commit both writes or surface the failure as a ledger sync error"""
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise LedgerSyncError(f"Commit failed while {action}: {e}", schedule_id=schedule_id, account_id=account_id) from e


@router.post("/schedules/{schedule_id}/payments", response_model=PaymentResponse)
def record_schedule_payment(
    schedule_id: str,
    request_body: PaymentRequest,
    request: Request,
    db: Session = Depends(get_db),
    rules: MatchRules = Depends(get_match_rules),
):
    """
    Pay a schedule entry.

    Flow:
    1. Create the payment transaction linked to the entry
    2. Add the amount to the entry and re-derive its status
    3. Apply the transaction to the paying account's balance
    4. Commit all three together
    """
    request_id = get_request_id(request)
    payment_repo = PaymentRepository(db)

    try:
        transaction, entry, account = payment_repo.record_payment(
            schedule_id=schedule_id,
            account_id=request_body.account_id,
            name=request_body.name,
            amount=request_body.amount,
            paid_at=request_body.date,
            receipt=request_body.receipt,
            tolerance=rules.amount_tolerance,
        )
        _commit(db, "recording payment", schedule_id, request_body.account_id)

    except (ScheduleNotFoundError, AccountNotFoundError) as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))

    except LedgerSyncError as e:
        ledger_sync_failure_counter.labels(action="record").inc()
        logging.error(f"Ledger sync error: {e}", extra={"request_id": request_id, "schedule_id": e.schedule_id, "account_id": e.account_id})
        raise HTTPException(status_code=409, detail="Payment not recorded: balance and schedule could not be updated together")

    record_payment_action("recorded")
    log_payment_event(request_id, "recorded", schedule_id, account.id, transaction.amount, entry.amount_paid, entry.status)

    return PaymentResponse(
        transaction_id=transaction.id,
        schedule=entry_schema(entry),
        account_id=account.id,
        account_balance=account.balance,
    )


@router.delete("/transactions/{transaction_id}", response_model=PaymentResponse)
def delete_transaction(
    transaction_id: str,
    request: Request,
    db: Session = Depends(get_db),
    rules: MatchRules = Depends(get_match_rules),
):
    """
    Delete a transaction and reverse its effects: the account balance is
    restored and any linked schedule entry loses the paid amount.
    """
    request_id = get_request_id(request)
    payment_repo = PaymentRepository(db)

    try:
        transaction, entry, account = payment_repo.delete_transaction(transaction_id, tolerance=rules.amount_tolerance)
        _commit(db, "reversing transaction", None, None)

    except TransactionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    except LedgerSyncError as e:
        ledger_sync_failure_counter.labels(action="reverse").inc()
        logging.error(f"Ledger sync error: {e}", extra={"request_id": request_id, "transaction_id": transaction_id})
        raise HTTPException(status_code=409, detail="Transaction not deleted: balance and schedule could not be reverted together")

    record_payment_action("reversed")
    log_payment_event(
        request_id,
        "reversed",
        entry.id if entry else None,
        account.id if account else None,
        transaction.amount,
        entry.amount_paid if entry else None,
        entry.status if entry else None,
    )

    return PaymentResponse(
        transaction_id=transaction.id,
        schedule=entry_schema(entry) if entry else None,
        account_id=account.id if account else None,
        account_balance=account.balance if account else None,
    )


@router.post("/transactions", response_model=PaymentResponse, status_code=201)
def ingest_transaction(record: TransactionRecord, request: Request, db: Session = Depends(get_db)):
    """
    Store a raw transaction and apply it to its account balance.

    Dates arrive as ISO-8601 strings; malformed dates or amounts are rejected
    with 422. Paying a schedule entry goes through the payments endpoint.
    """
    request_id = get_request_id(request)
    payment_repo = PaymentRepository(db)

    try:
        transaction = transaction_from_record(record.model_dump())
    except InvalidTransactionDataError as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        transaction, account = payment_repo.add_transaction(transaction)
        _commit(db, "adding transaction", None, account.id)

    except AccountNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    except LedgerSyncError as e:
        ledger_sync_failure_counter.labels(action="ingest").inc()
        logging.error(f"Ledger sync error: {e}", extra={"request_id": request_id, "transaction_id": transaction.id})
        raise HTTPException(status_code=409, detail="Transaction not stored: balance could not be updated")

    record_payment_action("ingested")
    log_payment_event(request_id, "ingested", None, account.id, transaction.amount, None, None)

    return PaymentResponse(
        transaction_id=transaction.id,
        account_id=account.id,
        account_balance=account.balance,
    )
