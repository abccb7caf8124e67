"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from budgetsync.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s",
        json_default=str,  # Decimal and date values in extra
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_payment_event(
    request_id: str,
    event: str,
    schedule_id: str | None,
    account_id: str | None,
    amount: Decimal,
    amount_paid: Decimal | None,
    status: str | None,
) -> None:
    """Log a recorded or reversed payment with its resulting schedule state"""
    logging.info(
        "Payment %s",
        event,
        extra={
            "request_id": request_id,
            "step": f"payment_{event}",
            "schedule_id": schedule_id,
            "account_id": account_id,
            "amount": str(amount),
            "amount_paid": str(amount_paid) if amount_paid is not None else None,
            "schedule_status": status,
        },
    )
