"""Prometheus metrics for payment reconciliation and schedule generation"""

from prometheus_client import Counter, Histogram

# Payment metrics
payment_counter = Counter(
    "budgetsync_payments_total",
    "Payments recorded against or reversed from schedule entries",
    ["action"],  # recorded | reversed | ingested
)

ledger_sync_failure_counter = Counter(
    "budgetsync_ledger_sync_failures_total",
    "Paired balance + schedule updates that failed and were rolled back",
    ["action"],
)

# Schedule metrics
schedule_entries_counter = Counter(
    "budgetsync_schedule_entries_created_total",
    "Payment schedule entries created",
    ["source_type"],  # biller | installment
)

# Linked account metrics
expected_amount_source_counter = Counter(
    "budgetsync_expected_amount_source_total",
    "Where biller expected amounts came from",
    ["source"],  # linked_account | flat
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_payment_action(action: str) -> None:
    payment_counter.labels(action=action).inc()


def record_schedule_entries(source_type: str, count: int) -> None:
    """Count newly created entries; regenerations that insert nothing are not counted"""
    if count > 0:
        schedule_entries_counter.labels(source_type=source_type).inc(count)


def record_expected_amount_source(from_linked_account: bool) -> None:
    source = "linked_account" if from_linked_account else "flat"
    expected_amount_source_counter.labels(source=source).inc()
