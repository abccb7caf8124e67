"""Integration tests for API endpoints"""

import logging
import pytest
from decimal import Decimal
from unittest.mock import patch
from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from budgetsync.infrastructure.database.models import AccountRow, InstallmentRow, PaymentScheduleRow


def _generate_electric_schedule(client: TestClient) -> dict:
    response = client.post("/v1/billers/electric/schedules", params={"horizon_months": 12})
    assert response.status_code == 200
    return {(e["month"], e["year"]): e for e in response.json()["created"]}


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "budgetsync_payments_total" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


# Cycles


def test_account_cycles(client: TestClient, seeded_db: Session):
    """Today is 2026-02-20: the last two cycles open Jan 15 and Feb 15"""
    response = client.get("/v1/accounts/cc/cycles", params={"count": 2})

    assert response.status_code == 200
    cycles = response.json()["cycles"]
    assert [c["label"] for c in cycles] == ["Jan 15 – Feb 14, 2026", "Feb 15 – Mar 14, 2026"]
    assert cycles[0]["transaction_ids"] == ["t2", "t4"]
    assert Decimal(cycles[0]["total_amount"]) == Decimal("2800.00")
    assert cycles[1]["transaction_count"] == 0
    assert Decimal(cycles[1]["total_amount"]) == Decimal("0")


def test_account_cycles_exclude_installments(client: TestClient, seeded_db: Session):
    response = client.get("/v1/accounts/cc/cycles", params={"count": 2, "exclude_installments": True})

    cycles = response.json()["cycles"]
    assert cycles[0]["transaction_ids"] == ["t2"]
    assert Decimal(cycles[0]["total_amount"]) == Decimal("300.00")


def test_account_cycles_debit_account_is_empty(client: TestClient, seeded_db: Session):
    response = client.get("/v1/accounts/debit/cycles")

    assert response.status_code == 200
    assert response.json()["cycles"] == []


def test_account_cycles_invalid_direction(client: TestClient, seeded_db: Session):
    response = client.get("/v1/accounts/cc/cycles", params={"direction": "sideways"})
    assert response.status_code == 422


def test_account_cycles_missing_account(client: TestClient, seeded_db: Session):
    response = client.get("/v1/accounts/nope/cycles")
    assert response.status_code == 404


def test_resolve_cycle(client: TestClient, seeded_db: Session):
    """January 2026 closes with the Dec 15 - Jan 14 cycle"""
    response = client.get("/v1/accounts/cc/cycles/resolve", params={"month": "January", "year": 2026})

    assert response.status_code == 200
    data = response.json()
    assert data["start_date"] == "2025-12-15"
    assert data["end_date"] == "2026-01-14"
    assert data["label"] == "Dec 15 – Jan 14, 2026"


@pytest.mark.parametrize(
    "account_id,month,year",
    [
        ("cc", "January", 2040),  # outside the window
        ("cc", "Janvier", 2026),
        ("debit", "January", 2026),  # no billing date
    ],
)
def test_resolve_cycle_not_found(client: TestClient, seeded_db: Session, account_id: str, month: str, year: int):
    response = client.get(f"/v1/accounts/{account_id}/cycles/resolve", params={"month": month, "year": year})
    assert response.status_code == 404


# Schedules


def test_generate_biller_schedules_is_idempotent(client: TestClient, seeded_db: Session):
    first = client.post("/v1/billers/electric/schedules", params={"horizon_months": 12})
    second = client.post("/v1/billers/electric/schedules", params={"horizon_months": 12})

    assert first.status_code == 200
    created = first.json()["created"]
    assert len(created) == 12
    assert created[0]["month"] == "January"
    assert created[0]["status"] == "pending"
    assert Decimal(created[0]["expected_amount"]) == Decimal("1500.00")

    assert second.status_code == 200
    assert second.json()["created"] == []
    assert second.json()["total_entries"] == 12


def test_generate_biller_schedules_extends_horizon(client: TestClient, seeded_db: Session):
    client.post("/v1/billers/electric/schedules", params={"horizon_months": 3})
    response = client.post("/v1/billers/electric/schedules", params={"horizon_months": 5})

    data = response.json()
    assert [e["month"] for e in data["created"]] == ["April", "May"]
    assert data["total_entries"] == 5


def test_generate_installment_schedules(client: TestClient, seeded_db: Session):
    response = client.post("/v1/installments/laptop/schedules")

    assert response.status_code == 200
    created = response.json()["created"]
    assert len(created) == 12
    assert [e["payment_number"] for e in created] == list(range(1, 13))
    assert created[-1]["month"] == "December"
    assert all(e["account_id"] == "cc" for e in created)


def test_generate_schedules_missing_obligation(client: TestClient, seeded_db: Session):
    assert client.post("/v1/billers/nope/schedules").status_code == 404
    assert client.post("/v1/installments/nope/schedules").status_code == 404


# Biller status


def test_biller_status_paid(client: TestClient, seeded_db: Session):
    """The 1500.50 'Electric Bill Payment' settles the 1500.00 January bill"""
    response = client.get("/v1/billers/electric/status", params={"month": "January", "year": 2026})

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "paid"
    assert data["is_paid"] is True
    assert data["transaction_ids"] == ["t3"]
    assert Decimal(data["paid_amount"]) == Decimal("1500.50")
    assert data["from_linked_account"] is False
    assert data["label"] == "January 2026"


def test_biller_status_overdue(client: TestClient, seeded_db: Session):
    """February's bill was due on the 15th and nothing matches"""
    response = client.get("/v1/billers/electric/status", params={"month": "February", "year": 2026})

    data = response.json()
    assert data["status"] == "overdue"
    assert data["matched"] is False


def test_linked_biller_status_uses_cycle_total(client: TestClient, seeded_db: Session):
    """Visa Card January amount is the Dec 15 - Jan 14 total, not the flat 1000"""
    response = client.get("/v1/billers/card-loan/status", params={"month": "January", "year": 2026})

    assert response.status_code == 200
    data = response.json()
    assert data["from_linked_account"] is True
    assert Decimal(data["expected_amount"]) == Decimal("200.00")
    assert data["label"] == "Dec 15 – Jan 14, 2026"


def test_biller_status_invalid_month(client: TestClient, seeded_db: Session):
    response = client.get("/v1/billers/electric/status", params={"month": "Smarch", "year": 2026})
    assert response.status_code == 422


def test_biller_status_missing_biller(client: TestClient, seeded_db: Session):
    response = client.get("/v1/billers/nope/status", params={"month": "January", "year": 2026})
    assert response.status_code == 404


# Payments


def test_record_and_reverse_payment(client: TestClient, seeded_db: Session):
    """Deleting the payment restores the balance and the schedule entry"""
    schedule = _generate_electric_schedule(client)
    march = schedule[("March", 2026)]

    paid = client.post(
        f"/v1/schedules/{march['id']}/payments",
        json={"account_id": "debit", "name": "Electric Bill", "amount": "1500.00", "date": "2026-03-10T09:00:00Z"},
    )

    assert paid.status_code == 200
    data = paid.json()
    assert data["schedule"]["status"] == "paid"
    assert Decimal(data["schedule"]["amount_paid"]) == Decimal("1500.00")
    assert data["schedule"]["date_paid"] == "2026-03-10"
    assert data["schedule"]["account_id"] == "debit"
    assert Decimal(data["account_balance"]) == Decimal("8500.00")

    reversed_ = client.delete(f"/v1/transactions/{data['transaction_id']}")

    assert reversed_.status_code == 200
    undone = reversed_.json()
    assert undone["schedule"]["status"] == "pending"
    assert Decimal(undone["schedule"]["amount_paid"]) == Decimal("0")
    assert undone["schedule"]["date_paid"] is None
    assert undone["schedule"]["account_id"] is None
    assert Decimal(undone["account_balance"]) == Decimal("10000.00")


def test_partial_payment_on_credit_account(client: TestClient, seeded_db: Session):
    schedule = _generate_electric_schedule(client)
    april = schedule[("April", 2026)]

    response = client.post(
        f"/v1/schedules/{april['id']}/payments",
        json={"account_id": "cc", "name": "Electric Bill", "amount": "500.00", "date": "2026-04-02T12:00:00"},
    )

    data = response.json()
    assert data["schedule"]["status"] == "partial"
    assert Decimal(data["account_balance"]) == Decimal("1000.00")


def test_delete_plain_transaction(client: TestClient, seeded_db: Session):
    """Transactions without a schedule only restore the balance"""
    response = client.delete("/v1/transactions/t1")

    assert response.status_code == 200
    data = response.json()
    assert data["schedule"] is None
    assert Decimal(data["account_balance"]) == Decimal("300.00")
    assert client.delete("/v1/transactions/t1").status_code == 404


def test_payment_not_found(client: TestClient, seeded_db: Session):
    body = {"account_id": "debit", "name": "Electric Bill", "amount": "10", "date": "2026-03-10T09:00:00"}
    assert client.post("/v1/schedules/nope/payments", json=body).status_code == 404

    schedule = _generate_electric_schedule(client)
    march = schedule[("March", 2026)]
    body["account_id"] = "nope"
    assert client.post(f"/v1/schedules/{march['id']}/payments", json=body).status_code == 404


def test_payment_rejects_non_positive_amount(client: TestClient, seeded_db: Session):
    schedule = _generate_electric_schedule(client)
    march = schedule[("March", 2026)]

    response = client.post(
        f"/v1/schedules/{march['id']}/payments",
        json={"account_id": "debit", "name": "Electric Bill", "amount": "0", "date": "2026-03-10T09:00:00"},
    )
    assert response.status_code == 422


def test_payment_write_failure_rolls_back(client: TestClient, seeded_db: Session):
    """A failed write leaves neither the balance nor the schedule changed"""
    schedule = _generate_electric_schedule(client)
    march = schedule[("March", 2026)]

    with patch.object(seeded_db, "flush", side_effect=SQLAlchemyError("disk full")):
        response = client.post(
            f"/v1/schedules/{march['id']}/payments",
            json={"account_id": "debit", "name": "Electric Bill", "amount": "1500.00", "date": "2026-03-10T09:00:00"},
        )

    assert response.status_code == 409
    assert seeded_db.get(AccountRow, "debit").balance == Decimal("10000.00")
    row = seeded_db.get(PaymentScheduleRow, march["id"])
    assert row.amount_paid == Decimal("0")
    assert row.status == "pending"


def test_schedule_generation_logs_counts(client: TestClient, seeded_db: Session, caplog: pytest.LogCaptureFixture):
    """Both generation endpoints answer 200 and log how many entries they created"""
    with caplog.at_level(logging.INFO):
        biller = client.post("/v1/billers/electric/schedules", params={"horizon_months": 2})
        installment = client.post("/v1/installments/laptop/schedules")

    assert biller.status_code == 200
    assert installment.status_code == 200
    records = [r for r in caplog.records if r.getMessage() == "Schedules generated"]
    assert [(r.source_type, r.created_count) for r in records] == [("biller", 2), ("installment", 12)]


# Transaction ingestion


def test_ingest_transaction(client: TestClient, seeded_db: Session):
    """ISO-8601 dates with a Z suffix are accepted; the balance follows"""
    response = client.post(
        "/v1/transactions",
        json={"name": "Pharmacy", "date": "2026-02-03T11:00:00Z", "amount": "45.25", "payment_method_id": "cc"},
    )

    assert response.status_code == 201
    assert Decimal(response.json()["account_balance"]) == Decimal("545.25")

    cycles = client.get("/v1/accounts/cc/cycles", params={"count": 2}).json()["cycles"]
    assert response.json()["transaction_id"] in cycles[0]["transaction_ids"]


def test_ingest_transaction_date_only(client: TestClient, seeded_db: Session):
    response = client.post(
        "/v1/transactions",
        json={"id": "t9", "name": "Rent", "date": "2026-02-01", "amount": 800, "payment_method_id": "debit"},
    )

    assert response.status_code == 201
    assert response.json()["transaction_id"] == "t9"
    assert Decimal(response.json()["account_balance"]) == Decimal("9200.00")


@pytest.mark.parametrize(
    "date_value,amount",
    [("not a date", "10.00"), ("2026-02-30", "10.00"), ("2026-02-03", "ten")],
)
def test_ingest_transaction_rejects_malformed(client: TestClient, seeded_db: Session, date_value: str, amount: str):
    response = client.post(
        "/v1/transactions",
        json={"name": "Pharmacy", "date": date_value, "amount": amount, "payment_method_id": "cc"},
    )

    assert response.status_code == 422
    assert seeded_db.get(AccountRow, "cc").balance == Decimal("500.00")


def test_ingest_transaction_unknown_account(client: TestClient, seeded_db: Session):
    response = client.post(
        "/v1/transactions",
        json={"name": "Pharmacy", "date": "2026-02-03", "amount": "1", "payment_method_id": "nope"},
    )
    assert response.status_code == 404


# Obligation updates


def test_update_biller_amount_resyncs_unpaid_entries(client: TestClient, seeded_db: Session):
    schedule = _generate_electric_schedule(client)
    january = schedule[("January", 2026)]
    client.post(
        f"/v1/schedules/{january['id']}/payments",
        json={"account_id": "debit", "name": "Electric Bill", "amount": "1500.00", "date": "2026-01-20T10:00:00"},
    )

    response = client.patch("/v1/billers/electric", json={"expected_amount": "1650.00"})

    assert response.status_code == 200
    data = response.json()
    assert data["regenerated"] is True
    assert len(data["updated"]) == 11
    assert january["id"] not in [e["id"] for e in data["updated"]]
    assert all(Decimal(e["expected_amount"]) == Decimal("1650.00") for e in data["updated"])
    assert seeded_db.get(PaymentScheduleRow, january["id"]).expected_amount == Decimal("1500.00")


def test_update_biller_deactivation_removes_unpaid_entries(client: TestClient, seeded_db: Session):
    _generate_electric_schedule(client)

    response = client.patch("/v1/billers/electric", json={"deactivation_month": "March", "deactivation_year": 2026})

    data = response.json()
    assert len(data["removed_ids"]) == 9
    assert client.post("/v1/billers/electric/schedules").json()["total_entries"] == 3


def test_update_biller_name_only_keeps_schedule(client: TestClient, seeded_db: Session):
    _generate_electric_schedule(client)

    response = client.patch("/v1/billers/electric", json={"name": "Power Co"})

    assert response.status_code == 200
    assert response.json()["regenerated"] is False


def test_update_biller_validation(client: TestClient, seeded_db: Session):
    assert client.patch("/v1/billers/electric", json={"activation_month": "Smarch"}).status_code == 422
    assert client.patch("/v1/billers/electric", json={"expected_amount": None}).status_code == 422
    assert client.patch("/v1/billers/nope", json={"name": "x"}).status_code == 404


def test_update_installment_term_extends_schedule(client: TestClient, seeded_db: Session):
    client.post("/v1/installments/laptop/schedules")

    response = client.patch("/v1/installments/laptop", json={"term_duration": 14})

    assert response.status_code == 200
    assert [e["payment_number"] for e in response.json()["created"]] == [13, 14]


def test_update_installment_invalid_term(client: TestClient, seeded_db: Session):
    response = client.patch("/v1/installments/laptop", json={"term_duration": "zero"})

    assert response.status_code == 422
    assert seeded_db.get(InstallmentRow, "laptop").term_duration == "12 months"
