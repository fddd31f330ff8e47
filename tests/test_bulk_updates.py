from __future__ import annotations

import uuid
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.exc import DataError
from sqlalchemy.orm import Session

from housing_ledger.models.entities import ClientMonth, Expense, HousingSupport, RentPayment
from housing_ledger.services.pool_fund import PoolFundService

ADMIN = {"X-USER-EMAIL": "worker@test.local", "X-USER-NAME": "Worker"}


def _create_client(client: TestClient, name: str) -> str:
    response = client.post("/api/v1/clients", headers=ADMIN, json={"full_name": name})
    assert response.status_code == 201
    return response.json()["id"]


def _housing_support(db: Session, client_id: str, month: int = 4) -> Decimal | None:
    return db.scalar(
        select(HousingSupport.amount)
        .join(ClientMonth, ClientMonth.id == HousingSupport.client_month_id)
        .where(ClientMonth.year == 2025, ClientMonth.month == month)
        .where(ClientMonth.client_id == uuid.UUID(client_id))
    )


def _lock_month_for(client: TestClient, client_id: str, super_admin: dict[str, str]) -> None:
    seeded = client.put(
        f"/api/v1/clients/{client_id}/months/2025/4/housing-support",
        headers=super_admin,
        json={"amount": "100.00"},
    )
    assert seeded.status_code == 200
    locked = client.put(
        f"/api/v1/client-months/{seeded.json()['client_month_id']}/lock",
        headers=super_admin,
        json={"is_locked": True},
    )
    assert locked.status_code == 200


def test_bulk_update_skips_locked_client(
    client: TestClient,
    db_session: Session,
    super_admin: dict[str, str],
) -> None:
    client_a = _create_client(client, "Client A")
    client_b = _create_client(client, "Client B")
    client_c = _create_client(client, "Client C")
    _lock_month_for(client, client_c, super_admin)

    response = client.post(
        "/api/v1/bulk-updates",
        headers=ADMIN,
        json={
            "year": 2025,
            "month": 4,
            "financial_type": "housing_support",
            "client_ids": [client_a, client_b, client_c],
            "amount": "200.00",
            "use_uniform_amount": True,
        },
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["updatedCount"] == 2
    assert payload["skippedCount"] == 0
    assert [(row["clientId"], row["code"]) for row in payload["failed"]] == [(client_c, "edit_window_closed")]

    assert _housing_support(db_session, client_a) == Decimal("200.00")
    assert _housing_support(db_session, client_b) == Decimal("200.00")
    assert _housing_support(db_session, client_c) == Decimal("100.00")

    activities = client.get("/api/v1/activities", headers=ADMIN).json()["items"]
    assert activities[0]["message"] == "Bulk housing support update for 2 clients - April 2025"


def test_bulk_update_with_per_client_amounts(client: TestClient, db_session: Session) -> None:
    client_a = _create_client(client, "Client A")
    client_b = _create_client(client, "Client B")
    client_c = _create_client(client, "Client C")

    response = client.post(
        "/api/v1/bulk-updates",
        headers=ADMIN,
        json={
            "year": 2025,
            "month": 4,
            "financial_type": "rent",
            "client_ids": [client_a, client_b, client_c],
            "client_amounts": {client_a: "450.00", client_b: "  "},
        },
    )

    payload = response.json()
    assert payload["updatedCount"] == 1
    assert payload["skippedCount"] == 2
    assert payload["failed"] == []
    assert db_session.scalar(select(RentPayment.paid_amount)) == Decimal("450.00")


def test_bulk_update_reports_invalid_amount_per_client(client: TestClient, db_session: Session) -> None:
    client_a = _create_client(client, "Client A")
    client_b = _create_client(client, "Client B")

    response = client.post(
        "/api/v1/bulk-updates",
        headers=ADMIN,
        json={
            "year": 2025,
            "month": 4,
            "financial_type": "expense",
            "client_ids": [client_a, client_b],
            "client_amounts": {client_a: "not money", client_b: "12.5"},
        },
    )

    payload = response.json()
    assert payload["updatedCount"] == 1
    assert [(row["clientId"], row["code"]) for row in payload["failed"]] == [(client_a, "invalid_amount")]
    assert db_session.scalars(select(Expense.amount)).all() == [Decimal("12.50")]


def test_bulk_update_past_window_for_admin(client: TestClient, db_session: Session) -> None:
    client_a = _create_client(client, "Client A")

    response = client.post(
        "/api/v1/bulk-updates",
        headers=ADMIN,
        json={
            "year": 2025,
            "month": 1,
            "financial_type": "lth",
            "client_ids": [client_a],
            "amount": "50",
            "use_uniform_amount": True,
        },
    )

    payload = response.json()
    assert payload["updatedCount"] == 0
    assert payload["failed"][0]["code"] == "edit_window_closed"
    assert db_session.scalar(select(ClientMonth)) is None


def test_super_admin_bulk_update_reaches_locked_months(
    client: TestClient,
    db_session: Session,
    super_admin: dict[str, str],
) -> None:
    client_a = _create_client(client, "Client A")
    _lock_month_for(client, client_a, super_admin)

    response = client.post(
        "/api/v1/bulk-updates",
        headers=super_admin,
        json={
            "year": 2025,
            "month": 4,
            "financial_type": "housing_support",
            "client_ids": [client_a],
            "amount": "300.00",
            "use_uniform_amount": True,
        },
    )

    assert response.json()["updatedCount"] == 1
    assert _housing_support(db_session, client_a) == Decimal("300.00")


def test_bulk_update_unknown_client_is_reported(client: TestClient) -> None:
    missing = "00000000-0000-0000-0000-000000000001"

    response = client.post(
        "/api/v1/bulk-updates",
        headers=ADMIN,
        json={
            "year": 2025,
            "month": 4,
            "financial_type": "housing_support",
            "client_ids": [missing],
            "amount": "10",
            "use_uniform_amount": True,
        },
    )

    assert response.status_code == 200
    assert response.json()["failed"] == [{"clientId": missing, "code": "not_found", "detail": "Client not found."}]


def test_bulk_update_oversized_amount_fails_alone(client: TestClient, db_session: Session) -> None:
    client_a = _create_client(client, "Client A")
    client_b = _create_client(client, "Client B")
    client_c = _create_client(client, "Client C")

    response = client.post(
        "/api/v1/bulk-updates",
        headers=ADMIN,
        json={
            "year": 2025,
            "month": 4,
            "financial_type": "housing_support",
            "client_ids": [client_a, client_b, client_c],
            "client_amounts": {client_a: "200.00", client_b: "1" * 30, client_c: "300.00"},
        },
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["updatedCount"] == 2
    assert [(row["clientId"], row["code"]) for row in payload["failed"]] == [(client_b, "invalid_amount")]
    assert _housing_support(db_session, client_b) is None
    assert _housing_support(db_session, client_c) == Decimal("300.00")


def test_bulk_update_database_error_fails_alone(
    client: TestClient,
    db_session: Session,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    client_a = _create_client(client, "Client A")
    client_b = _create_client(client, "Client B")
    client_c = _create_client(client, "Client C")
    original_refresh = PoolFundService.refresh_snapshot

    def refresh_or_overflow(self, client_month):
        if client_month.client_id == uuid.UUID(client_b):
            raise DataError("INSERT INTO pool_funds", {}, Exception("numeric field overflow"))
        return original_refresh(self, client_month)

    monkeypatch.setattr(PoolFundService, "refresh_snapshot", refresh_or_overflow)

    response = client.post(
        "/api/v1/bulk-updates",
        headers=ADMIN,
        json={
            "year": 2025,
            "month": 4,
            "financial_type": "housing_support",
            "client_ids": [client_a, client_b, client_c],
            "amount": "150.00",
            "use_uniform_amount": True,
        },
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["updatedCount"] == 2
    assert [(row["clientId"], row["code"]) for row in payload["failed"]] == [(client_b, "write_failed")]
    assert _housing_support(db_session, client_a) == Decimal("150.00")
    assert _housing_support(db_session, client_b) is None
    assert _housing_support(db_session, client_c) == Decimal("150.00")


def test_bulk_update_matches_client_amounts_by_uuid(client: TestClient, db_session: Session) -> None:
    client_a = _create_client(client, "Client A")

    response = client.post(
        "/api/v1/bulk-updates",
        headers=ADMIN,
        json={
            "year": 2025,
            "month": 4,
            "financial_type": "housing_support",
            "client_ids": [client_a.upper()],
            "client_amounts": {client_a.upper(): "100.00"},
        },
    )

    payload = response.json()
    assert payload["updatedCount"] == 1
    assert payload["skippedCount"] == 0
    assert _housing_support(db_session, client_a) == Decimal("100.00")
