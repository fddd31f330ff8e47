from __future__ import annotations

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from housing_ledger.models.entities import (
    AuditLog,
    ClientHistory,
    ClientMonth,
    ExpenseDocument,
    HousingSupport,
    PoolFund,
)
from housing_ledger.services.audit import AuditTrail

ADMIN = {"X-USER-EMAIL": "worker@test.local", "X-USER-NAME": "Worker"}


def _create_client(client: TestClient, name: str = "Client A") -> str:
    response = client.post("/api/v1/clients", headers=ADMIN, json={"full_name": name})
    assert response.status_code == 201
    return response.json()["id"]


def _month_url(client_id: str, year: int = 2025, month: int = 3) -> str:
    return f"/api/v1/clients/{client_id}/months/{year}/{month}"


def _count(db: Session, model) -> int:
    return db.scalar(select(func.count()).select_from(model))


def test_first_write_creates_month_and_pool_fund_is_derived(client: TestClient, db_session: Session) -> None:
    client_id = _create_client(client)

    housing = client.put(f"{_month_url(client_id)}/housing-support", headers=ADMIN, json={"amount": "500.00"})
    assert housing.status_code == 200
    assert housing.json()["amount"] == "500.00"

    rent = client.put(f"{_month_url(client_id)}/rent-payment", headers=ADMIN, json={"paid_amount": "450"})
    assert rent.status_code == 200
    assert rent.json()["paid_amount"] == "450.00"

    for amount in ("30.00", "20.00"):
        expense = client.post(f"{_month_url(client_id)}/expenses", headers=ADMIN, json={"amount": amount})
        assert expense.status_code == 201

    client_month_id = housing.json()["client_month_id"]
    assert _count(db_session, ClientMonth) == 1

    pool = client.get(f"/api/v1/client-months/{client_month_id}/pool-fund", headers=ADMIN)
    assert pool.status_code == 200
    assert pool.json() == {
        "clientMonthId": client_month_id,
        "housingSupport": "500.00",
        "rentPaid": "450.00",
        "totalExpenses": "50.00",
        "lthTotal": "0.00",
        "included": True,
        "poolAmount": "0.00",
        "remainingBalance": "0.00",
    }

    snapshot = db_session.scalar(select(PoolFund))
    assert snapshot.pool_amount == Decimal("0.00")
    assert snapshot.expense_amount == Decimal("50.00")

    detail = client.get(f"/api/v1/client-months/{client_month_id}", headers=ADMIN)
    assert detail.status_code == 200
    assert detail.json()["label"] == "2025-03"
    assert len(detail.json()["expenses"]) == 2
    assert detail.json()["rent_payment"]["paid_amount"] == "450.00"


def test_update_records_history_and_audit(client: TestClient, db_session: Session) -> None:
    client_id = _create_client(client)
    client.put(f"{_month_url(client_id)}/housing-support", headers=ADMIN, json={"amount": "500.00"})

    response = client.put(f"{_month_url(client_id)}/housing-support", headers=ADMIN, json={"amount": "525.5"})
    assert response.status_code == 200
    assert response.json()["amount"] == "525.50"

    history = client.get(f"/api/v1/clients/{client_id}/history", headers=ADMIN).json()["items"]
    amount_changes = [row for row in history if row["field_changed"] == "housing_support.amount[2025-03]"]
    assert sorted((row["old_value"] or "", row["new_value"]) for row in amount_changes) == [
        ("", "500.00"),
        ("500.00", "525.50"),
    ]

    actions = db_session.scalars(
        select(AuditLog.action_type).where(AuditLog.entity == "housing_support").order_by(AuditLog.created_at)
    ).all()
    assert sorted(actions) == ["create", "update"]
    assert _count(db_session, HousingSupport) == 1


def test_locked_period_rejects_admin_and_writes_nothing(client: TestClient, db_session: Session) -> None:
    client_id = _create_client(client)

    response = client.put(
        f"{_month_url(client_id, 2025, 1)}/housing-support",
        headers=ADMIN,
        json={"amount": "500.00"},
    )

    assert response.status_code == 423
    assert response.headers["X-Error-Code"] == "edit_window_closed"
    assert _count(db_session, ClientMonth) == 0
    assert _count(db_session, HousingSupport) == 0


def test_super_admin_writes_locked_period(
    client: TestClient,
    db_session: Session,
    super_admin: dict[str, str],
) -> None:
    client_id = _create_client(client)

    response = client.put(
        f"{_month_url(client_id, 2025, 1)}/housing-support",
        headers=super_admin,
        json={"amount": "500.00"},
    )

    assert response.status_code == 200
    assert _count(db_session, ClientMonth) == 1


def test_expired_agreement_blocks_until_override(
    client: TestClient,
    db_session: Session,
    super_admin: dict[str, str],
) -> None:
    client_id = _create_client(client)
    document = client.post(
        f"/api/v1/clients/{client_id}/documents",
        headers=ADMIN,
        json={
            "document_type": "SERVICE_AGREEMENT",
            "file_url": "https://files.test/agreement.pdf",
            "expiry_date": "2025-01-31",
        },
    )
    assert document.status_code == 201

    blocked = client.put(f"{_month_url(client_id)}/housing-support", headers=ADMIN, json={"amount": "500.00"})
    assert blocked.status_code == 409
    assert blocked.headers["X-Error-Code"] == "service_agreement_expired"

    detail = client.get(f"/api/v1/clients/{client_id}", headers=ADMIN).json()
    assert detail["service_agreement"]["expired"] is True

    denied = client.put(
        f"/api/v1/clients/{client_id}/status-override",
        headers=ADMIN,
        json={"reason": "Renewal pending"},
    )
    assert denied.status_code == 403

    override = client.put(
        f"/api/v1/clients/{client_id}/status-override",
        headers=super_admin,
        json={"reason": "Renewal pending"},
    )
    assert override.status_code == 200
    assert override.json()["status_override"] == "Renewal pending"

    allowed = client.put(f"{_month_url(client_id)}/housing-support", headers=ADMIN, json={"amount": "500.00"})
    assert allowed.status_code == 200

    cleared = client.delete(f"/api/v1/clients/{client_id}/status-override", headers=super_admin)
    assert cleared.json()["status_override"] is None

    blocked_again = client.put(f"{_month_url(client_id)}/housing-support", headers=ADMIN, json={"amount": "510.00"})
    assert blocked_again.status_code == 409


@pytest.mark.parametrize("amount", ["abc", "", "NaN"])
def test_invalid_amount_is_rejected(client: TestClient, db_session: Session, amount: str) -> None:
    client_id = _create_client(client)

    response = client.put(f"{_month_url(client_id)}/housing-support", headers=ADMIN, json={"amount": amount})

    assert response.status_code == 422
    assert response.headers["X-Error-Code"] == "invalid_amount"
    assert _count(db_session, ClientMonth) == 0


def test_float_amount_is_refused(client: TestClient) -> None:
    client_id = _create_client(client)

    response = client.put(f"{_month_url(client_id)}/housing-support", headers=ADMIN, json={"amount": 12.5})

    assert response.status_code == 422


def test_audit_failure_does_not_fail_write(
    client: TestClient,
    db_session: Session,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    client_id = _create_client(client)

    def broken_write(self, **kwargs):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(AuditTrail, "_write", broken_write)

    response = client.put(f"{_month_url(client_id)}/housing-support", headers=ADMIN, json={"amount": "500.00"})

    assert response.status_code == 200
    assert db_session.scalar(select(HousingSupport.amount)) == Decimal("500.00")
    assert db_session.scalar(
        select(func.count()).select_from(AuditLog).where(AuditLog.entity == "housing_support")
    ) == 0
    assert _count(db_session, ClientHistory) == 0


def test_lth_payments_are_tracked_outside_pool_fund(client: TestClient) -> None:
    client_id = _create_client(client)
    client.put(f"{_month_url(client_id)}/housing-support", headers=ADMIN, json={"amount": "500.00"})
    created = client.post(f"{_month_url(client_id)}/lth-payments", headers=ADMIN, json={"amount": "75.00"})
    assert created.status_code == 201
    payment_id = created.json()["id"]
    client_month_id = created.json()["client_month_id"]

    patched = client.patch(f"/api/v1/lth-payments/{payment_id}", headers=ADMIN, json={"amount": "80"})
    assert patched.json()["amount"] == "80.00"

    totals = client.get(f"/api/v1/client-months/{client_month_id}/totals", headers=ADMIN).json()
    assert totals["lthTotal"] == "80.00"
    assert totals["housingSupport"] == "500.00"

    pool = client.get(f"/api/v1/client-months/{client_month_id}/pool-fund", headers=ADMIN).json()
    assert pool["included"] is False
    assert pool["poolAmount"] is None
    assert pool["remainingBalance"] == "500.00"

    deleted = client.delete(f"/api/v1/lth-payments/{payment_id}", headers=ADMIN)
    assert deleted.status_code == 204
    totals = client.get(f"/api/v1/client-months/{client_month_id}/totals", headers=ADMIN).json()
    assert totals["lthTotal"] == "0.00"


def test_expense_documents_follow_their_expense(client: TestClient, db_session: Session) -> None:
    client_id = _create_client(client)
    expense = client.post(
        f"{_month_url(client_id)}/expenses",
        headers=ADMIN,
        json={"amount": "42.10", "notes": "  Deposit  ", "expense_date": "2025-03-05"},
    ).json()
    assert expense["notes"] == "Deposit"

    document = client.post(
        f"/api/v1/expenses/{expense['id']}/documents",
        headers=ADMIN,
        json={"file_url": "https://files.test/receipt.png"},
    )
    assert document.status_code == 201
    assert document.json()["client_id"] == client_id

    listing = client.get(f"/api/v1/expenses/{expense['id']}/documents", headers=ADMIN)
    assert len(listing.json()["items"]) == 1

    patched = client.patch(f"/api/v1/expenses/{expense['id']}", headers=ADMIN, json={"amount": "40"})
    assert patched.json()["amount"] == "40.00"
    assert patched.json()["notes"] == "Deposit"

    deleted = client.delete(f"/api/v1/expenses/{expense['id']}", headers=ADMIN)
    assert deleted.status_code == 204
    assert _count(db_session, ExpenseDocument) == 0

    missing = client.get(f"/api/v1/expenses/{expense['id']}/documents", headers=ADMIN)
    assert missing.status_code == 404
    assert missing.headers["X-Error-Code"] == "not_found"


def test_rent_put_replaces_all_fields(client: TestClient) -> None:
    client_id = _create_client(client)
    client.put(
        f"{_month_url(client_id)}/rent-payment",
        headers=ADMIN,
        json={"paid_amount": "450.00", "expected_amount": "500.00", "is_confirmed": True},
    )

    response = client.put(f"{_month_url(client_id)}/rent-payment", headers=ADMIN, json={"paid_amount": "460.00"})

    assert response.json()["paid_amount"] == "460.00"
    assert response.json()["expected_amount"] is None
    assert response.json()["is_confirmed"] is False


def test_unknown_client_returns_not_found(client: TestClient) -> None:
    response = client.put(
        "/api/v1/clients/00000000-0000-0000-0000-000000000000/months/2025/3/housing-support",
        headers=ADMIN,
        json={"amount": "1.00"},
    )

    assert response.status_code == 404
