from __future__ import annotations

import csv
import io

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook
from sqlalchemy.orm import Session

from housing_ledger.seed import seed_reference_data
from housing_ledger.services.reporting_service import REPORT_COLUMNS

ADMIN = {"X-USER-EMAIL": "worker@test.local", "X-USER-NAME": "Worker"}


def _county_ids(client: TestClient) -> dict[str, str]:
    rows = client.get("/api/v1/counties", headers=ADMIN).json()["items"]
    return {row["name"]: row["id"] for row in rows}


def _create_client(client: TestClient, name: str, county_id: str) -> str:
    response = client.post("/api/v1/clients", headers=ADMIN, json={"full_name": name, "county_id": county_id})
    assert response.status_code == 201
    return response.json()["id"]


def _put(client: TestClient, client_id: str, month: int, kind: str, payload: dict[str, str]) -> None:
    response = client.put(f"/api/v1/clients/{client_id}/months/2025/{month}/{kind}", headers=ADMIN, json=payload)
    assert response.status_code == 200


def _expense(client: TestClient, client_id: str, month: int, amount: str) -> None:
    response = client.post(
        f"/api/v1/clients/{client_id}/months/2025/{month}/expenses",
        headers=ADMIN,
        json={"amount": amount},
    )
    assert response.status_code == 201


@pytest.fixture()
def ledger(client: TestClient, db_session: Session) -> dict[str, str]:
    seed_reference_data(db_session)
    counties = _county_ids(client)

    client_a = _create_client(client, "Client A", counties["Hennepin"])
    client_b = _create_client(client, "Client B", counties["Hennepin"])
    client_c = _create_client(client, "Client C", counties["Ramsey"])
    client_d = _create_client(client, "Client D", counties["Ramsey"])

    # 2025-03: A included at 0.00, B support only, C rent only.
    _put(client, client_a, 3, "housing-support", {"amount": "500.00"})
    _put(client, client_a, 3, "rent-payment", {"paid_amount": "450.00"})
    _expense(client, client_a, 3, "30.00")
    _expense(client, client_a, 3, "20.00")
    _put(client, client_b, 3, "housing-support", {"amount": "500.00"})
    _put(client, client_c, 3, "rent-payment", {"paid_amount": "300.00"})

    # 2025-04: A contributes 200.00, D contributes 50.00 and is later deactivated.
    _put(client, client_a, 4, "housing-support", {"amount": "600.00"})
    _put(client, client_a, 4, "rent-payment", {"paid_amount": "400.00"})
    _put(client, client_d, 4, "housing-support", {"amount": "100.00"})
    _put(client, client_d, 4, "rent-payment", {"paid_amount": "50.00"})
    response = client.patch(f"/api/v1/clients/{client_d}", headers=ADMIN, json={"is_active": False})
    assert response.status_code == 200

    return {
        "A": client_a,
        "B": client_b,
        "C": client_c,
        "D": client_d,
        "hennepin": counties["Hennepin"],
        "ramsey": counties["Ramsey"],
    }


def test_dashboard_all_time(client: TestClient, ledger: dict[str, str]) -> None:
    response = client.get("/api/v1/dashboard/metrics", headers=ADMIN)

    assert response.status_code == 200
    assert response.json() == {
        "filter": "all",
        "year": None,
        "month": None,
        "totalClients": 4,
        "totalHousingSupport": "1700.00",
        "totalRentPaid": "1200.00",
        "totalExpenses": "50.00",
        "totalLth": "0.00",
        "totalPoolFund": "250.00",
        "totalRemainingBalance": "450.00",
        "poolContributors": 2,
        "positiveContributors": 2,
        "negativeContributors": 0,
    }


def test_dashboard_month_filter(client: TestClient, ledger: dict[str, str]) -> None:
    payload = client.get(
        "/api/v1/dashboard/metrics",
        headers=ADMIN,
        params={"filter": "month", "year": 2025, "month": 3},
    ).json()

    assert payload["totalHousingSupport"] == "1000.00"
    assert payload["totalRentPaid"] == "750.00"
    assert payload["totalPoolFund"] == "0.00"
    assert payload["totalRemainingBalance"] == "200.00"
    assert payload["poolContributors"] == 1
    assert payload["positiveContributors"] == 1
    assert payload["negativeContributors"] == 0


def test_dashboard_year_filter_outside_data(client: TestClient, ledger: dict[str, str]) -> None:
    payload = client.get("/api/v1/dashboard/metrics", headers=ADMIN, params={"filter": "year", "year": 2024}).json()

    assert payload["totalHousingSupport"] == "0.00"
    assert payload["totalPoolFund"] == "0.00"
    assert payload["poolContributors"] == 0
    assert payload["totalClients"] == 4


@pytest.mark.parametrize(
    "params",
    [{"filter": "week"}, {"filter": "year"}, {"filter": "month", "year": 2025}],
)
def test_dashboard_rejects_incomplete_filters(client: TestClient, params: dict[str, object]) -> None:
    response = client.get("/api/v1/dashboard/metrics", headers=ADMIN, params=params)

    assert response.status_code == 422


def test_report_rows_cover_active_clients(client: TestClient, ledger: dict[str, str]) -> None:
    payload = client.get("/api/v1/reports", headers=ADMIN, params={"year": 2025}).json()

    assert payload["year"] == 2025
    assert [row["clientName"] for row in payload["items"]] == ["Client A", "Client B", "Client C"]
    first = payload["items"][0]
    assert first == {
        "clientId": ledger["A"],
        "clientName": "Client A",
        "county": "Hennepin",
        "serviceType": "-",
        "totalHousingSupport": "1100.00",
        "totalRentPaid": "850.00",
        "totalExpenses": "50.00",
        "totalLth": "0.00",
        "remainingBalance": "200.00",
        "poolFund": "200.00",
    }
    assert payload["items"][2]["remainingBalance"] == "-300.00"
    assert payload["items"][2]["poolFund"] == "0.00"


def test_report_county_filter(client: TestClient, ledger: dict[str, str]) -> None:
    payload = client.get("/api/v1/reports", headers=ADMIN, params={"county_id": ledger["ramsey"]}).json()

    assert [row["clientName"] for row in payload["items"]] == ["Client C"]


def test_year_grid_matches_report(client: TestClient, ledger: dict[str, str]) -> None:
    grid = client.get(f"/api/v1/clients/{ledger['A']}/years/2025", headers=ADMIN).json()
    report = client.get("/api/v1/reports", headers=ADMIN, params={"year": 2025}).json()["items"][0]

    assert len(grid["months"]) == 12
    january, march, april = grid["months"][0], grid["months"][2], grid["months"][3]
    assert january["hasData"] is False
    assert january["isLocked"] is True
    assert january["clientMonthId"] is None
    assert march["hasData"] is True
    assert march["included"] is True
    assert march["poolAmount"] == "0.00"
    assert april["isLocked"] is False
    assert april["poolAmount"] == "200.00"

    assert grid["totals"]["housingSupport"] == report["totalHousingSupport"]
    assert grid["totals"]["rentPaid"] == report["totalRentPaid"]
    assert grid["totals"]["poolFund"] == report["poolFund"]
    assert grid["totals"]["remainingBalance"] == report["remainingBalance"]


def test_pool_fund_summary_scopes(client: TestClient, ledger: dict[str, str]) -> None:
    all_time = client.get("/api/v1/pool-fund-summary", headers=ADMIN).json()
    assert all_time["totalPoolFund"] == "250.00"
    assert [row["clientName"] for row in all_time["contributions"]] == ["Client A", "Client D"]
    assert all_time["contributions"][1]["county"] == "Ramsey"
    assert all_time["positiveContributors"] == 2
    assert all_time["negativeContributors"] == 0

    hennepin = client.get("/api/v1/pool-fund-summary", headers=ADMIN, params={"county_id": ledger["hennepin"]}).json()
    assert hennepin["totalContributors"] == 1
    assert hennepin["totalPoolFund"] == "200.00"

    march = client.get("/api/v1/pool-fund-summary", headers=ADMIN, params={"year": 2025, "month": 3}).json()
    assert march["month"] == 3
    assert march["totalPoolFund"] == "0.00"
    assert march["positiveContributors"] == 1


def test_pool_fund_summary_requires_year_with_month(client: TestClient, ledger: dict[str, str]) -> None:
    response = client.get("/api/v1/pool-fund-summary", headers=ADMIN, params={"month": 3})

    assert response.status_code == 422


def test_csv_export(client: TestClient, ledger: dict[str, str]) -> None:
    response = client.get("/api/v1/exports/report", headers=ADMIN, params={"format": "csv", "year": 2025})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert 'filename="housing-report-2025.csv"' in response.headers["content-disposition"]

    rows = list(csv.DictReader(io.StringIO(response.text)))
    assert list(rows[0].keys()) == REPORT_COLUMNS
    assert [row["clientName"] for row in rows] == ["Client A", "Client B", "Client C"]
    assert rows[1]["remainingBalance"] == "500.00"


def test_xlsx_export(client: TestClient, ledger: dict[str, str]) -> None:
    response = client.get("/api/v1/exports/report", headers=ADMIN, params={"format": "xlsx"})

    assert response.status_code == 200
    assert 'filename="housing-report-all.xlsx"' in response.headers["content-disposition"]

    sheet = load_workbook(io.BytesIO(response.content)).active
    values = list(sheet.iter_rows(values_only=True))
    assert list(values[0]) == REPORT_COLUMNS
    assert len(values) == 4


def test_export_rejects_unknown_format(client: TestClient) -> None:
    response = client.get("/api/v1/exports/report", headers=ADMIN, params={"format": "pdf"})

    assert response.status_code == 422


def test_seed_reference_data_is_idempotent(db_session: Session) -> None:
    created = seed_reference_data(db_session)
    assert created["counties"] == 4
    assert created["expense_categories"] == 4

    assert set(seed_reference_data(db_session).values()) == {0}


def test_reference_endpoints(client: TestClient, db_session: Session) -> None:
    seed_reference_data(db_session)

    counties = client.get("/api/v1/counties", headers=ADMIN).json()["items"]
    assert [row["name"] for row in counties] == ["Anoka", "Dakota", "Hennepin", "Ramsey"]

    duplicate = client.post("/api/v1/counties", headers=ADMIN, json={"name": "Hennepin"})
    assert duplicate.status_code == 409
    assert duplicate.headers["X-Error-Code"] == "constraint_violation"

    created = client.post("/api/v1/payment-methods", headers=ADMIN, json={"name": " Money Order "})
    assert created.status_code == 201
    assert created.json()["name"] == "Money Order"
    assert "is_active" not in created.json()

    renamed = client.patch(f"/api/v1/counties/{counties[0]['id']}", headers=ADMIN, json={"is_active": False})
    assert renamed.json() == {"id": counties[0]["id"], "name": "Anoka", "is_active": False}
