from __future__ import annotations

from fastapi.testclient import TestClient


ADMIN = {"X-USER-EMAIL": "worker@test.local", "X-USER-NAME": "Worker"}


def test_create_and_update_client_records_history(client: TestClient) -> None:
    created = client.post(
        "/api/v1/clients",
        headers=ADMIN,
        json={"full_name": "  Jane Doe ", "phone": "612-555-0100", "county_case_number": ""},
    )
    assert created.status_code == 201
    client_id = created.json()["id"]
    assert created.json()["full_name"] == "Jane Doe"
    assert created.json()["county_case_number"] is None

    updated = client.patch(f"/api/v1/clients/{client_id}", headers=ADMIN, json={"phone": "612-555-0199"})
    assert updated.status_code == 200
    assert updated.json()["phone"] == "612-555-0199"

    history = client.get(f"/api/v1/clients/{client_id}/history", headers=ADMIN).json()["items"]
    assert [(row["field_changed"], row["old_value"], row["new_value"]) for row in history] == [
        ("phone", "612-555-0100", "612-555-0199"),
    ]

    activities = client.get("/api/v1/activities", headers=ADMIN).json()["items"]
    assert activities[0]["message"] == "New client added: Jane Doe"
    assert activities[0]["related_client_id"] == client_id


def test_client_list_filters(client: TestClient) -> None:
    county = client.post("/api/v1/counties", headers=ADMIN, json={"name": "Dakota"}).json()
    client.post("/api/v1/clients", headers=ADMIN, json={"full_name": "Zed", "county_id": county["id"]})
    client.post("/api/v1/clients", headers=ADMIN, json={"full_name": "Amy"})
    client.post("/api/v1/clients", headers=ADMIN, json={"full_name": "Bob", "is_active": False})

    everyone = client.get("/api/v1/clients", headers=ADMIN).json()["items"]
    assert [row["full_name"] for row in everyone] == ["Amy", "Bob", "Zed"]

    active = client.get("/api/v1/clients", headers=ADMIN, params={"is_active": True}).json()["items"]
    assert [row["full_name"] for row in active] == ["Amy", "Zed"]

    in_county = client.get("/api/v1/clients", headers=ADMIN, params={"county_id": county["id"]}).json()["items"]
    assert [row["full_name"] for row in in_county] == ["Zed"]


def test_documents_drive_service_agreement_status(client: TestClient) -> None:
    client_id = client.post("/api/v1/clients", headers=ADMIN, json={"full_name": "Docs"}).json()["id"]

    lease = client.post(
        f"/api/v1/clients/{client_id}/documents",
        headers=ADMIN,
        json={"document_type": "LEASE", "file_url": "https://files.test/lease.pdf"},
    )
    assert lease.status_code == 201
    detail = client.get(f"/api/v1/clients/{client_id}", headers=ADMIN).json()
    assert detail["service_agreement"]["hasAgreement"] is False

    agreement = client.post(
        f"/api/v1/clients/{client_id}/documents",
        headers=ADMIN,
        json={
            "document_type": "SERVICE_AGREEMENT",
            "file_url": "https://files.test/sa.pdf",
            "start_date": "2025-01-01",
            "expiry_date": "2025-12-31",
        },
    ).json()
    detail = client.get(f"/api/v1/clients/{client_id}", headers=ADMIN).json()
    assert detail["service_agreement"] == {
        "hasAgreement": True,
        "expiryDate": "2025-12-31",
        "expired": False,
        "overridden": False,
    }

    removed = client.delete(f"/api/v1/client-documents/{agreement['id']}", headers=ADMIN)
    assert removed.status_code == 204
    documents = client.get(f"/api/v1/clients/{client_id}/documents", headers=ADMIN).json()["items"]
    assert [row["document_type"] for row in documents] == ["LEASE"]


def test_audit_log_is_super_admin_only(client: TestClient, super_admin: dict[str, str]) -> None:
    client_id = client.post("/api/v1/clients", headers=ADMIN, json={"full_name": "Audited"}).json()["id"]

    denied = client.get("/api/v1/audit-logs", headers=ADMIN)
    assert denied.status_code == 403

    rows = client.get("/api/v1/audit-logs", headers=super_admin, params={"entity_id": client_id}).json()["items"]
    assert [(row["action_type"], row["entity"]) for row in rows] == [("create", "client")]
    assert rows[0]["new_data"]["full_name"] == "Audited"


def test_client_months_listing_requires_known_client(client: TestClient) -> None:
    response = client.get("/api/v1/clients/00000000-0000-0000-0000-000000000000/months", headers=ADMIN)

    assert response.status_code == 404


def test_client_housing_is_saved_with_history(client: TestClient) -> None:
    client_id = client.post("/api/v1/clients", headers=ADMIN, json={"full_name": "Housed"}).json()["id"]

    missing = client.get(f"/api/v1/clients/{client_id}/housing", headers=ADMIN)
    assert missing.status_code == 404
    assert missing.headers["X-Error-Code"] == "not_found"

    created = client.put(
        f"/api/v1/clients/{client_id}/housing",
        headers=ADMIN,
        json={"address": " 12 Elm St ", "landlord_name": "Pat Lee", "landlord_phone": "651-555-0101"},
    )
    assert created.status_code == 200
    assert created.json()["address"] == "12 Elm St"
    housing_id = created.json()["id"]

    updated = client.put(
        f"/api/v1/clients/{client_id}/housing",
        headers=ADMIN,
        json={"landlord_name": "Sam Lee", "landlord_phone": ""},
    )
    assert updated.json()["id"] == housing_id
    assert updated.json()["address"] == "12 Elm St"
    assert updated.json()["landlord_name"] == "Sam Lee"
    assert updated.json()["landlord_phone"] is None

    fetched = client.get(f"/api/v1/clients/{client_id}/housing", headers=ADMIN).json()
    assert fetched == updated.json()

    history = client.get(f"/api/v1/clients/{client_id}/history", headers=ADMIN).json()["items"]
    assert sorted((row["field_changed"], row["old_value"] or "", row["new_value"] or "") for row in history) == [
        ("housing.address", "", "12 Elm St"),
        ("housing.landlord_name", "", "Pat Lee"),
        ("housing.landlord_name", "Pat Lee", "Sam Lee"),
        ("housing.landlord_phone", "", "651-555-0101"),
        ("housing.landlord_phone", "651-555-0101", ""),
    ]


def test_client_housing_for_unknown_client(client: TestClient) -> None:
    response = client.put(
        "/api/v1/clients/00000000-0000-0000-0000-000000000000/housing",
        headers=ADMIN,
        json={"address": "1 Main St"},
    )

    assert response.status_code == 404


def test_blank_client_name_is_rejected(client: TestClient) -> None:
    created = client.post("/api/v1/clients", headers=ADMIN, json={"full_name": "   "})
    assert created.status_code == 422

    client_id = client.post("/api/v1/clients", headers=ADMIN, json={"full_name": "Named"}).json()["id"]
    renamed = client.patch(f"/api/v1/clients/{client_id}", headers=ADMIN, json={"full_name": " \t "})
    assert renamed.status_code == 422
    assert client.get(f"/api/v1/clients/{client_id}", headers=ADMIN).json()["full_name"] == "Named"
