"""Client endpoints: records, status override, documents, history and months."""

from __future__ import annotations

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, StringConstraints
from sqlalchemy.orm import Session

from housing_ledger.core.auth import RequestUserContext, get_current_user_context
from housing_ledger.core.clock import get_today
from housing_ledger.db.dependencies import get_db_session
from housing_ledger.models.entities import DocumentType
from housing_ledger.services.client_service import (
    ClientCreateData,
    ClientDocumentCreateData,
    ClientHousingData,
    ClientService,
    ClientUpdateData,
)
from housing_ledger.services.periods import PeriodService

router = APIRouter(tags=["clients"])

ClientName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]


class ClientCreatePayload(BaseModel):
    full_name: ClientName
    phone: str | None = Field(default=None, max_length=64)
    county_case_number: str | None = Field(default=None, max_length=128)
    county_id: UUID | None = None
    service_type_id: UUID | None = None
    service_status_id: UUID | None = None
    is_active: bool = True


class ClientUpdatePayload(BaseModel):
    full_name: ClientName | None = None
    phone: str | None = Field(default=None, max_length=64)
    county_case_number: str | None = Field(default=None, max_length=128)
    county_id: UUID | None = None
    service_type_id: UUID | None = None
    service_status_id: UUID | None = None
    is_active: bool | None = None


class StatusOverridePayload(BaseModel):
    reason: str = Field(min_length=1, max_length=2000)


class ClientDocumentPayload(BaseModel):
    document_type: DocumentType
    file_url: str = Field(min_length=1, max_length=2000)
    start_date: date | None = None
    expiry_date: date | None = None


class ClientHousingPayload(BaseModel):
    address: str | None = Field(default=None, max_length=2000)
    landlord_name: str | None = Field(default=None, max_length=255)
    landlord_phone: str | None = Field(default=None, max_length=64)
    landlord_email: str | None = Field(default=None, max_length=320)
    landlord_address: str | None = Field(default=None, max_length=2000)


class LockPayload(BaseModel):
    is_locked: bool


def _service(db: Session) -> ClientService:
    return ClientService(db)


@router.get("/clients")
def list_clients(
    county_id: UUID | None = Query(default=None),
    service_type_id: UUID | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    rows = service.list_clients(county_id=county_id, service_type_id=service_type_id, is_active=is_active)
    return {"items": [service.serialize_client(row) for row in rows]}


@router.post("/clients", status_code=status.HTTP_201_CREATED)
def create_client(
    payload: ClientCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    client = service.create_client(context=context, data=ClientCreateData(**payload.model_dump()))
    return service.serialize_client(client)


@router.get("/clients/{client_id}")
def get_client(
    client_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    today: date = Depends(get_today),
) -> dict[str, object]:
    return _service(db).client_detail(client_id=client_id, today=today)


@router.patch("/clients/{client_id}")
def update_client(
    client_id: UUID,
    payload: ClientUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    client = service.update_client(
        context=context,
        client_id=client_id,
        data=ClientUpdateData(**payload.model_dump(exclude_unset=True)),
    )
    return service.serialize_client(client)


@router.put("/clients/{client_id}/status-override")
def put_status_override(
    client_id: UUID,
    payload: StatusOverridePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    client = service.set_status_override(context=context, client_id=client_id, reason=payload.reason)
    return service.serialize_client(client)


@router.delete("/clients/{client_id}/status-override")
def delete_status_override(
    client_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    client = service.set_status_override(context=context, client_id=client_id, reason=None)
    return service.serialize_client(client)


@router.get("/clients/{client_id}/housing")
def get_client_housing(
    client_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.serialize_housing(service.get_housing(client_id))


@router.put("/clients/{client_id}/housing")
def put_client_housing(
    client_id: UUID,
    payload: ClientHousingPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    housing = service.save_housing(
        context=context,
        client_id=client_id,
        data=ClientHousingData(**payload.model_dump()),
    )
    return service.serialize_housing(housing)


@router.get("/clients/{client_id}/history")
def get_client_history(
    client_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return {"items": [service.serialize_history(row) for row in service.list_history(client_id)]}


@router.get("/clients/{client_id}/documents")
def list_client_documents(
    client_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return {"items": [service.serialize_document(row) for row in service.list_documents(client_id)]}


@router.post("/clients/{client_id}/documents", status_code=status.HTTP_201_CREATED)
def create_client_document(
    client_id: UUID,
    payload: ClientDocumentPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    document = service.add_document(
        context=context,
        client_id=client_id,
        data=ClientDocumentCreateData(**payload.model_dump()),
    )
    return service.serialize_document(document)


@router.delete("/client-documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client_document(
    document_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> None:
    _service(db).delete_document(context=context, document_id=document_id)


@router.get("/clients/{client_id}/months")
def list_client_months(
    client_id: UUID,
    year: int | None = Query(default=None, ge=1, le=9999),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    today: date = Depends(get_today),
) -> dict[str, object]:
    _service(db).get_client(client_id)
    periods = PeriodService(db)
    rows = periods.list_client_months(client_id=client_id, today=today, year=year)
    return {"items": [periods.serialize_client_month(row) for row in rows]}


@router.put("/client-months/{client_month_id}/lock")
def put_client_month_lock(
    client_month_id: UUID,
    payload: LockPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    periods = PeriodService(db)
    client_month = periods.set_lock(context=context, client_month_id=client_month_id, locked=payload.is_locked)
    return periods.serialize_client_month(client_month)
