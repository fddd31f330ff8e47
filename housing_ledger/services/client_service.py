"""Application service for client records, documents and history."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from housing_ledger.core.auth import RequestUserContext, ensure_super_admin
from housing_ledger.core.errors import ConstraintViolationError, NotFoundError
from housing_ledger.models.entities import (
    Activity,
    AuditLog,
    Client,
    ClientDocument,
    ClientHistory,
    ClientHousing,
    DocumentType,
)
from housing_ledger.repositories.ledger_repository import LedgerRepository
from housing_ledger.services.access_gate import AccessGate
from housing_ledger.services.audit import AuditTrail, changed_fields


@dataclass(slots=True)
class ClientCreateData:
    full_name: str
    phone: str | None = None
    county_case_number: str | None = None
    county_id: UUID | None = None
    service_type_id: UUID | None = None
    service_status_id: UUID | None = None
    is_active: bool = True


@dataclass(slots=True)
class ClientUpdateData:
    full_name: str | None = None
    phone: str | None = None
    county_case_number: str | None = None
    county_id: UUID | None = None
    service_type_id: UUID | None = None
    service_status_id: UUID | None = None
    is_active: bool | None = None


@dataclass(slots=True)
class ClientHousingData:
    """Partial housing update; ``None`` keeps the stored value, blank clears it."""

    address: str | None = None
    landlord_name: str | None = None
    landlord_phone: str | None = None
    landlord_email: str | None = None
    landlord_address: str | None = None


HOUSING_FIELDS = ("address", "landlord_name", "landlord_phone", "landlord_email", "landlord_address")


@dataclass(slots=True)
class ClientDocumentCreateData:
    document_type: DocumentType
    file_url: str
    start_date: date | None = None
    expiry_date: date | None = None


def _strip(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


class ClientService:
    """Client CRUD with field-level history, documents and the audit feed."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = LedgerRepository(db)
        self.gate = AccessGate(db)
        self.audit = AuditTrail(db)

    # ---------- Serialization ----------
    @staticmethod
    def serialize_client(client: Client) -> dict[str, object]:
        return {
            "id": str(client.id),
            "full_name": client.full_name,
            "phone": client.phone,
            "county_case_number": client.county_case_number,
            "county_id": str(client.county_id) if client.county_id else None,
            "service_type_id": str(client.service_type_id) if client.service_type_id else None,
            "service_status_id": str(client.service_status_id) if client.service_status_id else None,
            "status_override": client.status_override,
            "status_override_by": str(client.status_override_by) if client.status_override_by else None,
            "status_override_at": client.status_override_at.isoformat() if client.status_override_at else None,
            "is_active": client.is_active,
            "created_at": client.created_at.isoformat(),
        }

    @staticmethod
    def serialize_history(row: ClientHistory) -> dict[str, object]:
        return {
            "id": str(row.id),
            "client_id": str(row.client_id),
            "field_changed": row.field_changed,
            "old_value": row.old_value,
            "new_value": row.new_value,
            "changed_by": str(row.changed_by) if row.changed_by else None,
            "changed_at": row.changed_at.isoformat(),
        }

    @staticmethod
    def serialize_document(row: ClientDocument) -> dict[str, object]:
        return {
            "id": str(row.id),
            "client_id": str(row.client_id),
            "document_type": row.document_type.value,
            "file_url": row.file_url,
            "start_date": row.start_date.isoformat() if row.start_date else None,
            "expiry_date": row.expiry_date.isoformat() if row.expiry_date else None,
            "uploaded_by": str(row.uploaded_by) if row.uploaded_by else None,
            "uploaded_at": row.uploaded_at.isoformat(),
        }

    @staticmethod
    def serialize_housing(row: ClientHousing) -> dict[str, object]:
        return {
            "id": str(row.id),
            "client_id": str(row.client_id),
            **{name: getattr(row, name) for name in HOUSING_FIELDS},
            "updated_at": row.updated_at.isoformat(),
        }

    @staticmethod
    def serialize_audit_log(row: AuditLog) -> dict[str, object]:
        return {
            "id": str(row.id),
            "user_id": str(row.user_id) if row.user_id else None,
            "action_type": row.action_type,
            "entity": row.entity,
            "entity_id": row.entity_id,
            "old_data": row.old_data,
            "new_data": row.new_data,
            "created_at": row.created_at.isoformat(),
        }

    @staticmethod
    def serialize_activity(row: Activity) -> dict[str, object]:
        return {
            "id": str(row.id),
            "message": row.message,
            "related_client_id": str(row.related_client_id) if row.related_client_id else None,
            "created_at": row.created_at.isoformat(),
        }

    # ---------- Clients ----------
    def get_client(self, client_id: UUID) -> Client:
        client = self.repo.get_client(client_id)
        if client is None:
            raise NotFoundError("Client not found.")
        return client

    def list_clients(
        self,
        *,
        county_id: UUID | None = None,
        service_type_id: UUID | None = None,
        is_active: bool | None = None,
    ) -> list[Client]:
        return self.repo.list_clients(county_id=county_id, service_type_id=service_type_id, is_active=is_active)

    def client_detail(self, *, client_id: UUID, today: date) -> dict[str, object]:
        client = self.get_client(client_id)
        return {
            **self.serialize_client(client),
            "service_agreement": self.gate.service_agreement_status(client, today),
        }

    def create_client(self, *, context: RequestUserContext, data: ClientCreateData) -> Client:
        client = Client(
            full_name=data.full_name.strip(),
            phone=_strip(data.phone),
            county_case_number=_strip(data.county_case_number),
            county_id=data.county_id,
            service_type_id=data.service_type_id,
            service_status_id=data.service_status_id,
            is_active=data.is_active,
            created_at=datetime.utcnow(),
        )
        self.repo.add_client(client)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConstraintViolationError("Client references unknown reference data.") from exc

        self.db.refresh(client)
        snapshot = self.serialize_client(client)
        self.audit.record(
            context=context,
            action_type="create",
            entity="client",
            entity_id=client.id,
            new_data=snapshot,
        )
        self.audit.activity(f"New client added: {client.full_name}", related_client_id=client.id)
        return client

    def update_client(self, *, context: RequestUserContext, client_id: UUID, data: ClientUpdateData) -> Client:
        client = self.get_client(client_id)
        before = self.serialize_client(client)

        if data.full_name is not None:
            client.full_name = data.full_name.strip()
        if data.phone is not None:
            client.phone = _strip(data.phone)
        if data.county_case_number is not None:
            client.county_case_number = _strip(data.county_case_number)
        if data.county_id is not None:
            client.county_id = data.county_id
        if data.service_type_id is not None:
            client.service_type_id = data.service_type_id
        if data.service_status_id is not None:
            client.service_status_id = data.service_status_id
        if data.is_active is not None:
            client.is_active = data.is_active

        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConstraintViolationError("Client references unknown reference data.") from exc

        self.db.refresh(client)
        after = self.serialize_client(client)
        self.audit.record(
            context=context,
            action_type="update",
            entity="client",
            entity_id=client.id,
            client_id=client.id,
            old_data=before,
            new_data=after,
            changes=changed_fields(before, after),
        )
        return client

    def set_status_override(self, *, context: RequestUserContext, client_id: UUID, reason: str | None) -> Client:
        """Set (or clear with ``None``) the manual status override. Super admin only."""

        ensure_super_admin(context)
        client = self.get_client(client_id)
        before = self.serialize_client(client)

        reason = _strip(reason)
        client.status_override = reason
        client.status_override_by = context.user_id if reason else None
        client.status_override_at = datetime.utcnow() if reason else None
        self.db.commit()
        self.db.refresh(client)

        after = self.serialize_client(client)
        self.audit.record(
            context=context,
            action_type="update",
            entity="client",
            entity_id=client.id,
            client_id=client.id,
            old_data=before,
            new_data=after,
            changes=[
                change
                for change in changed_fields(before, after)
                if change.field == "status_override"
            ],
        )
        return client

    def list_history(self, client_id: UUID) -> list[ClientHistory]:
        self.get_client(client_id)
        return self.repo.list_client_history(client_id)

    # ---------- Housing ----------
    def get_housing(self, client_id: UUID) -> ClientHousing:
        self.get_client(client_id)
        housing = self.repo.get_client_housing(client_id)
        if housing is None:
            raise NotFoundError("Client housing not found.")
        return housing

    def save_housing(self, *, context: RequestUserContext, client_id: UUID, data: ClientHousingData) -> ClientHousing:
        """Create or update the client's housing and landlord record."""

        client = self.get_client(client_id)
        housing = self.repo.get_client_housing(client.id)
        created = housing is None
        if created:
            housing = ClientHousing(client_id=client.id)
            self.repo.add(housing)
            before = None
        else:
            before = {name: getattr(housing, name) for name in HOUSING_FIELDS}

        for name in HOUSING_FIELDS:
            value = getattr(data, name)
            if value is not None:
                setattr(housing, name, _strip(value))
        housing.updated_at = datetime.utcnow()

        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConstraintViolationError("Client already has a housing record.") from exc

        self.db.refresh(housing)
        after = {name: getattr(housing, name) for name in HOUSING_FIELDS}
        self.audit.record(
            context=context,
            action_type="create" if created else "update",
            entity="client_housing",
            entity_id=housing.id,
            client_id=client.id,
            old_data=before,
            new_data=self.serialize_housing(housing),
            changes=changed_fields(before, after, prefix="housing."),
        )
        return housing

    # ---------- Documents ----------
    def list_documents(self, client_id: UUID) -> list[ClientDocument]:
        self.get_client(client_id)
        return self.repo.list_client_documents(client_id)

    def add_document(
        self,
        *,
        context: RequestUserContext,
        client_id: UUID,
        data: ClientDocumentCreateData,
    ) -> ClientDocument:
        client = self.get_client(client_id)
        document = ClientDocument(
            client_id=client.id,
            document_type=data.document_type,
            file_url=data.file_url.strip(),
            start_date=data.start_date,
            expiry_date=data.expiry_date,
            uploaded_by=context.user_id,
            uploaded_at=datetime.utcnow(),
        )
        self.repo.add_client_document(document)
        self.db.commit()
        self.db.refresh(document)

        self.audit.record(
            context=context,
            action_type="create",
            entity="client_document",
            entity_id=document.id,
            new_data=self.serialize_document(document),
        )
        return document

    def delete_document(self, *, context: RequestUserContext, document_id: UUID) -> None:
        document = self.repo.get_client_document(document_id)
        if document is None:
            raise NotFoundError("Document not found.")
        before = self.serialize_document(document)
        self.repo.delete_client_document(document)
        self.db.commit()

        self.audit.record(
            context=context,
            action_type="delete",
            entity="client_document",
            entity_id=document_id,
            old_data=before,
        )

    # ---------- Audit and activity feed ----------
    def list_audit_logs(self, *, context: RequestUserContext, entity_id: str | None, limit: int) -> list[AuditLog]:
        ensure_super_admin(context)
        return self.repo.list_audit_logs(entity_id=entity_id, limit=None if entity_id else limit)

    def list_activities(self, *, limit: int) -> list[Activity]:
        return self.repo.list_activities(limit=limit)
