"""Repository helpers for clients, client months and their financial rows."""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from housing_ledger.models.entities import (
    Activity,
    AuditLog,
    Client,
    ClientDocument,
    ClientHistory,
    ClientHousing,
    ClientMonth,
    County,
    DocumentType,
    Expense,
    ExpenseDocument,
    HousingSupport,
    LthPayment,
    PoolFund,
    RentPayment,
    ServiceType,
)


class LedgerRepository:
    """Persistence operations used by ledger, reporting and audit services."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Clients ----------
    def get_client(self, client_id: UUID) -> Client | None:
        return self.db.scalar(select(Client).where(Client.id == client_id))

    def list_clients(
        self,
        *,
        county_id: UUID | None = None,
        service_type_id: UUID | None = None,
        is_active: bool | None = None,
    ) -> list[Client]:
        stmt = select(Client)
        if county_id is not None:
            stmt = stmt.where(Client.county_id == county_id)
        if service_type_id is not None:
            stmt = stmt.where(Client.service_type_id == service_type_id)
        if is_active is not None:
            stmt = stmt.where(Client.is_active.is_(is_active))
        return self.db.scalars(stmt.order_by(Client.full_name.asc(), Client.id.asc())).all()

    def get_clients_by_ids(self, client_ids: Iterable[UUID]) -> dict[UUID, Client]:
        ids = list(client_ids)
        if not ids:
            return {}
        rows = self.db.scalars(select(Client).where(Client.id.in_(ids))).all()
        return {row.id: row for row in rows}

    def add_client(self, client: Client) -> Client:
        self.db.add(client)
        self.db.flush()
        return client

    def list_client_history(self, client_id: UUID) -> list[ClientHistory]:
        return self.db.scalars(
            select(ClientHistory)
            .where(ClientHistory.client_id == client_id)
            .order_by(ClientHistory.changed_at.desc(), ClientHistory.id.asc())
        ).all()

    def get_client_housing(self, client_id: UUID) -> ClientHousing | None:
        return self.db.scalar(select(ClientHousing).where(ClientHousing.client_id == client_id))

    def county_names(self) -> dict[UUID, str]:
        return {row.id: row.name for row in self.db.scalars(select(County)).all()}

    def service_type_names(self) -> dict[UUID, str]:
        return {row.id: row.name for row in self.db.scalars(select(ServiceType)).all()}

    # ---------- Documents ----------
    def list_client_documents(self, client_id: UUID) -> list[ClientDocument]:
        return self.db.scalars(
            select(ClientDocument)
            .where(ClientDocument.client_id == client_id)
            .order_by(ClientDocument.uploaded_at.desc())
        ).all()

    def list_service_agreements_with_expiry(self, client_id: UUID) -> list[ClientDocument]:
        return self.db.scalars(
            select(ClientDocument)
            .where(
                and_(
                    ClientDocument.client_id == client_id,
                    ClientDocument.document_type == DocumentType.SERVICE_AGREEMENT,
                    ClientDocument.expiry_date.is_not(None),
                )
            )
            .order_by(ClientDocument.expiry_date.desc())
        ).all()

    def count_service_agreements(self, client_id: UUID) -> int:
        return len(
            self.db.scalars(
                select(ClientDocument.id).where(
                    and_(
                        ClientDocument.client_id == client_id,
                        ClientDocument.document_type == DocumentType.SERVICE_AGREEMENT,
                    )
                )
            ).all()
        )

    def get_client_document(self, document_id: UUID) -> ClientDocument | None:
        return self.db.scalar(select(ClientDocument).where(ClientDocument.id == document_id))

    def add_client_document(self, document: ClientDocument) -> ClientDocument:
        self.db.add(document)
        self.db.flush()
        return document

    def delete_client_document(self, document: ClientDocument) -> None:
        self.db.delete(document)
        self.db.flush()

    # ---------- Client months ----------
    def get_client_month(self, client_month_id: UUID) -> ClientMonth | None:
        return self.db.scalar(select(ClientMonth).where(ClientMonth.id == client_month_id))

    def find_client_month(self, *, client_id: UUID, year: int, month: int) -> ClientMonth | None:
        return self.db.scalar(
            select(ClientMonth).where(
                and_(
                    ClientMonth.client_id == client_id,
                    ClientMonth.year == year,
                    ClientMonth.month == month,
                )
            )
        )

    def list_client_months(
        self,
        *,
        client_ids: Iterable[UUID] | None = None,
        year: int | None = None,
        month: int | None = None,
    ) -> list[ClientMonth]:
        stmt = select(ClientMonth)
        if client_ids is not None:
            ids = list(client_ids)
            if not ids:
                return []
            stmt = stmt.where(ClientMonth.client_id.in_(ids))
        if year is not None:
            stmt = stmt.where(ClientMonth.year == year)
        if month is not None:
            stmt = stmt.where(ClientMonth.month == month)
        return self.db.scalars(
            stmt.order_by(ClientMonth.year.asc(), ClientMonth.month.asc(), ClientMonth.id.asc())
        ).all()

    def add_client_month(self, client_month: ClientMonth) -> ClientMonth:
        self.db.add(client_month)
        self.db.flush()
        return client_month

    # ---------- Financial rows ----------
    def get_housing_support(self, client_month_id: UUID) -> HousingSupport | None:
        return self.db.scalar(select(HousingSupport).where(HousingSupport.client_month_id == client_month_id))

    def get_rent_payment(self, client_month_id: UUID) -> RentPayment | None:
        return self.db.scalar(select(RentPayment).where(RentPayment.client_month_id == client_month_id))

    def list_lth_payments(self, client_month_id: UUID) -> list[LthPayment]:
        return self.db.scalars(
            select(LthPayment).where(LthPayment.client_month_id == client_month_id).order_by(LthPayment.id.asc())
        ).all()

    def list_expenses(self, client_month_id: UUID) -> list[Expense]:
        return self.db.scalars(
            select(Expense).where(Expense.client_month_id == client_month_id).order_by(Expense.id.asc())
        ).all()

    def get_lth_payment(self, payment_id: UUID) -> LthPayment | None:
        return self.db.scalar(select(LthPayment).where(LthPayment.id == payment_id))

    def get_expense(self, expense_id: UUID) -> Expense | None:
        return self.db.scalar(select(Expense).where(Expense.id == expense_id))

    def list_expense_documents(self, expense_id: UUID) -> list[ExpenseDocument]:
        return self.db.scalars(
            select(ExpenseDocument)
            .where(ExpenseDocument.expense_id == expense_id)
            .order_by(ExpenseDocument.uploaded_at.asc())
        ).all()

    def housing_supports_for(self, client_month_ids: list[UUID]) -> list[HousingSupport]:
        if not client_month_ids:
            return []
        return self.db.scalars(
            select(HousingSupport).where(HousingSupport.client_month_id.in_(client_month_ids))
        ).all()

    def rent_payments_for(self, client_month_ids: list[UUID]) -> list[RentPayment]:
        if not client_month_ids:
            return []
        return self.db.scalars(select(RentPayment).where(RentPayment.client_month_id.in_(client_month_ids))).all()

    def lth_payments_for(self, client_month_ids: list[UUID]) -> list[LthPayment]:
        if not client_month_ids:
            return []
        return self.db.scalars(select(LthPayment).where(LthPayment.client_month_id.in_(client_month_ids))).all()

    def expenses_for(self, client_month_ids: list[UUID]) -> list[Expense]:
        if not client_month_ids:
            return []
        return self.db.scalars(select(Expense).where(Expense.client_month_id.in_(client_month_ids))).all()

    def add(self, row: object) -> None:
        self.db.add(row)
        self.db.flush()

    def delete(self, row: object) -> None:
        self.db.delete(row)
        self.db.flush()

    # ---------- Pool fund snapshots ----------
    def get_pool_fund(self, client_month_id: UUID) -> PoolFund | None:
        return self.db.scalar(select(PoolFund).where(PoolFund.client_month_id == client_month_id))

    # ---------- Audit and activity ----------
    def list_audit_logs(self, *, entity_id: str | None = None, limit: int | None = None) -> list[AuditLog]:
        stmt = select(AuditLog)
        if entity_id is not None:
            stmt = stmt.where(AuditLog.entity_id == entity_id)
        stmt = stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return self.db.scalars(stmt).all()

    def list_activities(self, *, limit: int) -> list[Activity]:
        return self.db.scalars(
            select(Activity).order_by(Activity.created_at.desc(), Activity.id.asc()).limit(limit)
        ).all()
