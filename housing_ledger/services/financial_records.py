"""Application service for gated writes of monthly financial records."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from housing_ledger.core import money
from housing_ledger.core.auth import RequestUserContext
from housing_ledger.core.errors import ConstraintViolationError, LedgerError, NotFoundError, WriteFailedError
from housing_ledger.models.entities import (
    Client,
    ClientMonth,
    Expense,
    ExpenseDocument,
    HousingSupport,
    LthPayment,
    RentPayment,
)
from housing_ledger.repositories.ledger_repository import LedgerRepository
from housing_ledger.services.access_gate import AccessGate
from housing_ledger.services.audit import AuditTrail, changed_fields
from housing_ledger.services.periods import Period, PeriodService
from housing_ledger.services.pool_fund import PoolFundService

logger = logging.getLogger(__name__)


class FinancialType(str, Enum):
    HOUSING_SUPPORT = "housing_support"
    RENT = "rent"
    EXPENSE = "expense"
    LTH = "lth"


@dataclass(slots=True)
class HousingSupportInput:
    amount: object
    received_date: date | None = None


@dataclass(slots=True)
class RentPaymentInput:
    paid_amount: object | None = None
    expected_amount: object | None = None
    paid_date: date | None = None
    payment_method_id: UUID | None = None
    is_confirmed: bool = False


@dataclass(slots=True)
class LthPaymentInput:
    amount: object
    received_date: date | None = None


@dataclass(slots=True)
class LthPaymentUpdate:
    amount: object | None = None
    received_date: date | None = None


@dataclass(slots=True)
class ExpenseInput:
    amount: object
    category_id: UUID | None = None
    expense_date: date | None = None
    notes: str | None = None


@dataclass(slots=True)
class ExpenseUpdate:
    amount: object | None = None
    category_id: UUID | None = None
    expense_date: date | None = None
    notes: str | None = None


@dataclass(slots=True)
class BulkUpdateData:
    year: int
    month: int
    financial_type: FinancialType
    client_ids: list[UUID]
    amount: object | None = None
    use_uniform_amount: bool = False
    client_amounts: dict[UUID, object] = field(default_factory=dict)


@dataclass(slots=True)
class BulkFailure:
    client_id: UUID
    code: str
    detail: str


@dataclass(slots=True)
class BulkUpdateResult:
    updated_count: int = 0
    skipped_count: int = 0
    failed: list[BulkFailure] = field(default_factory=list)

    def as_dict(self) -> dict[str, object]:
        return {
            "success": True,
            "updatedCount": self.updated_count,
            "skippedCount": self.skipped_count,
            "failed": [
                {"clientId": str(row.client_id), "code": row.code, "detail": row.detail}
                for row in self.failed
            ],
        }


def _optional_amount(raw: object | None) -> Decimal | None:
    if raw is None:
        return None
    return money.parse_amount(raw)


class FinancialRecordService:
    """Writes housing support, rent, LTH and expense rows behind the access gate.

    Every write follows the same sequence: parse amounts, gate, resolve or
    create the ClientMonth, write, refresh the pool-fund snapshot, commit,
    then record history and audit rows best-effort.
    """

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = LedgerRepository(db)
        self.periods = PeriodService(db)
        self.gate = AccessGate(db)
        self.pool_fund = PoolFundService(db)
        self.audit = AuditTrail(db)

    # ---------- Serialization ----------
    @staticmethod
    def serialize_housing_support(row: HousingSupport) -> dict[str, object]:
        return {
            "id": str(row.id),
            "client_month_id": str(row.client_month_id),
            "amount": money.to_wire(row.amount),
            "received_date": row.received_date.isoformat() if row.received_date else None,
            "created_by": str(row.created_by) if row.created_by else None,
        }

    @staticmethod
    def serialize_rent_payment(row: RentPayment) -> dict[str, object]:
        return {
            "id": str(row.id),
            "client_month_id": str(row.client_month_id),
            "expected_amount": money.to_wire(row.expected_amount) if row.expected_amount is not None else None,
            "paid_amount": money.to_wire(row.paid_amount) if row.paid_amount is not None else None,
            "paid_date": row.paid_date.isoformat() if row.paid_date else None,
            "payment_method_id": str(row.payment_method_id) if row.payment_method_id else None,
            "is_confirmed": row.is_confirmed,
        }

    @staticmethod
    def serialize_lth_payment(row: LthPayment) -> dict[str, object]:
        return {
            "id": str(row.id),
            "client_month_id": str(row.client_month_id),
            "amount": money.to_wire(row.amount),
            "received_date": row.received_date.isoformat() if row.received_date else None,
        }

    @staticmethod
    def serialize_expense(row: Expense) -> dict[str, object]:
        return {
            "id": str(row.id),
            "client_month_id": str(row.client_month_id),
            "category_id": str(row.category_id) if row.category_id else None,
            "amount": money.to_wire(row.amount),
            "expense_date": row.expense_date.isoformat() if row.expense_date else None,
            "notes": row.notes,
        }

    @staticmethod
    def serialize_expense_document(row: ExpenseDocument) -> dict[str, object]:
        return {
            "id": str(row.id),
            "expense_id": str(row.expense_id),
            "client_id": str(row.client_id),
            "client_month_id": str(row.client_month_id),
            "file_url": row.file_url,
            "uploaded_by": str(row.uploaded_by) if row.uploaded_by else None,
            "uploaded_at": row.uploaded_at.isoformat(),
        }

    # ---------- Shared write path ----------
    def _get_client(self, client_id: UUID) -> Client:
        client = self.repo.get_client(client_id)
        if client is None:
            raise NotFoundError("Client not found.")
        return client

    def _month_scope(self, client_month_id: UUID) -> tuple[Client, ClientMonth]:
        client_month = self.periods.get_client_month(client_month_id)
        return self._get_client(client_month.client_id), client_month

    def _commit_write(self, *, failure_detail: str, write: Callable[[], object]) -> object:
        """Run ``write`` in a savepoint and commit, rolling back on any failure."""

        try:
            with self.db.begin_nested():
                result = write()
            self.db.commit()
        except HTTPException:
            self.db.rollback()
            raise
        except IntegrityError as exc:
            self.db.rollback()
            raise ConstraintViolationError(failure_detail) from exc
        return result

    def _gated_period_write(
        self,
        *,
        context: RequestUserContext,
        client: Client,
        period: Period,
        today: date,
        write: Callable[[ClientMonth], object],
    ) -> tuple[ClientMonth, object]:
        def run() -> tuple[ClientMonth, object]:
            existing = self.repo.find_client_month(client_id=client.id, year=period.year, month=period.month)
            self.gate.ensure_can_mutate(
                context=context,
                client=client,
                client_month=existing,
                period=period,
                today=today,
            )
            client_month = existing or self.periods.find_or_create_client_month(
                client_id=client.id,
                year=period.year,
                month=period.month,
            )
            row = write(client_month)
            self.pool_fund.refresh_snapshot(client_month)
            return client_month, row

        return self._commit_write(failure_detail="Financial record write violated constraints.", write=run)

    def _gated_row_write(
        self,
        *,
        context: RequestUserContext,
        client: Client,
        client_month: ClientMonth,
        today: date,
        write: Callable[[], object],
    ) -> object:
        def run() -> object:
            self.gate.ensure_can_mutate(
                context=context,
                client=client,
                client_month=client_month,
                period=Period.of(client_month),
                today=today,
            )
            row = write()
            self.pool_fund.refresh_snapshot(client_month)
            return row

        return self._commit_write(failure_detail="Financial record write violated constraints.", write=run)

    def _audit(
        self,
        *,
        context: RequestUserContext,
        action_type: str,
        entity: str,
        entity_id: UUID,
        client_id: UUID,
        period: Period,
        before: dict[str, object] | None,
        after: dict[str, object] | None,
    ) -> None:
        self.audit.record(
            context=context,
            action_type=action_type,
            entity=entity,
            entity_id=entity_id,
            client_id=client_id,
            old_data=before,
            new_data=after,
            changes=changed_fields(before, after, prefix=f"{entity}.", suffix=f"[{period.label}]"),
        )

    # ---------- Housing support ----------
    def _apply_housing_support(
        self,
        client_month: ClientMonth,
        *,
        amount: Decimal,
        received_date: date | None,
        actor_id: UUID,
    ) -> tuple[HousingSupport, dict[str, object] | None]:
        row = self.repo.get_housing_support(client_month.id)
        before = self.serialize_housing_support(row) if row else None
        if row is None:
            row = HousingSupport(client_month_id=client_month.id, amount=amount, created_at=datetime.utcnow())
            self.repo.add(row)
        row.amount = amount
        row.received_date = received_date
        row.created_by = actor_id
        self.db.flush()
        return row, before

    def upsert_housing_support(
        self,
        *,
        context: RequestUserContext,
        client_id: UUID,
        year: int,
        month: int,
        data: HousingSupportInput,
        today: date,
    ) -> HousingSupport:
        amount = money.parse_amount(data.amount)
        period = Period(year, month)
        client = self._get_client(client_id)

        captured: dict[str, object] = {}

        def write(client_month: ClientMonth) -> HousingSupport:
            row, captured["before"] = self._apply_housing_support(
                client_month,
                amount=amount,
                received_date=data.received_date,
                actor_id=context.user_id,
            )
            return row

        _, row = self._gated_period_write(context=context, client=client, period=period, today=today, write=write)
        before = captured.get("before")
        self._audit(
            context=context,
            action_type="update" if before else "create",
            entity="housing_support",
            entity_id=row.id,
            client_id=client.id,
            period=period,
            before=before,
            after=self.serialize_housing_support(row),
        )
        return row

    # ---------- Rent ----------
    def _apply_rent_payment(
        self,
        client_month: ClientMonth,
        *,
        paid_amount: Decimal | None,
        expected_amount: Decimal | None,
        paid_date: date | None,
        payment_method_id: UUID | None,
        is_confirmed: bool,
    ) -> tuple[RentPayment, dict[str, object] | None]:
        row = self.repo.get_rent_payment(client_month.id)
        before = self.serialize_rent_payment(row) if row else None
        if row is None:
            row = RentPayment(client_month_id=client_month.id)
            self.repo.add(row)
        row.paid_amount = paid_amount
        row.expected_amount = expected_amount
        row.paid_date = paid_date
        row.payment_method_id = payment_method_id
        row.is_confirmed = is_confirmed
        self.db.flush()
        return row, before

    def upsert_rent_payment(
        self,
        *,
        context: RequestUserContext,
        client_id: UUID,
        year: int,
        month: int,
        data: RentPaymentInput,
        today: date,
    ) -> RentPayment:
        paid_amount = _optional_amount(data.paid_amount)
        expected_amount = _optional_amount(data.expected_amount)
        period = Period(year, month)
        client = self._get_client(client_id)

        captured: dict[str, object] = {}

        def write(client_month: ClientMonth) -> RentPayment:
            row, captured["before"] = self._apply_rent_payment(
                client_month,
                paid_amount=paid_amount,
                expected_amount=expected_amount,
                paid_date=data.paid_date,
                payment_method_id=data.payment_method_id,
                is_confirmed=data.is_confirmed,
            )
            return row

        _, row = self._gated_period_write(context=context, client=client, period=period, today=today, write=write)
        before = captured.get("before")
        self._audit(
            context=context,
            action_type="update" if before else "create",
            entity="rent_payment",
            entity_id=row.id,
            client_id=client.id,
            period=period,
            before=before,
            after=self.serialize_rent_payment(row),
        )
        return row

    # ---------- LTH payments ----------
    def create_lth_payment(
        self,
        *,
        context: RequestUserContext,
        client_id: UUID,
        year: int,
        month: int,
        data: LthPaymentInput,
        today: date,
    ) -> LthPayment:
        amount = money.parse_amount(data.amount)
        period = Period(year, month)
        client = self._get_client(client_id)

        def write(client_month: ClientMonth) -> LthPayment:
            row = LthPayment(client_month_id=client_month.id, amount=amount, received_date=data.received_date)
            self.repo.add(row)
            return row

        _, row = self._gated_period_write(context=context, client=client, period=period, today=today, write=write)
        self._audit(
            context=context,
            action_type="create",
            entity="lth_payment",
            entity_id=row.id,
            client_id=client.id,
            period=period,
            before=None,
            after=self.serialize_lth_payment(row),
        )
        return row

    def _get_lth_payment(self, payment_id: UUID) -> LthPayment:
        row = self.repo.get_lth_payment(payment_id)
        if row is None:
            raise NotFoundError("LTH payment not found.")
        return row

    def update_lth_payment(
        self,
        *,
        context: RequestUserContext,
        payment_id: UUID,
        data: LthPaymentUpdate,
        today: date,
    ) -> LthPayment:
        amount = _optional_amount(data.amount)
        row = self._get_lth_payment(payment_id)
        client, client_month = self._month_scope(row.client_month_id)
        before = self.serialize_lth_payment(row)

        def write() -> LthPayment:
            if amount is not None:
                row.amount = amount
            if data.received_date is not None:
                row.received_date = data.received_date
            self.db.flush()
            return row

        self._gated_row_write(context=context, client=client, client_month=client_month, today=today, write=write)
        self._audit(
            context=context,
            action_type="update",
            entity="lth_payment",
            entity_id=row.id,
            client_id=client.id,
            period=Period.of(client_month),
            before=before,
            after=self.serialize_lth_payment(row),
        )
        return row

    def delete_lth_payment(self, *, context: RequestUserContext, payment_id: UUID, today: date) -> None:
        row = self._get_lth_payment(payment_id)
        client, client_month = self._month_scope(row.client_month_id)
        before = self.serialize_lth_payment(row)
        period = Period.of(client_month)

        self._gated_row_write(
            context=context,
            client=client,
            client_month=client_month,
            today=today,
            write=lambda: self.repo.delete(row),
        )
        self._audit(
            context=context,
            action_type="delete",
            entity="lth_payment",
            entity_id=payment_id,
            client_id=client.id,
            period=period,
            before=before,
            after=None,
        )

    # ---------- Expenses ----------
    def create_expense(
        self,
        *,
        context: RequestUserContext,
        client_id: UUID,
        year: int,
        month: int,
        data: ExpenseInput,
        today: date,
    ) -> Expense:
        amount = money.parse_amount(data.amount)
        period = Period(year, month)
        client = self._get_client(client_id)

        def write(client_month: ClientMonth) -> Expense:
            row = Expense(
                client_month_id=client_month.id,
                category_id=data.category_id,
                amount=amount,
                expense_date=data.expense_date,
                notes=data.notes.strip() if data.notes else None,
            )
            self.repo.add(row)
            return row

        _, row = self._gated_period_write(context=context, client=client, period=period, today=today, write=write)
        self._audit(
            context=context,
            action_type="create",
            entity="expense",
            entity_id=row.id,
            client_id=client.id,
            period=period,
            before=None,
            after=self.serialize_expense(row),
        )
        return row

    def _get_expense(self, expense_id: UUID) -> Expense:
        row = self.repo.get_expense(expense_id)
        if row is None:
            raise NotFoundError("Expense not found.")
        return row

    def update_expense(
        self,
        *,
        context: RequestUserContext,
        expense_id: UUID,
        data: ExpenseUpdate,
        today: date,
    ) -> Expense:
        amount = _optional_amount(data.amount)
        row = self._get_expense(expense_id)
        client, client_month = self._month_scope(row.client_month_id)
        before = self.serialize_expense(row)

        def write() -> Expense:
            if amount is not None:
                row.amount = amount
            if data.category_id is not None:
                row.category_id = data.category_id
            if data.expense_date is not None:
                row.expense_date = data.expense_date
            if data.notes is not None:
                row.notes = data.notes.strip() or None
            self.db.flush()
            return row

        self._gated_row_write(context=context, client=client, client_month=client_month, today=today, write=write)
        self._audit(
            context=context,
            action_type="update",
            entity="expense",
            entity_id=row.id,
            client_id=client.id,
            period=Period.of(client_month),
            before=before,
            after=self.serialize_expense(row),
        )
        return row

    def delete_expense(self, *, context: RequestUserContext, expense_id: UUID, today: date) -> None:
        row = self._get_expense(expense_id)
        client, client_month = self._month_scope(row.client_month_id)
        before = self.serialize_expense(row)
        period = Period.of(client_month)

        def write() -> None:
            for document in self.repo.list_expense_documents(row.id):
                self.repo.delete(document)
            self.repo.delete(row)

        self._gated_row_write(context=context, client=client, client_month=client_month, today=today, write=write)
        self._audit(
            context=context,
            action_type="delete",
            entity="expense",
            entity_id=expense_id,
            client_id=client.id,
            period=period,
            before=before,
            after=None,
        )

    def add_expense_document(
        self,
        *,
        context: RequestUserContext,
        expense_id: UUID,
        file_url: str,
        today: date,
    ) -> ExpenseDocument:
        expense = self._get_expense(expense_id)
        client, client_month = self._month_scope(expense.client_month_id)

        def write() -> ExpenseDocument:
            row = ExpenseDocument(
                expense_id=expense.id,
                client_id=client.id,
                client_month_id=client_month.id,
                file_url=file_url.strip(),
                uploaded_by=context.user_id,
                uploaded_at=datetime.utcnow(),
            )
            self.repo.add(row)
            return row

        row = self._gated_row_write(context=context, client=client, client_month=client_month, today=today, write=write)
        self.audit.record(
            context=context,
            action_type="create",
            entity="expense_document",
            entity_id=row.id,
            new_data=self.serialize_expense_document(row),
        )
        return row

    def list_expense_documents(self, expense_id: UUID) -> list[ExpenseDocument]:
        self._get_expense(expense_id)
        return self.repo.list_expense_documents(expense_id)

    # ---------- Month reads ----------
    def month_detail(self, *, client_month_id: UUID, today: date) -> dict[str, object]:
        client_month = self.periods.read_client_month(client_month_id=client_month_id, today=today)
        housing_support = self.repo.get_housing_support(client_month.id)
        rent_payment = self.repo.get_rent_payment(client_month.id)
        return {
            **self.periods.serialize_client_month(client_month),
            "housing_support": self.serialize_housing_support(housing_support) if housing_support else None,
            "rent_payment": self.serialize_rent_payment(rent_payment) if rent_payment else None,
            "lth_payments": [self.serialize_lth_payment(row) for row in self.repo.list_lth_payments(client_month.id)],
            "expenses": [self.serialize_expense(row) for row in self.repo.list_expenses(client_month.id)],
            "pool_fund": self.pool_fund.month_result(client_month.id),
        }

    # ---------- Bulk updates ----------
    def _bulk_write(self, client_month: ClientMonth, *, financial_type: FinancialType, amount: Decimal, actor_id: UUID):
        if financial_type is FinancialType.HOUSING_SUPPORT:
            existing = self.repo.get_housing_support(client_month.id)
            row, before = self._apply_housing_support(
                client_month,
                amount=amount,
                received_date=existing.received_date if existing else None,
                actor_id=actor_id,
            )
            return "housing_support", row, before, self.serialize_housing_support
        if financial_type is FinancialType.RENT:
            existing = self.repo.get_rent_payment(client_month.id)
            row, before = self._apply_rent_payment(
                client_month,
                paid_amount=amount,
                expected_amount=existing.expected_amount if existing else None,
                paid_date=existing.paid_date if existing else None,
                payment_method_id=existing.payment_method_id if existing else None,
                is_confirmed=existing.is_confirmed if existing else False,
            )
            return "rent_payment", row, before, self.serialize_rent_payment
        if financial_type is FinancialType.EXPENSE:
            row = Expense(client_month_id=client_month.id, amount=amount)
            self.repo.add(row)
            return "expense", row, None, self.serialize_expense
        row = LthPayment(client_month_id=client_month.id, amount=amount)
        self.repo.add(row)
        return "lth_payment", row, None, self.serialize_lth_payment

    def bulk_update(self, *, context: RequestUserContext, data: BulkUpdateData, today: date) -> BulkUpdateResult:
        """Apply one financial write per client; each client succeeds or fails alone."""

        period = Period(data.year, data.month)
        result = BulkUpdateResult()

        for client_id in dict.fromkeys(data.client_ids):
            raw = data.amount if data.use_uniform_amount else data.client_amounts.get(client_id)
            if raw is None or (isinstance(raw, str) and not raw.strip()):
                result.skipped_count += 1
                continue

            try:
                amount = money.parse_amount(raw)
                with self.db.begin_nested():
                    client = self._get_client(client_id)
                    existing = self.repo.find_client_month(client_id=client.id, year=period.year, month=period.month)
                    self.gate.ensure_can_mutate(
                        context=context,
                        client=client,
                        client_month=existing,
                        period=period,
                        today=today,
                    )
                    client_month = existing or self.periods.find_or_create_client_month(
                        client_id=client.id,
                        year=period.year,
                        month=period.month,
                    )
                    entity, row, before, serialize = self._bulk_write(
                        client_month,
                        financial_type=data.financial_type,
                        amount=amount,
                        actor_id=context.user_id,
                    )
                    self.pool_fund.refresh_snapshot(client_month)
                self.db.commit()
            except LedgerError as exc:
                self.db.rollback()
                logger.warning("bulk %s skipped client %s: %s", data.financial_type.value, client_id, exc.code)
                result.failed.append(BulkFailure(client_id=client_id, code=exc.code, detail=str(exc.detail)))
                continue
            except IntegrityError:
                self.db.rollback()
                logger.warning("bulk %s hit constraint violation for client %s", data.financial_type.value, client_id)
                result.failed.append(
                    BulkFailure(
                        client_id=client_id,
                        code=ConstraintViolationError.code,
                        detail=ConstraintViolationError.default_detail,
                    )
                )
                continue
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception("bulk %s write failed for client %s", data.financial_type.value, client_id)
                result.failed.append(
                    BulkFailure(
                        client_id=client_id,
                        code=WriteFailedError.code,
                        detail=WriteFailedError.default_detail,
                    )
                )
                continue

            result.updated_count += 1
            self._audit(
                context=context,
                action_type="update" if before else "create",
                entity=entity,
                entity_id=row.id,
                client_id=client_id,
                period=period,
                before=before,
                after=serialize(row),
            )

        label = period.month_start.strftime("%B %Y")
        self.audit.activity(
            f"Bulk {data.financial_type.value.replace('_', ' ')} update for {result.updated_count} clients - {label}"
        )
        logger.info(
            "bulk %s update %s: updated=%s skipped=%s failed=%s",
            data.financial_type.value,
            period.label,
            result.updated_count,
            result.skipped_count,
            len(result.failed),
        )
        return result
