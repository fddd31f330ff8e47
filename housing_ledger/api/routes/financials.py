"""Monthly financial record endpoints and bulk updates."""

from __future__ import annotations

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Path, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from housing_ledger.core.auth import RequestUserContext, get_current_user_context
from housing_ledger.core.clock import get_today
from housing_ledger.db.dependencies import get_db_session
from housing_ledger.services.aggregation import Aggregator
from housing_ledger.services.financial_records import (
    BulkUpdateData,
    ExpenseInput,
    ExpenseUpdate,
    FinancialRecordService,
    FinancialType,
    HousingSupportInput,
    LthPaymentInput,
    LthPaymentUpdate,
    RentPaymentInput,
)
from housing_ledger.services.periods import PeriodService, is_editable
from housing_ledger.services.pool_fund import PoolFundService

router = APIRouter(tags=["financials"])

# Amounts travel as decimal strings ("1250.00") or whole numbers; floats are refused.
AmountValue = str | int

YearPath = Annotated[int, Path(ge=1, le=9999)]
MonthPath = Annotated[int, Path(ge=1, le=12)]


class HousingSupportPayload(BaseModel):
    amount: AmountValue
    received_date: date | None = None


class RentPaymentPayload(BaseModel):
    paid_amount: AmountValue | None = None
    expected_amount: AmountValue | None = None
    paid_date: date | None = None
    payment_method_id: UUID | None = None
    is_confirmed: bool = False


class LthPaymentPayload(BaseModel):
    amount: AmountValue
    received_date: date | None = None


class LthPaymentUpdatePayload(BaseModel):
    amount: AmountValue | None = None
    received_date: date | None = None


class ExpensePayload(BaseModel):
    amount: AmountValue
    category_id: UUID | None = None
    expense_date: date | None = None
    notes: str | None = Field(default=None, max_length=4000)


class ExpenseUpdatePayload(BaseModel):
    amount: AmountValue | None = None
    category_id: UUID | None = None
    expense_date: date | None = None
    notes: str | None = Field(default=None, max_length=4000)


class ExpenseDocumentPayload(BaseModel):
    file_url: str = Field(min_length=1, max_length=2000)


class BulkUpdatePayload(BaseModel):
    year: int = Field(ge=1, le=9999)
    month: int = Field(ge=1, le=12)
    financial_type: FinancialType
    client_ids: list[UUID] = Field(min_length=1)
    amount: AmountValue | None = None
    use_uniform_amount: bool = False
    client_amounts: dict[UUID, AmountValue] = Field(default_factory=dict)


def _service(db: Session) -> FinancialRecordService:
    return FinancialRecordService(db)


@router.get("/client-months/{client_month_id}")
def get_client_month(
    client_month_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    today: date = Depends(get_today),
) -> dict[str, object]:
    return _service(db).month_detail(client_month_id=client_month_id, today=today)


@router.get("/client-months/{client_month_id}/totals")
def get_client_month_totals(
    client_month_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    totals = Aggregator(db).aggregate_month(client_month_id)
    return {"clientMonthId": str(client_month_id), **totals.as_dict()}


@router.get("/client-months/{client_month_id}/pool-fund")
def get_client_month_pool_fund(
    client_month_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return PoolFundService(db).month_result(client_month_id)


@router.put("/clients/{client_id}/months/{year}/{month}/housing-support")
def put_housing_support(
    client_id: UUID,
    payload: HousingSupportPayload,
    year: YearPath,
    month: MonthPath,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    today: date = Depends(get_today),
) -> dict[str, object]:
    service = _service(db)
    row = service.upsert_housing_support(
        context=context,
        client_id=client_id,
        year=year,
        month=month,
        data=HousingSupportInput(amount=payload.amount, received_date=payload.received_date),
        today=today,
    )
    return service.serialize_housing_support(row)


@router.put("/clients/{client_id}/months/{year}/{month}/rent-payment")
def put_rent_payment(
    client_id: UUID,
    payload: RentPaymentPayload,
    year: YearPath,
    month: MonthPath,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    today: date = Depends(get_today),
) -> dict[str, object]:
    service = _service(db)
    row = service.upsert_rent_payment(
        context=context,
        client_id=client_id,
        year=year,
        month=month,
        data=RentPaymentInput(**payload.model_dump()),
        today=today,
    )
    return service.serialize_rent_payment(row)


@router.post("/clients/{client_id}/months/{year}/{month}/lth-payments", status_code=status.HTTP_201_CREATED)
def post_lth_payment(
    client_id: UUID,
    payload: LthPaymentPayload,
    year: YearPath,
    month: MonthPath,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    today: date = Depends(get_today),
) -> dict[str, object]:
    service = _service(db)
    row = service.create_lth_payment(
        context=context,
        client_id=client_id,
        year=year,
        month=month,
        data=LthPaymentInput(amount=payload.amount, received_date=payload.received_date),
        today=today,
    )
    return service.serialize_lth_payment(row)


@router.patch("/lth-payments/{payment_id}")
def patch_lth_payment(
    payment_id: UUID,
    payload: LthPaymentUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    today: date = Depends(get_today),
) -> dict[str, object]:
    service = _service(db)
    row = service.update_lth_payment(
        context=context,
        payment_id=payment_id,
        data=LthPaymentUpdate(**payload.model_dump(exclude_unset=True)),
        today=today,
    )
    return service.serialize_lth_payment(row)


@router.delete("/lth-payments/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_lth_payment(
    payment_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    today: date = Depends(get_today),
) -> None:
    _service(db).delete_lth_payment(context=context, payment_id=payment_id, today=today)


@router.post("/clients/{client_id}/months/{year}/{month}/expenses", status_code=status.HTTP_201_CREATED)
def post_expense(
    client_id: UUID,
    payload: ExpensePayload,
    year: YearPath,
    month: MonthPath,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    today: date = Depends(get_today),
) -> dict[str, object]:
    service = _service(db)
    row = service.create_expense(
        context=context,
        client_id=client_id,
        year=year,
        month=month,
        data=ExpenseInput(**payload.model_dump()),
        today=today,
    )
    return service.serialize_expense(row)


@router.patch("/expenses/{expense_id}")
def patch_expense(
    expense_id: UUID,
    payload: ExpenseUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    today: date = Depends(get_today),
) -> dict[str, object]:
    service = _service(db)
    row = service.update_expense(
        context=context,
        expense_id=expense_id,
        data=ExpenseUpdate(**payload.model_dump(exclude_unset=True)),
        today=today,
    )
    return service.serialize_expense(row)


@router.delete("/expenses/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_expense(
    expense_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    today: date = Depends(get_today),
) -> None:
    _service(db).delete_expense(context=context, expense_id=expense_id, today=today)


@router.get("/expenses/{expense_id}/documents")
def list_expense_documents(
    expense_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return {"items": [service.serialize_expense_document(row) for row in service.list_expense_documents(expense_id)]}


@router.post("/expenses/{expense_id}/documents", status_code=status.HTTP_201_CREATED)
def post_expense_document(
    expense_id: UUID,
    payload: ExpenseDocumentPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    today: date = Depends(get_today),
) -> dict[str, object]:
    service = _service(db)
    row = service.add_expense_document(context=context, expense_id=expense_id, file_url=payload.file_url, today=today)
    return service.serialize_expense_document(row)


@router.post("/bulk-updates")
def post_bulk_update(
    payload: BulkUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    today: date = Depends(get_today),
) -> dict[str, object]:
    result = _service(db).bulk_update(
        context=context,
        data=BulkUpdateData(**payload.model_dump()),
        today=today,
    )
    return result.as_dict()


@router.get("/client-months/{client_month_id}/editable")
def get_client_month_editable(
    client_month_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
    today: date = Depends(get_today),
) -> dict[str, object]:
    periods = PeriodService(db)
    client_month = periods.read_client_month(client_month_id=client_month_id, today=today)
    return {
        "clientMonthId": str(client_month.id),
        "isLocked": client_month.is_locked,
        "isEditable": is_editable(client_month, context),
    }
