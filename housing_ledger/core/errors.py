"""Domain error types raised by services and rendered by FastAPI."""

from __future__ import annotations

from fastapi import HTTPException, status


class LedgerError(HTTPException):
    """Base class for domain failures with a stable machine-readable code."""

    code = "ledger_error"
    http_status = status.HTTP_400_BAD_REQUEST
    default_detail = "Request could not be processed."

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(
            status_code=self.http_status,
            detail=detail or self.default_detail,
            headers={"X-Error-Code": self.code},
        )


class InvalidAmountError(LedgerError):
    code = "invalid_amount"
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Amount must be a decimal number with at most two decimal places."


class EditWindowClosedError(LedgerError):
    code = "edit_window_closed"
    http_status = status.HTTP_423_LOCKED
    default_detail = "This month is locked. Only super admins can make changes."


class ServiceAgreementExpiredError(LedgerError):
    code = "service_agreement_expired"
    http_status = status.HTTP_409_CONFLICT
    default_detail = "Client service agreement has expired. Upload a current agreement or request an override."


class NotFoundError(LedgerError):
    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND
    default_detail = "Resource not found."


class ConstraintViolationError(LedgerError):
    code = "constraint_violation"
    http_status = status.HTTP_409_CONFLICT
    default_detail = "Write violated database constraints."


class WriteFailedError(LedgerError):
    code = "write_failed"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Write could not be stored."
