"""ORM model package."""

from housing_ledger.models.entities import (
    Activity,
    AuditLog,
    Client,
    ClientDocument,
    ClientHistory,
    ClientMonth,
    County,
    DocumentType,
    Expense,
    ExpenseCategory,
    ExpenseDocument,
    HousingSupport,
    LthPayment,
    PaymentMethod,
    PoolFund,
    RentPayment,
    ServiceStatus,
    ServiceType,
    User,
    UserRole,
)

__all__ = [
    "Activity",
    "AuditLog",
    "Client",
    "ClientDocument",
    "ClientHistory",
    "ClientMonth",
    "County",
    "DocumentType",
    "Expense",
    "ExpenseCategory",
    "ExpenseDocument",
    "HousingSupport",
    "LthPayment",
    "PaymentMethod",
    "PoolFund",
    "RentPayment",
    "ServiceStatus",
    "ServiceType",
    "User",
    "UserRole",
]
