"""Top-level API router."""

from fastapi import APIRouter

from housing_ledger.api.routes.audit import router as audit_router
from housing_ledger.api.routes.clients import router as clients_router
from housing_ledger.api.routes.exports import router as exports_router
from housing_ledger.api.routes.financials import router as financials_router
from housing_ledger.api.routes.health import router as health_router
from housing_ledger.api.routes.me import router as me_router
from housing_ledger.api.routes.reference import router as reference_router
from housing_ledger.api.routes.reports import router as reports_router
from housing_ledger.api.routes.users import router as users_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(me_router)
api_router.include_router(users_router)
api_router.include_router(reference_router)
api_router.include_router(clients_router)
api_router.include_router(financials_router)
api_router.include_router(reports_router)
api_router.include_router(exports_router)
api_router.include_router(audit_router)
