"""FastAPI application entrypoint."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from housing_ledger.api.router import api_router
from housing_ledger.core.config import Settings, get_settings
from housing_ledger.core.errors import ConstraintViolationError
from housing_ledger.core.logging import configure_logging

logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {"name": "clients", "description": "Client records, documents, history and month locks."},
    {"name": "financials", "description": "Gated monthly housing support, rent, LTH and expense writes."},
    {"name": "reports", "description": "Dashboard metrics, yearly grid, reports and pool-fund summary."},
    {"name": "reference", "description": "Counties, service types and other lookup lists."},
]


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the ledger API. ``settings`` defaults to the cached environment settings."""

    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        description="Housing-support case ledger: monthly client financials, pool fund and reporting.",
        version="0.1.0",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        openapi_tags=OPENAPI_TAGS,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Error-Code", "Content-Disposition"],
    )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
        # Services map expected violations themselves; this covers the rest.
        logger.warning("unhandled integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": ConstraintViolationError.default_detail},
            headers={"X-Error-Code": ConstraintViolationError.code},
        )

    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/", tags=["system"])
    def root() -> dict[str, str]:
        return {"service": settings.app_name, "status": "running", "environment": settings.app_env}

    logger.debug("ledger API created (env=%s, edit window %s days)", settings.app_env, settings.edit_window_days)
    return app


app = create_app()
