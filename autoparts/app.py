"""Application factory for the parts & billing API.

``create_app`` wires configuration, the database schema, the change feed,
middleware, error handling and the ``/api/v1`` routers into one FastAPI
instance. ``autoparts.main`` builds the process-wide app from it; tests build
their own so each one gets a fresh change feed.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.errors import (
    LedgerError,
    http_exception_handler,
    ledger_exception_handler,
    validation_exception_handler,
)
from .db.session import Base, engine
from .middlewares import RequestIdMiddleware

# Importing the models registers their tables on ``Base.metadata``.
from .models import audit as _audit  # noqa: F401
from .models import invoice as _invoice  # noqa: F401
from .models import part as _part  # noqa: F401
from .models import payment as _payment  # noqa: F401
from .routers import customers, inventory, invoices, payments, reports, sync
from .services.changes import ChangeFeed

API_ROUTERS = (
    inventory.router,
    invoices.router,
    payments.router,
    customers.router,
    reports.router,
    sync.router,
)


def create_app(*, create_schema: bool = True, change_feed: ChangeFeed | None = None) -> FastAPI:
    app = FastAPI(title=settings.APP_NAME)

    # One feed per app; handlers reach it through ``deps.feed.get_change_feed``.
    app.state.change_feed = change_feed or ChangeFeed()

    if create_schema:
        Base.metadata.create_all(bind=engine)

    app.add_middleware(RequestIdMiddleware)
    if settings.ALLOWED_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.ALLOWED_ORIGINS,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(LedgerError, ledger_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    for router in API_ROUTERS:
        app.include_router(router)

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    return app


__all__ = ["create_app"]
