# backend/residence/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .db import init_db
from .logging_config import configure_logging

from .middleware.request_id import RequestIDMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware

from .routers.meta import router as meta_router
from .routers.dashboard import router as dashboard_router

from .routers.houses import router as houses_router
from .routers.rooms import router as rooms_router
from .routers.beds import router as beds_router
from .routers.residents import router as residents_router
from .routers.occupancy import router as occupancy_router

from .routers.invoices import router as invoices_router
from .routers.payments import router as payments_router
from .routers.inventory import router as inventory_router
from .routers.messages import router as messages_router
from .routers.maintenance import router as maintenance_router
from .routers.audit import router as audit_router

log = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    val = settings.cors_allow_origins
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


@asynccontextmanager
async def lifespan(_app: FastAPI):
    if settings.create_tables_on_startup:
        init_db()
        log.info("tables ensured", extra={"outcome": "create_all"})
    yield


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title="Residence Manager",
        version=settings.app_version,
        lifespan=lifespan,
    )

    # last added runs first: RequestID wraps StructuredLogging so the id is set
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    prefix = settings.api_prefix

    # Core
    app.include_router(meta_router, prefix=prefix)
    app.include_router(dashboard_router, prefix=prefix)

    # Layout + occupancy
    app.include_router(houses_router, prefix=prefix)
    app.include_router(rooms_router, prefix=prefix)
    app.include_router(beds_router, prefix=prefix)
    app.include_router(residents_router, prefix=prefix)
    app.include_router(occupancy_router, prefix=prefix)

    # Billing + operations
    app.include_router(invoices_router, prefix=prefix)
    app.include_router(payments_router, prefix=prefix)
    app.include_router(inventory_router, prefix=prefix)
    app.include_router(messages_router, prefix=prefix)
    app.include_router(maintenance_router, prefix=prefix)
    app.include_router(audit_router, prefix=prefix)

    return app


app = create_app()
