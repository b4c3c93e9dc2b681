# communiserver/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from .config import settings
from .db import session_scope
from .logging_config import configure_logging
from .middleware.request_id import RequestIDMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware

from .routers import activities, analytics, auth, health, locations, settings as settings_routes
from .routers import uploads, users, verification
from .services.settings_service import seed_all

log = logging.getLogger("communiserver")


def _cors_origins() -> list[str]:
    val = getattr(settings, "cors_allow_origins", ["*"])
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.seed_on_startup:
        with session_scope() as db:
            result = seed_all(db)
        log.info("startup seed complete", extra={"count": result["settings_created"]})
    yield


async def _integrity_error(request: Request, exc: IntegrityError) -> JSONResponse:
    log.warning("integrity error: %s", exc.orig if exc.orig is not None else exc)
    return JSONResponse(status_code=409, content={"detail": "conflict"})


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)

    # added first = innermost; the request id must exist before the access line is written
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(IntegrityError, _integrity_error)
    app.add_exception_handler(Exception, _unhandled_error)

    prefix = settings.api_prefix

    # Core
    app.include_router(health.router, prefix=prefix)
    app.include_router(auth.router, prefix=prefix)
    app.include_router(verification.router, prefix=prefix)
    app.include_router(settings_routes.router, prefix=prefix)

    # Locations + identity
    for r in locations.routers:
        app.include_router(r, prefix=prefix)
    app.include_router(users.router, prefix=prefix)
    app.include_router(users.profiles_router, prefix=prefix)

    # Activities / tasks / reports
    app.include_router(activities.router, prefix=prefix)
    app.include_router(activities.tasks_router, prefix=prefix)
    app.include_router(activities.reports_router, prefix=prefix)
    app.include_router(uploads.router, prefix=prefix)

    # Analytics
    app.include_router(analytics.router, prefix=prefix)

    return app


app = create_app()
