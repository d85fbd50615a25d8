"""rfpdesk HTTP API application factory.

Endpoints are plain ``def`` functions, so FastAPI runs them on its worker
threadpool; each request gets its own SQLite connection from ``api.deps``.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rfpdesk.api.routers import (
    assistant,
    company,
    documents,
    drafts,
    generate,
    projects,
    questions,
    sources,
)
from rfpdesk.config import RfpDeskConfig, load_config
from rfpdesk.db.connection import Database
from rfpdesk.db.schema import initialize
from rfpdesk.errors import RfpDeskError

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def _app_version() -> str:
    try:
        return version("rfpdesk")
    except PackageNotFoundError:
        return "0.0.0"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


# ------------------------------------------------------------------
# Exception handlers
# ------------------------------------------------------------------


def _error_body(message: str, details: object = None) -> dict:
    body: dict = {"error": message}
    if details:
        body["details"] = details
    return body


async def _rfpdesk_error(request: Request, exc: RfpDeskError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.details))


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")} for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content=_error_body("Invalid request", details))


async def _database_error(request: Request, exc: sqlite3.Error) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=_error_body("Database error", str(exc)))


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=_error_body("Internal server error"))


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------


def create_app(config: RfpDeskConfig | None = None) -> FastAPI:
    """Build the API application.

    The database schema is migrated here, before the first request.

    Args:
        config: Loaded configuration; defaults to load_config().
    """
    config = config or load_config()
    configure_logging(config.server.log_level)

    database = Database(config.database.path)
    conn = database.connect()
    try:
        initialize(conn)
    finally:
        conn.close()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("rfpdesk API starting (database: %s)", database.db_path)
        yield
        logger.info("rfpdesk API shutting down")

    app = FastAPI(title="rfpdesk", version=_app_version(), lifespan=lifespan)
    app.state.config = config
    app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RfpDeskError, _rfpdesk_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(sqlite3.Error, _database_error)
    app.add_exception_handler(Exception, _unhandled_error)

    @app.get("/health", tags=["system"])
    def health() -> dict:
        return {"status": "ok", "version": app.version}

    for module in (projects, documents, sources, company, questions, drafts, generate, assistant):
        app.include_router(module.router)

    return app
