"""FastAPI application - Data Catalog Service.

Serves scanned warehouse metadata and the curated content attached to it,
and routes edits to moderated content through the change request workflow.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import __version__, context
from .access.routes import router as access_router
from .catalog import routes as catalog_routes
from .catalog.loader import SnapshotLoader
from .catalog.refresh import SnapshotRefresher
from .config import Config
from .db import init_db, is_lock_timeout
from .envelope import ErrorBody, ErrorResponse
from .errors import CatalogError, StoreTimeoutError, ValidationError
from .identity import IdentityExtractor
from .permissions import RolePermissionStore
from .permissions.routes import router as permissions_router
from .requests.routes import router as change_requests_router

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    status: str
    version: str


def _error_response(exc: CatalogError) -> JSONResponse:
    body = ErrorResponse(error=ErrorBody(kind=exc.kind, message=exc.message, retryable=exc.retryable))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


def _startup(config: Config) -> None:
    """Create the schema, seed role permissions and optionally load a snapshot."""
    conn = init_db(config.store.db_path, config.store.timeout_seconds)
    try:
        RolePermissionStore(conn).seed(config.permissions.roles)
        if config.catalog.seed_on_startup and config.catalog.snapshot_file:
            SnapshotLoader().apply_file(conn, config.catalog.snapshot_file)
    finally:
        conn.close()

    context.configure(
        db_path=config.store.db_path,
        timeout=config.store.timeout_seconds,
        extractor=IdentityExtractor(
            user_header=config.identity.user_header,
            role_header=config.identity.role_header,
            jwt_user_claim=config.identity.jwt_user_claim,
            jwt_role_claim=config.identity.jwt_role_claim,
        ),
        default_role=config.permissions.default_role,
    )

    refresher = None
    if config.catalog.snapshot_file:
        refresher = SnapshotRefresher(
            config.store.db_path,
            config.catalog.snapshot_file,
            timeout=config.store.timeout_seconds,
        )
    catalog_routes.configure(refresher)


def create_app(config: Config | None = None) -> FastAPI:
    """Build the application; config defaults to the file named by CATALOG_SVC_CONFIG."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan - startup and shutdown."""
        logger.info("Starting data catalog service...")
        resolved = config or Config.from_env()
        _startup(resolved)
        logger.info(f"Data catalog service started (store: {resolved.store.db_path})")
        yield
        logger.info("Data catalog service stopped")

    app = FastAPI(
        title="Data Catalog Service",
        description="Browse warehouse metadata and moderate edits to descriptions, tags and the business glossary.",
        version=__version__,
        lifespan=lifespan,
    )

    @app.exception_handler(CatalogError)
    async def catalog_error_handler(request: Request, exc: CatalogError):
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        return _error_response(ValidationError(f"Invalid request: {details}"))

    @app.exception_handler(sqlite3.OperationalError)
    async def store_error_handler(request: Request, exc: sqlite3.OperationalError):
        if is_lock_timeout(exc):
            logger.warning(f"Store lock timeout on {request.url.path}: {exc}")
            return _error_response(StoreTimeoutError("Store is busy; retry the operation"))
        logger.error(f"Store error on {request.url.path}: {exc}")
        return _error_response(CatalogError(f"Store error: {exc}"))

    @app.get("/health", response_model=HealthResponse)
    async def health():
        """Health check endpoint."""
        return HealthResponse(status="healthy", version=__version__)

    app.include_router(permissions_router)
    app.include_router(catalog_routes.router)
    app.include_router(change_requests_router)
    app.include_router(access_router)
    return app


app = create_app()


def run(config: Config | None = None):
    """Run the service with uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = config or Config.from_env()
    uvicorn.run(
        "catalog_svc.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.reload,
    )


if __name__ == "__main__":
    run()
