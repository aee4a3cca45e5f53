"""
quillpost API

JSON backend for a personal blog: posts, comments, email subscriptions,
and an administrator area for publishing and broadcasting.
"""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware

from quillpost.config import get_settings
from quillpost.middleware import (
    RequestIDMiddleware,
    SecurityHeadersMiddleware,
    configure_logging,
)
from quillpost.routers import admin, auth, pages, posts, subscribers
from quillpost.services.auth import check_session_secret, ensure_default_admin
from quillpost.services.errors import StoreError
from quillpost.services.http_client import close_shared_client
from quillpost.services.mailer import build_dispatcher
from quillpost.services.store import BlogStore
from quillpost.services.uploads import UPLOADS_ROUTE

logger = logging.getLogger(__name__)

settings = get_settings()
configure_logging(settings.debug)

VERSION = "0.1.0"

# Health check cache: (result_dict, timestamp)
_health_cache: tuple[dict[str, Any], float] | None = None
_HEALTH_CACHE_TTL = 30  # seconds


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: open the store and mailer, close them on exit."""
    check_session_secret(settings)
    store = BlogStore(settings.database_url)
    store.init()
    ensure_default_admin(store)
    app.state.store = store
    app.state.dispatcher = build_dispatcher(settings)
    try:
        yield
    finally:
        await close_shared_client()
        store.close()


app = FastAPI(
    title="quillpost API",
    description="Personal blog with comments, subscriptions and email broadcasts",
    version=VERSION,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID"],
)

# Administrator sessions (signed cookie)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    max_age=settings.session_max_age,
    same_site="lax",
    https_only=settings.environment == "production",
)

app.add_middleware(SecurityHeadersMiddleware)

# Request ID (added last, so it runs outermost)
app.add_middleware(RequestIDMiddleware)

# Routers
app.include_router(posts.router, prefix="/api")
app.include_router(subscribers.router, prefix="/api")
app.include_router(auth.router, prefix="/api")
app.include_router(admin.router, prefix="/api")
app.include_router(pages.router)

# Locally stored uploads; blob-backed uploads are served by Azure
if not settings.azure_storage_account:
    app.mount(
        UPLOADS_ROUTE,
        StaticFiles(directory=settings.upload_dir, check_dir=False),
        name="uploads",
    )


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("Storage error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Storage error"})


def _run_health_checks(app: FastAPI) -> dict[str, Any]:
    """Run all health checks, returning the full response body."""
    global _health_cache
    now = time.time()
    if _health_cache is not None:
        cached_result, cached_at = _health_cache
        if now - cached_at < _HEALTH_CACHE_TTL:
            return cached_result

    store: BlogStore | None = getattr(app.state, "store", None)
    dispatcher = getattr(app.state, "dispatcher", None)
    checks = {
        "database": "ok" if store is not None and store.ping() else "fail",
        "email": "ok" if dispatcher is not None and dispatcher.enabled else "fail",
    }
    failed = [k for k, v in checks.items() if v != "ok"]

    if checks["database"] != "ok":
        overall = "unhealthy"
    elif failed:
        overall = "degraded"
    else:
        overall = "ok"
    if failed:
        logger.warning("Health check %s, failed: %s", overall, ", ".join(failed))

    result: dict[str, Any] = {
        "status": overall,
        "service": "quillpost-api",
        "version": VERSION,
        "checks": checks,
    }
    _health_cache = (result, now)
    return result


@app.get("/api/health")
async def health_check(request: Request) -> JSONResponse:
    """Health check verifying service dependencies."""
    result = _run_health_checks(request.app)
    status_code = 200 if result["status"] in ("ok", "degraded") else 503
    return JSONResponse(content=result, status_code=status_code)
