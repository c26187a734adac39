"""FastAPI application factory.

APP_ROLE decides what is mounted:
- public: /health, /bookings, /rooms
- worker: all of the above plus /tasks/* maintenance endpoints
"""

import os
import time
from typing import Literal

from fastapi import FastAPI, Request, Response

from bunkhouse.observability.correlation import (
    CORRELATION_ID_HEADER,
    correlation_id_from_header,
    reset_correlation_id,
    set_correlation_id,
)
from bunkhouse.observability.logging import get_logger
from bunkhouse.observability.redaction import safe_log_context

from .routers import public, worker

AppRole = Literal["public", "worker"]

logger = get_logger(__name__)


def _install_request_context(app: FastAPI) -> None:
    """Bind a correlation ID per request and log one line when it completes."""

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next) -> Response:
        cid = correlation_id_from_header(request.headers.get(CORRELATION_ID_HEADER))
        token = set_correlation_id(cid)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            logger.info(
                "request completed",
                extra={
                    "extra_fields": safe_log_context(
                        method=request.method,
                        path=request.url.path,
                        status_code=response.status_code,
                        duration_ms=round((time.perf_counter() - started) * 1000, 1),
                    )
                },
            )
            return response
        finally:
            reset_correlation_id(token)


def create_app(role: AppRole | None = None) -> FastAPI:
    """Build the app for a role (default: APP_ROLE env var, else "public")."""
    role = role or os.environ.get("APP_ROLE", "public")  # type: ignore[assignment]

    app = FastAPI(title="Bunkhouse", docs_url=None, redoc_url=None)
    _install_request_context(app)

    app.include_router(public.router)
    if role == "worker":
        app.include_router(worker.router)

    return app
