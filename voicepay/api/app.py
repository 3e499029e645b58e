"""FastAPI application factory.

Usage:
    uvicorn voicepay.api.app:create_api --factory

The application container is created from the environment unless one is passed in (tests pass
a container assembled from in-memory fakes). Pool and client lifecycle is managed through the
FastAPI lifespan.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from voicepay.api.routes import create_router
from voicepay.app import App, create_app, shutdown, startup
from voicepay.config.logging import configure_logging
from voicepay.config.settings import load_settings
from voicepay.errors import PaymentError

logger = logging.getLogger(__name__)


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": {"code": code, "message": message}})


async def _payment_error_handler(request: Request, exc: PaymentError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.warning("request failed path=%s code=%s: %s", request.url.path, exc.code, exc.message)
    return _error(exc.http_status, exc.code, exc.message)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "invalid request")
    return _error(400, "validation_error", f"{location}: {message}" if location else message)


async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error path=%s", request.url.path)
    return _error(500, "internal_error", "internal server error")


def create_api(container: App | None = None) -> FastAPI:
    """Create the HTTP application.

    Args:
        container: Prebuilt application container. When omitted, settings are loaded from the
            environment and the production container is created.
    """

    if container is None:
        configure_logging()
        container = create_app(load_settings())

    @asynccontextmanager
    async def lifespan(api: FastAPI) -> AsyncGenerator[None, None]:
        await startup(container)
        logger.info("api started")
        try:
            yield
        finally:
            await shutdown(container)
            logger.info("api stopped")

    api = FastAPI(title="VoicePay", version="0.1.0", lifespan=lifespan)
    api.state.container = container

    api.add_exception_handler(PaymentError, _payment_error_handler)
    api.add_exception_handler(RequestValidationError, _request_validation_handler)
    api.add_exception_handler(Exception, _unexpected_error_handler)

    api.include_router(create_router())

    @api.get("/health", tags=["infrastructure"])
    async def health() -> dict[str, str]:
        """Liveness probe."""

        return {"status": "ok"}

    return api
