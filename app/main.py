"""FastAPI application entry point for the inbox service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi_pagination import add_pagination

from app.config import get_settings
from app.core.app_state import init_state, shutdown_state
from app.exceptions import ThreadAccessDeniedError, ThreadNotFoundError
from app.infra.logging_config import LoggingConfig
from app.routers import outbound, system, webhooks
from app.routers.threads_router import threads_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build process dependencies; refuse to start on missing configuration."""
    app.state.inbox = init_state()
    try:
        yield
    finally:
        shutdown_state()
        app.state.inbox = None


def create_app(testing: bool = False) -> FastAPI:
    LoggingConfig()
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        lifespan=None if testing else lifespan,
    )
    app.state.inbox = None

    app.include_router(system.router)
    app.include_router(webhooks.router)
    app.include_router(outbound.router)
    app.include_router(threads_router)
    add_pagination(app)

    @app.exception_handler(ThreadAccessDeniedError)
    async def _access_denied(request: Request, exc: ThreadAccessDeniedError):
        return JSONResponse(status_code=403, content={"detail": str(exc)})

    @app.exception_handler(ThreadNotFoundError)
    async def _not_found(request: Request, exc: ThreadNotFoundError):
        return JSONResponse(status_code=404, content={"detail": "Thread not found"})

    return app


app = create_app(testing=get_settings().is_test)
