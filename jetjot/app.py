"""
FastAPI application entry point for the JetJot backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from jetjot.config import get_settings
from jetjot.errors import JetJotError, RateLimited
from jetjot.routes import router

logger = logging.getLogger(__name__)


async def handle_jetjot_error(request: Request, exc: JetJotError) -> JSONResponse:
    headers = {}
    if isinstance(exc, RateLimited):
        headers["Retry-After"] = str(exc.minutes * 60)
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
        headers=headers,
    )


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="JetJot Backend (FastAPI)", version="0.1.0")
    app.add_exception_handler(JetJotError, handle_jetjot_error)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
