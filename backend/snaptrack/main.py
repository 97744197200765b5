"""FastAPI application — health, metrics and snapshot APIs."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from snaptrack.api.snapshots import router as snapshots_router
from snaptrack.config import settings
from snaptrack.logging_config import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan — setup / teardown."""
    setup_logging()
    logger.info("Snapshot API starting", extra={"env": settings.APP_ENV})
    yield
    logger.info("Snapshot API shutting down")


app = FastAPI(
    title="snaptrack",
    version="0.1.0",
    description="Snapshot lookup, deletion and page bootstrap",
    lifespan=lifespan,
)

app.include_router(snapshots_router)


@app.exception_handler(StarletteHTTPException)
async def http_error_as_message(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Clients read failures from `{"message": ...}` rather than FastAPI's `detail`."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.get("/health", tags=["ops"])
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/metrics", tags=["ops"], include_in_schema=False)
async def metrics() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
