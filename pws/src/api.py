"""
FastAPI application for the PWS ingest gateway.

Serves the Wunderground upload endpoint that weather stations call, plus a
health endpoint.  Settings are loaded once in the lifespan and the resulting
IngestPipeline is stored on ``app.state`` for the route handlers.  Logging
handlers are installed by the ``pws-gateway`` entry point (``main.py``), not
here, so the app leaves an embedding host's logging setup alone.

The upload route always answers ``success`` as plain text: stations only
check for that body, and sink failures are reported through the log instead.

CHANGELOG:
- 2026-10-19: Document that logging is configured by the entry point
- 2026-10-19: Register health router
- 2026-10-19: Initial creation (STORY-010)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import PlainTextResponse

from pws.src.config import GatewaySettings, load_settings
from pws.src.pipeline import IngestPipeline

logger = logging.getLogger(__name__)

UPLOAD_PATHS = (
    "/weatherstation/updateweatherstation.php",
    "/updateweatherstation.php",
)
"""Paths stations are configured to upload to."""


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

upload_router = APIRouter(tags=["upload"])
health_router = APIRouter(tags=["health"])


def _request_target(request: Request) -> str:
    """Return the request path plus raw query string, as sent by the station."""
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


async def upload(request: Request) -> PlainTextResponse:
    """Ingest one station upload and acknowledge it.

    Every query parameter becomes a reading, in request order.

    Returns:
        PlainTextResponse: The fixed acknowledgment, whatever the sinks did.
    """
    pipeline: IngestPipeline = request.app.state.pipeline
    report = await pipeline.ingest(
        request.query_params.multi_items(),
        request_target=_request_target(request),
        host=request.headers.get("host", ""),
    )
    return PlainTextResponse(report.acknowledgment)


for _path in UPLOAD_PATHS:
    upload_router.add_api_route(_path, upload, methods=["GET"], response_class=PlainTextResponse)


@health_router.get("/health")
async def health() -> dict[str, str]:
    """Return a simple health status.

    Returns:
        dict: ``{"status": "ok"}`` indicating the service is alive.
    """
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(settings: GatewaySettings | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Settings to use.  When ``None``, settings are loaded from
            the environment at startup and invalid configuration aborts
            startup with :class:`~pws.src.config.ConfigurationInvalid`.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        effective = settings if settings is not None else load_settings()
        app.state.settings = effective
        app.state.pipeline = IngestPipeline(effective)
        logger.info(
            "PWS gateway ready (device=%s, relay=%s, json_log=%s, fhem=%s, convert=%s)",
            effective.device,
            effective.forward_data,
            effective.json_data_log,
            effective.fhem_data_log,
            effective.convert_data,
        )
        yield
        logger.info("PWS gateway shutting down")

    app = FastAPI(
        title="PWS Ingest Gateway",
        description="Receives personal weather station uploads and fans them out to sinks.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(health_router)
    app.include_router(upload_router)
    return app


app = create_app()
