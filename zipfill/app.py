"""FastAPI application factory: wires everything together."""

from __future__ import annotations

import logging
from time import perf_counter

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from zipfill import __version__
from zipfill.config import ZipFillConfig
from zipfill.errors import ZipFillError
from zipfill.gateway.http_api import error_response, router as api_router
from zipfill.lookup.service import LookupService
from zipfill.observability.metrics import MetricsCollector

logger = logging.getLogger(__name__)


def create_app(
    config: ZipFillConfig | None = None,
    service: LookupService | None = None,
    metrics: MetricsCollector | None = None,
) -> FastAPI:
    """Build and return the FastAPI application."""
    if config is None:
        config = ZipFillConfig.from_yaml()

    app = FastAPI(title="ZipFill", version=__version__, docs_url="/docs")
    app.add_middleware(CORSMiddleware, allow_origins=config.cors_origins, allow_methods=["*"], allow_headers=["*"])

    # -- Lookup service --
    if service is None:
        service = LookupService(
            default_source=config.data_source(),
            states_path=config.states_path,
            timeout=config.load_timeout_seconds,
            batch_limit=config.batch_limit,
        )

    # -- Metrics --
    if metrics is None and config.metrics_enabled:
        metrics = MetricsCollector()

    @app.middleware("http")
    async def request_metrics_middleware(request: Request, call_next):
        start = perf_counter()
        response = await call_next(request)
        elapsed_ms = (perf_counter() - start) * 1000.0
        logger.info("%s %s %d %.2fms", request.method, request.url.path, response.status_code, elapsed_ms)
        if response.status_code >= 500:
            logger.error("request_error method=%s path=%s status=%d", request.method, request.url.path, response.status_code)
        if metrics is not None:
            try:
                metrics.record_request(request.method, request.url.path, response.status_code, elapsed_ms)
            except Exception:
                logger.debug("Failed to record request metrics", exc_info=True)
        return response

    # -- Errors --
    @app.exception_handler(ZipFillError)
    async def zipfill_error_handler(request: Request, exc: ZipFillError):
        return error_response(exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = "Not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse({"error": message}, status_code=exc.status_code, headers=exc.headers)

    app.include_router(api_router)

    # -- Lifecycle --
    @app.on_event("startup")
    async def startup():
        # DataLoadError propagates and aborts startup
        await service.load()
        logger.info("ZipFill %s started on %s:%d", __version__, config.host, config.port)
        logger.info("Serving %d zip codes across %d states", service.size, len(service.states))

    # Store references for request handlers and tests
    app.state.config = config
    app.state.lookup_service = service
    app.state.metrics = metrics

    return app
