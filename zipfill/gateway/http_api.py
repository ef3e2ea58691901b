"""HTTP REST API: zip lookup, batch lookup, state list, metrics."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from zipfill import __version__
from zipfill.errors import NotFoundError, ValidationError, ZipFillError
from zipfill.lookup.models import LookupResult
from zipfill.lookup.service import LookupService
from zipfill.observability.health import service_health
from zipfill.observability.metrics import MetricsCollector

logger = logging.getLogger(__name__)

router = APIRouter(tags=["api"])

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4"


def get_service(request: Request) -> LookupService:
    return request.app.state.lookup_service


def get_metrics(request: Request) -> MetricsCollector | None:
    return request.app.state.metrics


def record_lookup(metrics: MetricsCollector | None, code: Any, result: Any) -> None:
    """Best-effort: a metrics failure never reaches the caller."""
    if metrics is None:
        return
    try:
        key = result.zip if isinstance(result, LookupResult) else code
        metrics.record_lookup(key, result)
    except Exception:
        logger.debug("Failed to record lookup for %r", code, exc_info=True)


def _lookup_response(service: LookupService, metrics: MetricsCollector | None, code: Any) -> JSONResponse:
    try:
        result = service.find(code)
    except (ValidationError, NotFoundError) as e:
        record_lookup(metrics, code, None)
        # Malformed and unknown codes both answer 404 on the lookup routes
        return JSONResponse(e.to_dict() | {"zip": e.zip}, status_code=404)
    record_lookup(metrics, code, result)
    return JSONResponse(result.to_dict())


@router.get("/health")
async def health(service: LookupService = Depends(get_service)):
    return service_health(service)


@router.get("/api")
async def api_info():
    return {
        "name": "ZipFill API",
        "version": __version__,
        "endpoints": {
            "GET /api/lookup/:zip": "Lookup a zip code",
            "GET /api/lookup?zip=12345": "Lookup via query param",
            "POST /api/batch": 'Lookup multiple zips { "zips": ["12345", "90210"] }',
            "GET /api/states": "List all states/territories",
        },
        "example": "/api/lookup/90210",
    }


@router.get("/api/lookup/{code}")
async def lookup_by_path(
    code: str,
    service: LookupService = Depends(get_service),
    metrics: MetricsCollector | None = Depends(get_metrics),
):
    return _lookup_response(service, metrics, code)


@router.get("/api/lookup")
async def lookup_by_query(
    code: str | None = Query(None, alias="zip"),
    service: LookupService = Depends(get_service),
    metrics: MetricsCollector | None = Depends(get_metrics),
):
    if not code:
        raise ValidationError("Missing zip parameter")
    return _lookup_response(service, metrics, code)


@router.post("/api/batch")
async def batch_lookup(
    request: Request,
    service: LookupService = Depends(get_service),
    metrics: MetricsCollector | None = Depends(get_metrics),
):
    try:
        body = await request.json()
    except ValueError:
        body = None
    zips = body.get("zips") if isinstance(body, dict) else None
    if not isinstance(zips, list):
        raise ValidationError("Missing or invalid zips array")

    results = service.batch(zips)
    for code, result in zip(zips, results):
        record_lookup(metrics, code, result)
    return {"results": [r.to_dict() for r in results]}


@router.get("/api/states")
async def list_states(service: LookupService = Depends(get_service)):
    return {"states": service.states}


@router.get("/metrics")
async def metrics_summary(metrics: MetricsCollector | None = Depends(get_metrics)):
    if metrics is None:
        raise NotFoundError("Not found")
    return metrics.summary()


@router.get("/metrics/prometheus")
async def metrics_exposition(metrics: MetricsCollector | None = Depends(get_metrics)):
    if metrics is None:
        raise NotFoundError("Not found")
    return PlainTextResponse(metrics.exposition(), media_type=PROMETHEUS_CONTENT_TYPE)


def error_response(exc: ZipFillError) -> JSONResponse:
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)
