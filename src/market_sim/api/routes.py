"""JSON endpoints: recent candles, generator status and liveness."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

log = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/market/candles")
async def get_candles(
    request: Request,
    limit: int | None = Query(default=None, ge=1),
) -> JSONResponse:
    """Most recent candles (at most ``max_candles``), ordered by ascending time."""
    max_candles = request.app.state.max_candles
    limit = min(limit or max_candles, max_candles)
    store = request.app.state.store
    if store is None:
        return JSONResponse(status_code=503, content={"error": "candle store unavailable"})

    try:
        candles = await store.find_recent_candles(limit)
    except Exception as e:
        log.error("candles_query_failed", error=str(e), exc_info=True)
        return JSONResponse(status_code=503, content={"error": "candle store unavailable"})

    return JSONResponse(content=[c.to_dict() for c in candles])


@router.get("/market/status")
async def get_status(request: Request) -> JSONResponse:
    """Current regime and live candle of the running generator."""
    generator = request.app.state.generator
    if generator is None:
        return JSONResponse(status_code=503, content={"error": "generator not running"})
    return JSONResponse(content=generator.status())


@router.get("/health")
async def health() -> dict:
    return {"status": "ok"}
