"""
FastAPI application for the toolscan marketplace scanner.

- POST /api/scan: fetch candidates from the configured marketplace,
  rank them against the criteria and return the top three with a
  justification each
- GET /health: liveness probe
- GET /: static front end

The marketplace source is built once at startup from
:class:`~toolscan.config.Settings` and kept on ``app.state``.
"""

from __future__ import annotations

import asyncio
import math
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from loguru import logger

from .config import (
    STATIC_DIR,
    TOP_K,
    HealthResponse,
    RankedResult,
    ScanRequest,
    ScanResponse,
    SearchFilters,
    Settings,
    setup_logging,
)
from .justify import map_top_results
from .scoring import rank
from .sources import MarketplaceSource, RateLimited, UpstreamUnavailable, build_source

NO_PRODUCTS_MESSAGE = "No products found. Try different keywords."
NO_MATCHES_MESSAGE = "No matching products found. Try broader criteria or a lower minimum rating."

# =============================================================================
# Pipeline
# =============================================================================

async def _fetch_highlights(source: MarketplaceSource, top: Sequence[RankedResult]) -> List[Optional[str]]:
    """Look up one highlight per result concurrently; results follow ``top`` order."""
    outcomes = await asyncio.gather(
        *(source.fetch_highlight(r) for r in top),
        return_exceptions=True,
    )
    highlights: List[Optional[str]] = []
    for record, outcome in zip(top, outcomes):
        if isinstance(outcome, Exception):
            logger.warning("Highlight lookup for {} raised: {}", record.name, outcome)
            highlights.append(None)
        else:
            highlights.append(outcome)
    return highlights


async def run_scan(
    criteria: str,
    source: MarketplaceSource,
    filters: Optional[SearchFilters] = None,
) -> ScanResponse:
    """Fetch, rank, slice and justify.  ``criteria`` must already be non-empty."""
    filters = filters or SearchFilters()
    logger.info("Scanning for: {} (min_rating={}, topic={})", criteria, filters.min_rating, filters.topic)

    records = await source.fetch_candidates(criteria, filters)
    if not records:
        return ScanResponse(results=[], message=NO_PRODUCTS_MESSAGE)

    ranked = rank(records, criteria, filters.min_rating)
    if not ranked:
        return ScanResponse(results=[], message=NO_MATCHES_MESSAGE)

    top = ranked[:TOP_K]
    highlights = await _fetch_highlights(source, top)
    return ScanResponse(results=map_top_results(top, highlights))

# =============================================================================
# FastAPI app + startup
# =============================================================================

app = FastAPI(title="toolscan")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")
app.state.source = None


@app.on_event("startup")
def startup_event() -> None:
    if app.state.source is not None:
        return
    settings = Settings.from_env()
    setup_logging(settings)
    app.state.source = build_source(settings)
    logger.info("toolscan ready (source={})", settings.source)


@app.exception_handler(RateLimited)
async def rate_limited_handler(request: Request, exc: RateLimited) -> JSONResponse:
    wait = int(math.ceil(exc.retry_after))
    return JSONResponse(
        status_code=429,
        content={
            "error": "Marketplace rate limit reached",
            "message": f"{exc} Try again in {wait} seconds.",
            "retryAfter": wait,
        },
        headers={"Retry-After": str(wait)},
    )


@app.exception_handler(UpstreamUnavailable)
async def upstream_unavailable_handler(request: Request, exc: UpstreamUnavailable) -> JSONResponse:
    logger.error("Scan failed: {}", exc)
    return JSONResponse(
        status_code=502,
        content={"error": "Failed to scan marketplace", "message": str(exc)},
    )


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="ok", timestamp=datetime.now(timezone.utc).isoformat())


@app.get("/", include_in_schema=False)
def index() -> FileResponse:
    return FileResponse(STATIC_DIR / "index.html")


@app.post("/api/scan", response_model=ScanResponse)
async def scan(req: ScanRequest, request: Request):
    criteria = (req.criteria or "").strip()
    if not criteria:
        return JSONResponse(status_code=400, content={"error": "Criteria is required"})
    source = request.app.state.source
    if source is None:
        return JSONResponse(status_code=500, content={"error": "Marketplace source not configured"})
    filters = SearchFilters(min_rating=req.min_rating, topic=req.topic)
    return await run_scan(criteria, source, filters)
