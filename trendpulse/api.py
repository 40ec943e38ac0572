from __future__ import annotations

"""
FastAPI application for the trending-keyword service.

- GET /api/trends serves one provider's ranked keywords through the
  two-tier cache (fresh -> provider -> stale -> degraded)
- every payload says in ``meta`` whether it is live, stale or degraded
- unknown ``source`` values are rejected at the boundary with a 400
"""

import time
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from . import config
from ._singletons import get_suggest_cache, get_trend_cache
from .cache import FallbackController, TrendCache, cache_key
from .config import AggregateResponse, ErrorResponse, HealthResponse
from .errors import MissingQuery, UnknownProvider
from .mapping import apply_query_filter, degraded_response, normalize_tf, now_iso, with_timing
from .providers import ProviderContext, ProviderId, resolve_provider, run_provider
from .utils.text_clean import clean_query_text, clean_subreddit, parse_seeds

CACHE_CONTROL = (
    f"public, s-maxage={config.FRESH_TTL_S}, stale-while-revalidate={config.STALE_WHILE_REVALIDATE_S}"
)

app = FastAPI(title="trendpulse")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


def _error(status: int, error: str, message: str, meta: Optional[dict] = None) -> JSONResponse:
    body = ErrorResponse(error=error, message=message, meta=meta)
    return JSONResponse(status_code=status, content=body.model_dump(by_alias=True, exclude_none=True))


def _to_int(raw: Optional[str]) -> Optional[int]:
    if raw is None or not str(raw).strip():
        return None
    try:
        return int(float(str(raw).strip()))
    except (ValueError, OverflowError):
        return None


@app.on_event("startup")
def startup_event() -> None:
    logger.info("Starting trendpulse...")
    get_trend_cache()
    get_suggest_cache()
    logger.info(
        "Warmup complete (fresh TTL {}s, degraded output {}).",
        config.FRESH_TTL_S,
        "on" if config.DEGRADED_ON_FAILURE else "off",
    )


@app.exception_handler(UnknownProvider)
def unknown_provider_handler(request: Request, exc: UnknownProvider) -> JSONResponse:
    logger.warning("Rejected unknown source {!r}", exc.name)
    return _error(400, "unknown_provider", str(exc), meta={"allowed": exc.allowed})


@app.exception_handler(MissingQuery)
def missing_query_handler(request: Request, exc: MissingQuery) -> JSONResponse:
    return _error(400, "missing_query", str(exc), meta={"source": exc.provider})


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="healthy")


@app.options("/api/trends")
def trends_preflight() -> Response:
    return Response(status_code=200)


@app.get("/api/trends", response_model=AggregateResponse)
def get_trends(
    response: Response,
    source: str = Query(config.DEFAULT_SOURCE),
    tf: Optional[str] = Query(None),
    timeframe: Optional[str] = Query(None),
    geo: Optional[str] = Query(None),
    country: Optional[str] = Query(None),
    hl: Optional[str] = Query(None),
    lang: Optional[str] = Query(None),
    cat: Optional[str] = Query(None),
    q: str = Query(""),
    limit: Optional[str] = Query(None),
    seeds: str = Query(""),
    seed_mode: str = Query("replace", alias="seedMode"),
    max_seeds: Optional[str] = Query(None, alias="maxSeeds"),
    expand: str = Query(""),
    sub: str = Query(""),
    force: str = Query(""),
    cache: TrendCache = Depends(get_trend_cache),
    suggest_cache: TrendCache = Depends(get_suggest_cache),
):
    started = time.monotonic()
    provider = resolve_provider(source)
    query = clean_query_text(q)
    # for youtubeSuggest q is the input to complete, not a post-filter
    q_is_input = provider is ProviderId.YOUTUBE_SUGGEST
    if q_is_input and not query:
        raise MissingQuery(provider.value)

    ctx = ProviderContext(
        tf=normalize_tf(tf or timeframe),
        geo=(geo or country or config.DEFAULT_GEO).strip().upper(),
        hl=(hl or lang or config.DEFAULT_HL).strip().lower(),
        cat=(cat or config.DEFAULT_CAT).strip(),
        limit=_to_int(limit),
        seeds=parse_seeds(seeds),
        seed_mode=(seed_mode or "replace").strip().lower(),
        max_seeds=_to_int(max_seeds),
        expand=(expand or "").strip().lower(),
        q=query if q_is_input else "",
        sub=clean_subreddit(sub) if provider is ProviderId.REDDIT else "",
        suggest_cache=suggest_cache,
    )
    key = cache_key(
        source=provider.value,
        tf=ctx.tf,
        geo=ctx.geo,
        hl=ctx.hl,
        cat=ctx.cat,
        limit=ctx.limit,
        seeds=",".join(ctx.seeds),
        seedMode=ctx.seed_mode,
        maxSeeds=ctx.max_seeds,
        expand=ctx.expand,
        q=ctx.q,
        sub=ctx.sub,
    )

    degraded = None
    if config.DEGRADED_ON_FAILURE:
        def degraded(reason: str) -> AggregateResponse:
            return degraded_response(provider.value, reason, ctx.geo, ctx.hl, ctx.tf)

    controller = FallbackController(cache, config.FRESH_TTL_S)
    try:
        payload = controller.serve(
            key, lambda: run_provider(provider, ctx), degraded, force=force.strip() == "1"
        )
    except Exception as e:
        logger.warning("Provider {} failed with nothing to fall back on: {}", provider.value, e)
        return _error(
            503,
            "provider_failed",
            str(e) or e.__class__.__name__,
            meta={
                "source": provider.value,
                "tf": ctx.tf,
                "geo": ctx.geo,
                "hl": ctx.hl,
                "tookMs": int((time.monotonic() - started) * 1000),
                "fetchedAt": now_iso(),
            },
        )

    try:
        if not q_is_input:
            payload = apply_query_filter(payload, query)
        payload = with_timing(payload, started)
    except Exception as e:
        logger.exception("Failed to finalise response for {}", provider.value)
        return _error(500, "server_error", str(e) or e.__class__.__name__, meta={"fetchedAt": now_iso()})

    response.headers["Cache-Control"] = CACHE_CONTROL
    return payload
