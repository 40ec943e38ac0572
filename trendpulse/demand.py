from __future__ import annotations

"""
Demand verification against the video-search autocomplete endpoint.

A query with many autocomplete completions is one people actually type.
Lookups run on a small fixed-width thread pool, are cached per normalized
query for several hours, and a failed lookup degrades to a heuristic
estimate for that query only.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
from urllib.parse import urlencode

import httpx
from loguru import logger

from .cache import TrendCache
from .config import DEMAND_CONCURRENCY, JSON_ACCEPT, SUGGEST_MAX, SUGGEST_TTL_S, SUGGEST_URL
from .errors import ProviderError
from .feeds import parse_suggestions
from .fetch import fetch_json
from .scoring import demand_score, heuristic_demand


@dataclass
class DemandResult:
    query: str
    hits: int = 0
    top: List[str] = field(default_factory=list)
    verified: bool = False
    score: float = 0.0


def suggest_url(query: str, geo: str, hl: str) -> str:
    params = {"client": "firefox", "ds": "yt", "hl": hl, "gl": geo, "q": query}
    return f"{SUGGEST_URL}?{urlencode(params)}"


def suggest_cache_key(query: str, geo: str, hl: str) -> str:
    return f"suggest:{geo}:{hl}:{query.strip().lower()}"


def fetch_suggestions(
    query: str,
    geo: str,
    hl: str,
    cache: Optional[TrendCache] = None,
    client: Optional[httpx.Client] = None,
) -> List[str]:
    """
    Autocomplete completions for ``query``.

    Raises ProviderError when the endpoint cannot be reached or answers
    with something other than a suggestion array. Failures are not cached.
    """
    q = (query or "").strip()
    if not q:
        return []

    key = suggest_cache_key(q, geo, hl)
    if cache is not None:
        cached = cache.get_fresh(key, SUGGEST_TTL_S)
        if cached is not None:
            return list(cached)

    r = fetch_json(suggest_url(q, geo, hl), headers={"Accept": JSON_ACCEPT}, client=client)
    if not r.ok or not isinstance(r.json, list):
        raise ProviderError(f"autocomplete failed for {q!r}: {r.error or 'bad payload'}")

    suggestions = parse_suggestions(r.json, cap=SUGGEST_MAX)
    if cache is not None:
        cache.put(key, suggestions)
        cache.evict_expired(SUGGEST_TTL_S)
    return suggestions


def _verify_one(query: str, geo: str, hl: str, cache: Optional[TrendCache]) -> DemandResult:
    try:
        hits = fetch_suggestions(query, geo, hl, cache)
    except ProviderError as e:
        logger.warning("Demand lookup degraded to heuristic: {}", e)
        return DemandResult(query=query, verified=False, score=heuristic_demand(query))
    return DemandResult(
        query=query,
        hits=len(hits),
        top=hits[:5],
        verified=True,
        score=demand_score(len(hits)),
    )


def verify_demand(
    queries: Sequence[str],
    geo: str,
    hl: str,
    cache: Optional[TrendCache] = None,
    max_workers: int = DEMAND_CONCURRENCY,
) -> List[DemandResult]:
    """One DemandResult per query, in input order."""
    if not queries:
        return []
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        results = list(pool.map(lambda q: _verify_one(q, geo, hl, cache), queries))
    verified = sum(1 for r in results if r.verified)
    logger.info("Demand verified for {}/{} queries", verified, len(results))
    return results
