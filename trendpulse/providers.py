from __future__ import annotations

"""
Provider handlers for GET /api/trends.

Each provider is one fetch -> parse -> tokenize -> aggregate -> score ->
grade -> normalize pipeline selected by a closed ``ProviderId``. Handlers
take a ``ProviderContext`` and return an ``AggregateResponse``; they raise
``ProviderError`` (or ``InsufficientSignal``) when they cannot produce a
trustworthy ranking, and the fallback controller decides what to serve
instead.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence
from urllib.parse import urlencode

import numpy as np
from loguru import logger

from . import config
from .aggregate import CooccurrenceIndex, SignalAggregator, derive_from_titles, positional_weight
from .cache import TrendCache
from .config import (
    FEED_ACCEPT,
    FEED_PROFILES,
    JSON_ACCEPT,
    SOURCE_BASE,
    SOURCE_WEIGHTS,
    AggregateResponse,
    FeedProfile,
)
from .constants import DEFAULT_SEEDS_KR, STORY_CATEGORIES, DEFAULT_ANGLES
from .demand import fetch_suggestions, verify_demand
from .errors import InsufficientSignal, MissingQuery, ProviderError, UnknownProvider
from .feeds import hn_titles, parse_feed_titles, strip_source_suffix, unique, youtube_titles
from .fetch import FetchResult, fetch_json, fetch_text
from .mapping import (
    build_meta,
    build_response,
    pick_related,
    placeholder_drafts,
    to_ranked_items,
)
from .normalize import has_expected_script, normalize_term
from .pipeline_types import ItemDraft
from .scoring import classify_category, freshness, rank_candidates, score_story_frame, story_fit
from .utils.links import (
    google_news_home_url,
    google_news_search_url,
    reddit_hot_url,
    trends_daily_rss_url,
    trends_rss_url,
)


class ProviderId(str, Enum):
    INTEREST_KR = "interestKR"
    STORY_KR = "storyKR"
    GOOGLE_TRENDS = "googleTrends"
    NEWS = "news"
    REDDIT = "reddit"
    HACKERNEWS = "hackernews"
    YOUTUBE = "youtube"
    YOUTUBE_SUGGEST = "youtubeSuggest"
    MOCK = "mock"


_ALIASES: Dict[str, ProviderId] = {
    "interest": ProviderId.INTEREST_KR,
    "story": ProviderId.STORY_KR,
    "trends": ProviderId.GOOGLE_TRENDS,
    "googlenews": ProviderId.NEWS,
    "hn": ProviderId.HACKERNEWS,
    "yt": ProviderId.YOUTUBE,
    "suggest": ProviderId.YOUTUBE_SUGGEST,
    "ytsuggest": ProviderId.YOUTUBE_SUGGEST,
}


def resolve_provider(name: Optional[str]) -> ProviderId:
    """Case-insensitive canonical name or alias; anything else is rejected."""
    raw = (name or config.DEFAULT_SOURCE).strip()
    key = raw.lower()
    for pid in ProviderId:
        if pid.value.lower() == key:
            return pid
    if key in _ALIASES:
        return _ALIASES[key]
    raise UnknownProvider(raw, [p.value for p in ProviderId])


def _clamp(value: Optional[int], lo: int, hi: int, default: int) -> int:
    v = default if value is None else value
    return min(hi, max(lo, int(v)))


@dataclass
class ProviderContext:
    tf: str = config.DEFAULT_TF
    geo: str = config.DEFAULT_GEO
    hl: str = config.DEFAULT_HL
    cat: str = config.DEFAULT_CAT
    limit: Optional[int] = None
    seeds: List[str] = field(default_factory=list)
    seed_mode: str = "replace"
    max_seeds: Optional[int] = None
    expand: str = ""
    q: str = ""
    sub: str = ""
    suggest_cache: Optional[TrendCache] = None
    rng: Optional[np.random.Generator] = None

    @property
    def strict_script(self) -> bool:
        return self.hl in config.STRICT_SCRIPT_LOCALES


def _get_feed(url: str) -> FetchResult:
    return fetch_text(url, headers={"Accept": FEED_ACCEPT})


def _feed_error(step: str, r: FetchResult, **extra) -> Dict:
    return {"step": step, "status": r.status, "error": r.error, **extra}


# ---------------------------------------------------------------------------
# interestKR
# ---------------------------------------------------------------------------

def choose_seeds(custom: Sequence[str], mode: str) -> List[str]:
    """Custom seeds replace the defaults, or extend them with ``mode="merge"``."""
    custom = list(custom or [])
    if not custom:
        return list(DEFAULT_SEEDS_KR)
    if (mode or "").lower() == "merge":
        return list(dict.fromkeys([*DEFAULT_SEEDS_KR, *custom]))
    return custom


@dataclass
class _SeedResult:
    seed: str
    fetch: FetchResult
    titles: List[str]
    suggestions: List[str]
    suggest_error: Optional[str] = None


def _fetch_seed(seed: str, ctx: ProviderContext, expand: bool) -> _SeedResult:
    r = _get_feed(google_news_search_url(seed, ctx.geo, ctx.hl))
    titles: List[str] = []
    if r.ok and r.text:
        titles = [strip_source_suffix(t) for t in parse_feed_titles(r.text)[: config.NEWS_SEARCH_CAP]]

    suggestions: List[str] = []
    suggest_error = None
    if expand:
        try:
            suggestions = fetch_suggestions(seed, ctx.geo, ctx.hl, ctx.suggest_cache)[: config.SUGGEST_EXPAND_CAP]
        except ProviderError as e:
            suggest_error = str(e)
    return _SeedResult(seed, r, titles, suggestions, suggest_error)


def from_interest_kr(ctx: ProviderContext) -> AggregateResponse:
    """
    High-volume interest keywords.

    Trend RSS terms, Google News home headlines and per-seed Google News
    search headlines (optionally autocomplete expansions) are folded into
    one weighted pool, in that order. Fewer than INTEREST_MIN_POOL usable
    candidates means the upstreams are blocked or down: InsufficientSignal.
    """
    limit = _clamp(ctx.limit, config.INTEREST_LIMIT_MIN, config.INTEREST_LIMIT_MAX, config.INTEREST_LIMIT_DEFAULT)
    max_seeds = _clamp(
        ctx.max_seeds, config.INTEREST_MAX_SEEDS_MIN, config.INTEREST_MAX_SEEDS_MAX, config.INTEREST_MAX_SEEDS
    )
    seeds = choose_seeds(ctx.seeds, ctx.seed_mode)[:max_seeds]
    expand = (ctx.expand or "").lower() == "yt"

    steps: Dict[str, int] = {}
    errors: List[Dict] = []
    debug = {"seedsUsed": seeds, "maxSeeds": max_seeds, "expand": ctx.expand or "", "steps": steps, "errors": errors}
    agg = SignalAggregator(ctx.hl, require_script=ctx.strict_script)

    # 1) trend feed: whole titles are keywords
    r = _get_feed(trends_rss_url(ctx.geo))
    if r.ok and r.text:
        terms = parse_feed_titles(r.text)[: config.TRENDS_FEED_CAP]
        steps["trendsCount"] = len(terms)
        agg.fold_terms(terms, SOURCE_BASE["trends"], SOURCE_WEIGHTS["trends"], "trends")
    else:
        errors.append(_feed_error("trends", r))

    # 2) news home headlines
    r = _get_feed(google_news_home_url(ctx.geo, ctx.hl))
    if r.ok and r.text:
        titles = [strip_source_suffix(t) for t in parse_feed_titles(r.text)[: config.NEWS_HOME_CAP]]
        steps["newsHomeTitles"] = len(titles)
        agg.fold_titles(titles, SOURCE_BASE["newsHome"], SOURCE_WEIGHTS["newsHome"], "news")
    else:
        errors.append(_feed_error("newsHome", r))

    # 3) per-seed news search, fetched concurrently and folded in seed order
    steps["seedCount"] = len(seeds)
    with ThreadPoolExecutor(max_workers=config.SEED_FETCH_CONCURRENCY) as pool:
        results = list(pool.map(lambda s: _fetch_seed(s, ctx, expand), seeds))

    related_titles: List[str] = []
    for res in results:
        if res.fetch.ok and res.fetch.text:
            related_titles.extend(res.titles)
            agg.fold_titles(
                res.titles, SOURCE_BASE["newsSearch"], SOURCE_WEIGHTS["newsSearch"], f"seed:{res.seed}"
            )
        else:
            errors.append(_feed_error("newsSearch", res.fetch, seed=res.seed))
        if expand:
            if res.suggest_error:
                errors.append({"step": "ytSuggest", "seed": res.seed, "error": res.suggest_error})
                continue
            steps["ytSuggest"] = steps.get("ytSuggest", 0) + 1
            for k, s in enumerate(res.suggestions):
                w = SOURCE_BASE["ytSuggest"] * (1 - k / config.SUGGEST_EXPAND_CAP) * SOURCE_WEIGHTS["ytSuggest"]
                agg.add(s, w, "ytSuggest")

    steps["totalCandidates"] = len(agg)
    steps["rejected"] = agg.rejected
    if errors:
        logger.warning("interestKR: {} upstream steps failed", len(errors))

    ranked = rank_candidates(agg.candidates(), limit=limit, min_pool=config.INTEREST_MIN_POOL, provider="interestKR")
    index = CooccurrenceIndex.from_titles(related_titles, ctx.hl)
    drafts = [
        ItemDraft(
            term=c.term,
            score=c.raw_score,
            sources=c.source_list,
            related=pick_related(c.term, index, ctx.hl),
        )
        for c in ranked
    ]
    return build_response(
        "interestKR",
        drafts,
        ctx.geo,
        ctx.hl,
        ctx.tf,
        limit=limit,
        note="trend RSS + news RSS (home and per-seed search) fusion; grade is a rank bucket",
        debug=debug,
        rng=ctx.rng,
    )


# ---------------------------------------------------------------------------
# storyKR
# ---------------------------------------------------------------------------

def story_angles(term: str, category: str, k: int = config.STORY_ANGLES_PER_TERM) -> List[str]:
    templates = STORY_CATEGORIES.get(category, {}).get("angles") or DEFAULT_ANGLES
    return [t.format(term=term) for t in templates[:k]]


def _feed_terms(url: str, step: str, errors: List[Dict]) -> Optional[List[str]]:
    r = _get_feed(url)
    if not (r.ok and r.text):
        errors.append(_feed_error(step, r))
        return None
    return parse_feed_titles(r.text)


def from_story_kr(ctx: ProviderContext) -> AggregateResponse:
    """
    Story-prompt candidates: trending terms turned into personal-story
    angles, ranked by a 45/35/20 blend of story-fit, freshness and
    autocomplete demand.
    """
    errors: List[Dict] = []
    realtime = _feed_terms(trends_rss_url(ctx.geo, ctx.cat), "trendsRealtime", errors)
    daily = _feed_terms(trends_daily_rss_url(ctx.geo), "trendsDaily", errors)
    if realtime is None and daily is None:
        raise ProviderError("storyKR: both trend feeds unavailable")
    realtime, daily = realtime or [], daily or []

    n_terms = _clamp(ctx.limit, config.STORY_TERMS_MIN, config.STORY_TERMS_MAX, config.STORY_TERMS_MAX)
    terms: List[str] = []
    for t in unique([*realtime, *daily]):
        t = normalize_term(t)
        if not t or (ctx.strict_script and not has_expected_script(t, ctx.hl)):
            continue
        terms.append(t)
    terms = unique(terms)[:n_terms]

    # same normalized form as ``terms`` or bracketed titles lose their sources
    in_realtime = {normalize_term(t).casefold() for t in realtime}
    in_daily = {normalize_term(t).casefold() for t in daily}

    rows: List[Dict] = []
    for i, term in enumerate(terms):
        category, _ = classify_category(term)
        key = term.casefold()
        sources = [s for s, seen in (("trendsRealtime", in_realtime), ("trendsDaily", in_daily)) if key in seen]
        for angle in story_angles(term, category):
            rows.append(
                {
                    "term": term,
                    "angle": angle,
                    "category": category,
                    "sources": sources,
                    "story_fit": story_fit(term),
                    "freshness": freshness(positional_weight(i, len(terms)), len(sources)),
                }
            )

    checked = verify_demand(
        [r["angle"] for r in rows[: config.DEMAND_CHECK_LIMIT]], ctx.geo, ctx.hl, ctx.suggest_cache
    )
    for row, result in zip(rows, checked):
        row["demand"] = result.score
        row["verified"] = result.verified
        row["hits"] = result.hits
        row["top"] = result.top
    for row in rows[len(checked):]:
        row["demand"] = 0.0
        row["verified"] = False
        row["hits"] = 0
        row["top"] = []

    frame = score_story_frame(rows, min_pool=config.STORY_MIN_POOL, provider="storyKR", dedupe_on="term")
    drafts = []
    for row in frame.to_dict("records"):
        sources = list(row["sources"]) + (["ytSuggest"] if row["verified"] else [])
        drafts.append(
            ItemDraft(
                term=row["term"],
                score=row["composite"],
                sources=sources,
                related=list(row["top"]),
                series_base=max(30.0, 2.0 * float(row["composite"])),
                category=row["category"],
                story_angle=row["angle"],
                components={
                    "storyFit": float(row["story_fit"]),
                    "freshness": float(row["freshness"]),
                    "demand": float(row["demand"]),
                    "suggestHits": float(row["hits"]),
                },
            )
        )
    if ctx.limit:
        drafts = drafts[: max(1, ctx.limit)]

    debug = {"terms": len(terms), "angles": len(rows), "demandChecked": len(checked), "errors": errors}
    return build_response(
        "storyKR",
        drafts,
        ctx.geo,
        ctx.hl,
        ctx.tf,
        limit=ctx.limit,
        note="story angles from trend RSS; composite = 45% story-fit + 35% freshness + 20% demand",
        debug=debug,
        rng=ctx.rng,
    )


# ---------------------------------------------------------------------------
# Top-N feed providers
# ---------------------------------------------------------------------------

def _keep(ctx: ProviderContext, keep: int) -> int:
    return min(keep, ctx.limit) if ctx.limit else keep


def _top_n_response(
    provider: str,
    titles: Sequence[str],
    hl: str,
    profile: FeedProfile,
    ctx: ProviderContext,
    source_label: str,
    note: str,
    debug: Optional[Dict] = None,
) -> AggregateResponse:
    """Token document-frequency ranking over a title list."""
    if len(titles) < profile.min_titles:
        raise InsufficientSignal(provider, len(titles), profile.min_titles)
    top, index = derive_from_titles(titles, hl, profile.max_terms)
    drafts = []
    for term, count in top:
        if not normalize_term(term):
            continue
        score = max(profile.floor, count * profile.per_hit)
        drafts.append(
            ItemDraft(
                term=term,
                score=score,
                sources=[source_label],
                related=index.related(term, config.RELATED_INDEX_CAP)[: config.RELATED_CAP_TOPN],
                series_base=score,
            )
        )
    if len(drafts) < profile.min_pool:
        raise InsufficientSignal(provider, len(drafts), profile.min_pool)
    drafts = drafts[: _keep(ctx, profile.keep)]
    return build_response(provider, drafts, ctx.geo, ctx.hl, ctx.tf, note=note, debug=debug, rng=ctx.rng)


def from_google_trends(ctx: ProviderContext) -> AggregateResponse:
    r = _get_feed(trends_rss_url(ctx.geo, ctx.cat))
    if not (r.ok and r.text):
        raise ProviderError(f"googleTrends: RSS fetch failed ({r.error or r.status})")

    terms = unique(t for t in (normalize_term(x) for x in parse_feed_titles(r.text)[: config.GOOGLE_TRENDS_CAP]) if t)
    if len(terms) < config.GOOGLE_TRENDS_MIN_TERMS:
        raise InsufficientSignal("googleTrends", len(terms), config.GOOGLE_TRENDS_MIN_TERMS)

    drafts = []
    for idx, term in enumerate(terms[: _keep(ctx, config.GOOGLE_TRENDS_KEEP)]):
        base = max(30, 220 - idx * 2)
        drafts.append(ItemDraft(term=term, score=base, sources=["trends"], series_base=base))
    return build_response(
        "googleTrends", drafts, ctx.geo, ctx.hl, ctx.tf, note="Google Trends realtime RSS", rng=ctx.rng
    )


def from_news(ctx: ProviderContext) -> AggregateResponse:
    r = _get_feed(google_news_home_url(ctx.geo, ctx.hl))
    if not (r.ok and r.text):
        raise ProviderError(f"news: Google News RSS fetch failed ({r.error or r.status})")
    titles = [strip_source_suffix(t) for t in parse_feed_titles(r.text)[: config.NEWS_HOME_CAP]]
    return _top_n_response(
        "news", titles, ctx.hl, FEED_PROFILES["news"], ctx, "news", note="Google News RSS token frequency"
    )


def from_reddit(ctx: ProviderContext) -> AggregateResponse:
    """Hot RSS of one ``sub`` when given, else of every configured subreddit."""
    subs = [ctx.sub] if ctx.sub else list(config.REDDIT_SUBS)
    with ThreadPoolExecutor(max_workers=config.SEED_FETCH_CONCURRENCY) as pool:
        results = list(pool.map(lambda s: _get_feed(reddit_hot_url(s)), subs))

    titles: List[str] = []
    errors: List[Dict] = []
    for sub, r in zip(subs, results):
        if r.ok and r.text:
            titles.extend(parse_feed_titles(r.text))
        else:
            errors.append(_feed_error("reddit", r, sub=sub))
    return _top_n_response(
        "reddit",
        titles,
        ctx.hl,
        FEED_PROFILES["reddit"],
        ctx,
        "reddit",
        note="Reddit hot RSS title token frequency",
        debug={"subs": subs, "errors": errors},
    )


def from_hackernews(ctx: ProviderContext) -> AggregateResponse:
    r = fetch_json(config.HN_SEARCH_URL, headers={"Accept": JSON_ACCEPT})
    if not r.ok or r.json is None:
        raise ProviderError(f"hackernews: fetch failed ({r.error or r.status})")
    return _top_n_response(
        "hackernews", hn_titles(r.json), "en", FEED_PROFILES["hackernews"], ctx, "hackernews",
        note="Hacker News story title token frequency",
    )


def from_youtube(ctx: ProviderContext) -> AggregateResponse:
    key = config.youtube_api_key()
    if not key:
        raise ProviderError("youtube: YT_KEY / YOUTUBE_API_KEY not set")
    params = {"part": "snippet", "chart": "mostPopular", "maxResults": 50, "regionCode": ctx.geo or "KR", "key": key}
    r = fetch_json(f"{config.YOUTUBE_VIDEOS_URL}?{urlencode(params)}", headers={"Accept": JSON_ACCEPT})
    if not r.ok or r.json is None:
        raise ProviderError(f"youtube: mostPopular fetch failed ({r.error or r.status})")
    return _top_n_response(
        "youtube", youtube_titles(r.json), ctx.hl, FEED_PROFILES["youtube"], ctx, "youtube",
        note="YouTube mostPopular title token frequency",
    )


def from_youtube_suggest(ctx: ProviderContext) -> AggregateResponse:
    """
    Video-search autocomplete for ``q``, ranked in the order the endpoint
    returns the completions. ``q`` is the input here, not a filter.
    """
    q = (ctx.q or "").strip()
    if not q:
        raise MissingQuery("youtubeSuggest")

    suggestions = fetch_suggestions(q, ctx.geo, ctx.hl, ctx.suggest_cache)
    terms = unique(t for t in (normalize_term(s) for s in suggestions) if t)
    if len(terms) < config.SUGGEST_MIN_POOL:
        raise InsufficientSignal("youtubeSuggest", len(terms), config.SUGGEST_MIN_POOL)

    index = CooccurrenceIndex.from_titles(terms, ctx.hl)
    drafts = []
    for k, term in enumerate(terms[: _keep(ctx, config.SUGGEST_MAX)]):
        score = 100.0 * positional_weight(k, len(terms))
        drafts.append(
            ItemDraft(
                term=term,
                score=score,
                sources=["ytSuggest"],
                related=pick_related(term, index, ctx.hl),
                series_base=max(15.0, score),
            )
        )
    return build_response(
        "youtubeSuggest",
        drafts,
        ctx.geo,
        ctx.hl,
        ctx.tf,
        note=f"video-search autocomplete for {q!r}",
        debug={"q": q, "suggestions": len(suggestions)},
        rng=ctx.rng,
    )


def from_mock(ctx: ProviderContext) -> AggregateResponse:
    meta = build_meta("mock", ctx.geo, ctx.hl, ctx.tf, note="mock provider: placeholder keywords", is_mock=True)
    items = to_ranked_items(placeholder_drafts(ctx.hl), ctx.geo, ctx.hl, ctx.tf, ctx.rng)
    return AggregateResponse(items=items, meta=meta)


PROVIDER_HANDLERS: Dict[ProviderId, Callable[[ProviderContext], AggregateResponse]] = {
    ProviderId.INTEREST_KR: from_interest_kr,
    ProviderId.STORY_KR: from_story_kr,
    ProviderId.GOOGLE_TRENDS: from_google_trends,
    ProviderId.NEWS: from_news,
    ProviderId.REDDIT: from_reddit,
    ProviderId.HACKERNEWS: from_hackernews,
    ProviderId.YOUTUBE: from_youtube,
    ProviderId.YOUTUBE_SUGGEST: from_youtube_suggest,
    ProviderId.MOCK: from_mock,
}


def run_provider(provider: ProviderId, ctx: ProviderContext) -> AggregateResponse:
    """Dispatch and validate the handler's output against the shared schema."""
    handler = PROVIDER_HANDLERS[provider]
    logger.info("Running provider {} (geo={}, hl={}, tf={})", provider.value, ctx.geo, ctx.hl, ctx.tf)
    return AggregateResponse.model_validate(handler(ctx))
