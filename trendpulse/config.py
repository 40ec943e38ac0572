from __future__ import annotations

import os
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


# ---------------------------
# HTTP hardening
# ---------------------------

HTTP_TIMEOUT_S = 9.0
HTTP_TIMEOUT_MIN_S = 1.0
HTTP_TIMEOUT_MAX_S = 20.0
HTTP_CONNECT_TIMEOUT = 3.0
HTTP_MAX_BYTES = 2_000_000  # feeds are small; anything bigger is truncated

HTTP_USER_AGENT = "trends-proxy/1.0 (personal use)"
FEED_ACCEPT = "application/rss+xml, application/atom+xml, text/xml;q=0.9, */*;q=0.8"
JSON_ACCEPT = "application/json,text/plain,*/*"

DEFAULT_CHARSET = "utf-8"


# ---------------------------
# Cache tiers
# ---------------------------

FRESH_TTL_S = _env_int("TRENDS_FRESH_TTL", 60)
SUGGEST_TTL_S = 6 * 60 * 60
STALE_WHILE_REVALIDATE_S = 300

# False -> total failure without a stale entry answers 503 instead of a placeholder set
DEGRADED_ON_FAILURE = _env_flag("TRENDS_DEGRADED_ON_FAILURE", True)


# ---------------------------
# Request defaults
# ---------------------------

DEFAULT_SOURCE = "interestKR"
DEFAULT_TF = "hour"
DEFAULT_GEO = "KR"
DEFAULT_HL = "ko"
DEFAULT_CAT = "all"

TIMEFRAME_BUCKETS: Dict[str, int] = {
    "hour": 24,
    "day": 7,
    "week": 8,
    "month": 12,
}


# ---------------------------
# interestKR (high-volume provider)
# ---------------------------

INTEREST_LIMIT_DEFAULT = _env_int("INTEREST_LIMIT", 2000)
INTEREST_LIMIT_MIN = 200
INTEREST_LIMIT_MAX = 5000

INTEREST_MAX_SEEDS = _env_int("INTEREST_MAX_SEEDS", 24)
INTEREST_MAX_SEEDS_MIN = 8
INTEREST_MAX_SEEDS_MAX = 40
MAX_CUSTOM_SEEDS = 200

SEED_FETCH_CONCURRENCY = 6
INTEREST_MIN_POOL = 200

TRENDS_FEED_CAP = 200
NEWS_HOME_CAP = 200
NEWS_SEARCH_CAP = 120
SUGGEST_EXPAND_CAP = 25
RELATED_TITLES_CAP = 2500

# Trust hierarchy across upstreams. Tuned by hand; treat as defaults, not derived values.
SOURCE_WEIGHTS: Dict[str, float] = {
    "trends": 3.2,
    "newsSearch": 1.6,
    "newsHome": 1.2,
    "ytSuggest": 0.9,
}

SOURCE_BASE: Dict[str, float] = {
    "trends": 1000.0,
    "newsHome": 90.0,
    "newsSearch": 130.0,
    "ytSuggest": 90.0,
}

# Phrase extraction
UNIGRAM_MULT = 1.0
BIGRAM_MULT = 1.35
TRIGRAM_MULT = 1.55
BIGRAM_MAX_CHARS = 26
TRIGRAM_MAX_CHARS = 30

MIN_TERM_CHARS = 2
MAX_SOURCES_SHOWN = 6
RELATED_CAP = 12
RELATED_CAP_TOPN = 8
RELATED_INDEX_CAP = 10

# Locales whose keyword lists must contain at least one character of the locale script
STRICT_SCRIPT_LOCALES = frozenset({"ko", "ja", "zh"})


# ---------------------------
# storyKR (composite blend)
# ---------------------------

# (story-fit, freshness, demand)
STORY_BLEND_WEIGHTS: Tuple[float, float, float] = (0.45, 0.35, 0.20)
STORY_TERMS_MIN = 10
STORY_TERMS_MAX = 25
STORY_ANGLES_PER_TERM = 2
STORY_MIN_POOL = 8
DEMAND_CHECK_LIMIT = 12
DEMAND_CONCURRENCY = 6
DEMAND_SATURATION = 10  # suggestion hits that count as full demand
SUGGEST_MAX = 30
SUGGEST_MIN_POOL = 8


# ---------------------------
# Top-N feed providers
# ---------------------------

class FeedProfile(BaseModel):
    """Display scoring for a token-frequency provider."""

    floor: int
    per_hit: int
    max_terms: int
    keep: int
    min_titles: int = 1
    # derived terms below this is a thin ranking, not a live signal
    min_pool: int = 8


FEED_PROFILES: Dict[str, FeedProfile] = {
    "news": FeedProfile(floor=30, per_hit=25, max_terms=120, keep=80),
    "hackernews": FeedProfile(floor=30, per_hit=20, max_terms=120, keep=80),
    "youtube": FeedProfile(floor=30, per_hit=22, max_terms=120, keep=60),
    "reddit": FeedProfile(floor=25, per_hit=18, max_terms=80, keep=50, min_titles=5),
}

GOOGLE_TRENDS_CAP = 120
GOOGLE_TRENDS_KEEP = 80
GOOGLE_TRENDS_MIN_TERMS = 8

REDDIT_SUBS: List[str] = [
    s.strip()
    for s in os.getenv("REDDIT_SUBS", "worldnews,technology,programming,korea").split(",")
    if s.strip()
][:12]

HN_SEARCH_URL = "https://hn.algolia.com/api/v1/search_by_date?tags=story&hitsPerPage=80"
YOUTUBE_VIDEOS_URL = "https://www.googleapis.com/youtube/v3/videos"
SUGGEST_URL = "https://suggestqueries.google.com/complete/search"


def youtube_api_key() -> Optional[str]:
    return os.getenv("YT_KEY") or os.getenv("YOUTUBE_API_KEY") or None


# ---------------------------
# Pydantic models shared around the app
# ---------------------------

class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RankedItem(_WireModel):
    """
    Externally visible form of a retained candidate.
    ``grade`` is a position bucket, ``series`` is display-only.
    """

    rank: int = Field(ge=1)
    grade: int = Field(ge=0, le=100)
    term: str
    score: int
    sources: List[str] = Field(default_factory=list)
    related_terms: List[str] = Field(default_factory=list)
    links: Dict[str, str] = Field(default_factory=dict)
    series: List[float] = Field(default_factory=list)
    category: Optional[str] = None
    story_angle: Optional[str] = None
    components: Optional[Dict[str, float]] = None


class ResponseMeta(_WireModel):
    source: str
    is_mock: bool = False
    keywords_are_live: bool = True
    series_is_synthetic: bool = True
    stale: bool = False
    stale_reason: Optional[str] = None
    degraded: bool = False
    note: Optional[str] = None
    geo: Optional[str] = None
    hl: Optional[str] = None
    tf: Optional[str] = None
    limit: Optional[int] = None
    fetched_at: str
    took_ms: int = 0
    debug: Optional[dict] = None


class AggregateResponse(_WireModel):
    """Response body for GET /api/trends."""

    items: List[RankedItem]
    meta: ResponseMeta


class ErrorResponse(_WireModel):
    error: str
    message: str
    meta: Optional[dict] = None


class HealthResponse(BaseModel):
    """
    Response body for GET /health.
    """

    status: str
