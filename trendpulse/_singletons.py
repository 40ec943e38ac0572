# trendpulse/_singletons.py
from functools import lru_cache
from .cache import TrendCache

@lru_cache(maxsize=1)
def get_trend_cache() -> TrendCache:
    # response cache: fresh + last-known-good tiers per request key
    return TrendCache()

@lru_cache(maxsize=1)
def get_suggest_cache() -> TrendCache:
    # autocomplete lookups: fresh-only, kept apart so they never share keys with responses
    return TrendCache(keep_latest=False)
