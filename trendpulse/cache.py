from __future__ import annotations

"""
Two-tier response cache and the fallback policy built on it.

Per key there is a *fresh* entry, served while younger than the TTL, and a
*latest* entry that is never expired and only read when the provider fails.
Both tiers sit behind one lock: request handlers run on a thread pool.

    MISS  -> provider call
    ok    -> FRESH (both tiers written)
    error -> STALE (latest entry, flagged) or DEGRADED (placeholder, flagged)
"""

import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from loguru import logger

from .config import AggregateResponse, FRESH_TTL_S


@dataclass(frozen=True)
class CacheEntry:
    timestamp: float
    payload: Any


def cache_key(**params: Any) -> str:
    """Canonical, order-independent key for a request."""
    canon = {k: ("" if v is None else v) for k, v in params.items()}
    return json.dumps(canon, sort_keys=True, ensure_ascii=False, separators=(",", ":"))


class TrendCache:
    """
    Process-local, best-effort cache. Construct once and pass it around.

    ``keep_latest=False`` gives a fresh-only store (no fallback tier) whose
    expired entries are swept on write.
    """

    def __init__(self, clock: Callable[[], float] = time.time, keep_latest: bool = True):
        self._clock = clock
        self.keep_latest = keep_latest
        self._lock = threading.Lock()
        self._fresh: Dict[str, CacheEntry] = {}
        self._latest: Dict[str, CacheEntry] = {}

    def get_fresh(self, key: str, ttl_s: float) -> Optional[Any]:
        with self._lock:
            entry = self._fresh.get(key)
            if entry is None:
                return None
            if self._clock() - entry.timestamp > ttl_s:
                del self._fresh[key]
                return None
            return entry.payload

    def get_latest(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._latest.get(key)
            return entry.payload if entry is not None else None

    def put(self, key: str, payload: Any) -> None:
        entry = CacheEntry(timestamp=self._clock(), payload=payload)
        with self._lock:
            self._fresh[key] = entry
            if self.keep_latest:
                self._latest[key] = entry

    def evict_expired(self, ttl_s: float) -> int:
        """Drop fresh entries older than ``ttl_s``; the latest tier is untouched."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._fresh.items() if now - e.timestamp > ttl_s]
            for k in expired:
                del self._fresh[k]
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._fresh.clear()
            self._latest.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._latest) if self.keep_latest else len(self._fresh)


class FallbackController:
    """
    Serves a response for a cache key, never letting a provider exception
    escape. Every returned payload says whether it is live, stale or
    degraded in its ``meta``.
    """

    def __init__(self, cache: TrendCache, fresh_ttl_s: float = FRESH_TTL_S):
        self.cache = cache
        self.fresh_ttl_s = fresh_ttl_s

    def serve(
        self,
        key: str,
        call: Callable[[], AggregateResponse],
        degraded: Optional[Callable[[str], AggregateResponse]] = None,
        force: bool = False,
    ) -> AggregateResponse:
        """``force`` skips the fresh tier; the stale fallback still applies."""
        fresh = None if force else self.cache.get_fresh(key, self.fresh_ttl_s)
        if fresh is not None:
            logger.info("Cache hit for {}", key)
            return fresh.model_copy(deep=True)

        try:
            payload = call()
        except Exception as e:
            reason = str(e) or e.__class__.__name__
            latest = self.cache.get_latest(key)
            if latest is not None:
                logger.warning("Provider failed ({}); serving stale entry for {}", reason, key)
                out = latest.model_copy(deep=True)
                out.meta.stale = True
                out.meta.stale_reason = reason
                return out
            if degraded is None:
                raise
            logger.warning("Provider failed ({}) with nothing cached; serving degraded set", reason)
            return degraded(reason)

        self.cache.put(key, payload)
        return payload.model_copy(deep=True)
