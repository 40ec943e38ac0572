import numpy as np
import pytest

from trendpulse.cache import FallbackController, TrendCache, cache_key
from trendpulse.errors import ProviderError
from trendpulse.mapping import build_response, degraded_response
from trendpulse.pipeline_types import ItemDraft


class Clock:
    def __init__(self, t=1000.0):
        self.t = t

    def __call__(self):
        return self.t


def _payload(terms):
    drafts = [ItemDraft(term=t, score=100 - i) for i, t in enumerate(terms)]
    return build_response("news", drafts, "KR", "ko", "hour", rng=np.random.default_rng(0))


def _degraded(reason):
    return degraded_response("news", reason, "KR", "ko", "hour", rng=np.random.default_rng(0))


def test_cache_key_is_order_independent():
    assert cache_key(a=1, b="x") == cache_key(b="x", a=1)
    assert cache_key(a=None) == cache_key(a="")
    assert cache_key(a=1) != cache_key(a=2)


def test_fresh_tier_expires_latest_tier_does_not():
    clock = Clock()
    cache = TrendCache(clock)
    cache.put("k", "v")
    assert cache.get_fresh("k", 60) == "v"
    clock.t += 61
    assert cache.get_fresh("k", 60) is None
    assert cache.get_latest("k") == "v"
    assert len(cache) == 1
    cache.clear()
    assert cache.get_latest("k") is None


def test_fresh_hit_bypasses_provider():
    calls = []

    def call():
        calls.append(1)
        return _payload(["alpha", "beta"])

    ctl = FallbackController(TrendCache(Clock()), fresh_ttl_s=60)
    first = ctl.serve("k", call, _degraded)
    second = ctl.serve("k", call, _degraded)
    assert len(calls) == 1
    assert [i.term for i in second.items] == [i.term for i in first.items]
    assert second.meta.stale is False


def test_expired_entry_calls_provider_again():
    clock = Clock()
    calls = []

    def call():
        calls.append(1)
        return _payload(["alpha"])

    ctl = FallbackController(TrendCache(clock), fresh_ttl_s=60)
    ctl.serve("k", call)
    clock.t += 61
    ctl.serve("k", call)
    assert len(calls) == 2


def test_failure_serves_stale_copy_with_reason():
    clock = Clock()
    cache = TrendCache(clock)
    ctl = FallbackController(cache, fresh_ttl_s=60)
    good = ctl.serve("k", lambda: _payload(["alpha", "beta"]), _degraded)

    clock.t += 120

    def failing():
        raise ProviderError("upstream down")

    out = ctl.serve("k", failing, _degraded)
    assert out.meta.stale is True
    assert out.meta.stale_reason == "upstream down"
    assert out.meta.degraded is False
    assert [i.model_dump() for i in out.items] == [i.model_dump() for i in good.items]
    # the cached copy itself is never flagged
    assert cache.get_latest("k").meta.stale is False


def test_failure_without_cache_serves_flagged_placeholder():
    def failing():
        raise ProviderError("nothing works")

    out = FallbackController(TrendCache(Clock())).serve("k", failing, _degraded)
    assert out.meta.degraded is True
    assert out.meta.is_mock is True
    assert out.meta.keywords_are_live is False
    assert "nothing works" in out.meta.note
    assert out.items


def test_failure_without_cache_or_placeholder_reraises():
    def failing():
        raise ProviderError("nothing works")

    with pytest.raises(ProviderError):
        FallbackController(TrendCache(Clock())).serve("k", failing, None)


def test_served_payload_is_a_copy():
    cache = TrendCache(Clock())
    ctl = FallbackController(cache, fresh_ttl_s=60)
    out = ctl.serve("k", lambda: _payload(["alpha"]))
    out.meta.took_ms = 999
    out.items.clear()
    cached = cache.get_fresh("k", 60)
    assert cached.meta.took_ms == 0
    assert len(cached.items) == 1


def test_fresh_only_cache_keeps_no_fallback_and_sweeps():
    clock = Clock()
    cache = TrendCache(clock, keep_latest=False)
    cache.put("old", "a")
    clock.t += 30
    cache.put("new", "b")
    assert cache.get_latest("old") is None
    assert len(cache) == 2

    clock.t += 40
    assert cache.evict_expired(60) == 1
    assert len(cache) == 1
    assert cache.get_fresh("new", 60) == "b"


def test_forced_refresh_skips_fresh_entry_but_keeps_stale_fallback():
    clock = Clock()
    calls = []

    def call():
        calls.append(1)
        return _payload(["alpha"])

    ctl = FallbackController(TrendCache(clock), fresh_ttl_s=60)
    ctl.serve("k", call)
    ctl.serve("k", call, force=True)
    assert len(calls) == 2

    def failing():
        raise ProviderError("upstream down")

    out = ctl.serve("k", failing, force=True)
    assert out.meta.stale is True
    assert [i.term for i in out.items] == ["alpha"]
