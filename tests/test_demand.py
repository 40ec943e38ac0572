from urllib.parse import parse_qs, urlparse

import pytest

from trendpulse import demand
from trendpulse.config import SUGGEST_TTL_S
from trendpulse.cache import TrendCache
from trendpulse.errors import ProviderError
from trendpulse.fetch import FetchResult
from trendpulse.scoring import demand_score, heuristic_demand


def test_suggest_url_carries_locale_and_query():
    url = demand.suggest_url("소개팅 썰", "KR", "ko")
    qs = parse_qs(urlparse(url).query)
    assert qs["client"] == ["firefox"]
    assert qs["ds"] == ["yt"]
    assert qs["gl"] == ["KR"]
    assert qs["hl"] == ["ko"]
    assert qs["q"] == ["소개팅 썰"]


def test_fetch_suggestions_cached_by_normalized_query(monkeypatch):
    calls = []

    def fake_fetch_json(url, **kwargs):
        calls.append(url)
        return FetchResult(ok=True, status=200, json=["q", ["a", "b", "c"]])

    monkeypatch.setattr(demand, "fetch_json", fake_fetch_json)
    cache = TrendCache()

    assert demand.fetch_suggestions("Foo ", "KR", "ko", cache) == ["a", "b", "c"]
    assert demand.fetch_suggestions("foo", "KR", "ko", cache) == ["a", "b", "c"]
    assert len(calls) == 1


def test_fetch_suggestions_failure_raises_and_is_not_cached(monkeypatch):
    calls = []

    def fake_fetch_json(url, **kwargs):
        calls.append(url)
        return FetchResult(ok=False, status=0, error="timeout")

    monkeypatch.setattr(demand, "fetch_json", fake_fetch_json)
    cache = TrendCache()

    for _ in range(2):
        with pytest.raises(ProviderError):
            demand.fetch_suggestions("foo", "KR", "ko", cache)
    assert len(calls) == 2


def test_blank_query_needs_no_lookup(monkeypatch):
    def boom(url, **kwargs):
        raise AssertionError("should not fetch")

    monkeypatch.setattr(demand, "fetch_json", boom)
    assert demand.fetch_suggestions("  ", "KR", "ko") == []


def test_suggestion_cache_drops_expired_lookups(monkeypatch):
    monkeypatch.setattr(
        demand, "fetch_json", lambda url, **kwargs: FetchResult(ok=True, status=200, json=["q", ["a", "b"]])
    )
    now = [1000.0]
    cache = TrendCache(clock=lambda: now[0], keep_latest=False)

    demand.fetch_suggestions("first", "KR", "ko", cache)
    demand.fetch_suggestions("second", "KR", "ko", cache)
    assert len(cache) == 2

    now[0] += SUGGEST_TTL_S + 1
    demand.fetch_suggestions("third", "KR", "ko", cache)
    assert len(cache) == 1


def test_verify_demand_keeps_order_and_isolates_failures(monkeypatch):
    def fake_suggestions(query, geo, hl, cache=None, client=None):
        if query == "소개팅 실패":
            raise ProviderError("autocomplete down")
        return [f"{query} {i}" for i in range(len(query))]

    monkeypatch.setattr(demand, "fetch_suggestions", fake_suggestions)
    queries = ["abc", "소개팅 실패", "abcdefghijkl"]
    results = demand.verify_demand(queries, "KR", "ko", max_workers=3)

    assert [r.query for r in results] == queries
    assert results[0].verified and results[0].hits == 3
    assert results[0].score == demand_score(3)
    assert results[1].verified is False
    assert results[1].score == heuristic_demand("소개팅 실패")
    assert results[2].score == 100.0
    assert results[2].top == ["abcdefghijkl 0", "abcdefghijkl 1", "abcdefghijkl 2",
                              "abcdefghijkl 3", "abcdefghijkl 4"]


def test_verify_demand_empty():
    assert demand.verify_demand([], "KR", "ko") == []
