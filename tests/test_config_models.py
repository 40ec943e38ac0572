import pytest
from pydantic import ValidationError

from trendpulse.config import (
    FEED_PROFILES,
    SOURCE_WEIGHTS,
    AggregateResponse,
    ErrorResponse,
    HealthResponse,
    RankedItem,
    ResponseMeta,
)


def test_ranked_item_accepts_field_names_and_aliases():
    a = RankedItem(rank=1, grade=100, term="x y", score=5, related_terms=["z"])
    b = RankedItem.model_validate({"rank": 1, "grade": 100, "term": "x y", "score": 5, "relatedTerms": ["z"]})
    assert a == b
    assert a.model_dump(by_alias=True)["relatedTerms"] == ["z"]


def test_ranked_item_bounds():
    with pytest.raises(ValidationError):
        RankedItem(rank=0, grade=50, term="x", score=1)
    with pytest.raises(ValidationError):
        RankedItem(rank=1, grade=101, term="x", score=1)


def test_meta_defaults_describe_live_data():
    meta = ResponseMeta(source="news", fetched_at="2024-01-01T00:00:00.000Z")
    assert meta.is_mock is False
    assert meta.keywords_are_live is True
    assert meta.series_is_synthetic is True
    assert meta.stale is False
    assert meta.degraded is False


def test_aggregate_response_structure():
    resp = AggregateResponse(
        items=[RankedItem(rank=1, grade=100, term="abc", score=3)],
        meta=ResponseMeta(source="mock", fetched_at="now", is_mock=True),
    )
    body = resp.model_dump(by_alias=True)
    assert body["meta"]["isMock"] is True
    assert len(body["items"]) == 1


def test_error_and_health_models():
    err = ErrorResponse(error="unknown_provider", message="nope")
    assert err.model_dump(by_alias=True, exclude_none=True) == {"error": "unknown_provider", "message": "nope"}
    assert HealthResponse(status="healthy").status == "healthy"


def test_tuned_defaults():
    assert SOURCE_WEIGHTS == {"trends": 3.2, "newsSearch": 1.6, "newsHome": 1.2, "ytSuggest": 0.9}
    assert FEED_PROFILES["reddit"].min_titles == 5
    assert (FEED_PROFILES["news"].floor, FEED_PROFILES["news"].per_hit) == (30, 25)
