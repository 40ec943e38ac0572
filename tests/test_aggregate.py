import pytest

from trendpulse.aggregate import (
    CooccurrenceIndex,
    SignalAggregator,
    derive_from_titles,
    positional_weight,
)
from trendpulse.pipeline_types import Observation


def test_positional_weight_front_loaded():
    assert positional_weight(0, 4) == 1.0
    assert positional_weight(3, 4) == 0.25
    assert positional_weight(0, 0) == 1.0


def test_two_source_scenario():
    agg = SignalAggregator("ko")
    agg.fold_titles(["소개팅 잠수 썰", "환승 이별 썰"], base=100, source_weight=1.0, source="A")
    agg.fold_titles(["소개팅 잠수"], base=100, source_weight=1.0, source="B")

    sogaeting = agg.get("소개팅")
    hwanseung = agg.get("환승")
    assert sogaeting.source_list == ["A", "B"]
    assert hwanseung.source_list == ["A"]
    assert sogaeting.raw_score > hwanseung.raw_score
    assert agg.get("소개팅 잠수").source_list == ["A", "B"]


def test_repeated_observation_is_monotonic_without_duplicate_sources():
    agg = SignalAggregator("en")
    agg.add("foo bar", 1.0, "x")
    first = agg.get("foo bar").raw_score

    agg.add("Foo Bar", 2.0, "y")
    cand = agg.get("FOO BAR")
    assert cand.raw_score > first
    assert cand.source_list == ["x", "y"]
    # first display form wins
    assert cand.term == "foo bar"

    agg.add("foo bar", 2.0, "y")
    assert cand.raw_score == pytest.approx(5.0)
    assert cand.source_list == ["x", "y"]
    assert len(agg) == 1


def test_script_filter_for_strict_locales():
    agg = SignalAggregator("ko", require_script=True)
    assert agg.add("bts", 1.0, "a") is None
    assert agg.add("방탄 bts", 1.0, "a") is not None
    assert agg.rejected == 1
    assert "bts" not in agg
    assert "방탄 bts" in agg


def test_broken_terms_rejected():
    agg = SignalAggregator("ko")
    assert agg.add("\ufffd\ufffd", 1.0, "a") is None
    assert agg.add("x", 1.0, "a") is None
    assert len(agg) == 0


def test_fold_terms_uses_position_and_source_weight():
    agg = SignalAggregator("ko")
    agg.fold_terms(["트렌드 하나", "트렌드 둘"], base=1000, source_weight=3.2, source="trends")
    assert agg.get("트렌드 하나").raw_score == pytest.approx(3200.0)
    assert agg.get("트렌드 둘").raw_score == pytest.approx(1600.0)


def test_add_observations_and_insertion_order():
    agg = SignalAggregator("en")
    agg.add_observations(
        [Observation("beta", 1.0, "s"), Observation("alpha", 5.0, "s"), Observation("beta", 1.0, "t")]
    )
    assert [c.term for c in agg.candidates()] == ["beta", "alpha"]


def test_cooccurrence_index():
    idx = CooccurrenceIndex.from_titles(["소개팅 잠수 환승", "소개팅 잠수", "소개팅 고백"], "ko")
    assert idx.count("소개팅") == 3
    assert idx.related("소개팅") == ["잠수", "환승", "고백"]
    assert idx.related("없는말") == []

    capped = CooccurrenceIndex.from_titles(["소개팅 잠수", "소개팅 고백"], "ko", max_titles=1)
    assert capped.count("소개팅") == 1


def test_derive_from_titles_counts_documents_with_stable_ties():
    top, index = derive_from_titles(["apple vision pro", "apple watch", "vision pro review"], "en", 2)
    assert top == [("apple", 2), ("vision", 2)]
    assert index.related("apple") == ["vision", "pro", "watch"]
