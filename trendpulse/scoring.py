from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from loguru import logger

from . import config
from .constants import DEFAULT_CATEGORY, DEFAULT_CATEGORY_AFFINITY, STORY_CATEGORIES
from .errors import InsufficientSignal
from .pipeline_types import Candidate

STORY_COMPONENTS = ("story_fit", "freshness", "demand")


# ---------------------------------------------------------------------------
# Raw-score ranking
# ---------------------------------------------------------------------------

def candidates_frame(candidates: Sequence[Candidate]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "term": [c.term for c in candidates],
            "raw_score": [float(c.raw_score) for c in candidates],
            "n_sources": [len(c.sources) for c in candidates],
            "order": np.arange(len(candidates)),
        }
    )


def rank_candidates(
    candidates: Sequence[Candidate],
    limit: Optional[int] = None,
    min_pool: int = 0,
    provider: str = "pipeline",
) -> List[Candidate]:
    """
    Stable descending sort on ``raw_score``; ties keep their input order.

    Raises InsufficientSignal when fewer than ``min_pool`` usable candidates
    were collected: a thin ranking is worse than a fallback.
    """
    pool = [c for c in candidates if c.term]
    if len(pool) < min_pool:
        raise InsufficientSignal(provider, len(pool), min_pool)
    if not pool:
        return []

    df = candidates_frame(pool)
    df = df.sort_values("raw_score", ascending=False, kind="stable")
    order = df["order"].tolist()
    if limit is not None:
        order = order[: max(0, int(limit))]
    logger.info("{}: ranked {} of {} candidates", provider, len(order), len(pool))
    return [pool[i] for i in order]


# ---------------------------------------------------------------------------
# Composite (story) scoring
# ---------------------------------------------------------------------------

def classify_category(term: str) -> Tuple[str, float]:
    """
    Template classifier: the category whose trigger keywords hit ``term``
    most often, with its story affinity. Ties go to the earlier category.
    """
    low = (term or "").casefold()
    best, best_hits = DEFAULT_CATEGORY, 0
    for name, tmpl in STORY_CATEGORIES.items():
        hits = sum(1 for kw in tmpl["keywords"] if kw.casefold() in low)
        if hits > best_hits:
            best, best_hits = name, hits
    if best == DEFAULT_CATEGORY:
        return DEFAULT_CATEGORY, DEFAULT_CATEGORY_AFFINITY
    return best, float(STORY_CATEGORIES[best]["affinity"])


def story_fit(term: str) -> float:
    """0..100 category affinity of a term."""
    _, affinity = classify_category(term)
    return round(100.0 * affinity, 2)


def freshness(position_weight: float, n_sources: int, consensus_at: int = 2) -> float:
    """
    0..100 freshness from the upstream position and how many independent
    trend feeds carry the term right now.
    """
    consensus = min(1.0, n_sources / max(1, consensus_at))
    pos = min(1.0, max(0.0, position_weight))
    return round(100.0 * (0.5 * pos + 0.5 * consensus), 2)


def demand_score(hits: int, saturation: int = config.DEMAND_SATURATION) -> float:
    return round(100.0 * min(1.0, max(0, hits) / max(1, saturation)), 2)


def heuristic_demand(term: str) -> float:
    """Stand-in demand when the autocomplete lookup failed for a term."""
    _, affinity = classify_category(term)
    return round(min(100.0, 35.0 * (0.5 + affinity)), 2)


def blend(frame: pd.DataFrame, weights: Tuple[float, float, float] = config.STORY_BLEND_WEIGHTS) -> pd.Series:
    w = np.asarray(weights, dtype="float64")
    if w.shape != (len(STORY_COMPONENTS),):
        raise ValueError(f"expected {len(STORY_COMPONENTS)} blend weights, got {weights!r}")
    values = frame[list(STORY_COMPONENTS)].to_numpy(dtype="float64")
    return pd.Series(values @ w, index=frame.index, name="composite")


def score_story_frame(
    rows: Sequence[Dict],
    weights: Tuple[float, float, float] = config.STORY_BLEND_WEIGHTS,
    min_pool: int = config.STORY_MIN_POOL,
    provider: str = "storyKR",
    dedupe_on: Optional[str] = None,
) -> pd.DataFrame:
    """
    Rank story candidates by the composite of story-fit, freshness and demand.

    ``rows`` carry the three component columns plus anything the caller
    wants to keep (term, angle, ...). Result is sorted, stable, with a
    ``composite`` column. With ``dedupe_on`` only the best row per value of
    that column survives; the pool minimum applies after that.
    """
    if not rows:
        if min_pool > 0:
            raise InsufficientSignal(provider, 0, min_pool)
        return pd.DataFrame(columns=[*STORY_COMPONENTS, "composite"])
    df = pd.DataFrame(list(rows))
    df["composite"] = blend(df, weights).round(2)
    df = df.sort_values("composite", ascending=False, kind="stable")
    if dedupe_on is not None:
        df = df.drop_duplicates(subset=dedupe_on, keep="first")
    if len(df) < min_pool:
        raise InsufficientSignal(provider, len(df), min_pool)
    return df.reset_index(drop=True)
