from __future__ import annotations
"""
Mapping utilities that turn ranked drafts into the API response.

Centralises the RankedItem shaping (rank, grade, display score, related
terms, links, display series) and the metadata block, so every provider
answers with the same schema and the same trust flags.
"""

import math
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import numpy as np
from loguru import logger

from .aggregate import CooccurrenceIndex
from .config import (
    DEFAULT_TF,
    MAX_SOURCES_SHOWN,
    RELATED_CAP,
    TIMEFRAME_BUCKETS,
    AggregateResponse,
    RankedItem,
    ResponseMeta,
)
from .constants import (
    DEFAULT_SEEDS_KR,
    PLACEHOLDER_TERMS_EN,
    RELATED_FALLBACK_SUFFIXES,
    RELATED_SEARCH_SUFFIX,
)
from .grading import grades_for
from .normalize import is_usable_term, term_key
from .pipeline_types import ItemDraft
from .utils.links import make_links

DEGRADED_SET_SIZE = 20


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def normalize_tf(tf: Optional[str]) -> str:
    """Prefix match onto hour / day / week / month; anything else is hour."""
    t = (tf or DEFAULT_TF).strip().lower()
    for name in TIMEFRAME_BUCKETS:
        if t.startswith(name[0]):
            return name
    return DEFAULT_TF


def bucket_count(tf: str) -> int:
    return TIMEFRAME_BUCKETS.get(tf, TIMEFRAME_BUCKETS[DEFAULT_TF])


def round_half_up(x: float) -> int:
    return int(math.floor(float(x) + 0.5))


def synth_series(n: int, base: float, rng: Optional[np.random.Generator] = None) -> List[float]:
    """
    Display-only sparkline: a gentle random trend with noise around ``base``.
    Carries no measured information; responses flag it as synthetic.
    """
    rng = rng if rng is not None else np.random.default_rng()
    n = max(1, int(n))
    slope = (rng.random() - 0.5) * 0.9
    vol = 0.18 + rng.random() * 0.22
    t = np.arange(n, dtype="float64") / max(1, n - 1)
    noise = 1.0 + (rng.random(n) - 0.5) * vol
    values = base * (0.85 + 0.35 * t + slope * (t - 0.5)) * noise
    return [float(v) for v in np.maximum(0.0, np.floor(values + 0.5))]


# ---------------------------------------------------------------------------
# Related terms
# ---------------------------------------------------------------------------

def clean_related(term: str, related: Sequence[str], hl: str, cap: int = RELATED_CAP) -> List[str]:
    """Related terms minus the term itself, unusable strings and duplicates."""
    own = term_key(term)
    seen = {own}
    out: List[str] = []
    for r in related:
        r = (r or "").strip()
        if not is_usable_term(r, hl):
            continue
        k = term_key(r)
        if k in seen:
            continue
        seen.add(k)
        out.append(r)
        if len(out) >= cap:
            break
    return out


def pick_related(term: str, index: Optional[CooccurrenceIndex], hl: str) -> List[str]:
    """
    Related terms for a ranked term.

    Multi-word terms lead with a "<term> search" suggestion and borrow the
    co-occurrences of their last token; single tokens use their own, and
    fall back to fixed suffix templates when nothing co-occurred.
    """
    t = (term or "").strip()
    if not t:
        return []
    lang = hl if hl in RELATED_SEARCH_SUFFIX else "ko"

    if " " in t:
        last = t.split()[-1]
        rel = index.related(last, RELATED_CAP) if index is not None else []
        return clean_related(t, [f"{t} {RELATED_SEARCH_SUFFIX[lang]}", *rel], hl)

    rel = index.related(t, RELATED_CAP) if index is not None else []
    if rel:
        return clean_related(t, rel, hl)
    return clean_related(t, [f"{t} {s}" for s in RELATED_FALLBACK_SUFFIXES[lang]], hl, cap=8)


# ---------------------------------------------------------------------------
# Items / meta
# ---------------------------------------------------------------------------

def to_ranked_items(
    drafts: Sequence[ItemDraft],
    geo: str,
    hl: str,
    tf: str,
    rng: Optional[np.random.Generator] = None,
) -> List[RankedItem]:
    """Ranks 1..N in input order, position grades, display score and series."""
    n_buckets = bucket_count(tf)
    grades = grades_for(len(drafts))
    rng = rng if rng is not None else np.random.default_rng()

    items: List[RankedItem] = []
    for i, d in enumerate(drafts):
        base = d.series_base if d.series_base is not None else max(15, round_half_up(d.score / 6))
        items.append(
            RankedItem(
                rank=i + 1,
                grade=grades[i],
                term=d.term,
                score=round_half_up(d.score),
                sources=list(d.sources)[:MAX_SOURCES_SHOWN],
                related_terms=clean_related(d.term, d.related, hl),
                links=make_links(d.term, geo, hl),
                series=synth_series(n_buckets, base, rng),
                category=d.category,
                story_angle=d.story_angle,
                components=d.components,
            )
        )
    return items


def build_meta(
    source: str,
    geo: str,
    hl: str,
    tf: str,
    limit: Optional[int] = None,
    note: Optional[str] = None,
    debug: Optional[dict] = None,
    is_mock: bool = False,
) -> ResponseMeta:
    return ResponseMeta(
        source=source,
        is_mock=is_mock,
        keywords_are_live=not is_mock,
        series_is_synthetic=True,
        note=note,
        geo=geo,
        hl=hl,
        tf=tf,
        limit=limit,
        fetched_at=now_iso(),
        debug=debug,
    )


def apply_query_filter(response: AggregateResponse, q: Optional[str]) -> AggregateResponse:
    """
    Keep items whose term contains ``q`` (case-insensitive).

    Ranks and grades are re-assigned over the survivors; scores, related
    terms and series are left as they were.
    """
    needle = (q or "").strip().casefold()
    if not needle:
        return response
    kept = [it for it in response.items if needle in it.term.casefold()]
    grades = grades_for(len(kept))
    items = [it.model_copy(update={"rank": i + 1, "grade": grades[i]}) for i, it in enumerate(kept)]
    logger.info("Query filter {!r}: {} of {} items kept", q, len(items), len(response.items))
    return response.model_copy(update={"items": items})


def placeholder_drafts(hl: str) -> List[ItemDraft]:
    terms = DEFAULT_SEEDS_KR[:DEGRADED_SET_SIZE] if hl == "ko" else PLACEHOLDER_TERMS_EN
    return [ItemDraft(term=t, score=0, sources=["placeholder"], series_base=30) for t in terms]


def degraded_response(
    source: str,
    reason: str,
    geo: str,
    hl: str,
    tf: str,
    rng: Optional[np.random.Generator] = None,
) -> AggregateResponse:
    """Placeholder set for a total failure with nothing cached. Always flagged."""
    meta = build_meta(source, geo, hl, tf, note=f"placeholder keywords; upstream failure: {reason}", is_mock=True)
    meta.degraded = True
    return AggregateResponse(items=to_ranked_items(placeholder_drafts(hl), geo, hl, tf, rng), meta=meta)


def with_timing(response: AggregateResponse, started: float) -> AggregateResponse:
    """Stamp tookMs (and fetchedAt when missing) measured from ``started`` (monotonic)."""
    response.meta.took_ms = int((time.monotonic() - started) * 1000)
    if not response.meta.fetched_at:
        response.meta.fetched_at = now_iso()
    return response


def build_response(
    source: str,
    drafts: Sequence[ItemDraft],
    geo: str,
    hl: str,
    tf: str,
    limit: Optional[int] = None,
    note: Optional[str] = None,
    debug: Optional[Dict] = None,
    rng: Optional[np.random.Generator] = None,
) -> AggregateResponse:
    return AggregateResponse(
        items=to_ranked_items(drafts, geo, hl, tf, rng),
        meta=build_meta(source, geo, hl, tf, limit=limit, note=note, debug=debug),
    )


