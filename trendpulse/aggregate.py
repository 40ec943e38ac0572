from __future__ import annotations

"""
Multi-source signal aggregation.

Every upstream contributes ``(term, weight, source)`` observations. The
aggregator folds them into one candidate pool keyed by the case-folded,
normalized term; scores only accumulate within a pass and the pass itself
is thrown away once the response is built.
"""

from collections import Counter, defaultdict
from typing import Dict, Iterable, List, Optional, Sequence

from loguru import logger

from .config import RELATED_INDEX_CAP, RELATED_TITLES_CAP
from .normalize import has_expected_script, normalize_term, term_key
from .pipeline_types import Candidate, Observation
from .tokenizer import extract_phrases, tokenize


def positional_weight(index: int, total: int) -> float:
    """Front-loaded weight in (0, 1]: the first of ``total`` items counts 1.0."""
    total = max(1, total)
    return (total - index) / total


class SignalAggregator:
    """
    Candidate pool for one provider invocation.

    ``require_script`` drops terms without a single character of the
    locale's script, which keeps foreign-script noise out of a
    locale-specific list.
    """

    def __init__(self, hl: str = "ko", require_script: bool = False):
        self.hl = hl
        self.require_script = require_script
        self._pool: Dict[str, Candidate] = {}
        self.rejected = 0

    def __len__(self) -> int:
        return len(self._pool)

    def __contains__(self, term: str) -> bool:
        t = normalize_term(term)
        return bool(t) and term_key(t) in self._pool

    def get(self, term: str) -> Optional[Candidate]:
        t = normalize_term(term)
        return self._pool.get(term_key(t)) if t else None

    def add(self, term: str, weight: float, source: str) -> Optional[Candidate]:
        t = normalize_term(term)
        if not t or (self.require_script and not has_expected_script(t, self.hl)):
            self.rejected += 1
            return None
        key = term_key(t)
        cand = self._pool.get(key)
        if cand is None:
            cand = self._pool[key] = Candidate(term=t)
        cand.observe(weight, source)
        return cand

    def add_observations(self, observations: Iterable[Observation]) -> None:
        for obs in observations:
            self.add(obs.term, obs.weight, obs.source)

    def fold_terms(self, terms: Sequence[str], base: float, source_weight: float, source: str) -> None:
        """Whole strings as terms (trend feeds already emit keywords)."""
        total = len(terms)
        for i, term in enumerate(terms):
            self.add(term, base * positional_weight(i, total) * source_weight, source)

    def fold_titles(self, titles: Sequence[str], base: float, source_weight: float, source: str) -> None:
        """Free-text titles: every unigram / bigram / trigram phrase is observed."""
        total = len(titles)
        for i, title in enumerate(titles):
            pos_w = positional_weight(i, total)
            for phrase, mult in extract_phrases(title, self.hl):
                self.add(phrase, base * pos_w * mult * source_weight, source)

    def candidates(self) -> List[Candidate]:
        """Pool in first-seen order (the tie-break order for ranking)."""
        return list(self._pool.values())


class CooccurrenceIndex:
    """Per-token co-occurrence counts across titles, used for related terms."""

    def __init__(self, hl: str = "ko"):
        self.hl = hl
        self._doc_freq: Counter = Counter()
        self._pairs: Dict[str, Counter] = defaultdict(Counter)

    @classmethod
    def from_titles(cls, titles: Iterable[str], hl: str = "ko", max_titles: int = RELATED_TITLES_CAP) -> "CooccurrenceIndex":
        idx = cls(hl)
        for n, title in enumerate(titles):
            if n >= max_titles:
                break
            idx.add_title(title)
        return idx

    def add_title(self, title: str) -> List[str]:
        toks = tokenize(title, self.hl)
        for a in toks:
            self._doc_freq[a] += 1
            pairs = self._pairs[a]
            for b in toks:
                if b != a:
                    pairs[b] += 1
        return toks

    def count(self, token: str) -> int:
        return self._doc_freq.get(token, 0)

    def related(self, token: str, k: int = RELATED_INDEX_CAP) -> List[str]:
        pairs = self._pairs.get(token)
        if not pairs:
            return []
        # Counter.most_common keeps insertion order among ties
        return [t for t, _ in pairs.most_common(k)]

    def top_tokens(self, k: int) -> List[tuple]:
        return self._doc_freq.most_common(k)


def derive_from_titles(titles: Sequence[str], hl: str, max_terms: int):
    """
    Token document-frequency over a title list.

    Returns ``(top, index)`` where ``top`` is ``[(term, count), ...]`` in
    descending count with first-seen order among ties.
    """
    index = CooccurrenceIndex.from_titles(titles, hl, max_titles=len(titles))
    top = index.top_tokens(max_terms)
    logger.info("Derived {} terms from {} titles", len(top), len(titles))
    return top, index
