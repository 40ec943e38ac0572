"""Typed containers shared across pipeline modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, NamedTuple, Optional


class Observation(NamedTuple):
    """One weighted sighting of a term in one upstream."""

    term: str
    weight: float
    source: str


@dataclass
class Candidate:
    """A keyword under consideration during one aggregation pass."""

    term: str
    raw_score: float = 0.0
    # insertion-ordered set; first entry is the first upstream that saw the term
    sources: Dict[str, None] = field(default_factory=dict)

    def observe(self, weight: float, source: str) -> None:
        if weight > 0:
            self.raw_score += weight
        self.sources.setdefault(source, None)

    @property
    def source_list(self) -> List[str]:
        return list(self.sources)


@dataclass
class ItemDraft:
    """A ranked term before it is shaped into a RankedItem."""

    term: str
    score: float
    sources: List[str] = field(default_factory=list)
    related: List[str] = field(default_factory=list)
    # base magnitude of the display series; None -> derived from score
    series_base: Optional[float] = None
    category: Optional[str] = None
    story_angle: Optional[str] = None
    components: Optional[Dict[str, float]] = None
