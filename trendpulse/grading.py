from __future__ import annotations

import math
from typing import List

import numpy as np


def grade_for_rank(rank: int, total: int) -> int:
    """
    Position bucket in [0, 100] for a 1-based ``rank`` among ``total`` items.

    Linear from 100 (first) to 0 (last); depends only on position, never on
    the underlying score, so every provider yields the same even spread.
    Halves round up (62.5 -> 63).
    """
    if total <= 1:
        return 100
    g = math.floor(100 - (rank - 1) * 100 / (total - 1) + 0.5)
    return int(min(100, max(0, g)))


def grades_for(total: int) -> List[int]:
    """Grades for ranks 1..total, vectorised."""
    if total <= 0:
        return []
    if total == 1:
        return [100]
    ranks = np.arange(total, dtype="float64")
    raw = np.floor(100.0 - ranks * 100.0 / (total - 1) + 0.5)
    return np.clip(raw, 0, 100).astype(int).tolist()
