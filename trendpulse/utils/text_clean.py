# trendpulse/utils/text_clean.py
from __future__ import annotations
import re
from typing import List

from ..config import MAX_CUSTOM_SEEDS

_SEED_SPLIT_RE = re.compile(r"[,\n\r\t]+")


def clean_query_text(q: str, max_len: int = 200) -> str:
    """
    Normaliser for the ``q`` filter:
    - collapse whitespace/newlines
    - trim
    - hard cap
    """
    q = "" if q is None else str(q)
    q = re.sub(r"\s+", " ", q).strip()
    if len(q) > max_len:
        q = q[:max_len]
    return q


def parse_seeds(raw: str, cap: int = MAX_CUSTOM_SEEDS) -> List[str]:
    """
    Seed list from a comma / newline / tab separated string.
    Empty parts dropped, first ``cap`` parts kept, then de-duplicated in order.
    """
    s = "" if raw is None else str(raw).strip()
    if not s:
        return []
    parts = [p.strip() for p in _SEED_SPLIT_RE.split(s)]
    parts = [p for p in parts if p][:cap]
    return list(dict.fromkeys(parts))


_SUBREDDIT_RE = re.compile(r"^[A-Za-z0-9_]{2,21}$")


def clean_subreddit(raw: str) -> str:
    """``r/AskReddit/`` -> ``AskReddit``; "" when the name is not a valid subreddit."""
    s = "" if raw is None else str(raw).strip()
    if s.lower().startswith("r/"):
        s = s[2:]
    s = s.replace("/", "")
    return s if _SUBREDDIT_RE.match(s) else ""
