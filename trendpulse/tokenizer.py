from __future__ import annotations

import re
from functools import lru_cache
from typing import FrozenSet, List, NamedTuple

from .config import (
    BIGRAM_MAX_CHARS,
    BIGRAM_MULT,
    MIN_TERM_CHARS,
    TRIGRAM_MAX_CHARS,
    TRIGRAM_MULT,
    UNIGRAM_MULT,
)
from .constants import STOP_WORDS_EN, STOP_WORDS_EXTRA, STOP_WORDS_KO

# Hangul runs keep attached digits ("2024년"); Latin pieces of a mixed word split off ("BTS의" -> "bts")
_HANGUL_RUN_RX = re.compile(r"[\uac00-\ud7a30-9]+|[^\uac00-\ud7a3]+")
_HANGUL_RX = re.compile(r"[\uac00-\ud7a3]")
_WORD_RX = re.compile(r"[^\W_]+")


class Phrase(NamedTuple):
    phrase: str
    multiplier: float


@lru_cache(maxsize=16)
def build_stop(hl: str = "ko") -> FrozenSet[str]:
    """Stop list for a locale. Titles mix scripts, so English and Korean always apply."""
    words = set(STOP_WORDS_EN) | set(STOP_WORDS_KO)
    words |= set(STOP_WORDS_EXTRA.get((hl or "").lower(), []))
    return frozenset(words)


def _raw_tokens(text: str):
    for m in _WORD_RX.finditer(text):
        word = m.group(0)
        if _HANGUL_RX.search(word):
            for piece in _HANGUL_RUN_RX.findall(word):
                yield piece if _HANGUL_RX.search(piece) else piece.lower()
        else:
            yield word.lower()


def tokenize(title: str | None, hl: str = "ko") -> List[str]:
    """
    Ordered, de-duplicated keyword tokens of one title.

    Order of first appearance is kept; later stages weight early tokens
    more heavily.
    """
    stop = build_stop(hl)
    seen = set()
    out: List[str] = []
    for tok in _raw_tokens(str(title or "")):
        if len(tok) < MIN_TERM_CHARS or tok.isdigit() or tok in stop:
            continue
        if tok in seen:
            continue
        seen.add(tok)
        out.append(tok)
    return out


def extract_phrases(title: str | None, hl: str = "ko") -> List[Phrase]:
    """Unigrams, then adjacent bigrams and trigrams (length-capped) with rising multipliers."""
    toks = tokenize(title, hl)
    phrases = [Phrase(t, UNIGRAM_MULT) for t in toks]

    for i in range(len(toks) - 1):
        p = f"{toks[i]} {toks[i + 1]}"
        if len(p) <= BIGRAM_MAX_CHARS:
            phrases.append(Phrase(p, BIGRAM_MULT))

    for i in range(len(toks) - 2):
        p = f"{toks[i]} {toks[i + 1]} {toks[i + 2]}"
        if len(p) <= TRIGRAM_MAX_CHARS:
            phrases.append(Phrase(p, TRIGRAM_MULT))

    return phrases
