from __future__ import annotations

"""
Text normalisation helpers shared by the fetch layer, the feed parser and
the keyword pipeline.

Everything that decides whether a string is fit to become a keyword lives
here, so that garbled fragments are rejected once and no later stage has to
re-check them.

Public helpers:

* sanitize_text(text) -> str
    Drops control characters and the Unicode replacement character.

* strip_markup(text) -> str
    Removes inline tags from a feed title.

* normalize_term(term) -> str
    Display form of a keyword candidate, or "" when it is unusable.

* looks_broken(text) -> bool
    Decoding artefacts / symbol soup detector.

* has_expected_script(term, hl) -> bool
    Locale script check for strict keyword lists.
"""

import re
import unicodedata

from bs4 import BeautifulSoup

from .config import MIN_TERM_CHARS

REPLACEMENT_CHAR = "\ufffd"

_KEEP_CONTROLS = {"\n", "\r", "\t"}
_BRACKETS_RX = re.compile(r"[\[\]{}()<>【】]")
_TRAILING_DASH_RX = re.compile(r"\s*-\s*$")
_WS_RX = re.compile(r"\s+")

_SCRIPT_RX = {
    "ko": re.compile(r"[\uac00-\ud7a3]"),
    "ja": re.compile(r"[\u3040-\u30ff\u4e00-\u9fff]"),
    "zh": re.compile(r"[\u4e00-\u9fff]"),
}


def sanitize_text(text: str | None) -> str:
    """Remove control characters (except line breaks / tabs) and U+FFFD."""
    if not text:
        return ""
    return "".join(
        ch for ch in text
        if ch != REPLACEMENT_CHAR
        and (ch in _KEEP_CONTROLS or unicodedata.category(ch) != "Cc")
    )


def strip_markup(text: str | None) -> str:
    if not text:
        return ""
    if "<" not in text:
        return text
    try:
        return BeautifulSoup(text, "html.parser").get_text()
    except Exception:
        return re.sub(r"<[^>]+>", "", text)


def collapse_ws(text: str) -> str:
    return _WS_RX.sub(" ", text).strip()


def looks_broken(text: str | None) -> bool:
    """True for empty strings, decoding artefacts and symbol-heavy fragments."""
    t = text or ""
    if not t:
        return True
    if REPLACEMENT_CHAR in t:
        return True
    symbols = sum(1 for ch in t if not (ch.isalnum() or ch.isspace()))
    return symbols >= max(4, len(t) * 0.45)


def normalize_term(term: str | None) -> str:
    """
    Display form of a candidate keyword.

    Brackets become spaces, whitespace collapses and a dangling trailing dash
    is dropped. Returns "" when the result is too short or looks broken.
    """
    t = collapse_ws(str(term or ""))
    t = collapse_ws(_BRACKETS_RX.sub(" ", t))
    t = _TRAILING_DASH_RX.sub("", t)
    if len(t) < MIN_TERM_CHARS:
        return ""
    if looks_broken(t):
        return ""
    return t


def term_key(term: str) -> str:
    """Case-insensitive identity of a normalized term."""
    return term.casefold()


def has_expected_script(term: str, hl: str) -> bool:
    rx = _SCRIPT_RX.get((hl or "").lower())
    if rx is None:
        return True
    return bool(rx.search(term))


def is_usable_term(term: str | None, hl: str | None = None, require_script: bool = False) -> bool:
    t = normalize_term(term)
    if not t:
        return False
    if require_script and hl and not has_expected_script(t, hl):
        return False
    return True
