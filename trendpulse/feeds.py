from __future__ import annotations

"""
Title extraction from RSS / Atom payloads and JSON result sets.

The XML side is deliberately tolerant: feeds from trend, news and forum
upstreams are scanned with patterns instead of a strict parser, so a
truncated or slightly malformed document still yields whatever titles it
carries. The JSON side decodes each upstream into a small pydantic model
with typed defaults so callers never re-check for missing fields.
"""

import re
from typing import Any, Iterable, List, Optional

from loguru import logger
from pydantic import BaseModel, ValidationError

from .normalize import collapse_ws, sanitize_text, strip_markup

_ITEM_TITLE_RX = re.compile(r"<item[\s\S]*?<title>([\s\S]*?)</title>[\s\S]*?</item>", re.I)
_ENTRY_TITLE_RX = re.compile(r"<entry[\s\S]*?<title[^>]*>([\s\S]*?)</title>[\s\S]*?</entry>", re.I)
_CDATA_RX = re.compile(r"<!\[CDATA\[([\s\S]*?)\]\]>")

_XML_ENTITIES = (
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&amp;", "&"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&apos;", "'"),
)

MIN_TITLE_CHARS = 2


def decode_xml(text: str) -> str:
    out = _CDATA_RX.sub(r"\1", str(text))
    for entity, char in _XML_ENTITIES:
        out = out.replace(entity, char)
    return out


def _clean_title(raw: str) -> str:
    return collapse_ws(sanitize_text(strip_markup(decode_xml(raw))))


def parse_feed_titles(xml_text: str | None) -> List[str]:
    """
    Titles of every ``<item>`` and then every ``<entry>`` in the document.

    Entities and CDATA wrappers are undone, inline tags stripped, and titles
    shorter than two characters dropped. Order is document order per
    envelope; duplicates are kept.
    """
    if not xml_text or not isinstance(xml_text, str):
        return []
    titles: List[str] = []
    for rx in (_ITEM_TITLE_RX, _ENTRY_TITLE_RX):
        for m in rx.finditer(xml_text):
            t = _clean_title(m.group(1))
            if len(t) >= MIN_TITLE_CHARS:
                titles.append(t)
    return titles


def strip_source_suffix(title: str) -> str:
    """News titles end with ' - Publisher'; keep the headline only."""
    return str(title).split(" - ")[0].strip()


def unique(items: Iterable[str]) -> List[str]:
    """Case-insensitive dedupe, first occurrence wins."""
    seen = set()
    out: List[str] = []
    for x in items:
        k = (x or "").casefold()
        if not k or k in seen:
            continue
        seen.add(k)
        out.append(x)
    return out


# ---------------------------------------------------------------------------
# Upstream JSON models
# ---------------------------------------------------------------------------

class _Snippet(BaseModel):
    title: str = ""
    channelTitle: str = ""
    categoryId: str = ""


class _Video(BaseModel):
    id: str = ""
    snippet: _Snippet = _Snippet()


class YouTubeVideoList(BaseModel):
    items: List[_Video] = []


class _Hit(BaseModel):
    title: Optional[str] = None
    story_title: Optional[str] = None
    points: Optional[int] = None


class HNSearchResult(BaseModel):
    hits: List[_Hit] = []


def _validate(model, payload: Any, label: str):
    if payload is None:
        return model()
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        logger.warning("{} payload did not match the expected shape: {}", label, e.error_count())
        return model()


def youtube_titles(payload: Any) -> List[str]:
    data = _validate(YouTubeVideoList, payload, "YouTube")
    return [t for t in (_clean_title(v.snippet.title) for v in data.items) if t]


def hn_titles(payload: Any) -> List[str]:
    data = _validate(HNSearchResult, payload, "HN")
    titles = (_clean_title(h.title or h.story_title or "") for h in data.hits)
    return [t for t in titles if t]


def parse_suggestions(payload: Any, cap: int = 30) -> List[str]:
    """Autocomplete response: ``[query, [suggestion, ...], ...]``."""
    if not isinstance(payload, list) or len(payload) < 2 or not isinstance(payload[1], list):
        return []
    out = [collapse_ws(sanitize_text(str(x))) for x in payload[1]]
    return [s for s in out if s][:cap]
