# trendpulse/utils/links.py
from __future__ import annotations
from urllib.parse import quote, urlencode
from typing import Dict

__all__ = [
    "make_links",
    "google_news_search_url",
    "google_news_home_url",
    "trends_rss_url",
    "trends_daily_rss_url",
    "reddit_hot_url",
]


def _ceid(geo: str, hl: str) -> str:
    return f"{geo}:{hl}"


def make_links(term: str, geo: str, hl: str) -> Dict[str, str]:
    """
    Search links for a term. Built, never fetched.

    Keys are stable (youtube / naver / google / news) so the dashboard can
    render them without checking which provider produced the item.
    """
    q = quote(str(term or ""), safe="")
    return {
        "youtube": f"https://www.youtube.com/results?search_query={q}",
        "naver": f"https://search.naver.com/search.naver?query={q}",
        "google": f"https://www.google.com/search?q={q}",
        "news": f"https://news.google.com/search?{urlencode({'q': term, 'hl': hl, 'gl': geo})}",
    }


def google_news_search_url(query: str, geo: str, hl: str) -> str:
    params = {"q": query, "hl": hl, "gl": geo, "ceid": _ceid(geo, hl)}
    return f"https://news.google.com/rss/search?{urlencode(params)}"


def google_news_home_url(geo: str, hl: str) -> str:
    params = {"hl": hl, "gl": geo, "ceid": _ceid(geo, hl)}
    return f"https://news.google.com/rss?{urlencode(params)}"


def trends_rss_url(geo: str, category: str = "all") -> str:
    """Realtime trending-searches RSS; ``category`` "all" when unset."""
    cat = category if category and category != "all" else "all"
    params = {"geo": geo, "category": cat}
    return f"https://trends.google.com/trends/trendingsearches/realtime/rss?{urlencode(params)}"


def trends_daily_rss_url(geo: str) -> str:
    return f"https://trends.google.com/trends/trendingsearches/daily/rss?{urlencode({'geo': geo})}"


def reddit_hot_url(sub: str) -> str:
    return f"https://www.reddit.com/r/{quote(sub, safe='')}/hot.rss"
