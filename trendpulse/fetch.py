from __future__ import annotations

import codecs
import json
import re
import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from .config import (
    DEFAULT_CHARSET,
    HTTP_CONNECT_TIMEOUT,
    HTTP_MAX_BYTES,
    HTTP_TIMEOUT_MAX_S,
    HTTP_TIMEOUT_MIN_S,
    HTTP_TIMEOUT_S,
    HTTP_USER_AGENT,
)
from .normalize import sanitize_text

_HEADER_CHARSET_RX = re.compile(r"charset\s*=\s*[\"']?([\w.:-]+)", re.I)
_XML_PROLOG_RX = re.compile(rb"<\?xml[^>]*\bencoding\s*=\s*[\"']([\w.:-]+)[\"']", re.I)
_META_CHARSET_RX = re.compile(rb"<meta[^>]+charset\s*=\s*[\"']?([\w.:-]+)", re.I)

_SNIFF_BYTES = 1024
_DEADLINE_GRACE_S = 0.05


class FetchTimeout(httpx.TimeoutException):
    """Whole-request deadline exceeded while streaming the body."""


@dataclass
class FetchResult:
    ok: bool
    status: int
    text: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    json: Any = None
    error: Optional[str] = None
    elapsed_ms: int = 0


def clamp_timeout(timeout_s: float | None) -> float:
    try:
        t = float(timeout_s) if timeout_s is not None else HTTP_TIMEOUT_S
    except (TypeError, ValueError):
        t = HTTP_TIMEOUT_S
    return min(HTTP_TIMEOUT_MAX_S, max(HTTP_TIMEOUT_MIN_S, t))


def _usable_codec(name: str | None) -> Optional[str]:
    if not name:
        return None
    try:
        return codecs.lookup(name.strip()).name
    except LookupError:
        logger.warning("Unsupported charset {!r}; using {}", name, DEFAULT_CHARSET)
        return None


def resolve_charset(content_type: str | None, raw: bytes) -> str:
    """
    Pick the codec for a response body.

    Order: Content-Type charset, then the document's own declaration
    (XML prolog or HTML meta), then DEFAULT_CHARSET. Unknown or legacy
    names that Python cannot decode fall through to the default.
    """
    if content_type:
        m = _HEADER_CHARSET_RX.search(content_type)
        if m:
            codec = _usable_codec(m.group(1))
            if codec:
                return codec

    head = raw[:_SNIFF_BYTES]
    for rx in (_XML_PROLOG_RX, _META_CHARSET_RX):
        m = rx.search(head)
        if m:
            codec = _usable_codec(m.group(1).decode("ascii", "ignore"))
            if codec:
                return codec

    return DEFAULT_CHARSET


def decode_body(raw: bytes, content_type: str | None = None) -> str:
    codec = resolve_charset(content_type, raw)
    text = raw.decode(codec, errors="replace")
    if text.startswith("\ufeff"):
        text = text[1:]
    return sanitize_text(text)


class _Exchange:
    """One in-flight request, so the caller can cut it off at the deadline."""

    def __init__(self):
        self.cancelled = threading.Event()
        self.response: Optional[httpx.Response] = None

    def abort(self) -> None:
        self.cancelled.set()
        r = self.response
        stream = r.extensions.get("network_stream") if r is not None else None
        sock = stream.get_extra_info("socket") if stream is not None else None
        if sock is None:
            return
        # wakes a worker blocked in recv()
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug("Socket already gone while aborting fetch: {}", e)


def _read_with_deadline(response: httpx.Response, deadline: float, exchange: _Exchange) -> bytes:
    chunks = []
    size = 0
    for chunk in response.iter_bytes():
        if exchange.cancelled.is_set() or time.monotonic() > deadline:
            raise FetchTimeout("response body exceeded the request deadline")
        chunks.append(chunk)
        size += len(chunk)
        if size > HTTP_MAX_BYTES:
            logger.warning("Fetch truncated at {} bytes (> {} limit)", size, HTTP_MAX_BYTES)
            break
    return b"".join(chunks)


def _request(
    url: str,
    req_headers: Dict[str, str],
    timeout_s: float,
    deadline: float,
    client: Optional[httpx.Client],
    exchange: _Exchange,
    started: float,
) -> FetchResult:
    owns_client = client is None
    if client is None:
        client = httpx.Client(
            follow_redirects=True,
            timeout=httpx.Timeout(timeout_s, connect=min(HTTP_CONNECT_TIMEOUT, timeout_s)),
        )

    def _elapsed() -> int:
        return int((time.monotonic() - started) * 1000)

    try:
        with client.stream("GET", url, headers=req_headers) as r:
            exchange.response = r
            raw = _read_with_deadline(r, deadline, exchange)
            text = decode_body(raw, r.headers.get("content-type"))
            ok = 200 <= r.status_code < 300
            if not ok:
                logger.warning("Fetch: HTTP {} for {}", r.status_code, url)
            return FetchResult(
                ok=ok,
                status=r.status_code,
                text=text,
                headers=dict(r.headers),
                error=None if ok else f"HTTP {r.status_code}",
                elapsed_ms=_elapsed(),
            )
    except httpx.TimeoutException:
        return FetchResult(ok=False, status=0, error="timeout", elapsed_ms=_elapsed())
    except httpx.HTTPError as e:
        if exchange.cancelled.is_set():
            return FetchResult(ok=False, status=0, error="timeout", elapsed_ms=_elapsed())
        logger.warning("Fetch transport error for {}: {}", url, e)
        return FetchResult(ok=False, status=0, error=str(e) or e.__class__.__name__, elapsed_ms=_elapsed())
    finally:
        if owns_client:
            client.close()


def fetch_text(
    url: str,
    timeout_s: float | None = None,
    headers: Optional[Dict[str, str]] = None,
    client: Optional[httpx.Client] = None,
) -> FetchResult:
    """
    GET ``url`` and return its decoded, sanitized body.

    Never raises for network conditions: timeouts, transport errors and
    oversized bodies come back as ``ok=False`` with ``error`` set. The whole
    request (connect, headers and body) runs on a worker thread and the
    caller gets control back at ``timeout_s`` no matter which phase stalls.
    """
    timeout_s = clamp_timeout(timeout_s)
    req_headers = {"User-Agent": HTTP_USER_AGENT}
    if headers:
        req_headers.update(headers)

    started = time.monotonic()
    deadline = started + timeout_s
    exchange = _Exchange()

    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="fetch")
    future = pool.submit(_request, url, req_headers, timeout_s, deadline, client, exchange, started)
    pool.shutdown(wait=False)
    try:
        result = future.result(timeout=max(0.0, deadline - time.monotonic()) + _DEADLINE_GRACE_S)
    except FutureTimeout:
        exchange.abort()
        result = FetchResult(ok=False, status=0, error="timeout", elapsed_ms=int((time.monotonic() - started) * 1000))

    if result.error == "timeout":
        logger.warning("Fetch timeout after {:.1f}s for {}", timeout_s, url)
    return result


def fetch_json(
    url: str,
    timeout_s: float | None = None,
    headers: Optional[Dict[str, str]] = None,
    client: Optional[httpx.Client] = None,
) -> FetchResult:
    """Like fetch_text, plus a best-effort JSON parse (``json=None`` on failure)."""
    r = fetch_text(url, timeout_s=timeout_s, headers=headers, client=client)
    if not r.ok:
        return r
    try:
        r.json = json.loads(r.text)
    except ValueError:
        logger.warning("Fetch: body of {} is not valid JSON", url)
        r.json = None
    return r
