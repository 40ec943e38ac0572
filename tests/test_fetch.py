import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import httpx
import pytest

from trendpulse import fetch
from trendpulse.config import HTTP_TIMEOUT_MAX_S, HTTP_TIMEOUT_MIN_S, HTTP_TIMEOUT_S


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_clamp_timeout():
    assert fetch.clamp_timeout(None) == HTTP_TIMEOUT_S
    assert fetch.clamp_timeout(0.01) == HTTP_TIMEOUT_MIN_S
    assert fetch.clamp_timeout(500) == HTTP_TIMEOUT_MAX_S
    assert fetch.clamp_timeout("bogus") == HTTP_TIMEOUT_S


def test_resolve_charset_order():
    prolog = b'<?xml version="1.0" encoding="euc-kr"?><rss/>'
    assert fetch.resolve_charset("text/xml; charset=utf-8", prolog) == "utf-8"
    assert fetch.resolve_charset("text/xml", prolog) == "euc_kr"
    assert fetch.resolve_charset(None, b"<rss/>") == "utf-8"
    meta = b'<html><head><meta charset="cp949"></head></html>'
    assert fetch.resolve_charset("text/html", meta) == "cp949"


def test_unknown_charset_falls_back_to_default():
    assert fetch.resolve_charset("text/plain; charset=x-made-up", b"hello") == "utf-8"


def test_header_charset_used_for_decoding():
    body = "안녕하세요".encode("euc-kr")

    def handler(request):
        return httpx.Response(200, content=body, headers={"content-type": "text/plain; charset=euc-kr"})

    r = fetch.fetch_text("https://example.test/a", client=_client(handler))
    assert r.ok
    assert r.status == 200
    assert r.text == "안녕하세요"


def test_prolog_charset_used_when_header_is_silent():
    body = b'<?xml version="1.0" encoding="euc-kr"?><rss>' + "뉴스".encode("euc-kr") + b"</rss>"

    def handler(request):
        return httpx.Response(200, content=body, headers={"content-type": "application/xml"})

    r = fetch.fetch_text("https://example.test/feed", client=_client(handler))
    assert "뉴스" in r.text


def test_bom_and_replacement_chars_removed():
    def handler(request):
        return httpx.Response(200, content=b"\xef\xbb\xbfok \xff\xfe done")

    r = fetch.fetch_text("https://example.test/b", client=_client(handler))
    assert r.ok
    assert r.text.startswith("ok")
    assert "\ufffd" not in r.text
    assert "\ufeff" not in r.text


def test_non_2xx_is_a_failed_result():
    def handler(request):
        return httpx.Response(404, text="nope")

    r = fetch.fetch_text("https://example.test/missing", client=_client(handler))
    assert not r.ok
    assert r.status == 404
    assert r.error == "HTTP 404"


def test_user_agent_and_extra_headers_sent():
    seen = {}

    def handler(request):
        seen["user-agent"] = request.headers["user-agent"]
        seen["accept"] = request.headers["accept"]
        return httpx.Response(200, text="ok")

    fetch.fetch_text("https://example.test/h", headers={"Accept": "application/json"}, client=_client(handler))
    assert seen["user-agent"].startswith("trends-proxy")
    assert seen["accept"] == "application/json"


def test_timeout_returns_failed_result():
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    started = time.monotonic()
    r = fetch.fetch_text("https://example.test/slow", timeout_s=1.0, client=_client(handler))
    assert not r.ok
    assert r.status == 0
    assert r.error == "timeout"
    assert time.monotonic() - started < 1.0


def test_slow_body_aborts_at_deadline():
    def trickle():
        for _ in range(20):
            time.sleep(0.3)
            yield b"x" * 10

    def handler(request):
        return httpx.Response(200, content=trickle())

    started = time.monotonic()
    r = fetch.fetch_text("https://example.test/trickle", timeout_s=1.0, client=_client(handler))
    elapsed = time.monotonic() - started
    assert not r.ok
    assert r.error == "timeout"
    # 20 chunks would take 6s; the deadline cuts in right after 1s
    assert elapsed < 2.0


def test_transport_error_returns_failed_result():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    r = fetch.fetch_text("https://example.test/down", client=_client(handler))
    assert not r.ok
    assert r.status == 0
    assert "boom" in r.error


def test_fetch_json_parses_or_yields_none():
    def good(request):
        return httpx.Response(200, json={"hits": [1, 2]})

    def bad(request):
        return httpx.Response(200, text="<html>not json</html>")

    def missing(request):
        return httpx.Response(500, text="{}")

    assert fetch.fetch_json("https://example.test/j", client=_client(good)).json == {"hits": [1, 2]}

    r = fetch.fetch_json("https://example.test/j", client=_client(bad))
    assert r.ok
    assert r.json is None

    r = fetch.fetch_json("https://example.test/j", client=_client(missing))
    assert not r.ok
    assert r.json is None


class _StallingHandler(BaseHTTPRequestHandler):
    def do_GET(self):
        self.send_response(200)
        self.send_header("Content-Type", "text/plain")
        self.send_header("Content-Length", "1000")
        self.end_headers()
        time.sleep(0.6)
        self.wfile.write(b"x" * 10)
        self.wfile.flush()
        # then nothing more until the client gives up
        for _ in range(50):
            time.sleep(0.1)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def stalling_server():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _StallingHandler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}/feed"
    server.shutdown()
    server.server_close()


def test_stalled_socket_returns_at_deadline(stalling_server):
    # per-read timeout far above the deadline: only the deadline can end the wait
    client = httpx.Client(trust_env=False, timeout=httpx.Timeout(10.0))
    started = time.monotonic()
    r = fetch.fetch_text(stalling_server, timeout_s=1.0, client=client)
    elapsed = time.monotonic() - started
    client.close()

    assert not r.ok
    assert r.error == "timeout"
    assert elapsed < 1.3
