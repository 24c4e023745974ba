from __future__ import annotations

import httpx
import pytest
from aiocache import SimpleMemoryCache

from hecate.tools import web
from hecate.tools.args import WebFetchArgs, WebSearchArgs
from hecate.tools.catalog import ToolError
from hecate.tools.web import blocked_host, html_to_text, parse_search_results, web_fetch, web_search

SEARCH_PAGE = """
<div class="result">
  <a rel="nofollow" class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fexample.com%2Fdocs&amp;rut=x">
    Example <b>Docs</b>
  </a>
  <a class="result__snippet" href="#">The &amp; official docs</a>
</div>
<div class="result">
  <a class="result__a" href="https://python.org/">Python</a>
  <a class="result__snippet" href="#">Python home</a>
</div>
"""


@pytest.fixture(autouse=True)
def _fresh_cache(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(web, "_CACHE", SimpleMemoryCache())


def _mock_client(monkeypatch: pytest.MonkeyPatch, handler) -> list[httpx.Request]:
    requests: list[httpx.Request] = []

    def _handle(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    def _client(timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(_handle), follow_redirects=True, timeout=timeout)

    monkeypatch.setattr(web, "_client", _client)
    return requests


def test_parse_search_results_unwraps_redirects() -> None:
    results = parse_search_results(SEARCH_PAGE, limit=5)

    assert [r.url for r in results] == ["https://example.com/docs", "https://python.org/"]
    assert results[0].title == "Example Docs"
    assert results[0].snippet == "The & official docs"
    assert len(parse_search_results(SEARCH_PAGE, limit=1)) == 1


def test_html_to_text_drops_scripts_and_keeps_blocks() -> None:
    page = (
        "<html><head><style>body{}</style><script>alert(1)</script></head>"
        "<body><h1>Title</h1><!-- hidden --><p>First&nbsp;para</p><p>Second   para</p></body></html>"
    )

    text = html_to_text(page)

    assert "alert" not in text
    assert "hidden" not in text
    assert text.splitlines()[0] == "Title"
    assert "Second para" in text


def test_html_to_text_tolerates_unclosed_tags() -> None:
    text = html_to_text("<div><p>Unclosed <b>bold<p>Next</div><li>item")

    assert "Unclosed" in text
    assert "bold" in text
    assert text.splitlines()[-2:] == ["Next", "item"]


@pytest.mark.parametrize(
    ("host", "blocked"),
    [
        ("localhost", True),
        ("printer.local", True),
        ("127.0.0.1", True),
        ("10.1.2.3", True),
        ("169.254.0.1", True),
        (None, True),
        ("example.com", False),
        ("8.8.8.8", False),
    ],
)
def test_blocked_hosts(host, blocked: bool) -> None:
    assert blocked_host(host) is blocked


@pytest.mark.asyncio
async def test_web_search_formats_results(monkeypatch: pytest.MonkeyPatch) -> None:
    requests = _mock_client(monkeypatch, lambda _request: httpx.Response(200, text=SEARCH_PAGE))

    result = await web_search(WebSearchArgs(query="python docs", num_results=2))

    assert "q=python+docs" in str(requests[0].url)
    assert result.startswith("Search results for 'python docs':")
    assert "1. Example Docs" in result
    assert "   URL: https://python.org/" in result


@pytest.mark.asyncio
async def test_web_search_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    _mock_client(monkeypatch, lambda _request: httpx.Response(503))

    with pytest.raises(ToolError, match="status 503"):
        await web_search(WebSearchArgs(query="x"))


@pytest.mark.asyncio
async def test_web_search_no_results(monkeypatch: pytest.MonkeyPatch) -> None:
    _mock_client(monkeypatch, lambda _request: httpx.Response(200, text="<html></html>"))

    assert await web_search(WebSearchArgs(query="nothing")) == "No results found for: nothing"


@pytest.mark.asyncio
async def test_web_fetch_converts_html_and_caches(monkeypatch: pytest.MonkeyPatch) -> None:
    requests = _mock_client(
        monkeypatch,
        lambda _request: httpx.Response(
            200, text="<p>Hello</p><p>World</p>", headers={"content-type": "text/html; charset=utf-8"}
        ),
    )

    first = await web_fetch(WebFetchArgs(url="https://example.com/page"))
    second = await web_fetch(WebFetchArgs(url="https://example.com/page", max_length=3))

    assert first == "Content from: https://example.com/page\n\nHello\nWorld"
    assert second == "Content from: https://example.com/page\n\nHel\n\n... (truncated)"
    assert len(requests) == 1


@pytest.mark.asyncio
async def test_web_fetch_returns_plain_text_as_is(monkeypatch: pytest.MonkeyPatch) -> None:
    _mock_client(
        monkeypatch,
        lambda _request: httpx.Response(200, text="<not html>", headers={"content-type": "text/plain"}),
    )

    assert (await web_fetch(WebFetchArgs(url="https://example.com/raw.txt"))).endswith("<not html>")


@pytest.mark.asyncio
async def test_web_fetch_rejects_bad_urls_and_statuses(monkeypatch: pytest.MonkeyPatch) -> None:
    _mock_client(monkeypatch, lambda _request: httpx.Response(404, text="missing"))

    with pytest.raises(ToolError, match="only http and https"):
        await web_fetch(WebFetchArgs(url="file:///etc/passwd"))
    with pytest.raises(ToolError, match="blocked host"):
        await web_fetch(WebFetchArgs(url="http://127.0.0.1:8080/admin"))
    with pytest.raises(ToolError, match="status 404"):
        await web_fetch(WebFetchArgs(url="https://example.com/missing"))
