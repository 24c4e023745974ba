"""Web tools: DuckDuckGo search and page fetch with HTML-to-text extraction."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from urllib.parse import parse_qs, quote_plus, urlparse

import httpx
from aiocache import SimpleMemoryCache
from bs4 import BeautifulSoup, Comment

from hecate.tools.args import WebFetchArgs, WebSearchArgs
from hecate.tools.catalog import Tool, ToolCategory, ToolError

SEARCH_URL = "https://html.duckduckgo.com/html/?q={query}"
USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64; rv:120.0) Gecko/20100101 Firefox/120.0"
SEARCH_TIMEOUT_S = 15.0
FETCH_TIMEOUT_S = 30.0
FETCH_MAX_BYTES = 1_000_000
MAX_RESULTS = 10
MAX_FETCH_LENGTH = 50_000
FETCH_CACHE_TTL_S = 300

_CACHE = SimpleMemoryCache()

_NON_CONTENT_TAGS = ["script", "style", "noscript", "iframe", "svg", "template"]


@dataclass(frozen=True)
class SearchResult:
    title: str
    url: str
    snippet: str = ""


def _client(timeout: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        follow_redirects=True,
        max_redirects=5,
        timeout=timeout,
        headers={"User-Agent": USER_AGENT},
    )


def _unwrap_ddg_url(raw: str) -> str:
    """DuckDuckGo wraps result links in a ``/l/?uddg=<url>`` redirect."""
    if "uddg=" in raw:
        target = parse_qs(urlparse(raw).query).get("uddg")
        if target:
            return target[0]
    if raw.startswith("http"):
        return raw
    return ""


def _clean(text: str) -> str:
    return " ".join(text.split())


def parse_search_results(page: str, limit: int) -> list[SearchResult]:
    soup = BeautifulSoup(page, "html.parser")
    results: list[SearchResult] = []
    for link in soup.select("a.result__a"):
        if len(results) >= limit:
            break
        url = _unwrap_ddg_url(link.get("href", ""))
        if not url:
            continue
        container = link.find_parent(class_="result")
        snippet = container.select_one(".result__snippet") if container is not None else None
        results.append(
            SearchResult(
                title=_clean(link.get_text(" ")),
                url=url,
                snippet=_clean(snippet.get_text(" ")) if snippet is not None else "",
            )
        )
    return results


def html_to_text(page: str) -> str:
    """Readable text of an HTML page, one block per line."""
    soup = BeautifulSoup(page, "html.parser")
    for element in soup(_NON_CONTENT_TAGS):
        element.decompose()
    for comment in soup.find_all(string=lambda node: isinstance(node, Comment)):
        comment.extract()
    lines = (_clean(line) for line in soup.get_text(separator="\n", strip=True).splitlines())
    return "\n".join(line for line in lines if line)


def blocked_host(host: str | None) -> bool:
    """Reject local and private hosts."""
    if not host:
        return True
    lowered = host.lower()
    if lowered == "localhost" or lowered.endswith(".local"):
        return True
    try:
        ip_obj = ipaddress.ip_address(lowered)
    except ValueError:
        return False
    return ip_obj.is_private or ip_obj.is_loopback or ip_obj.is_link_local


async def web_search(args: WebSearchArgs) -> str:
    limit = min(args.num_results, MAX_RESULTS)
    try:
        async with _client(SEARCH_TIMEOUT_S) as client:
            response = await client.get(SEARCH_URL.format(query=quote_plus(args.query)))
    except httpx.HTTPError as exc:
        raise ToolError(f"search request failed: {exc}") from exc
    if response.status_code != 200:
        raise ToolError(f"search returned status {response.status_code}")

    results = parse_search_results(response.text, limit)
    if not results:
        return f"No results found for: {args.query}"

    out = [f"Search results for '{args.query}':", ""]
    for number, result in enumerate(results, start=1):
        out.append(f"{number}. {result.title}")
        out.append(f"   URL: {result.url}")
        if result.snippet:
            out.append(f"   {result.snippet}")
        out.append("")
    return "\n".join(out)


async def web_fetch(args: WebFetchArgs) -> str:
    parsed = urlparse(args.url)
    if parsed.scheme not in {"http", "https"}:
        raise ToolError("only http and https URLs are supported")
    if blocked_host(parsed.hostname):
        raise ToolError("blocked host for security reasons")
    max_length = min(args.max_length, MAX_FETCH_LENGTH)

    cache_key = f"fetch:{args.url}"
    text = await _CACHE.get(cache_key)
    if text is None:
        text = await _fetch_text(args.url)
        await _CACHE.set(cache_key, text, ttl=FETCH_CACHE_TTL_S)

    if len(text) > max_length:
        text = text[:max_length] + "\n\n... (truncated)"
    return f"Content from: {args.url}\n\n{text}"


async def _fetch_text(url: str) -> str:
    headers = {"Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"}
    try:
        async with _client(FETCH_TIMEOUT_S) as client:
            async with client.stream("GET", url, headers=headers) as response:
                if response.status_code != 200:
                    raise ToolError(f"fetch returned status {response.status_code}")
                collected = bytearray()
                async for chunk in response.aiter_bytes():
                    collected.extend(chunk)
                    if len(collected) >= FETCH_MAX_BYTES:
                        del collected[FETCH_MAX_BYTES:]
                        break
                body = collected.decode(response.encoding or "utf-8", errors="replace")
                content_type = response.headers.get("content-type", "")
    except httpx.HTTPError as exc:
        raise ToolError(f"fetch failed: {exc}") from exc

    if "text/plain" in content_type or "json" in content_type:
        return body
    return html_to_text(body)


def web_tools() -> list[Tool]:
    return [
        Tool(
            name="web_search",
            category=ToolCategory.WEB,
            description="Search the web using DuckDuckGo. Returns titles, URLs and snippets.",
            args_model=WebSearchArgs,
            handler=web_search,
            summary="Web search: {query}",
        ),
        Tool(
            name="web_fetch",
            category=ToolCategory.WEB,
            description="Fetch a web page and extract its readable text. HTML is converted to plain text.",
            args_model=WebFetchArgs,
            handler=web_fetch,
            summary="Fetch: {url}",
        ),
    ]
