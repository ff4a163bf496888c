"""
Research tools: Google Custom Search and plain-text page fetching.
"""

import logging
import re

import httpx
from bs4 import BeautifulSoup

from aulaai.core.errors import (
    ConfigurationError,
    UpstreamError,
)
from aulaai.tools import (
    ToolContext,
    ToolRegistry,
)
from aulaai.tools.tool_call_parser import ToolRule

logger = logging.getLogger(__name__)

RESEARCH_TOOLS = ToolRegistry()

DEFAULT_QUERY_NUMBER = 1

RESEARCH_RULES = (
    ToolRule(
        name="google_search",
        describe="Search for: {query}",
        pattern=re.compile(
            r"google_search.*?query[\"']?[:\s]*[\"']([^\"']+)[\"']"
            r"(?:.*?query_number[\"']?[:\s]*(\d+))?",
            re.IGNORECASE,
        ),
        convert=lambda m: {
            "query": m.group(1),
            "query_number": int(m.group(2)) if m.group(2) else DEFAULT_QUERY_NUMBER,
        },
    ),
    ToolRule(
        name="fetch_url",
        describe="Fetch content from: {url}",
        pattern=re.compile(r"fetch_url.*?url[\"']?[:\s]*[\"']([^\"']+)[\"']"),
        convert=lambda m: {"url": m.group(1)},
    ),
)


@RESEARCH_TOOLS.register("google_search", "Look up 3-5 results on Google")
def google_search(ctx: ToolContext, query: str, query_number: int = DEFAULT_QUERY_NUMBER) -> str:
    """Run one Google Custom Search query restricted to the configured country."""
    settings = ctx.settings
    if not settings.GOOGLE_SEARCH_API_KEY or not settings.GOOGLE_SEARCH_ENGINE_ID:
        raise ConfigurationError("Google Search API is not configured")

    try:
        resp = ctx.http.get(
            settings.GOOGLE_SEARCH_URL,
            params={
                "key": settings.GOOGLE_SEARCH_API_KEY,
                "cx": settings.GOOGLE_SEARCH_ENGINE_ID,
                "q": query,
                "num": settings.SEARCH_RESULTS,
                "cr": settings.SEARCH_COUNTRY,
            },
            timeout=settings.TOOL_TIMEOUT,
        )
    except httpx.HTTPError as exc:
        raise UpstreamError(f"Search error: {exc}") from exc

    if not resp.is_success:
        return f"Search failed: {resp.text}"

    items = resp.json().get("items") or []
    logger.info("Search %d for '%s' returned %d items", query_number, query, len(items))
    results = [
        f"- {item.get('title', '')}\n  {item.get('link', '')}\n  {item.get('snippet', '')}\n"
        for item in items
    ]
    return f"Search query {query_number}: {query}\nResults:\n" + "\n".join(results)


@RESEARCH_TOOLS.register("fetch_url", "Fetch and return the plain-text of any URL")
def fetch_url(ctx: ToolContext, url: str) -> str:
    """Download *url* and return its visible text, capped at ``FETCH_MAX_CHARS``."""
    try:
        resp = ctx.http.get(url, timeout=ctx.settings.TOOL_TIMEOUT, follow_redirects=True)
    except httpx.HTTPError as exc:
        raise UpstreamError(f"Error fetching URL: {exc}") from exc

    if not resp.is_success:
        return f"Failed to fetch URL: {resp.status_code}"

    soup = BeautifulSoup(resp.text, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    content = re.sub(r"\s+", " ", soup.get_text(separator=" ")).strip()

    max_chars = ctx.settings.FETCH_MAX_CHARS
    if len(content) > max_chars:
        content = content[:max_chars] + "..."

    return f"Content from {url}:\n{content}"
