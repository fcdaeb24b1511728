from __future__ import annotations

from typing import Any

from tavily import AsyncTavilyClient

from threadscout.config import settings
from threadscout.tools.google_search import SearchResult


async def search(
    query: str,
    *,
    num_results: int = 10,
    include_domains: list[str] | None = None,
) -> list[SearchResult]:
    """Execute a Tavily web search and return structured results."""
    if not settings.tavily_api_key:
        raise RuntimeError("TAVILY_API_KEY is not configured")
    client = AsyncTavilyClient(api_key=settings.tavily_api_key)

    kwargs: dict[str, Any] = {
        "query": query,
        "search_depth": "basic",
        "max_results": min(max(int(num_results), 1), 20),
        "include_images": False,
    }
    if include_domains:
        kwargs["include_domains"] = include_domains

    response = await client.search(**kwargs)

    return [
        SearchResult(
            title=r.get("title", ""),
            url=r.get("url", ""),
            content=r.get("content", ""),
            score=r.get("score", 0.0),
        )
        for r in response.get("results", [])
    ]
