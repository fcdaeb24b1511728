from __future__ import annotations

from typing import Any

import httpx

from threadscout.config import settings
from threadscout.tools.google_search import SearchResult

BRAVE_SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"
BRAVE_MAX_COUNT = 20


async def search(
    query: str,
    *,
    language: str | None = None,
    num_results: int = 10,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[SearchResult]:
    """Execute a Brave web search and normalize results."""
    if not settings.brave_api_key:
        raise RuntimeError("BRAVE_API_KEY is not configured")

    params: dict[str, Any] = {
        "q": query,
        "count": min(max(int(num_results), 1), BRAVE_MAX_COUNT),
    }
    if language:
        params["search_lang"] = language

    async with httpx.AsyncClient(timeout=30.0, transport=transport) as client:
        response = await client.get(
            BRAVE_SEARCH_URL,
            params=params,
            headers={
                "Accept": "application/json",
                "X-Subscription-Token": settings.brave_api_key,
            },
        )
        response.raise_for_status()
        payload = response.json()

    raw_results = payload.get("web", {}).get("results", [])
    total = max(len(raw_results), 1)
    mapped: list[SearchResult] = []
    for idx, item in enumerate(raw_results):
        snippets = item.get("extra_snippets", []) or []
        description = item.get("description", "") or ""
        thumbnail = item.get("thumbnail") or {}
        mapped.append(
            SearchResult(
                title=item.get("title", ""),
                url=item.get("url", ""),
                content=description.strip() or " ".join(snippets).strip(),
                # rank position stands in for relevance; Brave returns none
                score=max(0.0, 1.0 - (idx / total)),
                img_src=thumbnail.get("src"),
            )
        )
    return mapped
