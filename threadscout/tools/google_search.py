from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger

from threadscout.config import settings

GOOGLE_PSE_URL = "https://www.googleapis.com/customsearch/v1"
PAGE_SIZE = 10


@dataclass
class SearchResult:
    title: str
    url: str
    content: str
    score: float = 0.0
    img_src: str | None = None


def _map_item(item: dict[str, Any]) -> SearchResult:
    pagemap = item.get("pagemap") or {}
    images = pagemap.get("cse_image") or []
    return SearchResult(
        title=item.get("title", ""),
        url=item.get("link", ""),
        content=item.get("snippet", "") or "",
        img_src=images[0].get("src") if images else None,
    )


async def search(
    query: str,
    *,
    language: str | None = None,
    num_results: int = 10,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[list[SearchResult], list[str]]:
    """Google Programmable Search, paging 10 results at a time.

    Returns results and spelling suggestions. A failed follow-up page stops
    paging and keeps what was already collected.
    """
    if not settings.google_pse_api_key or not settings.google_pse_engine_id:
        raise RuntimeError("GOOGLE_PSE_API_KEY or GOOGLE_PSE_ENGINE_ID is not configured")

    wanted = max(int(num_results), 1)
    params: dict[str, Any] = {
        "key": settings.google_pse_api_key,
        "cx": settings.google_pse_engine_id,
        "q": query,
        "num": min(wanted, PAGE_SIZE),
    }
    if language:
        params["lr"] = f"lang_{language}"

    results: list[SearchResult] = []
    suggestions: list[str] = []
    max_pages = (wanted + PAGE_SIZE - 1) // PAGE_SIZE

    async with httpx.AsyncClient(timeout=20.0, transport=transport) as client:
        for page in range(1, max_pages + 1):
            page_params = dict(params)
            if page > 1:
                page_params["start"] = (page - 1) * PAGE_SIZE + 1
            try:
                response = await client.get(GOOGLE_PSE_URL, params=page_params)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                if page == 1:
                    raise
                logger.warning(f"Google search page {page} failed: {exc}")
                break
            payload = response.json()

            if page == 1:
                corrected = (payload.get("spelling") or {}).get("correctedQuery")
                if corrected:
                    suggestions.append(corrected)

            items = payload.get("items") or []
            results.extend(_map_item(item) for item in items)
            if len(items) < PAGE_SIZE or not (payload.get("queries") or {}).get("nextPage"):
                break

    results = results[:wanted]
    total = max(len(results), 1)
    for idx, result in enumerate(results):
        result.score = max(0.0, 1.0 - (idx / total))
    return results, suggestions
