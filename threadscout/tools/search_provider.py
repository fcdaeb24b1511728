from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from threadscout.config import settings
from threadscout.tools import brave_search, google_search, tavily_search
from threadscout.tools.google_search import SearchResult

SUPPORTED_PROVIDERS = ("google_pse", "brave", "tavily")


@dataclass
class SearchResponse:
    results: list[SearchResult]
    provider: str
    suggestions: list[str] = field(default_factory=list)
    engines: list[str] = field(default_factory=list)
    fallback_from: str | None = None
    fallback_reason: str | None = None


async def _run_provider(
    provider: str,
    query: str,
    *,
    language: str | None,
    num_results: int,
) -> tuple[list[SearchResult], list[str]]:
    if provider == "google_pse":
        return await google_search.search(query, language=language, num_results=num_results)
    if provider == "brave":
        return await brave_search.search(query, language=language, num_results=num_results), []
    if provider == "tavily":
        return await tavily_search.search(query, num_results=num_results), []
    raise ValueError(f"Unsupported search provider: {provider}")


async def search(
    query: str,
    *,
    language: str | None = None,
    engines: list[str] | None = None,
    num_results: int | None = None,
) -> SearchResponse:
    """Search the web through the configured provider.

    The configured site hint is prepended so results lean towards discussion
    threads. Falls back to SEARCH_FALLBACK_PROVIDER when the primary raises or
    returns nothing.
    """
    provider = settings.search_provider.lower().strip()
    if provider not in SUPPORTED_PROVIDERS:
        raise ValueError(f"Unsupported SEARCH_PROVIDER: {settings.search_provider}")
    fallback = settings.search_fallback_provider.lower().strip()
    if fallback == provider:
        fallback = ""

    hint = settings.search_site_hint.strip()
    hinted_query = f"{hint} {query}" if hint and hint.lower() not in query.lower() else query
    language = language if language is not None else settings.search_language
    engines = list(engines) if engines is not None else settings.search_engine_list
    count = int(num_results or settings.search_num_results)

    fallback_reason: str | None = None
    try:
        results, suggestions = await _run_provider(
            provider, hinted_query, language=language, num_results=count
        )
        if results or not fallback:
            return SearchResponse(
                results=results, provider=provider, suggestions=suggestions, engines=engines
            )
        fallback_reason = "no results"
    except Exception as exc:
        if not fallback:
            raise
        fallback_reason = f"{type(exc).__name__}: {exc}"

    logger.warning(f"Search provider {provider} fell back to {fallback}: {fallback_reason}")
    results, suggestions = await _run_provider(
        fallback, hinted_query, language=language, num_results=count
    )
    return SearchResponse(
        results=results,
        provider=fallback,
        suggestions=suggestions,
        engines=engines,
        fallback_from=provider,
        fallback_reason=fallback_reason,
    )
