from __future__ import annotations

import asyncio
from typing import Protocol
from urllib.parse import quote

import httpx
from loguru import logger

from threadscout.config import settings
from threadscout.errors import FetchError
from threadscout.research_core.models.interfaces import FetchedPage, FetchFailure
from threadscout.tools.web_utils import alternate_host_url

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
}

PROXY_HEADERS = {
    "User-Agent": BROWSER_HEADERS["User-Agent"],
    "Accept": "text/html,application/xhtml+xml",
    "Cache-Control": "no-cache",
}


class FetchStrategy(Protocol):
    name: str

    async def attempt(self, url: str) -> FetchedPage | FetchFailure: ...


def _to_page(url: str, response: httpx.Response, strategy: str) -> FetchedPage:
    return FetchedPage(
        url=url,
        final_url=str(response.url),
        html=response.text,
        strategy=strategy,
        status_code=int(response.status_code),
        content_type=response.headers.get("content-type", ""),
        body=response.content,
    )


async def fetch_with_backoff(
    url: str,
    *,
    timeout: float,
    max_attempts: int = 3,
    backoff_seconds: float = 2.0,
    headers: dict[str, str] | None = None,
    alternate_url: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.Response:
    """GET with retries on 429 and transport errors.

    Sleeps ``retry * backoff_seconds`` before each retry. When ``alternate_url``
    is given, the last attempt is sent there instead. Raises FetchError once
    attempts run out or on any other HTTP error status.
    """
    attempts = max(int(max_attempts), 1)
    last_status: int | None = None
    last_reason = "no attempts made"

    async with httpx.AsyncClient(
        timeout=timeout,
        follow_redirects=True,
        transport=transport,
    ) as client:
        for attempt in range(1, attempts + 1):
            if attempt > 1:
                await asyncio.sleep((attempt - 1) * backoff_seconds)
            target = url
            if alternate_url and attempts > 1 and attempt == attempts:
                target = alternate_url
            try:
                response = await client.get(target, headers=headers or BROWSER_HEADERS)
            except httpx.HTTPError as exc:
                last_status = None
                last_reason = f"{type(exc).__name__}: {exc}"
                logger.debug(f"Fetch attempt {attempt}/{attempts} failed for {target}: {last_reason}")
                continue

            if response.status_code == 429:
                last_status = 429
                last_reason = "rate limited"
                logger.debug(f"Fetch attempt {attempt}/{attempts} rate limited for {target}")
                continue
            if response.status_code >= 400:
                raise FetchError(target, f"HTTP {response.status_code}", status_code=response.status_code)
            return response

    if last_status == 429:
        raise FetchError(url, f"Rate limited after {attempts} retries", status_code=429)
    raise FetchError(url, last_reason, status_code=last_status)


class ProxyStrategy:
    """Fetches through a URL-template proxy such as a caching proxy or an archive mirror."""

    def __init__(
        self,
        name: str,
        template: str,
        *,
        timeout: float,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.name = name
        self.template = template
        self.timeout = timeout
        self.transport = transport

    def target_url(self, url: str) -> str:
        return self.template.format(url=url, url_encoded=quote(url, safe=""))

    async def attempt(self, url: str) -> FetchedPage | FetchFailure:
        target = self.target_url(url)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                response = await client.get(target, headers=PROXY_HEADERS)
        except httpx.HTTPError as exc:
            return FetchFailure(url, f"{type(exc).__name__}: {exc}", strategy=self.name)
        if response.status_code >= 400:
            return FetchFailure(
                url,
                f"HTTP {response.status_code}",
                status_code=int(response.status_code),
                strategy=self.name,
            )
        return _to_page(url, response, self.name)


class DirectStrategy:
    """Browser-like direct request; the last retry goes to the alternate host."""

    name = "direct"

    def __init__(
        self,
        *,
        timeout: float,
        max_attempts: int = 3,
        backoff_seconds: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.transport = transport

    async def attempt(self, url: str) -> FetchedPage | FetchFailure:
        alternate = alternate_host_url(url)
        try:
            response = await fetch_with_backoff(
                url,
                timeout=self.timeout,
                max_attempts=self.max_attempts,
                backoff_seconds=self.backoff_seconds,
                alternate_url=alternate if alternate != url else None,
                transport=self.transport,
            )
        except FetchError as exc:
            return FetchFailure(url, exc.reason, status_code=exc.status_code, strategy=self.name)
        return _to_page(url, response, self.name)


class AlternateHostStrategy:
    name = "alternate_host"

    def __init__(self, *, timeout: float, transport: httpx.AsyncBaseTransport | None = None):
        self.timeout = timeout
        self.transport = transport

    async def attempt(self, url: str) -> FetchedPage | FetchFailure:
        alternate = alternate_host_url(url)
        if alternate == url:
            return FetchFailure(url, "no alternate host", strategy=self.name)
        try:
            response = await fetch_with_backoff(
                alternate,
                timeout=self.timeout,
                max_attempts=1,
                headers={**BROWSER_HEADERS, "Referer": "https://www.google.com/"},
                transport=self.transport,
            )
        except FetchError as exc:
            return FetchFailure(url, exc.reason, status_code=exc.status_code, strategy=self.name)
        return _to_page(url, response, self.name)


def build_strategies(
    names: list[str] | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[FetchStrategy]:
    """Build the fetch chain in the configured order. Unknown names are skipped."""
    strategies: list[FetchStrategy] = []
    for name in names if names is not None else settings.fetch_strategy_list:
        if name == "cache_proxy":
            strategies.append(
                ProxyStrategy(
                    "cache_proxy",
                    settings.cache_proxy_url,
                    timeout=settings.proxy_timeout_seconds,
                    transport=transport,
                )
            )
        elif name == "archive_mirror":
            strategies.append(
                ProxyStrategy(
                    "archive_mirror",
                    settings.archive_mirror_url,
                    timeout=settings.proxy_timeout_seconds,
                    transport=transport,
                )
            )
        elif name == "direct":
            strategies.append(
                DirectStrategy(
                    timeout=settings.direct_timeout_seconds,
                    max_attempts=settings.direct_max_attempts,
                    backoff_seconds=settings.direct_backoff_seconds,
                    transport=transport,
                )
            )
        elif name == "alternate_host":
            strategies.append(
                AlternateHostStrategy(timeout=settings.direct_timeout_seconds, transport=transport)
            )
        else:
            logger.warning(f"Unknown fetch strategy '{name}' ignored")
    return strategies
