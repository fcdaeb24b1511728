from __future__ import annotations

from loguru import logger

from threadscout.config import settings
from threadscout.research_core.fetch.strategies import DirectStrategy, FetchStrategy, build_strategies
from threadscout.research_core.models.interfaces import FetchedPage, FetchFailure
from threadscout.services.diagnostics import DiagnosticsSink, NullDiagnostics


class FallbackFetcher:
    """Tries each strategy in order and returns the first acceptable page."""

    def __init__(
        self,
        strategies: list[FetchStrategy] | None = None,
        *,
        min_content_bytes: int | None = None,
        block_markers: list[str] | None = None,
        diagnostics: DiagnosticsSink | None = None,
    ):
        self.strategies = list(strategies) if strategies is not None else build_strategies()
        self.min_content_bytes = (
            settings.fetch_min_content_bytes if min_content_bytes is None else int(min_content_bytes)
        )
        markers = settings.block_marker_list if block_markers is None else block_markers
        self.block_markers = [m.lower() for m in markers]
        self.diagnostics = diagnostics or NullDiagnostics()

    def rejection_reason(self, page: FetchedPage) -> str | None:
        if page.is_pdf:
            return None if page.body else "empty document"
        if len(page.html) <= self.min_content_bytes:
            return f"payload too small ({len(page.html)} bytes)"
        lowered = page.html.lower()
        for marker in self.block_markers:
            if marker in lowered:
                return f"blocked page ({marker})"
        return None

    async def fetch(self, url: str) -> FetchedPage | FetchFailure:
        failure = FetchFailure(url, "no fetch strategies configured")
        for strategy in self.strategies:
            outcome = await strategy.attempt(url)
            if isinstance(outcome, FetchedPage):
                reason = self.rejection_reason(outcome)
                if reason is None:
                    logger.info(
                        f"Fetched {url} via {strategy.name} ({len(outcome.html)} bytes)"
                    )
                    self.diagnostics.snapshot_html(url, outcome.html, label=strategy.name)
                    return outcome
                outcome = FetchFailure(
                    url,
                    reason,
                    status_code=outcome.status_code,
                    strategy=strategy.name,
                )
            logger.warning(f"Fetch strategy {strategy.name} failed for {url}: {outcome.reason}")
            failure = outcome
        return failure


def page_fetcher(diagnostics: DiagnosticsSink | None = None) -> FallbackFetcher:
    """Direct-only fetcher for ordinary pages and documents, without size or block checks."""
    return FallbackFetcher(
        [
            DirectStrategy(
                timeout=settings.direct_timeout_seconds,
                max_attempts=settings.direct_max_attempts,
                backoff_seconds=settings.direct_backoff_seconds,
            )
        ],
        min_content_bytes=0,
        block_markers=[],
        diagnostics=diagnostics,
    )
