"""Turns links into retrievable documents.

Discussion threads go through the fallback fetch chain and the structural
extractor, with paced batches to stay under the host's rate limits. Other
links are fetched directly and converted to text (PDFs included), then
chunked. A link that yields nothing becomes a placeholder document naming
the failure.
"""
from __future__ import annotations

import asyncio
from typing import Literal

from loguru import logger

from threadscout.config import settings
from threadscout.research_core.extract.discussion import DiscussionExtractor, render_discussion
from threadscout.research_core.extract.service import (
    ExtractService,
    chunk_text,
    collapse_whitespace,
)
from threadscout.research_core.fetch.service import FallbackFetcher, page_fetcher
from threadscout.research_core.models.interfaces import (
    DocumentMetadata,
    FetchFailure,
    RetrievedDocument,
)
from threadscout.services.batch_scheduler import run_batches
from threadscout.services.diagnostics import DiagnosticsSink, NullDiagnostics
from threadscout.tools.google_search import SearchResult
from threadscout.tools.web_utils import ensure_scheme, is_discussion_url, normalize_discussion_url

FAILURE_TITLE = "Failed to retrieve content"
PDF_TITLE = "PDF Document"

LinkKind = Literal["discussion", "page"]


def failure_document(url: str, reason: str) -> RetrievedDocument:
    return RetrievedDocument(
        content=f"Failed to retrieve content from the link: {reason}",
        metadata=DocumentMetadata(title=FAILURE_TITLE, url=url, source_kind="failure"),
    )


def snippet_documents(results: list[SearchResult]) -> list[RetrievedDocument]:
    """Documents built from search-result snippets alone."""
    documents: list[RetrievedDocument] = []
    for result in results:
        content = (result.content or result.title or "").strip()
        if not content:
            continue
        extra = {"img_src": result.img_src} if result.img_src else {}
        documents.append(
            RetrievedDocument(
                content=content,
                metadata=DocumentMetadata(
                    title=result.title,
                    url=result.url,
                    is_discussion=is_discussion_url(result.url),
                    source_kind="snippet",
                    extra=extra,
                ),
            )
        )
    return documents


def plan_links(links: list[str]) -> list[tuple[str, LinkKind]]:
    """Normalize, classify and dedupe links. Discussion links that are not threads are dropped."""
    planned: list[tuple[str, LinkKind]] = []
    seen: set[str] = set()
    for link in links:
        if not link or not link.strip():
            continue
        url = ensure_scheme(link)
        kind: LinkKind = "page"
        if is_discussion_url(url):
            normalized = normalize_discussion_url(url)
            if normalized is None:
                logger.info(f"Skipping non-thread discussion link {url}")
                continue
            url, kind = normalized, "discussion"
        if url in seen:
            continue
        seen.add(url)
        planned.append((url, kind))
    return planned


class DocumentLoader:
    def __init__(
        self,
        *,
        fetcher: FallbackFetcher | None = None,
        direct_fetcher: FallbackFetcher | None = None,
        extractor: DiscussionExtractor | None = None,
        page_extractor: ExtractService | None = None,
        batch_size: int | None = None,
        inter_batch_delay: float | None = None,
        diagnostics: DiagnosticsSink | None = None,
    ):
        self.diagnostics = diagnostics or NullDiagnostics()
        self.fetcher = fetcher or FallbackFetcher(diagnostics=self.diagnostics)
        self.page_fetcher = direct_fetcher or page_fetcher(self.diagnostics)
        self.extractor = extractor or DiscussionExtractor()
        self.page_extractor = page_extractor or ExtractService()
        self.batch_size = batch_size if batch_size is not None else settings.document_batch_size
        self.inter_batch_delay = (
            inter_batch_delay
            if inter_batch_delay is not None
            else settings.document_batch_delay_seconds
        )

    async def load(self, links: list[str]) -> list[RetrievedDocument]:
        """Documents for every link, in link order."""
        planned = plan_links(links)
        discussion_urls = [url for url, kind in planned if kind == "discussion"]
        page_urls = [url for url, kind in planned if kind == "page"]

        discussion_results = await run_batches(
            discussion_urls,
            self.load_discussion,
            batch_size=self.batch_size,
            inter_batch_delay=self.inter_batch_delay,
            on_error=lambda url, exc: [failure_document(url, str(exc))],
        )
        page_results = await asyncio.gather(
            *(self.load_page(url) for url in page_urls),
            return_exceptions=True,
        )

        by_url: dict[str, list[RetrievedDocument]] = {}
        for url, docs in zip(discussion_urls, discussion_results):
            by_url[url] = docs or []
        for url, outcome in zip(page_urls, page_results):
            if isinstance(outcome, BaseException):
                logger.warning(f"Loading {url} failed: {outcome}")
                by_url[url] = [failure_document(url, str(outcome))]
            else:
                by_url[url] = outcome

        documents: list[RetrievedDocument] = []
        for url, _kind in planned:
            documents.extend(by_url.get(url, []))
        return documents

    async def load_discussion(self, url: str) -> list[RetrievedDocument]:
        outcome = await self.fetcher.fetch(url)
        if isinstance(outcome, FetchFailure):
            return [failure_document(url, outcome.reason)]

        discussion = await asyncio.to_thread(self.extractor.extract, outcome.html)
        if discussion.success:
            return [
                RetrievedDocument(
                    content=render_discussion(discussion),
                    metadata=DocumentMetadata(
                        title=discussion.title,
                        url=url,
                        is_discussion=True,
                        source_kind="discussion",
                        extra={
                            "comment_count": len(discussion.comments),
                            "fetch_strategy": outcome.strategy,
                        },
                    ),
                )
            ]

        text = await asyncio.to_thread(self.page_extractor.extract_discussion_text, outcome.html)
        if text is None:
            return [failure_document(url, "no discussion content found on the page")]
        logger.info(f"Structural extraction failed for {url}; using page text ({len(text)} chars)")
        return [
            RetrievedDocument(
                content=text,
                metadata=DocumentMetadata(
                    title=discussion.title,
                    url=url,
                    is_discussion=True,
                    source_kind="discussion_text",
                    extra={"fetch_strategy": outcome.strategy},
                ),
            )
        ]

    async def load_page(self, url: str) -> list[RetrievedDocument]:
        outcome = await self.page_fetcher.fetch(url)
        if isinstance(outcome, FetchFailure):
            return [failure_document(url, outcome.reason)]

        if outcome.is_pdf:
            text = await asyncio.to_thread(self.page_extractor.extract_pdf, outcome.body)
            title, kind = PDF_TITLE, "pdf"
        else:
            page = await asyncio.to_thread(
                self.page_extractor.extract_page, url=url, raw_html=outcome.html
            )
            text, title, kind = collapse_whitespace(page.text), page.title, "web"

        chunks = chunk_text(
            text,
            chunk_size=settings.document_chunk_size,
            overlap=settings.document_chunk_overlap,
        )
        if not chunks:
            return [failure_document(url, "no readable content")]
        return [
            RetrievedDocument(
                content=chunk,
                metadata=DocumentMetadata(title=title, url=url, source_kind=kind),
            )
            for chunk in chunks
        ]
