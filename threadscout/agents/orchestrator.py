from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Awaitable, Callable

from loguru import logger

from threadscout.agents.query_rewriter import QueryRewriter, RewrittenQuery
from threadscout.config import settings
from threadscout.errors import GenerationError
from threadscout.llm_client import LLMClient, client as llm_client, get_model
from threadscout.models.events import SSEEvent
from threadscout.research_core.context.assembler import ContextAssembler
from threadscout.research_core.models.interfaces import (
    CandidateUrl,
    DocumentMetadata,
    OptimizationMode,
    RankedDocument,
    RetrievedDocument,
)
from threadscout.research_core.rerank.reranker import DocumentReranker
from threadscout.research_core.scoring.thread_scorer import ThreadScorer
from threadscout.services import logger as log_service
from threadscout.services import streaming
from threadscout.services.diagnostics import DiagnosticsSink, get_diagnostics
from threadscout.services.document_loader import DocumentLoader, snippet_documents
from threadscout.services.file_store import UploadedFileStore
from threadscout.services.prompt_store import render_prompt
from threadscout.tools import search_provider
from threadscout.tools.search_provider import SearchResponse
from threadscout.tools.web_utils import is_discussion_url, is_thread_url

SearchFn = Callable[..., Awaitable[SearchResponse]]


class RetrievalOrchestrator:
    """Answers one query from forum discussions.

    Flow:
      1. Rewrite the conversational query into a search phrase (or links)
      2. Links given: load each link and summarize it against the question
      3. Otherwise: search, score candidate threads, fetch the best ones
      4. Rerank documents and uploaded-file chunks by similarity
      5. Assemble the numbered context and stream the answer

    Yields one ``sources`` event, then ``response`` chunks, then ``end``.
    Any fatal failure yields a single ``error`` event instead.
    """

    def __init__(
        self,
        model: str | None = None,
        *,
        llm: LLMClient | None = None,
        rewriter: QueryRewriter | None = None,
        search_fn: SearchFn | None = None,
        scorer: ThreadScorer | None = None,
        loader: DocumentLoader | None = None,
        reranker: DocumentReranker | None = None,
        assembler: ContextAssembler | None = None,
        file_store: UploadedFileStore | None = None,
        diagnostics: DiagnosticsSink | None = None,
    ):
        self.model = model or get_model()
        self.diagnostics = diagnostics or get_diagnostics()
        self._llm = llm
        self.rewriter = rewriter or QueryRewriter(llm)
        self.search_fn = search_fn or search_provider.search
        self.scorer = scorer or ThreadScorer(diagnostics=self.diagnostics)
        self.loader = loader or DocumentLoader(diagnostics=self.diagnostics)
        self.reranker = reranker or DocumentReranker(diagnostics=self.diagnostics)
        self.assembler = assembler or ContextAssembler()
        self.file_store = file_store or UploadedFileStore()
        self.candidate_limit = max(int(settings.score_candidate_limit), 1)
        self.top_k = max(int(settings.score_top_k), 1)
        self.usable_min_chars = int(settings.usable_content_min_chars)
        self.min_usable_documents = int(settings.min_usable_documents)
        self.link_group_max_docs = max(int(settings.link_group_max_docs), 1)

    @property
    def llm(self) -> LLMClient:
        if self._llm is None:
            self._llm = llm_client()
        return self._llm

    async def run(
        self,
        query: str,
        history: list[dict[str, Any]] | None = None,
        optimization_mode: OptimizationMode = "balanced",
        file_ids: list[str] | None = None,
    ) -> AsyncGenerator[SSEEvent, None]:
        started = time.monotonic()
        history = list(history or [])
        stage = "rewriting"
        try:
            rewritten = await self.rewriter.rewrite(history, query)

            ranked: list[RankedDocument] = []
            if not rewritten.search_needed:
                log_service.log_pipeline_stage("rewriting", "no_search_needed")
            else:
                if rewritten.links:
                    stage = "link_mode"
                    documents = await self._link_mode(rewritten)
                else:
                    stage = "search_mode"
                    documents = await self._search_mode(rewritten.question)

                stage = "reranking"
                file_chunks = self.file_store.load_many(file_ids or [])
                ranked = await self.reranker.rerank(
                    rewritten.question,
                    documents,
                    file_chunks,
                    optimization_mode,
                )

            stage = "assembling"
            context = self.assembler.assemble(ranked)
            log_service.log_pipeline_stage(
                "assembling",
                "completed",
                {"ranked": len(ranked), "in_context": len(context.documents)},
            )
            yield streaming.sources([item.to_dict() for item in ranked])

            stage = "generating"
            system = render_prompt(
                "response.system_prompt",
                context=context.text,
                date=datetime.now(timezone.utc).isoformat(),
            )
            self.diagnostics.record_prompt(query, system)
            async for chunk in self.llm.stream(
                [*history, {"role": "user", "content": query}],
                system=system,
                model=self.model,
                caller="answer",
            ):
                yield streaming.response(chunk)

            yield streaming.end(runtime_ms=int((time.monotonic() - started) * 1000))
        except Exception as e:
            logger.exception(f"Retrieval failed during {stage}: {e}")
            yield streaming.error(str(e), stage=stage)

    async def _search_mode(self, question: str) -> list[RetrievedDocument]:
        response = await self.search_fn(
            question,
            language=settings.search_language,
            engines=settings.search_engine_list,
            num_results=settings.search_num_results,
        )
        discussion_results = [r for r in response.results if is_discussion_url(r.url)]
        if not discussion_results:
            logger.info(
                f"No discussion results among {len(response.results)} results; using snippets"
            )
            return snippet_documents(response.results)

        candidates: list[CandidateUrl] = []
        seen: set[str] = set()
        for result in discussion_results:
            if result.url in seen or not is_thread_url(result.url):
                continue
            seen.add(result.url)
            candidates.append(CandidateUrl(url=result.url, origin_score=result.score))
        candidates = candidates[: self.candidate_limit]

        scores = await self.scorer.score_many([c.url for c in candidates])
        top_urls = self.scorer.select_top(scores, self.top_k)
        log_service.log_pipeline_stage(
            "scoring",
            "completed",
            {"candidates": len(candidates), "selected": len(top_urls)},
        )

        documents = await self.loader.load(top_urls)
        usable = [
            doc
            for doc in documents
            if not doc.is_failure and len(doc.content) > self.usable_min_chars
        ]
        if len(usable) < self.min_usable_documents:
            logger.warning(
                f"Only {len(usable)} usable thread documents; adding search snippets"
            )
            return usable + snippet_documents(discussion_results)
        return documents

    async def _link_mode(self, rewritten: RewrittenQuery) -> list[RetrievedDocument]:
        documents = await self.loader.load(rewritten.links)

        slots: list[RetrievedDocument | list[RetrievedDocument]] = []
        open_groups: dict[str, list[RetrievedDocument]] = {}
        for doc in documents:
            if doc.is_failure:
                slots.append(doc)
                continue
            group = open_groups.get(doc.metadata.url)
            if group is None or len(group) >= self.link_group_max_docs:
                group = []
                open_groups[doc.metadata.url] = group
                slots.append(group)
            group.append(doc)

        groups = [slot for slot in slots if isinstance(slot, list)]
        summaries = iter(
            await asyncio.gather(*(self._summarize_group(rewritten.question, g) for g in groups))
        )
        return [next(summaries) if isinstance(slot, list) else slot for slot in slots]

    async def _summarize_group(
        self,
        question: str,
        group: list[RetrievedDocument],
    ) -> RetrievedDocument:
        first = group[0].metadata
        text = "\n\n".join(doc.content for doc in group)
        prompt = render_prompt("summarizer.prompt", question=question, text=text)
        try:
            summary = await self.llm.complete(
                [{"role": "user", "content": prompt}],
                model=self.model,
                caller="link_summarizer",
            )
        except GenerationError as exc:
            logger.warning(f"Summarizing {first.url} failed, keeping raw text: {exc}")
            summary = text
        return RetrievedDocument(
            content=summary.strip() or text,
            metadata=DocumentMetadata(
                title=first.title,
                url=first.url,
                is_discussion=first.is_discussion,
                source_kind="summary",
                extra={"chunks": len(group)},
            ),
        )
