from __future__ import annotations

import asyncio
from typing import Sequence

from loguru import logger

from threadscout.config import settings
from threadscout.errors import RerankError
from threadscout.research_core.models.interfaces import (
    DocumentMetadata,
    FileChunk,
    OptimizationMode,
    RankedDocument,
    RetrievedDocument,
)
from threadscout.services.diagnostics import DiagnosticsSink, NullDiagnostics
from threadscout.services.embeddings import EmbeddingService, cosine_similarity, get_embedding_service

SUMMARIZE_QUERY = "summarize"
SUMMARIZE_LIMIT = 30
SPEED_LIMIT = 30
BALANCED_LIMIT = 20
FILE_SOURCE_URL = "File"


def file_document(chunk: FileChunk) -> RetrievedDocument:
    return RetrievedDocument(
        content=chunk.content,
        metadata=DocumentMetadata(title=chunk.file_name, url=FILE_SOURCE_URL, source_kind="file"),
    )


class DocumentReranker:
    """Orders retrieved documents and uploaded-file chunks by embedding similarity."""

    def __init__(
        self,
        embeddings: EmbeddingService | None = None,
        *,
        threshold: float | None = None,
        enabled: bool | None = None,
        diagnostics: DiagnosticsSink | None = None,
    ):
        self._embeddings = embeddings
        self.threshold = settings.rerank_threshold if threshold is None else float(threshold)
        self.enabled = settings.rerank_enabled if enabled is None else bool(enabled)
        self.diagnostics = diagnostics or NullDiagnostics()

    @property
    def embeddings(self) -> EmbeddingService:
        if self._embeddings is None:
            self._embeddings = get_embedding_service()
        return self._embeddings

    async def rerank(
        self,
        query: str,
        docs: Sequence[RetrievedDocument],
        file_chunks: Sequence[FileChunk] = (),
        mode: OptimizationMode = "balanced",
    ) -> list[RankedDocument]:
        if query.strip().lower() == SUMMARIZE_QUERY:
            return [RankedDocument(doc) for doc in docs[:SUMMARIZE_LIMIT]]

        usable = [doc for doc in docs if doc.content.strip()]
        if not usable and not file_chunks:
            return []
        if mode not in ("speed", "balanced", "quality"):
            raise ValueError(f"Unsupported optimization mode: {mode}")

        try:
            if mode == "speed" or not self.enabled:
                ranked = await self._rank_files_then_backfill(query, usable, file_chunks)
            else:
                ranked = await self._rank_all(query, usable, file_chunks)
        except RerankError:
            raise
        except Exception as exc:
            raise RerankError(f"Reranking failed: {exc}") from exc

        logger.info(
            f"Reranked {len(usable)} documents and {len(file_chunks)} file chunks "
            f"({mode}); kept {len(ranked)}"
        )
        self.diagnostics.record_ranking(
            "rerank",
            {
                "query": query,
                "mode": mode,
                "threshold": self.threshold,
                "ranked": [
                    {
                        "title": r.document.metadata.title,
                        "url": r.document.metadata.url,
                        "similarity": r.similarity,
                    }
                    for r in ranked
                ],
            },
        )
        return ranked

    async def _rank_files_then_backfill(
        self,
        query: str,
        docs: list[RetrievedDocument],
        file_chunks: Sequence[FileChunk],
    ) -> list[RankedDocument]:
        if not file_chunks:
            return [RankedDocument(doc) for doc in docs[:SPEED_LIMIT]]

        query_vector = await self.embeddings.embed_query(query)
        scored = [
            RankedDocument(file_document(chunk), cosine_similarity(query_vector, chunk.embedding))
            for chunk in file_chunks
        ]
        ranked = self._filter_and_sort(scored)[:SPEED_LIMIT]
        backfill = SPEED_LIMIT - len(ranked)
        ranked.extend(RankedDocument(doc) for doc in docs[:backfill])
        return ranked

    async def _rank_all(
        self,
        query: str,
        docs: list[RetrievedDocument],
        file_chunks: Sequence[FileChunk],
    ) -> list[RankedDocument]:
        query_vector, doc_vectors = await asyncio.gather(
            self.embeddings.embed_query(query),
            self.embeddings.embed_documents([doc.content for doc in docs]),
        )
        if len(doc_vectors) != len(docs):
            raise RerankError(f"Expected {len(docs)} document embeddings, got {len(doc_vectors)}")
        candidates = list(zip(docs, doc_vectors))
        candidates.extend((file_document(chunk), chunk.embedding) for chunk in file_chunks)
        scored = [
            RankedDocument(doc, cosine_similarity(query_vector, vector))
            for doc, vector in candidates
        ]
        return self._filter_and_sort(scored)[:BALANCED_LIMIT]

    def _filter_and_sort(self, scored: list[RankedDocument]) -> list[RankedDocument]:
        kept = [item for item in scored if item.similarity is not None and item.similarity > self.threshold]
        return sorted(kept, key=lambda item: item.similarity, reverse=True)
