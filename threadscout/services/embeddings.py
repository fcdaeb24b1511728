from __future__ import annotations

import math
from typing import Any, Protocol

from threadscout.config import settings
from threadscout.errors import RerankError


class EmbeddingService(Protocol):
    async def embed_query(self, text: str) -> list[float]: ...

    async def embed_documents(self, texts: list[str]) -> list[list[float]]: ...


def cosine_similarity(a: list[float], b: list[float]) -> float:
    if len(a) != len(b):
        raise ValueError(f"Embedding dimensions differ: {len(a)} vs {len(b)}")
    if not a:
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a <= 0 or norm_b <= 0:
        return 0.0
    return dot / (norm_a * norm_b)


class OpenAIEmbeddingService:
    """Embeddings over any OpenAI-compatible /embeddings endpoint."""

    def __init__(self, openai_client: Any | None = None, model: str | None = None):
        self.model = model or settings.openai_embed_model
        self._client = openai_client

    def _get_client(self) -> Any:
        if self._client is None:
            from openai import AsyncOpenAI

            kwargs: dict[str, Any] = {
                "api_key": settings.openai_embed_api_key or settings.openrouter_api_key,
            }
            if settings.openai_embed_base_url:
                kwargs["base_url"] = settings.openai_embed_base_url
            self._client = AsyncOpenAI(**kwargs)
        return self._client

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            response = await self._get_client().embeddings.create(model=self.model, input=texts)
        except Exception as exc:
            raise RerankError(f"Embedding request failed: {exc}") from exc
        rows = sorted(response.data, key=lambda item: item.index)
        return [list(map(float, row.embedding)) for row in rows]

    async def embed_query(self, text: str) -> list[float]:
        vectors = await self.embed_documents([text])
        return vectors[0]


def get_embedding_service() -> EmbeddingService:
    backend = settings.embedding_backend.lower().strip()
    if backend == "openai":
        return OpenAIEmbeddingService()
    if backend == "local":
        from threadscout.services.embeddings_local import LocalEmbeddingService

        return LocalEmbeddingService()
    raise ValueError(f"Unsupported EMBEDDING_BACKEND: {settings.embedding_backend}")
