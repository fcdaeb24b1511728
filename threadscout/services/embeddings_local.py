from __future__ import annotations

import asyncio
import time
from typing import Any

from loguru import logger

from threadscout.config import settings
from threadscout.errors import RerankError


class LocalEmbeddingService:
    """sentence-transformers embeddings computed off the event loop."""

    def __init__(self, model_name: str | None = None, batch_size: int | None = None):
        self.model_name = model_name or settings.local_embed_model
        self.batch_size = batch_size or int(settings.local_embed_batch_size)
        self._model: Any | None = None
        self._lock = asyncio.Lock()

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        async with self._lock:
            if self._model is None:
                await asyncio.to_thread(self._load_model)
        return await asyncio.to_thread(self._embed_sync, texts)

    async def embed_query(self, text: str) -> list[float]:
        vectors = await self.embed_documents([text])
        return vectors[0]

    def _load_model(self) -> None:
        from sentence_transformers import SentenceTransformer

        try:
            self._model = SentenceTransformer(self.model_name)
        except Exception as exc:
            raise RerankError(f"Could not load embedding model {self.model_name}: {exc}") from exc
        logger.info(f"Loaded local embedding model {self.model_name}")

    def _embed_sync(self, texts: list[str]) -> list[list[float]]:
        retries = 3
        last_error: Exception | None = None
        for attempt in range(retries):
            try:
                vectors = self._model.encode(
                    texts,
                    batch_size=self.batch_size,
                    normalize_embeddings=True,
                    show_progress_bar=False,
                )
                return [list(map(float, row)) for row in vectors]
            except Exception as exc:
                last_error = exc
                if attempt < retries - 1:
                    time.sleep(0.2 * (attempt + 1))
        raise RerankError(f"Local embedding failed after {retries} attempts: {last_error}")
