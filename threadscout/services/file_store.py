"""Reads pre-processed uploads: ``<id>-extracted.json`` and ``<id>-embeddings.json``."""
from __future__ import annotations

import json
from pathlib import Path

from loguru import logger

from threadscout.config import settings
from threadscout.research_core.models.interfaces import FileChunk


class UploadedFileStore:
    def __init__(self, uploads_dir: str | None = None):
        self.uploads_dir = Path(uploads_dir or settings.uploads_dir)

    def load(self, file_id: str) -> list[FileChunk]:
        """Chunks paired with their stored embeddings. Missing or malformed uploads yield []."""
        if not file_id or "/" in file_id or "\\" in file_id or file_id.startswith("."):
            logger.warning(f"Rejected upload id {file_id!r}")
            return []
        extracted_path = self.uploads_dir / f"{file_id}-extracted.json"
        embeddings_path = self.uploads_dir / f"{file_id}-embeddings.json"
        try:
            extracted = json.loads(extracted_path.read_text(encoding="utf-8"))
            embedded = json.loads(embeddings_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"Skipping upload {file_id}: {exc}")
            return []

        title = str(extracted.get("title") or file_id)
        contents = extracted.get("contents") or []
        embeddings = embedded.get("embeddings") or []
        if len(contents) != len(embeddings):
            logger.warning(
                f"Upload {file_id} has {len(contents)} chunks but {len(embeddings)} embeddings; "
                "extra entries ignored"
            )
        return [
            FileChunk(file_name=title, content=str(content), embedding=[float(v) for v in vector])
            for content, vector in zip(contents, embeddings)
        ]

    def load_many(self, file_ids: list[str]) -> list[FileChunk]:
        chunks: list[FileChunk] = []
        for file_id in file_ids:
            chunks.extend(self.load(file_id))
        return chunks
