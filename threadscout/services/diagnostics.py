"""Optional diagnostics sink for HTML snapshots, ranking logs and prompt logs."""
from __future__ import annotations

import hashlib
import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from loguru import logger

from threadscout.config import settings


class DiagnosticsSink(Protocol):
    def snapshot_html(self, url: str, html: str, *, label: str) -> None: ...

    def record_ranking(self, name: str, payload: dict[str, Any]) -> None: ...

    def record_prompt(self, query: str, prompt: str) -> None: ...


class NullDiagnostics:
    def snapshot_html(self, url: str, html: str, *, label: str) -> None:
        return None

    def record_ranking(self, name: str, payload: dict[str, Any]) -> None:
        return None

    def record_prompt(self, query: str, prompt: str) -> None:
        return None


def _slug(value: str, limit: int = 60) -> str:
    slug = re.sub(r"[^a-zA-Z0-9]+", "_", value).strip("_").lower()
    return slug[:limit] or "item"


def _stamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")


class FileDiagnostics:
    """Writes diagnostics to disk. Write failures are logged, never raised."""

    def __init__(self, *, html_dir: str, log_dir: str):
        self.html_dir = Path(html_dir)
        self.log_dir = Path(log_dir)
        self.html_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def snapshot_html(self, url: str, html: str, *, label: str) -> None:
        digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:12]
        path = self.html_dir / f"{_slug(label, 20)}_{digest}_{_stamp()}.html"
        self._write(path, html)

    def record_ranking(self, name: str, payload: dict[str, Any]) -> None:
        path = self.log_dir / f"ranking_{_slug(name)}_{_stamp()}.json"
        self._write(path, json.dumps(payload, ensure_ascii=False, indent=2, default=str))

    def record_prompt(self, query: str, prompt: str) -> None:
        path = self.log_dir / f"prompt_{_slug(query)}_{_stamp()}.txt"
        self._write(path, prompt)

    @staticmethod
    def _write(path: Path, text: str) -> None:
        try:
            path.write_text(text, encoding="utf-8")
        except OSError as exc:
            logger.warning(f"Diagnostics write failed for {path}: {exc}")


def get_diagnostics() -> DiagnosticsSink:
    if settings.diagnostics_enabled:
        return FileDiagnostics(
            html_dir=settings.diagnostics_html_dir,
            log_dir=settings.diagnostics_log_dir,
        )
    return NullDiagnostics()
