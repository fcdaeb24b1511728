"""Prompt templates kept in ``threadscout/prompts/prompts.json``.

Entries are addressed by dotted keys (``response.system_prompt``) and may be a
single string or a list of lines. Placeholders use ``string.Template``
syntax. The catalog is re-read when the file changes on disk.
"""
from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"


class PromptCatalog:
    def __init__(self, path: Path | str = DEFAULT_CATALOG_PATH):
        self.path = Path(path)
        self._entries: dict[str, Any] = {}
        self._loaded_mtime_ns: int | None = None

    def entries(self) -> dict[str, Any]:
        mtime_ns = self.path.stat().st_mtime_ns
        if mtime_ns != self._loaded_mtime_ns:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(payload, dict):
                raise ValueError(f"{self.path.name} must hold a JSON object at the top level")
            self._entries = payload
            self._loaded_mtime_ns = mtime_ns
        return self._entries

    def template(self, key: str) -> Template:
        node: Any = self.entries()
        for part in key.split("."):
            try:
                node = node[part]
            except (KeyError, TypeError):
                raise KeyError(f"Unknown prompt '{key}'") from None
        if isinstance(node, list):
            node = "\n".join(map(str, node))
        if not isinstance(node, str):
            raise TypeError(f"Prompt '{key}' is neither text nor a list of lines")
        return Template(node)

    def render(self, key: str, **values: Any) -> str:
        template = self.template(key)
        try:
            return template.substitute(values)
        except KeyError as exc:
            raise KeyError(f"Prompt '{key}' needs a value for '{exc.args[0]}'") from exc


catalog = PromptCatalog()


def render_prompt(key: str, **values: Any) -> str:
    return catalog.render(key, **values)
