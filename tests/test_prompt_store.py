from __future__ import annotations

import json
import os

import pytest

from threadscout.services.prompt_store import PromptCatalog, render_prompt


def test_render_prompt_substitutes_template_values():
    prompt = render_prompt(
        "response.system_prompt",
        context="1. Thread (Source: https://example.com)\nbody",
        date="2026-02-21T10:00:00+00:00",
    )
    assert "1. Thread (Source: https://example.com)" in prompt
    assert "2026-02-21T10:00:00+00:00" in prompt
    assert "Hmm, sorry I could not find any relevant information" in prompt


def test_render_prompt_joins_line_lists():
    prompt = render_prompt("summarizer.prompt", question="summarize", text="Some text")
    assert "<query>\nsummarize\n</query>" in prompt
    assert "<text>\nSome text\n</text>" in prompt


def test_render_prompt_raises_for_unknown_key():
    with pytest.raises(KeyError):
        render_prompt("missing.prompt.key")


def test_render_prompt_raises_for_missing_value():
    with pytest.raises(KeyError, match="chat_history"):
        render_prompt("query_rewriter.prompt", query="only the query")


def test_catalog_reloads_when_file_changes(tmp_path):
    path = tmp_path / "prompts.json"
    path.write_text(json.dumps({"greeting": {"text": "Hello $name"}}), encoding="utf-8")
    catalog = PromptCatalog(path)

    assert catalog.render("greeting.text", name="Ada") == "Hello Ada"

    path.write_text(json.dumps({"greeting": {"text": ["Hi $name", "again"]}}), encoding="utf-8")
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))

    assert catalog.render("greeting.text", name="Ada") == "Hi Ada\nagain"


def test_catalog_rejects_non_text_entries(tmp_path):
    path = tmp_path / "prompts.json"
    path.write_text(json.dumps({"limits": {"max": 3}}), encoding="utf-8")

    with pytest.raises(TypeError):
        PromptCatalog(path).render("limits.max")
    with pytest.raises(KeyError, match="Unknown prompt"):
        PromptCatalog(path).render("limits.max.deeper")
