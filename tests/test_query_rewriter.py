from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from threadscout.agents.query_rewriter import QueryRewriter, format_chat_history, parse_rewrite
from threadscout.errors import GenerationError, QueryRewriteError


def test_parse_question_block():
    rewritten = parse_rewrite("<question>\nbudget headphones reddit\n</question>", "original")

    assert rewritten.question == "budget headphones reddit"
    assert rewritten.links == []
    assert rewritten.search_needed is True


def test_parse_strips_reasoning_block():
    output = "<think>the user wants <question>nope</question></think><question>iphone update</question>"

    assert parse_rewrite(output, "q").question == "iphone update"


def test_parse_not_needed():
    rewritten = parse_rewrite("<question>\nnot_needed\n</question>", "Hi there")

    assert rewritten.search_needed is False


def test_parse_links_block():
    output = (
        "<question>\nX explained\n</question>\n"
        "<links>\nhttps://example.com/a\n\nhttps://example.com/b\n</links>"
    )

    rewritten = parse_rewrite(output, "q")

    assert rewritten.question == "X explained"
    assert rewritten.links == ["https://example.com/a", "https://example.com/b"]


def test_links_without_question_mean_summarize():
    rewritten = parse_rewrite("<links>\nhttps://example.com\n</links>", "q")

    assert rewritten.question == "summarize"
    assert rewritten.links == ["https://example.com"]


def test_plain_output_is_used_as_question():
    assert parse_rewrite("  cheap standing desks  ", "q").question == "cheap standing desks"


def test_empty_output_falls_back_to_original_query():
    assert parse_rewrite("", " original question ").question == "original question"


def test_format_chat_history():
    history = [
        {"role": "user", "content": "hello"},
        {"role": "assistant", "content": "hi"},
    ]

    assert format_chat_history(history) == "user: hello\nassistant: hi"


@pytest.mark.asyncio
async def test_rewrite_sends_rendered_prompt():
    llm = AsyncMock()
    llm.complete.return_value = "<question>standing desk reddit</question>"
    rewriter = QueryRewriter(llm, model="rewrite-model")

    rewritten = await rewriter.rewrite([{"role": "user", "content": "earlier"}], "best standing desk?")

    assert rewritten.question == "standing desk reddit"
    messages = llm.complete.await_args.args[0]
    assert "Follow up question: best standing desk?" in messages[0]["content"]
    assert "user: earlier" in messages[0]["content"]
    assert llm.complete.await_args.kwargs["model"] == "rewrite-model"
    assert llm.complete.await_args.kwargs["caller"] == "query_rewriter"


@pytest.mark.asyncio
async def test_rewrite_wraps_generation_errors():
    llm = AsyncMock()
    llm.complete.side_effect = GenerationError("gateway down")

    with pytest.raises(QueryRewriteError):
        await QueryRewriter(llm).rewrite([], "q")
