from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from threadscout.config import settings
from threadscout.errors import GenerationError, QueryRewriteError
from threadscout.llm_client import LLMClient, client as llm_client
from threadscout.services.prompt_store import render_prompt

NOT_NEEDED = "not_needed"
SUMMARIZE = "summarize"

THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)
QUESTION_RE = re.compile(r"<question>(?P<body>.*?)</question>", re.DOTALL | re.IGNORECASE)
LINKS_RE = re.compile(r"<links>(?P<body>.*?)</links>", re.DOTALL | re.IGNORECASE)


@dataclass(slots=True)
class RewrittenQuery:
    question: str
    links: list[str] = field(default_factory=list)

    @property
    def search_needed(self) -> bool:
        return self.question.strip().lower() != NOT_NEEDED


def format_chat_history(history: list[dict[str, Any]]) -> str:
    return "\n".join(f"{message['role']}: {message['content']}" for message in history)


def parse_rewrite(output: str, original_query: str) -> RewrittenQuery:
    cleaned = THINK_RE.sub("", output or "").strip()

    links: list[str] = []
    links_match = LINKS_RE.search(cleaned)
    if links_match:
        links = [line.strip() for line in links_match.group("body").splitlines() if line.strip()]

    question_match = QUESTION_RE.search(cleaned)
    if question_match:
        question = question_match.group("body").strip()
    else:
        question = LINKS_RE.sub("", cleaned).strip()

    if links and not question:
        question = SUMMARIZE
    if not question:
        question = original_query.strip()
    return RewrittenQuery(question=question, links=links)


class QueryRewriter:
    """Turns a conversational follow-up into a search phrase plus any referenced links."""

    def __init__(self, llm: LLMClient | None = None, *, model: str | None = None):
        self._llm = llm
        self.model = model or settings.rewrite_model or None

    @property
    def llm(self) -> LLMClient:
        if self._llm is None:
            self._llm = llm_client()
        return self._llm

    async def rewrite(self, history: list[dict[str, Any]], query: str) -> RewrittenQuery:
        prompt = render_prompt(
            "query_rewriter.prompt",
            chat_history=format_chat_history(history),
            query=query,
        )
        try:
            output = await self.llm.complete(
                [{"role": "user", "content": prompt}],
                model=self.model,
                caller="query_rewriter",
            )
        except GenerationError as exc:
            raise QueryRewriteError(f"Query rewrite failed: {exc}") from exc

        rewritten = parse_rewrite(output, query)
        logger.info(f"Rewrote query {query[:80]!r} -> {rewritten.question!r} ({len(rewritten.links)} links)")
        return rewritten
