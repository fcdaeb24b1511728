"""Builds the numbered, length-bounded source block handed to the answer model."""
from __future__ import annotations

from typing import Sequence

from threadscout.config import settings
from threadscout.research_core.extract.discussion import COMMENTS_SECTION_MARKER
from threadscout.research_core.models.interfaces import PromptContext, RankedDocument
from threadscout.tools.web_utils import is_discussion_url

DISCUSSION_MARKER = " [FORUM DISCUSSION]"
BLOCK_SEPARATOR = "\n---\n\n"
CONTENT_TRUNCATED = "\n\n[...content truncated...]\n\n"
COMMENTS_TRUNCATED = "\n\n[...additional comments truncated...]"
COMMENTS_OMITTED = "\n\n## Comments\n\n[Comments truncated to fit length limit]"
MIN_COMMENT_BUDGET = 500
HEAD_SHARE = 0.75


def truncate_head_tail(content: str, cap: int) -> str:
    if len(content) <= cap:
        return content
    head = content[: int(cap * HEAD_SHARE)]
    tail_len = int(cap * (1 - HEAD_SHARE))
    tail = content[-tail_len:] if tail_len > 0 else ""
    return head + CONTENT_TRUNCATED + tail


def truncate_discussion(content: str, cap: int) -> str:
    """Keep the title and whole opening post; trim comments at a paragraph boundary."""
    if len(content) <= cap:
        return content
    comments_at = content.find(COMMENTS_SECTION_MARKER)
    if comments_at <= 0:
        return truncate_head_tail(content, cap)

    head = content[:comments_at]
    comments = content[comments_at:]
    remaining = cap - len(head)
    if remaining <= len(COMMENTS_OMITTED):
        return truncate_head_tail(content, cap)
    if remaining <= MIN_COMMENT_BUDGET:
        return head.rstrip() + COMMENTS_OMITTED

    cut = comments.rfind("\n\n", 0, remaining)
    if cut == -1:
        cut = remaining
    return head + comments[:cut] + COMMENTS_TRUNCATED


class ContextAssembler:
    def __init__(
        self,
        *,
        max_documents: int | None = None,
        discussion_cap: int | None = None,
        default_cap: int | None = None,
    ):
        self.max_documents = max_documents or settings.context_max_documents
        self.discussion_cap = discussion_cap or settings.discussion_char_cap
        self.default_cap = default_cap or settings.default_char_cap

    @staticmethod
    def is_discussion(ranked: RankedDocument) -> bool:
        metadata = ranked.document.metadata
        return metadata.is_discussion or is_discussion_url(metadata.url or "")

    def header(self, count: int) -> str:
        return (
            f"IMPORTANT: This search query has returned {count} sources. "
            "You should use information from most of these sources in your answer "
            "and cite each one by its number. "
            f"The sources are numbered from 1 to {count}.\n\n"
        )

    def render_block(self, index: int, ranked: RankedDocument) -> str:
        metadata = ranked.document.metadata
        title = metadata.title or "Untitled"
        url = metadata.url or "Unknown"
        if self.is_discussion(ranked):
            content = truncate_discussion(ranked.document.content, self.discussion_cap)
            marker = DISCUSSION_MARKER
        else:
            content = truncate_head_tail(ranked.document.content, self.default_cap)
            marker = ""
        return f"{index}. {title} (Source: {url}){marker}\n{content}\n"

    def assemble(self, ranked_docs: Sequence[RankedDocument]) -> PromptContext:
        selected = list(ranked_docs[: self.max_documents])
        blocks = [self.render_block(i, ranked) for i, ranked in enumerate(selected, start=1)]
        return PromptContext(
            text=self.header(len(selected)) + BLOCK_SEPARATOR.join(blocks),
            documents=selected,
        )
