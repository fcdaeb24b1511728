from __future__ import annotations

from html import escape

import pytest


def _render_comment(comment: dict) -> str:
    score = comment.get("score")
    score_spans = ""
    if score is not None:
        score_spans = (
            f'<span class="score dislikes" title="{score - 1}">{score - 1} points</span>'
            f'<span class="score unvoted" title="{score}">{score} points</span>'
            f'<span class="score likes" title="{score + 1}">{score + 1} points</span>'
        )
    children = "".join(_render_comment(child) for child in comment.get("children", []))
    classes = comment.get("classes", "noncollapsed")
    return (
        f'<div class=" thing id-t1_{comment["id"]} {classes} comment">'
        '<div class="entry">'
        f'<p class="tagline"><a href="/user/{comment["author"]}" class="author">{escape(comment["author"])}</a>'
        f"{score_spans}</p>"
        '<form><div class="usertext-body may-blank-within md-container">'
        f'<div class="md"><p>{escape(comment["text"])}</p></div></div></form>'
        "</div>"
        f'<div class="child">{children}</div>'
        "</div>"
    )


def build_thread_html(
    *,
    title: str = "Best budget headphones? : headphones",
    post: str | None = "Looking for something under $50 for the gym.",
    comments: list[dict] | None = None,
    post_score: int = 120,
    padding: int = 6000,
    sidebar: str | None = None,
) -> str:
    sidebar_html = ""
    if sidebar is not None:
        # old reddit renders the subreddit sidebar ahead of the thread content
        sidebar_html = (
            '<div class="side"><div class="titlebox"><form>'
            '<div class="usertext-body may-blank-within md-container">'
            f'<div class="md"><p>{escape(sidebar)}</p></div></div></form></div></div>'
        )
    post_html = ""
    if post is not None:
        post_html = (
            '<div class="expando"><form><div class="usertext-body may-blank-within md-container">'
            f'<div class="md"><p>{escape(post)}</p></div></div></form></div>'
        )
    comment_html = "".join(_render_comment(c) for c in comments or [])
    filler = "sidebar text " * (padding // 13)
    return (
        f"<html><head><title>{escape(title)}</title></head><body>"
        f"{sidebar_html}"
        '<div class="content"><div class="thing id-t3_abc123 link">'
        '<div class="midcol">'
        f'<div class="score unvoted" title="{post_score}">{post_score}</div>'
        "</div>"
        f'<div class="entry">{post_html}</div>'
        "</div>"
        f'<div class="commentarea">{comment_html}</div></div>'
        f'<div class="side">{filler}</div>'
        "</body></html>"
    )


@pytest.fixture
def thread_html():
    return build_thread_html
