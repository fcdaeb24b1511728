"""Structural extraction of server-rendered discussion threads.

Works on old-style Reddit markup: the opening post lives in a
``usertext-body may-blank-within md-container`` block and each comment is a
``div.thing`` carrying an ``id-t1_*`` class token. Comments nest inside their
parent's ``div.child`` so ownership is resolved through the nearest comment
ancestor rather than by document position.
"""
from __future__ import annotations

import re

from bs4 import BeautifulSoup, Tag
from loguru import logger

from threadscout.research_core.extract.service import normalize_text
from threadscout.research_core.models.interfaces import Comment, ExtractedDiscussion, Visibility

MAX_COMMENTS = 10
DEFAULT_TITLE = "Discussion"
POST_SECTION_MARKER = "## Original Post"
COMMENTS_SECTION_MARKER = "## Comments"

POST_BODY_TOKENS = frozenset({"usertext-body", "may-blank-within", "md-container"})
TITLE_SUFFIX_RE = re.compile(r" : .*$")
SCORE_TEXT_RE = re.compile(r"^(?P<score>-?[\d,]+)\s+points?$")
BLOCK_TAGS = [
    "p", "div", "li", "ul", "ol", "blockquote", "pre", "table", "tr",
    "h1", "h2", "h3", "h4", "h5", "h6", "hr",
]


def _class_tokens(tag: Tag) -> set[str]:
    classes = tag.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    return {token for token in classes if token}


def _is_thing(tag: Tag) -> bool:
    return tag.name == "div" and "thing" in _class_tokens(tag)


def _is_comment(tag: Tag) -> bool:
    if not _is_thing(tag):
        return False
    return any(token.startswith("id-t1_") for token in _class_tokens(tag))


def _is_post(thing: Tag | None) -> bool:
    if thing is None:
        return False
    return any(token.startswith("id-t3_") for token in _class_tokens(thing))


def _owning_comment(node: Tag) -> Tag | None:
    return node.find_parent(_is_comment)


def html_to_text(node: Tag) -> str:
    """Plain text with paragraph breaks kept at block elements."""
    fragment = BeautifulSoup(str(node), "html.parser")
    for br in fragment.find_all("br"):
        br.replace_with("\n")
    for block in fragment.find_all(BLOCK_TAGS):
        block.insert_after("\n\n")
    return normalize_text(fragment.get_text())


class DiscussionExtractor:
    def __init__(self, *, max_comments: int = MAX_COMMENTS, default_title: str = DEFAULT_TITLE):
        self.max_comments = max(int(max_comments), 1)
        self.default_title = default_title

    def extract(self, markup: str) -> ExtractedDiscussion:
        try:
            soup = BeautifulSoup(markup or "", "html.parser")
            title = self._title(soup)
            post_body = self._post_body(soup)
            comments = self._select_comments(self._parse_comments(soup))
        except Exception as exc:
            logger.warning(f"Discussion extraction failed: {exc}")
            return ExtractedDiscussion(title=self.default_title, success=False)

        return ExtractedDiscussion(
            title=title,
            post_body=post_body,
            comments=comments,
            success=bool(post_body or comments),
        )

    def _title(self, soup: BeautifulSoup) -> str:
        if soup.title is None:
            return self.default_title
        raw = soup.title.get_text(" ", strip=True)
        title = TITLE_SUFFIX_RE.sub("", raw).strip()
        return title or self.default_title

    def _post_body(self, soup: BeautifulSoup) -> str:
        # The sidebar titlebox uses the same container and precedes the post in the DOM.
        first_match: Tag | None = None
        for div in soup.find_all("div"):
            if not POST_BODY_TOKENS <= _class_tokens(div):
                continue
            if _owning_comment(div) is not None:
                continue
            md = div.find("div", class_="md", recursive=False)
            if md is None:
                continue
            if _is_post(div.find_parent(_is_thing)):
                return html_to_text(md)
            if first_match is None:
                first_match = md
        return html_to_text(first_match) if first_match is not None else ""

    def _parse_comments(self, soup: BeautifulSoup) -> list[Comment]:
        comments: list[Comment] = []
        for thing in soup.find_all(_is_comment):
            body = self._owned(thing, "div", "md")
            if body is None:
                continue
            text = html_to_text(body)
            if not text:
                continue
            comments.append(
                Comment(
                    author=self._author(thing),
                    text=text,
                    score=self._score(thing),
                    visibility=Visibility.from_class_tokens(_class_tokens(thing)),
                )
            )
        return comments

    def _select_comments(self, comments: list[Comment]) -> list[Comment]:
        ranked = sorted(comments, key=lambda c: c.score or 0, reverse=True)
        visible = [c for c in ranked if c.visible]
        if visible:
            return visible[: self.max_comments]
        return ranked[: self.max_comments]

    @staticmethod
    def _owned(thing: Tag, name: str, css_class: str) -> Tag | None:
        for node in thing.find_all(name, class_=css_class):
            if _owning_comment(node) is thing:
                return node
        return None

    def _author(self, thing: Tag) -> str:
        tagline = self._owned(thing, "p", "tagline")
        if tagline is not None:
            author = tagline.find("a", class_="author")
            if author is not None:
                name = author.get_text(strip=True)
                if name:
                    return name
        return "Anonymous"

    @staticmethod
    def _score(thing: Tag) -> int | None:
        spans = [s for s in thing.find_all("span", class_="score") if _owning_comment(s) is thing]
        # old reddit renders dislikes/unvoted/likes variants; unvoted is the real count
        spans.sort(key=lambda s: "unvoted" not in _class_tokens(s))
        for span in spans:
            match = SCORE_TEXT_RE.match(span.get_text(" ", strip=True))
            if match:
                return int(match.group("score").replace(",", ""))
        return None


def render_discussion(discussion: ExtractedDiscussion) -> str:
    """Markdown rendering whose section headers the context assembler relies on."""
    parts = [f"# {discussion.title}\n\n"]
    if discussion.post_body:
        parts.append(f"{POST_SECTION_MARKER}\n\n{discussion.post_body}\n\n")
    if discussion.comments:
        parts.append(f"{COMMENTS_SECTION_MARKER}\n\n")
        for comment in discussion.comments:
            points = f" ({comment.score} points)" if comment.score is not None else ""
            parts.append(f"**{comment.author}{points}**:\n{comment.text}\n\n")
    return "".join(parts)
