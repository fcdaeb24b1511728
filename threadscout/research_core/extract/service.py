from __future__ import annotations

import re
from dataclasses import dataclass
from io import BytesIO

from bs4 import BeautifulSoup
from loguru import logger

NAV_MARKERS = (
    "main menu",
    "navigation",
    "skip to",
    "cookie",
    "subscribe",
    "sign in",
)

# Thread page chrome that survives a whole-page text dump.
DISCUSSION_NOISE_PATTERNS = [
    re.compile(r"\b(?:log in|sign up|get the app|open in app)\b", re.IGNORECASE),
    re.compile(
        r"^(?:reply|share|report|save|follow|give award|permalink|embed|parent|level \d+)$",
        re.IGNORECASE | re.MULTILINE,
    ),
    re.compile(r"\b\d+\s+(?:comments?|points?|upvotes?|children)\b", re.IGNORECASE),
    re.compile(r"\bsort by:?\s*(?:best|top|new|controversial|old|q&a)\b", re.IGNORECASE),
    re.compile(r"\b(?:submitted|posted)\s+\d+\s+\w+\s+ago\b", re.IGNORECASE),
    re.compile(r"\[(?:-|\+|deleted|removed)\]"),
]
DISCUSSION_TEXT_SELECTORS = "div.entry, shreddit-post, shreddit-comment"
DISCUSSION_TEXT_MIN_CHARS = 200
PAGE_NOT_FOUND_MARKER = "page not found"


def normalize_text(text: str) -> str:
    text = text.replace("\xa0", " ")
    text = re.sub(r"\r\n?", "\n", text)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def chunk_text(text: str, *, chunk_size: int = 1000, overlap: int = 200) -> list[str]:
    if not text.strip():
        return []
    chunks: list[str] = []
    step = max(chunk_size - overlap, 200)
    start = 0
    while start < len(text):
        chunk = text[start : start + chunk_size].strip()
        if chunk:
            chunks.append(chunk)
        start += step
    return chunks


def page_title(raw_html: str) -> str:
    soup = BeautifulSoup(raw_html, "html.parser")
    if soup.title is None:
        return ""
    return soup.title.get_text(" ", strip=True)


@dataclass(slots=True)
class PageText:
    title: str
    text: str
    method: str
    score: float


class ExtractService:
    """Readable text for ordinary pages, PDF bodies and unparseable thread pages."""

    def __init__(self, *, max_chars: int = 120000, quality_threshold: float = 0.55):
        self.max_chars = max(int(max_chars), 1000)
        self.quality_threshold = quality_threshold

    def extract_page(self, *, url: str, raw_html: str) -> PageText:
        """Run the extractor chain and keep the first result above the quality bar."""
        methods = [
            ("trafilatura", self._extract_trafilatura),
            ("readability", self._extract_readability),
            ("markitdown", self._extract_markitdown),
            ("raw", self._extract_raw),
        ]
        title = page_title(raw_html) or url
        best: PageText | None = None

        for method, fn in methods:
            extracted = normalize_text(fn(raw_html))[: self.max_chars]
            score = self.score_quality(extracted)
            candidate = PageText(title=title, text=extracted, method=method, score=score)
            if extracted and score >= self.quality_threshold and method != "raw":
                return candidate
            if best is None or candidate.score > best.score:
                best = candidate

        logger.debug(f"No extractor cleared the quality bar for {url}; using {best.method}")
        return best

    def extract_pdf(self, body: bytes) -> str:
        """Whitespace-collapsed text of a PDF body. Raises when conversion fails."""
        from markitdown import MarkItDown

        result = MarkItDown().convert_stream(BytesIO(body), file_extension=".pdf")
        return collapse_whitespace(getattr(result, "text_content", "") or "")[: self.max_chars]

    def extract_discussion_text(self, raw_html: str) -> str | None:
        """Fallback text for a thread page the structural extractor could not read.

        Returns None when the page is too thin or is a not-found page.
        """
        soup = BeautifulSoup(raw_html, "html.parser")
        for tag in soup(["script", "style", "noscript", "header", "footer", "nav"]):
            tag.decompose()
        selected = soup.select(DISCUSSION_TEXT_SELECTORS)
        text = "\n\n".join(node.get_text("\n", strip=True) for node in selected)
        if len(text) < 500:
            text = soup.get_text("\n")

        for pattern in DISCUSSION_NOISE_PATTERNS:
            text = pattern.sub(" ", text)
        text = normalize_text(text)

        if len(text) < DISCUSSION_TEXT_MIN_CHARS or PAGE_NOT_FOUND_MARKER in text.lower():
            return None
        return text[: self.max_chars]

    def score_quality(self, text: str) -> float:
        lowered = text.lower()
        marker_hits = sum(lowered.count(marker) for marker in NAV_MARKERS)
        unique_words = len(set(re.findall(r"[a-zA-Z]{3,}", lowered)))

        length_score = min(len(text) / 3000.0, 1.0)
        nav_penalty = min(marker_hits * 0.08, 0.5)
        variety_boost = min(unique_words / 500.0, 0.3)
        base = 0.2 + (0.6 * length_score) + variety_boost - nav_penalty
        return max(0.0, min(base, 1.0))

    def _extract_trafilatura(self, raw_html: str) -> str:
        import trafilatura

        extracted = trafilatura.extract(raw_html, output_format="txt")
        return extracted if isinstance(extracted, str) else ""

    def _extract_readability(self, raw_html: str) -> str:
        from readability import Document

        try:
            summary_html = Document(raw_html).summary(html_partial=True)
        except Exception as exc:
            logger.debug(f"readability failed: {exc}")
            return ""
        return BeautifulSoup(summary_html, "html.parser").get_text("\n")

    def _extract_markitdown(self, raw_html: str) -> str:
        from markitdown import MarkItDown

        try:
            result = MarkItDown().convert_stream(BytesIO(raw_html.encode("utf-8")), file_extension=".html")
        except Exception as exc:
            logger.debug(f"markitdown failed: {exc}")
            return ""
        text_content = getattr(result, "text_content", "")
        if not isinstance(text_content, str):
            return ""
        text_content = re.sub(r"!\[[^\]]*\]\([^)]*\)", "", text_content)
        text_content = re.sub(r"\[([^\]]+)\]\((?:https?:)?//[^)]+\)", r"\1", text_content)
        return text_content

    def _extract_raw(self, raw_html: str) -> str:
        soup = BeautifulSoup(raw_html, "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        return soup.get_text("\n")
