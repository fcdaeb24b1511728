"""Cheap engagement scoring used to pick which candidate threads to fetch in full."""
from __future__ import annotations

import math
import re
from dataclasses import asdict
from typing import Awaitable, Callable

from loguru import logger

from threadscout.config import settings
from threadscout.research_core.fetch.strategies import fetch_with_backoff
from threadscout.research_core.models.interfaces import ThreadMetrics, ThreadScore
from threadscout.services.batch_scheduler import run_batches
from threadscout.services.diagnostics import DiagnosticsSink, NullDiagnostics
from threadscout.tools.web_utils import alternate_host_url, to_parse_friendly

COMMENT_BLOCK_RE = re.compile(r'<div class="[^"]*\bthing\b[^"]*\bid-t1_[^"]*"')
COMMENT_SCORE_RE = re.compile(r'<span class="score[^"]*"[^>]*>(?P<score>[\d,]+) points?</span>')
POST_SCORE_RE = re.compile(r'<div class="score[^"]*"[^>]*>(?P<score>[\d,]+)</div>')
# Hidden or zero-vote posts render a placeholder glyph; the count stays in the title attribute.
POST_SCORE_UNVOTED_RE = re.compile(r'<div class="score unvoted"[^>]*\btitle="(?P<score>[\d,]+)"')
TITLE_RE = re.compile(r"<title>(?P<title>.*?)</title>", re.IGNORECASE | re.DOTALL)

SAMPLE_SIZE = 10
POST_SCORE_WEIGHT = 3

PageFetch = Callable[[str], Awaitable[str]]


def _as_int(raw: str) -> int:
    return int(raw.replace(",", ""))


def combined_score(top_comment_score: int, post_score: int) -> float:
    score = float(top_comment_score)
    if post_score > 0:
        score += math.log10(post_score) * POST_SCORE_WEIGHT
    return score


def score_markup(url: str, html: str) -> ThreadScore:
    comment_scores = sorted(
        (_as_int(m.group("score")) for m in COMMENT_SCORE_RE.finditer(html)),
        reverse=True,
    )
    post_match = POST_SCORE_RE.search(html) or POST_SCORE_UNVOTED_RE.search(html)
    post_score = _as_int(post_match.group("score")) if post_match else 0
    top_comment = comment_scores[0] if comment_scores else 0
    title_match = TITLE_RE.search(html)

    metrics = ThreadMetrics(
        post_score=post_score,
        top_comment_score=top_comment,
        comment_count=len(COMMENT_BLOCK_RE.findall(html)),
        sample_scores=tuple(comment_scores[:SAMPLE_SIZE]),
        title=title_match.group("title").strip() if title_match else "",
        html_length=len(html),
    )
    return ThreadScore(url=url, score=combined_score(top_comment, post_score), metrics=metrics)


def failed_score(url: str, exc: BaseException) -> ThreadScore:
    return ThreadScore(url=url, score=0.0, metrics=ThreadMetrics(error=f"{type(exc).__name__}: {exc}"))


class ThreadScorer:
    def __init__(
        self,
        *,
        fetch: PageFetch | None = None,
        batch_size: int | None = None,
        inter_batch_delay: float | None = None,
        diagnostics: DiagnosticsSink | None = None,
    ):
        self._fetch = fetch or self._fetch_default
        self.batch_size = batch_size if batch_size is not None else settings.score_batch_size
        self.inter_batch_delay = (
            inter_batch_delay if inter_batch_delay is not None else settings.score_batch_delay_seconds
        )
        self.diagnostics = diagnostics or NullDiagnostics()

    async def _fetch_default(self, url: str) -> str:
        alternate = alternate_host_url(url)
        response = await fetch_with_backoff(
            url,
            timeout=settings.score_timeout_seconds,
            max_attempts=settings.direct_max_attempts,
            backoff_seconds=settings.direct_backoff_seconds,
            alternate_url=alternate if alternate != url else None,
        )
        return response.text

    async def score(self, url: str) -> ThreadScore:
        """Score one thread. Never raises; failures score 0."""
        target = to_parse_friendly(url)
        try:
            html = await self._fetch(target)
            self.diagnostics.snapshot_html(target, html, label="score")
            result = score_markup(url, html)
        except Exception as exc:
            logger.warning(f"Thread scoring failed for {url}: {exc}")
            return failed_score(url, exc)
        logger.debug(
            f"Scored {url}: {result.score:.2f} "
            f"(post={result.metrics.post_score}, top_comment={result.metrics.top_comment_score})"
        )
        return result

    async def score_many(self, urls: list[str]) -> list[ThreadScore]:
        scores = await run_batches(
            urls,
            self.score,
            batch_size=self.batch_size,
            inter_batch_delay=self.inter_batch_delay,
            on_error=failed_score,
        )
        self.diagnostics.record_ranking(
            "thread_scores",
            {
                "scores": [
                    {"url": s.url, "score": s.score, "metrics": asdict(s.metrics)}
                    for s in scores
                    if s is not None
                ]
            },
        )
        return [s for s in scores if s is not None]

    @staticmethod
    def select_top(scores: list[ThreadScore], k: int) -> list[str]:
        ranked = sorted(scores, key=lambda s: s.score, reverse=True)
        return [s.url for s in ranked[: max(int(k), 0)]]
