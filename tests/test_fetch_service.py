from __future__ import annotations

import httpx
import pytest

from threadscout.errors import FetchError
from threadscout.research_core.fetch import strategies
from threadscout.research_core.fetch.service import FallbackFetcher
from threadscout.research_core.fetch.strategies import (
    AlternateHostStrategy,
    DirectStrategy,
    ProxyStrategy,
    build_strategies,
    fetch_with_backoff,
)
from threadscout.research_core.models.interfaces import FetchedPage, FetchFailure

THREAD_URL = "https://old.reddit.com/r/headphones/comments/abc123/best_budget/"
BIG_PAGE = "<html><body>" + ("real thread content " * 400) + "</body></html>"


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr(strategies.asyncio, "sleep", fake_sleep)
    return sleeps


def _transport(handler):
    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_backoff_retries_rate_limit_then_uses_alternate_host(no_sleep):
    hosts = []

    def handler(request):
        hosts.append(request.url.host)
        if request.url.host == "old.reddit.com":
            return httpx.Response(429)
        return httpx.Response(200, text="ok from www")

    response = await fetch_with_backoff(
        THREAD_URL,
        timeout=5,
        max_attempts=3,
        backoff_seconds=2.0,
        alternate_url=THREAD_URL.replace("old.", "www."),
        transport=_transport(handler),
    )

    assert response.text == "ok from www"
    assert hosts == ["old.reddit.com", "old.reddit.com", "www.reddit.com"]
    assert no_sleep == [2.0, 4.0]


@pytest.mark.asyncio
async def test_backoff_reports_rate_limit_after_exhausting_retries():
    def handler(request):
        return httpx.Response(429)

    with pytest.raises(FetchError) as excinfo:
        await fetch_with_backoff(THREAD_URL, timeout=5, max_attempts=2, transport=_transport(handler))

    assert excinfo.value.status_code == 429
    assert "Rate limited after 2 retries" in excinfo.value.reason


@pytest.mark.asyncio
async def test_backoff_fails_fast_on_other_errors():
    calls = []

    def handler(request):
        calls.append(request.url)
        return httpx.Response(404)

    with pytest.raises(FetchError) as excinfo:
        await fetch_with_backoff(THREAD_URL, timeout=5, max_attempts=3, transport=_transport(handler))

    assert excinfo.value.status_code == 404
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_backoff_retries_transport_errors():
    calls = []

    def handler(request):
        calls.append(request.url)
        if len(calls) < 2:
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, text="finally")

    response = await fetch_with_backoff(THREAD_URL, timeout=5, max_attempts=3, transport=_transport(handler))

    assert response.text == "finally"
    assert len(calls) == 2


def test_proxy_template_encodes_target():
    proxy = ProxyStrategy("cache_proxy", "https://proxy.example/raw?url={url_encoded}", timeout=5)

    assert proxy.target_url("https://old.reddit.com/r/x/comments/1/a/") == (
        "https://proxy.example/raw?url=https%3A%2F%2Fold.reddit.com%2Fr%2Fx%2Fcomments%2F1%2Fa%2F"
    )


@pytest.mark.asyncio
async def test_proxy_http_error_is_a_failure():
    proxy = ProxyStrategy(
        "archive_mirror",
        "https://mirror.example/{url}",
        timeout=5,
        transport=_transport(lambda request: httpx.Response(503)),
    )

    outcome = await proxy.attempt(THREAD_URL)

    assert isinstance(outcome, FetchFailure)
    assert outcome.status_code == 503
    assert outcome.strategy == "archive_mirror"


@pytest.mark.asyncio
async def test_alternate_host_strategy_sends_referer():
    seen = {}

    def handler(request):
        seen["host"] = request.url.host
        seen["referer"] = request.headers.get("referer")
        return httpx.Response(200, text=BIG_PAGE)

    outcome = await AlternateHostStrategy(timeout=5, transport=_transport(handler)).attempt(THREAD_URL)

    assert isinstance(outcome, FetchedPage)
    assert outcome.url == THREAD_URL
    assert seen == {"host": "www.reddit.com", "referer": "https://www.google.com/"}


@pytest.mark.asyncio
async def test_alternate_host_strategy_skips_unknown_hosts():
    outcome = await AlternateHostStrategy(timeout=5).attempt("https://example.com/page")

    assert isinstance(outcome, FetchFailure)
    assert outcome.reason == "no alternate host"


class StaticStrategy:
    def __init__(self, name, outcome):
        self.name = name
        self.outcome = outcome
        self.calls = 0

    async def attempt(self, url):
        self.calls += 1
        if isinstance(self.outcome, str):
            return FetchedPage(url=url, final_url=url, html=self.outcome, strategy=self.name)
        return self.outcome


@pytest.mark.asyncio
async def test_fallback_rejects_small_and_blocked_pages():
    small = StaticStrategy("cache_proxy", "<html>tiny</html>")
    blocked = StaticStrategy("archive_mirror", BIG_PAGE + "<p>Whoa there, pardner!</p>")
    good = StaticStrategy("direct", BIG_PAGE)
    unused = StaticStrategy("alternate_host", BIG_PAGE)

    fetcher = FallbackFetcher(
        [small, blocked, good, unused],
        min_content_bytes=5000,
        block_markers=["whoa there, pardner"],
    )
    outcome = await fetcher.fetch(THREAD_URL)

    assert isinstance(outcome, FetchedPage)
    assert outcome.strategy == "direct"
    assert (small.calls, blocked.calls, good.calls, unused.calls) == (1, 1, 1, 0)


@pytest.mark.asyncio
async def test_fallback_returns_last_failure_when_all_fail():
    fetcher = FallbackFetcher(
        [
            StaticStrategy("cache_proxy", FetchFailure(THREAD_URL, "HTTP 500", 500, "cache_proxy")),
            StaticStrategy("direct", "<html>tiny</html>"),
        ],
        min_content_bytes=5000,
        block_markers=[],
    )

    outcome = await fetcher.fetch(THREAD_URL)

    assert isinstance(outcome, FetchFailure)
    assert outcome.strategy == "direct"
    assert outcome.reason.startswith("payload too small")


@pytest.mark.asyncio
async def test_fallback_without_strategies_fails():
    outcome = await FallbackFetcher([], min_content_bytes=0, block_markers=[]).fetch(THREAD_URL)

    assert isinstance(outcome, FetchFailure)


def test_pdf_pages_skip_size_and_marker_checks():
    fetcher = FallbackFetcher([], min_content_bytes=5000, block_markers=["captcha"])
    pdf = FetchedPage(
        url="u",
        final_url="u",
        html="",
        strategy="direct",
        content_type="application/pdf",
        body=b"%PDF-1.7",
    )

    assert fetcher.rejection_reason(pdf) is None


@pytest.mark.asyncio
async def test_direct_strategy_maps_errors_to_failure():
    strategy = DirectStrategy(
        timeout=5,
        max_attempts=1,
        transport=_transport(lambda request: httpx.Response(403)),
    )

    outcome = await strategy.attempt(THREAD_URL)

    assert isinstance(outcome, FetchFailure)
    assert outcome.status_code == 403
    assert outcome.strategy == "direct"


def test_build_strategies_follows_configured_order():
    built = build_strategies(["direct", "bogus", "cache_proxy", "alternate_host"])

    assert [s.name for s in built] == ["direct", "cache_proxy", "alternate_host"]
