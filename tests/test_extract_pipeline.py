from __future__ import annotations

from threadscout.research_core.extract.service import ExtractService, chunk_text, normalize_text


def test_quality_scoring_penalizes_short_nav_noise():
    service = ExtractService()
    assert service.score_quality("Main menu\nNavigation\nSign in") < 0.55
    assert service.score_quality(" ".join(f"word{i} lorem ipsum" for i in range(400))) >= 0.55


def test_extract_falls_back_to_markitdown_when_primary_methods_empty(monkeypatch):
    service = ExtractService(max_chars=5000)
    monkeypatch.setattr(service, "_extract_trafilatura", lambda *_: "")
    monkeypatch.setattr(service, "_extract_readability", lambda *_: "")
    monkeypatch.setattr(
        service,
        "_extract_markitdown",
        lambda *_: " ".join(["Recovered markdown content for the answer."] * 80),
    )
    result = service.extract_page(
        url="https://example.com/article",
        raw_html="<html><head><title>Article</title></head><body>placeholder</body></html>",
    )
    assert result.method == "markitdown"
    assert result.title == "Article"
    assert result.score >= 0.55
    assert "Recovered markdown content" in result.text


def test_extract_keeps_best_candidate_when_all_methods_low_quality(monkeypatch):
    service = ExtractService(max_chars=1000, quality_threshold=0.95)
    monkeypatch.setattr(service, "_extract_trafilatura", lambda *_: "short")
    monkeypatch.setattr(service, "_extract_readability", lambda *_: "")
    monkeypatch.setattr(service, "_extract_markitdown", lambda *_: "")
    monkeypatch.setattr(service, "_extract_raw", lambda *_: "tiny")
    result = service.extract_page(
        url="https://example.com/low-quality",
        raw_html="<html><body>tiny</body></html>",
    )
    assert result.method in {"trafilatura", "raw"}
    assert result.score < 0.95
    assert result.title == "https://example.com/low-quality"


def test_chunk_text_overlaps_windows():
    text = "".join(str(i % 10) for i in range(2500))

    chunks = chunk_text(text, chunk_size=1000, overlap=200)

    assert [len(c) for c in chunks] == [1000, 1000, 900, 100]
    assert chunks[0][800:] == chunks[1][:200]
    assert chunk_text("   ") == []


def test_normalize_text_collapses_blank_runs():
    assert normalize_text("a\xa0 b\r\n\n\n\n  c  ") == "a b\n\nc"


def _thread_page(body: str, comments: list[str]) -> str:
    rendered = "".join(f"<shreddit-comment><p>{c}</p><div>Reply</div><div>Share</div></shreddit-comment>" for c in comments)
    return (
        "<html><head><script>var x = 1;</script></head><body>"
        "<nav>Log In Get the app</nav>"
        f"<shreddit-post><h1>Thread title</h1><p>{body}</p></shreddit-post>"
        f"{rendered}</body></html>"
    )


def test_discussion_text_uses_thread_nodes_and_strips_chrome():
    html = _thread_page(
        "I have been comparing budget headphones for a month. " * 4,
        ["The Koss Porta Pro still holds up after years of use. " * 3, "Moondrop Chu is great for IEMs. " * 3],
    )

    text = ExtractService().extract_discussion_text(html)

    assert text is not None
    assert "comparing budget headphones" in text
    assert "Koss Porta Pro" in text
    assert "Reply" not in text
    assert "var x" not in text


def test_discussion_text_rejects_thin_pages():
    assert ExtractService().extract_discussion_text(_thread_page("Too short.", [])) is None


def test_discussion_text_rejects_not_found_pages():
    html = _thread_page("Sorry, page not found. " * 20, [])

    assert ExtractService().extract_discussion_text(html) is None
