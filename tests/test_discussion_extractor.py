from __future__ import annotations

from threadscout.research_core.extract.discussion import (
    COMMENTS_SECTION_MARKER,
    POST_SECTION_MARKER,
    DiscussionExtractor,
    render_discussion,
)
from threadscout.research_core.models.interfaces import Comment, ExtractedDiscussion, Visibility


def test_extracts_title_post_and_sorted_visible_comments(thread_html):
    html = thread_html(
        comments=[
            {"id": "c1", "author": "alice", "score": 5, "text": "Try the Sony ones."},
            {"id": "c2", "author": "bob", "score": 42, "text": "Koss Porta Pro, easily."},
            {"id": "c3", "author": "carol", "score": 17, "text": "Anker Soundcore."},
        ]
    )

    result = DiscussionExtractor().extract(html)

    assert result.success is True
    assert result.title == "Best budget headphones?"
    assert result.post_body == "Looking for something under $50 for the gym."
    assert [c.author for c in result.comments] == ["bob", "carol", "alice"]
    assert [c.score for c in result.comments] == [42, 17, 5]
    assert all(c.visibility is Visibility.VISIBLE for c in result.comments)


def test_post_body_skips_sidebar_rendered_before_thread(thread_html):
    html = thread_html(
        post="Real post body",
        sidebar="Welcome to r/sub. Read the rules.",
        comments=[{"id": "c1", "author": "alice", "score": 5, "text": "Reply."}],
    )

    result = DiscussionExtractor().extract(html)

    assert result.post_body == "Real post body"


def test_post_body_falls_back_to_first_container_without_post_thing():
    html = (
        "<html><body>"
        '<div class="usertext-body may-blank-within md-container"><div class="md"><p>Only body</p></div></div>'
        "</body></html>"
    )

    result = DiscussionExtractor().extract(html)

    assert result.post_body == "Only body"
    assert result.success is True


def test_nested_replies_do_not_leak_into_parent(thread_html):
    html = thread_html(
        comments=[
            {
                "id": "p1",
                "author": "parent",
                "score": 10,
                "text": "Parent text.",
                "children": [
                    {"id": "k1", "author": "kid", "score": 3, "text": "Child reply."},
                ],
            }
        ]
    )

    comments = DiscussionExtractor().extract(html).comments

    by_author = {c.author: c for c in comments}
    assert by_author["parent"].text == "Parent text."
    assert by_author["parent"].score == 10
    assert by_author["kid"].text == "Child reply."
    assert by_author["kid"].score == 3


def test_collapsed_comments_dropped_when_visible_ones_exist(thread_html):
    html = thread_html(
        comments=[
            {"id": "c1", "author": "shown", "score": 1, "text": "Visible."},
            {"id": "c2", "author": "hidden", "score": 99, "text": "Collapsed.", "classes": "collapsed"},
        ]
    )

    comments = DiscussionExtractor().extract(html).comments

    assert [c.author for c in comments] == ["shown"]


def test_falls_back_to_all_comments_when_none_visible(thread_html):
    html = thread_html(
        post=None,
        comments=[
            {"id": "c1", "author": "a", "score": 2, "text": "One.", "classes": "collapsed"},
            {"id": "c2", "author": "b", "score": 8, "text": "Two.", "classes": ""},
        ],
    )

    result = DiscussionExtractor().extract(html)

    assert result.success is True
    assert result.post_body == ""
    assert [c.author for c in result.comments] == ["b", "a"]
    assert {c.visibility for c in result.comments} == {Visibility.COLLAPSED, Visibility.UNMARKED}


def test_caps_comments_and_keeps_markup_order_for_ties(thread_html):
    comments = [
        {"id": f"c{i}", "author": f"user{i}", "score": 7, "text": f"Comment {i}."}
        for i in range(15)
    ]

    result = DiscussionExtractor().extract(thread_html(comments=comments))

    assert len(result.comments) == 10
    assert [c.author for c in result.comments] == [f"user{i}" for i in range(10)]


def test_missing_score_sorts_as_zero(thread_html):
    html = thread_html(
        comments=[
            {"id": "c1", "author": "unscored", "score": None, "text": "No score here."},
            {"id": "c2", "author": "scored", "score": 1, "text": "One point."},
        ]
    )

    comments = DiscussionExtractor().extract(html).comments

    assert [c.author for c in comments] == ["scored", "unscored"]
    assert comments[1].score is None


def test_empty_markup_is_not_a_success():
    result = DiscussionExtractor().extract("")

    assert result.success is False
    assert result.title == "Discussion"
    assert result.comments == []


def test_page_without_thread_markup_fails_gracefully():
    html = "<html><head><title>Just a page</title></head><body><p>Hello</p></body></html>"

    result = DiscussionExtractor().extract(html)

    assert result.success is False
    assert result.title == "Just a page"


def test_render_discussion_uses_section_headers():
    discussion = ExtractedDiscussion(
        title="Thread",
        post_body="Body text",
        comments=[
            Comment(author="alice", text="First", score=3, visibility=Visibility.VISIBLE),
            Comment(author="bob", text="Second", score=None, visibility=Visibility.VISIBLE),
        ],
        success=True,
    )

    rendered = render_discussion(discussion)

    assert rendered.startswith("# Thread\n\n")
    assert f"{POST_SECTION_MARKER}\n\nBody text\n\n" in rendered
    assert f"{COMMENTS_SECTION_MARKER}\n\n" in rendered
    assert "**alice (3 points)**:\nFirst\n\n" in rendered
    assert "**bob**:\nSecond\n\n" in rendered
