"""Tests for the HTML fragment renderer."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

from bluesky_widget.query_builder import RenderOptions, SearchRequest
from bluesky_widget.renderer import EMPTY_MESSAGE, debug_params, render, render_error
from bluesky_widget.search_client import Post

POSTS = [
    Post(
        uri="at://did:plc:a/app.bsky.feed.post/one",
        author_handle="alice.bsky.social",
        text="First <b>post</b> #rustlang",
        created_at=datetime(2026, 3, 1, 9, 15, tzinfo=timezone.utc),
        like_count=12,
        repost_count=3,
        reply_count=1,
        quote_count=2,
    ),
    Post(
        uri="at://did:plc:b/app.bsky.feed.post/two",
        author_handle="bob.bsky.social",
        text="Second",
        created_at=datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc),
    ),
]


def test_render_lists_posts():
    html = render(POSTS, RenderOptions())

    assert html.count('class="post-container"') == 2
    assert 'data-collapse-after="5"' in html
    assert "https://bsky.app/profile/alice.bsky.social/post/one" in html
    assert "https://bsky.app/profile/bob.bsky.social" in html
    assert "2026-03-01 09:15 UTC" in html
    assert "Likes: 12" in html
    assert "Quotes: 2" in html


def test_render_escapes_post_text():
    html = render(POSTS, RenderOptions())
    assert "<b>post</b>" not in html
    assert "&lt;b&gt;post&lt;/b&gt;" in html


def test_render_applies_colors():
    options = RenderOptions(text_color="ff0000", author_hover_color="00ff00", text_visited_color="abc")
    html = render(POSTS, options)
    assert "color: #ff0000" in html
    assert "color: #00ff00" in html
    assert "color: #abc" in html


def test_render_empty():
    html = render([], RenderOptions())
    assert EMPTY_MESSAGE in html
    assert 'class="post-container"' not in html
    assert "<ul" not in html


def test_hide_flags_are_independent():
    base = render(POSTS, RenderOptions())
    assert base.count('class="post-stats"') == 2
    assert base.count('class="post-datetime"') == 2
    assert base.count("alice.bsky.social</a>") == 1

    no_stats = render(POSTS, RenderOptions(hide_stats=True))
    assert 'class="post-stats"' not in no_stats
    assert no_stats.count('class="post-datetime"') == 2
    assert "alice.bsky.social</a>" in no_stats

    no_datetime = render(POSTS, RenderOptions(hide_datetime=True))
    assert 'class="post-datetime"' not in no_datetime
    assert no_datetime.count('class="post-stats"') == 2
    assert "alice.bsky.social</a>" in no_datetime

    no_author = render(POSTS, RenderOptions(hide_author=True))
    assert "alice.bsky.social</a>" not in no_author
    assert no_author.count('class="post-datetime"') == 2
    assert no_author.count('class="post-stats"') == 2

    neither = render(POSTS, RenderOptions(hide_author=True, hide_datetime=True))
    assert 'class="post-author"' not in neither
    assert neither.count('class="post-stats"') == 2


def test_debug_block_lists_resolved_parameters():
    request = SearchRequest(title="rust", tags=("web",), limit=3, debug=True)
    options = RenderOptions(collapse_after=2)

    html = render(POSTS, options, request)
    assert html.index('class="debug-params"') < html.index('class="post-container"')
    assert "<strong>limit:</strong> 3" in html
    assert "<strong>tags:</strong> web" in html
    assert "<strong>collapse_after:</strong> 2" in html

    quiet = render(POSTS, options, replace(request, debug=False))
    assert "debug-params" not in quiet


def test_debug_params_sorted():
    keys = [key for key, _ in debug_params(SearchRequest(title="x"), RenderOptions())]
    assert keys == sorted(keys)


def test_render_is_deterministic():
    request = SearchRequest(title="rust", debug=True)
    options = RenderOptions(hide_stats=True)
    assert render(POSTS, options, request) == render(POSTS, options, request)


def test_render_error_escapes_message():
    html = render_error("bad <input>")
    assert "bad &lt;input&gt;" in html
