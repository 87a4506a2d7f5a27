"""Client-side filtering and ordering of search results."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Optional

from bluesky_widget.query_builder import SearchRequest
from bluesky_widget.search_client import Post

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def matches_tags(post: Post, tags: Iterable[str]) -> bool:
    """Return True if the post carries every tag (case-insensitive)."""
    return all(tag.lower() in post.tags for tag in tags)


def is_since(post: Post, since: Optional[datetime]) -> bool:
    """Return True if the post is not older than *since*.

    Posts without a timestamp cannot be placed in the window and are dropped.
    """
    if since is None:
        return True
    timestamp = post.timestamp
    return timestamp is not None and timestamp >= since


def _timestamp_key(post: Post) -> datetime:
    # indexedAt comes from the search service, createdAt from the posting client.
    return post.indexed_at or post.created_at or _EPOCH


def sort_posts(posts: List[Post], mode: str) -> List[Post]:
    """Order posts for display.

    ``latest`` sorts by indexing time, ``top`` by engagement then indexing
    time, both descending. Posts without ``indexedAt`` fall back to their
    creation time. Python's sort stays stable with ``reverse=True``, so ties
    keep upstream order.
    """
    if mode == "top":
        return sorted(
            posts,
            key=lambda post: (post.engagement, _timestamp_key(post)),
            reverse=True,
        )
    return sorted(posts, key=_timestamp_key, reverse=True)


def process(posts: Iterable[Post], request: SearchRequest) -> List[Post]:
    """Filter, sort and truncate posts for one request."""
    kept = [
        post
        for post in posts
        if matches_tags(post, request.tags) and is_since(post, request.since)
    ]
    return sort_posts(kept, request.sort)[: request.limit]
