"""Shared fixtures: sample post views as the search API returns them."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

BASE_URL = "https://bsky.test"


def post_view(
    rkey: str,
    text: str = "Hello #rustlang",
    created_at: datetime | None = None,
    likes: int = 0,
    reposts: int = 0,
    replies: int = 0,
    handle: str = "alice.bsky.social",
    tags: list[str] | None = None,
) -> dict[str, Any]:
    """Build a post view shaped like ``app.bsky.feed.searchPosts`` output."""

    created = created_at or datetime.now(timezone.utc) - timedelta(minutes=5)
    stamp = created.strftime("%Y-%m-%dT%H:%M:%S.000Z")
    record: dict[str, Any] = {
        "$type": "app.bsky.feed.post",
        "text": text,
        "createdAt": stamp,
        "langs": ["en"],
    }
    if tags is not None:
        record["tags"] = tags
    return {
        "uri": f"at://did:plc:{handle.split('.')[0]}/app.bsky.feed.post/{rkey}",
        "cid": f"cid-{rkey}",
        "author": {
            "did": f"did:plc:{handle.split('.')[0]}",
            "handle": handle,
            "displayName": handle.split(".")[0].title(),
        },
        "record": record,
        "indexedAt": stamp,
        "likeCount": likes,
        "repostCount": reposts,
        "replyCount": replies,
        "quoteCount": 0,
        "labels": [],
    }


@pytest.fixture
def session_payload() -> dict[str, Any]:
    return {
        "accessJwt": "jwt-1",
        "refreshJwt": "refresh-1",
        "did": "did:plc:widget",
        "handle": "widget.bsky.social",
    }
