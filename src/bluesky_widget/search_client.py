"""Client for ``app.bsky.feed.searchPosts`` and the Post model it yields."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, FrozenSet, List, Optional

import httpx

from bluesky_widget.auth import Session, SessionStore
from bluesky_widget.errors import AuthExpiredError, UpstreamError
from bluesky_widget.query_builder import UpstreamQuery

logger = logging.getLogger(__name__)

SEARCH_POSTS_PATH = "/xrpc/app.bsky.feed.searchPosts"
WEB_BASE = "https://bsky.app"

TAG_FACET_TYPE = "app.bsky.richtext.facet#tag"
_HASHTAG_RE = re.compile(r"(?:^|\s)#([^\s#.,!?;:()\[\]{}\"']+)")
# Bluesky reports some token problems as 400 with one of these error codes.
_TOKEN_ERRORS = {"ExpiredToken", "InvalidToken"}


@dataclass(frozen=True)
class Post:
    """One search result, reduced to what the widget shows."""

    uri: str
    author_handle: str
    text: str
    created_at: Optional[datetime] = None
    indexed_at: Optional[datetime] = None
    author_display_name: str = ""
    cid: str = ""
    like_count: int = 0
    repost_count: int = 0
    reply_count: int = 0
    quote_count: int = 0
    tags: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def rkey(self) -> str:
        return self.uri.rstrip("/").rsplit("/", 1)[-1]

    @property
    def url(self) -> str:
        return f"{WEB_BASE}/profile/{self.author_handle}/post/{self.rkey}"

    @property
    def author_url(self) -> str:
        return f"{WEB_BASE}/profile/{self.author_handle}"

    @property
    def engagement(self) -> int:
        return self.like_count + self.repost_count + self.reply_count

    @property
    def timestamp(self) -> Optional[datetime]:
        return self.created_at or self.indexed_at


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an AT Protocol datetime string, returning None if unreadable."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _count(value: Any) -> int:
    return value if isinstance(value, int) and value > 0 else 0


def extract_tags(record: dict[str, Any]) -> FrozenSet[str]:
    """Collect the hashtags of a post record, lower-cased.

    Tags come from three places: the record's ``tags`` list, tag facets,
    and ``#words`` in the text itself.
    """
    tags = set()
    for tag in _list(record.get("tags")):
        if isinstance(tag, str):
            tags.add(tag.lstrip("#").lower())

    for facet in _list(record.get("facets")):
        if not isinstance(facet, dict):
            continue
        for feature in _list(facet.get("features")):
            if isinstance(feature, dict) and feature.get("$type") == TAG_FACET_TYPE:
                tag = feature.get("tag")
                if isinstance(tag, str):
                    tags.add(tag.lstrip("#").lower())

    text = record.get("text")
    if isinstance(text, str):
        tags.update(match.lower() for match in _HASHTAG_RE.findall(text))
    tags.discard("")
    return frozenset(tags)


def parse_post(raw: dict[str, Any]) -> Post:
    """Map one post view from the API into a :class:`Post`.

    Raises:
        ValueError: If the view has no URI.
        TypeError: If the text is not a string.
    """
    uri = raw.get("uri")
    if not isinstance(uri, str) or not uri:
        raise ValueError("post view has no uri")

    author = raw.get("author") or {}
    record = raw.get("record") or {}
    handle = author.get("handle") or author.get("did") or ""
    text = record.get("text") or ""
    if not isinstance(text, str):
        raise TypeError(f"post {uri} has non-string text")

    return Post(
        uri=uri,
        cid=raw.get("cid") or "",
        author_handle=handle,
        author_display_name=author.get("displayName") or handle,
        text=text,
        created_at=parse_timestamp(record.get("createdAt")),
        indexed_at=parse_timestamp(raw.get("indexedAt")),
        like_count=_count(raw.get("likeCount")),
        repost_count=_count(raw.get("repostCount")),
        reply_count=_count(raw.get("replyCount")),
        quote_count=_count(raw.get("quoteCount")),
        tags=extract_tags(record),
    )


def _is_token_error(response: httpx.Response) -> bool:
    if response.status_code == 401:
        return True
    if response.status_code != 400:
        return False
    try:
        body = response.json()
    except ValueError:
        return False
    return isinstance(body, dict) and body.get("error") in _TOKEN_ERRORS


async def search(
    client: httpx.AsyncClient,
    base_url: str,
    session: Session,
    query: UpstreamQuery,
) -> List[Post]:
    """Run one search call and return the posts in upstream order.

    Raises:
        AuthExpiredError: If the upstream rejects the session token.
        UpstreamError: On any other non-2xx status, transport failure or
            malformed body.
    """
    url = f"{base_url}{SEARCH_POSTS_PATH}"
    try:
        response = await client.get(
            url,
            params=query.params(),
            headers={"Authorization": f"Bearer {session.access_jwt}"},
        )
    except httpx.RequestError as exc:
        raise UpstreamError(f"Search request failed: {exc}") from exc

    if _is_token_error(response):
        raise AuthExpiredError("Session token rejected", upstream_status=response.status_code)
    if response.is_error:
        raise UpstreamError(
            f"Search failed with HTTP {response.status_code}",
            upstream_status=response.status_code,
        )

    try:
        payload = response.json()
    except ValueError as exc:
        raise UpstreamError("Search returned malformed JSON") from exc

    raw_posts = payload.get("posts") if isinstance(payload, dict) else None
    if not isinstance(raw_posts, list):
        raise UpstreamError("Search response has no posts list")

    posts: List[Post] = []
    for raw in raw_posts:
        try:
            posts.append(parse_post(raw))
        except (AttributeError, TypeError, ValueError) as exc:
            logger.warning(f"Skipping unreadable post: {exc}")

    logger.debug(f"Search {query.q!r} returned {len(posts)} post(s)")
    return posts


async def search_with_reauth(
    client: httpx.AsyncClient,
    base_url: str,
    store: SessionStore,
    query: UpstreamQuery,
) -> List[Post]:
    """Search, re-authenticating and retrying once if the token was rejected.

    A second rejection is reported as a plain :class:`UpstreamError`.
    """
    session = await store.get()
    try:
        return await search(client, base_url, session, query)
    except AuthExpiredError:
        session = await store.refresh(session)

    try:
        return await search(client, base_url, session, query)
    except AuthExpiredError as exc:
        raise UpstreamError(
            "Session token rejected again after re-authentication",
            upstream_status=exc.upstream_status,
        ) from exc
