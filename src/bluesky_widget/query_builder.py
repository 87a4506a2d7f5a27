"""Turn inbound query parameters into a typed search request.

All parsers here are strict: a value that does not match its grammar raises
:class:`~bluesky_widget.errors.ParseError` instead of falling back to a
default. Only an absent parameter takes the default.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

from bluesky_widget.errors import ParseError

SORT_MODES = ("latest", "top")

DEFAULT_LIMIT = 10
DEFAULT_COLLAPSE_AFTER = 5
DEFAULT_SORT = "latest"
DEFAULT_WIDGET_TITLE = "Bluesky"

# searchPosts accepts at most 100 results per call.
MAX_FETCH_LIMIT = 100
MIN_FETCH_LIMIT = 50

DEFAULT_COLORS = {
    "text-color": "000000",
    "author-color": "666",
    "text-hover-color": "000000",
    "text-visited-color": "000000",
    "author-hover-color": "666",
    "stats-color": "666",
}

HIDE_FLAGS = ("hide-stats", "hide-datetime", "hide-author")

_SINCE_RE = re.compile(r"^-(\d+)([dhms])$")
_COLOR_RE = re.compile(r"^(?:[0-9a-fA-F]{3,4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
_TAG_RE = re.compile(r"^[^\s#]+$")

_UNITS = {
    "d": "days",
    "h": "hours",
    "m": "minutes",
    "s": "seconds",
}
_TRUE = {"", "true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


@dataclass(frozen=True)
class SearchRequest:
    """What to search for, resolved from one inbound request."""

    title: Optional[str] = None
    tags: Tuple[str, ...] = ()
    since: Optional[datetime] = None
    limit: int = DEFAULT_LIMIT
    collapse_after: int = DEFAULT_COLLAPSE_AFTER
    sort: str = DEFAULT_SORT
    debug: bool = False
    widget_title: str = DEFAULT_WIDGET_TITLE


@dataclass(frozen=True)
class RenderOptions:
    """Styling for the rendered fragment. Colors are hex without ``#``."""

    text_color: str = DEFAULT_COLORS["text-color"]
    author_color: str = DEFAULT_COLORS["author-color"]
    text_hover_color: str = DEFAULT_COLORS["text-hover-color"]
    text_visited_color: str = DEFAULT_COLORS["text-visited-color"]
    author_hover_color: str = DEFAULT_COLORS["author-hover-color"]
    stats_color: str = DEFAULT_COLORS["stats-color"]
    hide_stats: bool = False
    hide_datetime: bool = False
    hide_author: bool = False
    collapse_after: int = DEFAULT_COLLAPSE_AFTER


@dataclass(frozen=True)
class UpstreamQuery:
    """Query string for ``app.bsky.feed.searchPosts``."""

    q: str
    limit: int
    sort: str = DEFAULT_SORT
    since: Optional[str] = None

    def params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {"q": self.q, "limit": self.limit, "sort": self.sort}
        if self.since:
            params["since"] = self.since
        return params


# ----------------------------------------------------------------------
# Scalar parsers
# ----------------------------------------------------------------------


def parse_since(value: str, now: Optional[datetime] = None, parameter: str = "since") -> datetime:
    """Resolve a past-relative duration such as ``-4h`` to an absolute UTC time.

    The grammar is ``-<digits><unit>`` with unit one of ``d``, ``h``, ``m``, ``s``.
    """
    match = _SINCE_RE.match(value.strip())
    if not match:
        raise ParseError(
            parameter,
            f"expected a duration like -4h (units d, h, m, s), got {value!r}",
        )
    magnitude, unit = int(match.group(1)), match.group(2)
    now = now or datetime.now(timezone.utc)
    try:
        return now - timedelta(**{_UNITS[unit]: magnitude})
    except (OverflowError, ValueError) as exc:
        raise ParseError(parameter, f"duration out of range: {value!r}") from exc


def parse_bool(value: str, parameter: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ParseError(parameter, f"expected true or false, got {value!r}")


def parse_int(value: str, parameter: str, minimum: int = 0) -> int:
    try:
        number = int(value.strip())
    except ValueError as exc:
        raise ParseError(parameter, f"expected an integer, got {value!r}") from exc
    if number < minimum:
        raise ParseError(parameter, f"must be at least {minimum}, got {number}")
    return number


def parse_color(value: str, parameter: str) -> str:
    color = value.strip()
    if not _COLOR_RE.match(color):
        raise ParseError(parameter, f"expected a hex color without '#', got {value!r}")
    return color.lower()


def parse_sort(value: str, parameter: str = "sort") -> str:
    lowered = value.strip().lower()
    if lowered not in SORT_MODES:
        raise ParseError(parameter, f"expected one of {', '.join(SORT_MODES)}, got {value!r}")
    return lowered


def parse_tags(value: str, parameter: str = "tags") -> Tuple[str, ...]:
    """Split a comma-separated tag list, dropping blanks, ``#`` and duplicates."""
    tags = []
    for raw in value.split(","):
        tag = raw.strip().lstrip("#").lower()
        if not tag:
            continue
        if not _TAG_RE.match(tag):
            raise ParseError(parameter, f"invalid tag {raw.strip()!r}")
        if tag not in tags:
            tags.append(tag)
    return tuple(tags)


# ----------------------------------------------------------------------
# Request parsing
# ----------------------------------------------------------------------


def _get(params: Mapping[str, str], name: str) -> Optional[str]:
    """Look up a hyphenated parameter, accepting the underscore spelling too."""
    if name in params:
        return params[name]
    alias = name.replace("-", "_")
    if alias in params:
        return params[alias]
    return None


def parse_request(params: Mapping[str, str], now: Optional[datetime] = None) -> SearchRequest:
    """Build a :class:`SearchRequest` from raw query parameters.

    Raises:
        ParseError: If any parameter is malformed, or if neither ``title``
            nor ``tags`` is given.
    """
    title = (_get(params, "title") or "").strip() or None

    raw_tags = _get(params, "tags")
    tags = parse_tags(raw_tags) if raw_tags is not None else ()

    if title is None and not tags:
        raise ParseError("title", "required (or pass tags=...)")

    raw_since = _get(params, "since")
    since = parse_since(raw_since, now=now) if raw_since else None

    raw_limit = _get(params, "limit")
    limit = parse_int(raw_limit, "limit", minimum=1) if raw_limit is not None else DEFAULT_LIMIT

    raw_collapse = _get(params, "collapse-after")
    collapse_after = (
        parse_int(raw_collapse, "collapse-after", minimum=-1)
        if raw_collapse is not None
        else DEFAULT_COLLAPSE_AFTER
    )

    raw_sort = _get(params, "sort")
    sort = parse_sort(raw_sort) if raw_sort is not None else DEFAULT_SORT

    raw_debug = _get(params, "debug")
    debug = parse_bool(raw_debug, "debug") if raw_debug is not None else False

    widget_title = (_get(params, "widget-title") or "").strip() or title or DEFAULT_WIDGET_TITLE

    return SearchRequest(
        title=title,
        tags=tags,
        since=since,
        limit=limit,
        collapse_after=collapse_after,
        sort=sort,
        debug=debug,
        widget_title=widget_title,
    )


def parse_render_options(params: Mapping[str, str]) -> RenderOptions:
    """Build :class:`RenderOptions` from raw query parameters."""
    values: Dict[str, Any] = {}
    for name, default in DEFAULT_COLORS.items():
        raw = _get(params, name)
        values[name.replace("-", "_")] = parse_color(raw, name) if raw is not None else default

    for name in HIDE_FLAGS:
        raw = _get(params, name)
        values[name.replace("-", "_")] = parse_bool(raw, name) if raw is not None else False

    raw_collapse = _get(params, "collapse-after")
    values["collapse_after"] = (
        parse_int(raw_collapse, "collapse-after", minimum=-1)
        if raw_collapse is not None
        else DEFAULT_COLLAPSE_AFTER
    )
    return RenderOptions(**values)


# ----------------------------------------------------------------------
# Upstream query
# ----------------------------------------------------------------------


def _format_since(since: datetime) -> str:
    return since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def build(request: SearchRequest) -> UpstreamQuery:
    """Translate a :class:`SearchRequest` into searchPosts parameters.

    Terms are space-joined, which Bluesky search treats as AND.
    """
    terms = []
    if request.title:
        title = request.title.replace('"', "")
        terms.append(f'"{title}"' if re.search(r"\s", title) else title)
    terms.extend(f"#{tag}" for tag in request.tags)

    return UpstreamQuery(
        q=" ".join(terms),
        limit=min(MAX_FETCH_LIMIT, max(request.limit, MIN_FETCH_LIMIT)),
        sort=request.sort,
        since=_format_since(request.since) if request.since else None,
    )
