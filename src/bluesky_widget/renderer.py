"""Render posts as a self-contained HTML fragment for the dashboard widget."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Any, List, Optional, Sequence, Tuple

from jinja2 import Environment

from bluesky_widget.query_builder import RenderOptions, SearchRequest
from bluesky_widget.search_client import Post

EMPTY_MESSAGE = "No posts found."

FRAGMENT_TEMPLATE = """\
<style>
  .post-container { margin-bottom: 1em; padding: 0.5em; border: 1px solid #ccc; text-align: left; }
  .post-text { margin: 0; font-size: 1em; }
  .post-text a { color: #{{ o.text_color }}; text-decoration: none; }
  .post-text a:visited { color: #{{ o.text_visited_color }}; }
  .post-text a:hover { color: #{{ o.text_hover_color }}; }
  .post-author { margin: 0.25em 0 0 0; font-size: 0.85em; color: #{{ o.author_color }}; }
  .post-author a { color: inherit; text-decoration: none; }
  .post-author a:hover { color: #{{ o.author_hover_color }}; }
  .post-stats { margin: 0.25em 0 0 0; font-size: 0.85em; color: #{{ o.stats_color }}; }
</style>
{% if debug_params %}
<div class="debug-params">
  <p class="size-h1">Parameters:</p>
{% for key, value in debug_params %}
  <p><strong>{{ key }}:</strong> {{ value }}</p>
{% endfor %}
</div>
{% endif %}
{% if posts %}
<ul class="list collapsible-container" data-collapse-after="{{ o.collapse_after }}">
{% for post in posts %}
  <li class="post-container">
    <p class="post-text"><a href="{{ post.url }}">{{ post.text or "<no text>" }}</a></p>
{% if not (o.hide_author and o.hide_datetime) %}
    <p class="post-author">
{% if not o.hide_author %}
      <a href="{{ post.author_url }}">{{ post.author_handle }}</a>
{% endif %}
{% if not o.hide_author and not o.hide_datetime %}
      &nbsp;&middot;&nbsp;
{% endif %}
{% if not o.hide_datetime %}
      <span class="post-datetime">{{ post.timestamp | datetime }}</span>
{% endif %}
    </p>
{% endif %}
{% if not o.hide_stats %}
    <p class="post-stats">
      Likes: {{ post.like_count }} &nbsp;&middot;&nbsp;
      Reposts: {{ post.repost_count }} &nbsp;&middot;&nbsp;
      Replies: {{ post.reply_count }} &nbsp;&middot;&nbsp;
      Quotes: {{ post.quote_count }}
    </p>
{% endif %}
  </li>
{% endfor %}
</ul>
{% else %}
<p class="post-empty">{{ empty_message }}</p>
{% endif %}
"""

ERROR_TEMPLATE = """\
<div class="widget-error">
  <p><strong>Error:</strong> {{ message }}</p>
</div>
"""


def _format_datetime(value: Optional[datetime]) -> str:
    if value is None:
        return "Unknown date"
    return value.strftime("%Y-%m-%d %H:%M UTC")


_env = Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)
_env.filters["datetime"] = _format_datetime
_fragment = _env.from_string(FRAGMENT_TEMPLATE)
_error = _env.from_string(ERROR_TEMPLATE)


def _display(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ",".join(str(item) for item in value)
    return str(value)


def debug_params(
    request: SearchRequest, options: RenderOptions
) -> List[Tuple[str, str]]:
    """Return the resolved parameters as sorted ``(name, value)`` pairs."""
    resolved = {**asdict(request), **asdict(options)}
    return [(key, _display(resolved[key])) for key in sorted(resolved)]


def render(
    posts: Sequence[Post],
    options: RenderOptions,
    request: Optional[SearchRequest] = None,
) -> str:
    """Render posts into an HTML fragment.

    Args:
        posts: Posts in display order.
        options: Colors, hide flags and collapse threshold.
        request: The resolved request; when its ``debug`` flag is set the
            resolved parameters are listed above the posts.

    Returns:
        The HTML fragment. Identical inputs always give identical output.
    """
    params = debug_params(request, options) if request is not None and request.debug else []
    return _fragment.render(
        posts=list(posts),
        o=options,
        debug_params=params,
        empty_message=EMPTY_MESSAGE,
    )


def render_error(message: str) -> str:
    """Render a minimal error fragment."""
    return _error.render(message=message)
