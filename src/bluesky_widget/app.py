"""HTTP server for the Bluesky dashboard widget."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse

from bluesky_widget.auth import SessionStore
from bluesky_widget.config import WidgetConfig, load_config
from bluesky_widget.errors import AuthError, ParseError, UpstreamError, WidgetError
from bluesky_widget.post_filter import process
from bluesky_widget.query_builder import (
    DEFAULT_WIDGET_TITLE,
    build,
    parse_render_options,
    parse_request,
)
from bluesky_widget.renderer import render, render_error
from bluesky_widget.search_client import search_with_reauth

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


def _header_safe(value: str) -> str:
    # Response headers are latin-1 on the wire.
    return value.encode("latin-1", "replace").decode("latin-1")


def _widget_response(html: str, title: str, status_code: int = 200) -> HTMLResponse:
    return HTMLResponse(
        content=html,
        status_code=status_code,
        headers={
            "Widget-Title": _header_safe(title),
            "Widget-Content-Type": "html",
        },
    )


def create_app(
    config: Optional[WidgetConfig] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    session_store: Optional[SessionStore] = None,
) -> FastAPI:
    """Build the widget application.

    Args:
        config: Settings to use; read from the environment at startup if None.
        http_client: Client for upstream calls; one is created (and closed on
            shutdown) if None.
        session_store: Pre-built session holder, e.g. one seeded with a mock
            session in tests.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        cfg = config or load_config()
        configure_logging(cfg.log_level)
        owns_client = http_client is None
        client = http_client or httpx.AsyncClient(timeout=cfg.timeout)
        store = session_store or SessionStore(
            client, cfg.base_url, cfg.username, cfg.password
        )

        try:
            # Without a session there is nothing to serve.
            await store.get()
        except AuthError:
            logger.error(f"Authentication against {cfg.base_url} failed at startup")
            if owns_client:
                await client.aclose()
            raise

        app.state.config = cfg
        app.state.http_client = client
        app.state.session_store = store
        logger.info(f"Bluesky widget ready (upstream {cfg.base_url})")
        try:
            yield
        finally:
            if owns_client:
                await client.aclose()
            logger.info("Bluesky widget shut down")

    app = FastAPI(title="Bluesky Widget", lifespan=lifespan)

    @app.exception_handler(WidgetError)
    async def widget_error_handler(request: Request, exc: WidgetError) -> HTMLResponse:
        if isinstance(exc, ParseError):
            logger.info(f"Rejected request {request.url.query!r}: {exc}")
        elif isinstance(exc, UpstreamError):
            logger.error(f"Upstream failure: {exc}")
        elif isinstance(exc, AuthError):
            logger.error(f"Authentication failure: {exc}")
        else:
            logger.error(f"Request failed: {exc}")
        return _widget_response(render_error(str(exc)), DEFAULT_WIDGET_TITLE, exc.status_code)

    @app.get("/", response_class=HTMLResponse)
    async def index(request: Request) -> HTMLResponse:
        """Search Bluesky and render the results as a widget fragment."""

        params = dict(request.query_params)
        search_request = parse_request(params)
        options = parse_render_options(params)
        query = build(search_request)

        state = request.app.state
        posts = await search_with_reauth(
            state.http_client, state.config.base_url, state.session_store, query
        )
        visible = process(posts, search_request)
        logger.debug(f"Rendering {len(visible)} of {len(posts)} post(s) for {query.q!r}")

        return _widget_response(render(visible, options, search_request), search_request.widget_title)

    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        store: SessionStore = request.app.state.session_store
        return JSONResponse({"status": "ok", "authenticated": store.current is not None})

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the widget with uvicorn."""

    import uvicorn

    config = load_config()
    uvicorn.run(create_app(config), host=config.host, port=config.port)


if __name__ == "__main__":
    run()
