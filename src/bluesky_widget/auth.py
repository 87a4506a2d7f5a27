"""Session acquisition against a Bluesky (AT Protocol) instance."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx

from bluesky_widget.errors import AuthError

logger = logging.getLogger(__name__)

CREATE_SESSION_PATH = "/xrpc/com.atproto.server.createSession"


@dataclass(frozen=True)
class Session:
    """An authenticated upstream session."""

    access_jwt: str = field(repr=False)
    did: str = ""
    handle: str = ""


async def authenticate(
    client: httpx.AsyncClient,
    base_url: str,
    username: str,
    password: str,
) -> Session:
    """Exchange username/password for a session token.

    Args:
        client: Shared HTTP client.
        base_url: Instance root, e.g. ``https://bsky.social``.
        username: Handle or email used as the login identifier.
        password: Account or app password.

    Returns:
        The new :class:`Session`.

    Raises:
        AuthError: If the instance rejects the credentials, is unreachable,
            or answers with something that is not a session.
    """
    url = f"{base_url}{CREATE_SESSION_PATH}"
    try:
        response = await client.post(
            url, json={"identifier": username, "password": password}
        )
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as exc:
        raise AuthError(
            f"Login rejected by {base_url} (HTTP {exc.response.status_code})"
        ) from exc
    except httpx.RequestError as exc:
        raise AuthError(f"Could not reach {base_url}: {exc}") from exc
    except ValueError as exc:
        raise AuthError(f"Malformed login response from {base_url}") from exc

    token = data.get("accessJwt") if isinstance(data, dict) else None
    if not token:
        raise AuthError(f"Login response from {base_url} has no access token")

    session = Session(
        access_jwt=token,
        did=data.get("did", ""),
        handle=data.get("handle", username),
    )
    logger.info(f"Authenticated as {session.handle or username}")
    return session


class SessionStore:
    """Shared, lock-guarded holder for the current upstream session.

    Reads are lock-free; logging in and re-logging in happen under an
    ``asyncio.Lock`` so concurrent requests never log in twice for the same
    expired token.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        username: str,
        password: str,
        session: Optional[Session] = None,
    ) -> None:
        self._client = client
        self._base_url = base_url
        self._username = username
        self._password = password
        self._session = session
        self._lock = asyncio.Lock()

    @property
    def current(self) -> Optional[Session]:
        return self._session

    async def get(self) -> Session:
        """Return the current session, logging in first if there is none."""
        session = self._session
        if session is not None:
            return session

        async with self._lock:
            if self._session is None:
                self._session = await self._login()
            return self._session

    async def refresh(self, stale: Optional[Session]) -> Session:
        """Replace *stale* with a fresh session.

        If another request already replaced it, the newer session is
        returned without logging in again.
        """
        async with self._lock:
            if self._session is not None and self._session is not stale:
                return self._session
            logger.info("Session token rejected, re-authenticating")
            self._session = None
            self._session = await self._login()
            return self._session

    async def _login(self) -> Session:
        return await authenticate(
            self._client, self._base_url, self._username, self._password
        )
