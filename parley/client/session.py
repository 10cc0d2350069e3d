"""
Session establishment for the translation API.

The server authorises `/api/*` calls through a cookie issued by its
session endpoint. `SessionManager` makes sure that endpoint has been hit
before any authenticated call, and that concurrent callers share a single
in-flight request instead of each creating their own session.

States:
    no session    -> `ensure()` starts a request         -> establishing
    establishing  -> request settles (success or not)    -> established
    established   -> `invalidate()`                      -> no session
    establishing  -> `invalidate()`                      -> establishing

A failed session request is not an error here. The authenticated call that
follows is the real judge of whether the session works; if it gets a 401
the gateway invalidates and tries once more.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Coalesces session establishment for one HTTP client.

    Usage:
        sessions = SessionManager(client)

        await sessions.ensure()   # hits /session once
        await sessions.ensure()   # no request, already established

        sessions.invalidate()
        await sessions.ensure()   # hits /session again
    """

    def __init__(self, client: httpx.AsyncClient, path: str = "/session"):
        self._client = client
        self._path = path
        self._pending: asyncio.Task[None] | None = None

    @property
    def path(self) -> str:
        return self._path

    async def ensure(self) -> None:
        """
        Wait until a session request has settled.

        Starts one if none is pending or established; otherwise joins the
        existing one. Never raises for network or HTTP failures.
        """
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._establish())
        # A cancelled caller must not cancel the request other callers share
        await asyncio.shield(self._pending)

    def invalidate(self) -> None:
        """
        Forget the current session so the next `ensure()` requests a new one.

        A request still in flight is kept: callers that were rejected while
        a refresh runs join that refresh rather than starting another.
        """
        if self._pending is not None and self._pending.done():
            self._pending = None

    async def _establish(self) -> None:
        logger.debug(f"Requesting session from {self._path}")
        try:
            response = await self._client.get(self._path)
        except httpx.HTTPError as e:
            logger.debug(f"Session request failed, continuing without: {e}")
            return
        logger.debug(f"Session request returned {response.status_code}")
