"""
In-memory stores for the dev server.

Sessions and translation contexts expire after a TTL measured from their
last use. Everything here is single-process and lost on restart.
"""

from __future__ import annotations

import time
from collections import defaultdict
from typing import Callable

Clock = Callable[[], float]


class SessionStore:
    """Session tokens with a sliding TTL. Stale tokens are swept on `put()`."""

    def __init__(self, ttl: float, clock: Clock = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._data: dict[str, float] = {}
        self._last_sweep = clock()

    def put(self, token: str) -> None:
        now = self._clock()
        if now - self._last_sweep >= self.ttl:
            self._last_sweep = now
            for stale, seen in list(self._data.items()):
                if now - seen > self.ttl:
                    del self._data[stale]
        self._data[token] = now

    def exists(self, token: str) -> bool:
        """Whether the token is live. Expired tokens are dropped."""
        seen = self._data.get(token)
        if seen is None:
            return False
        if self._clock() - seen <= self.ttl:
            return True
        del self._data[token]
        return False

    def touch(self, token: str) -> bool:
        """Refresh a live token. Returns False if it is unknown or expired."""
        if not self.exists(token):
            return False
        self._data[token] = self._clock()
        return True

    def __len__(self) -> int:
        return len(self._data)


class ContextStore:
    """
    Translation contexts owned by each session.

    Remembers contexts that expired so the server can tell "expired" (410)
    apart from "never existed" (404). The marker is kept for one more TTL,
    after which the id reads as unknown. `on_expire` is called with each
    context id as it is dropped.

    Expired entries are swept at most once per TTL, on the next `put()`.
    """

    def __init__(
        self,
        ttl: float,
        clock: Clock = time.monotonic,
        on_expire: Callable[[str], None] | None = None,
    ):
        self.ttl = ttl
        self._clock = clock
        self._on_expire = on_expire
        self._data: dict[str, dict[str, float]] = defaultdict(dict)
        self._expired: dict[str, dict[str, float]] = defaultdict(dict)
        self._last_sweep = clock()

    def put(self, session: str, context_id: str) -> None:
        now = self._clock()
        if now - self._last_sweep >= self.ttl:
            self.sweep()
        self._data[session][context_id] = now

    def exists(self, session: str, context_id: str) -> bool:
        contexts = self._data.get(session)
        if not contexts or context_id not in contexts:
            return False
        if self._clock() - contexts[context_id] <= self.ttl:
            return True
        self._expire(session, context_id)
        return False

    def touch(self, session: str, context_id: str) -> None:
        contexts = self._data.get(session)
        if contexts and context_id in contexts:
            contexts[context_id] = self._clock()

    def was_expired(self, session: str, context_id: str) -> bool:
        return context_id in self._expired.get(session, ())

    def sweep(self) -> None:
        """Expire stale contexts and forget old expiry markers."""
        now = self._clock()
        self._last_sweep = now

        for session, contexts in list(self._data.items()):
            for context_id, seen in list(contexts.items()):
                if now - seen > self.ttl:
                    self._expire(session, context_id)
            if not contexts:
                del self._data[session]

        for session, markers in list(self._expired.items()):
            for context_id, expired_at in list(markers.items()):
                if now - expired_at > self.ttl:
                    del markers[context_id]
            if not markers:
                del self._expired[session]

    def __len__(self) -> int:
        return sum(len(contexts) for contexts in self._data.values())

    def _expire(self, session: str, context_id: str) -> None:
        del self._data[session][context_id]
        self._expired[session][context_id] = self._clock()
        if self._on_expire is not None:
            self._on_expire(context_id)


class RateLimiter:
    """
    Fixed-window request counter per client key.

    Allows `limit` hits per `period` seconds; the window restarts on the
    first hit after it closes. Closed windows are evicted at most once per
    period.
    """

    def __init__(self, limit: int, period: float = 60.0, clock: Clock = time.monotonic):
        self.limit = limit
        self.period = period
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._last_sweep = clock()

    def hit(self, key: str) -> bool:
        """Record a request. Returns False once the key is over its limit."""
        now = self._clock()
        if now - self._last_sweep >= self.period:
            self._sweep(now)
        start, count = self._windows.get(key, (now, 0))
        if now - start >= self.period:
            start, count = now, 0
        count += 1
        self._windows[key] = (start, count)
        return count <= self.limit

    def __len__(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float) -> None:
        self._last_sweep = now
        for key, (start, _) in list(self._windows.items()):
            if now - start >= self.period:
                del self._windows[key]
