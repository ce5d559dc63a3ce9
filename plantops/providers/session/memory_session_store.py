"""In-memory chat session store using cachetools.TTLCache.

Sessions expire ``ttl`` seconds after their last append.  Suitable for a
single process; state is lost on restart.
"""

from __future__ import annotations

from collections.abc import Callable
import time

import structlog
from cachetools import TTLCache

from plantops.interfaces.session_store import ISessionStore
from plantops.models.chat import Turn

logger = structlog.get_logger(logger_name=__name__)


class MemorySessionStore(ISessionStore):
    """Session-id keyed turn lists backed by ``cachetools.TTLCache``.

    Parameters
    ----------
    max_sessions:
        Maximum number of live sessions before the oldest is evicted.
    ttl:
        Idle lifetime of a session in seconds.
    max_turns:
        Turns retained per session; older turns are dropped on append.
    timer:
        Clock used for expiry; tests pass a fake.
    """

    def __init__(
        self,
        max_sessions: int = 1000,
        ttl: int = 3600,
        max_turns: int = 100,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_turns = max_turns
        self._cache: TTLCache[str, tuple[Turn, ...]] = TTLCache(
            maxsize=max_sessions, ttl=ttl, timer=timer
        )

    async def get_turns(self, session_id: str) -> list[Turn]:
        turns = self._cache.get(session_id)
        if turns is None:
            logger.debug("session_miss", session_id=session_id)
            return []
        return list(turns)

    async def append_turns(self, session_id: str, turns: list[Turn]) -> None:
        existing = self._cache.get(session_id, ())
        combined = (*existing, *turns)[-self._max_turns :]
        # Re-assigning resets the entry's TTL.
        self._cache[session_id] = combined
        logger.debug("session_updated", session_id=session_id, turns=len(combined))

    async def delete(self, session_id: str) -> None:
        self._cache.pop(session_id, None)
