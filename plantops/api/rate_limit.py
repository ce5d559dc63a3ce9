"""Fixed-window request rate limiting.

Each client key (the remote address) gets ``max_requests`` per window of
``window_seconds``, counted from the key's first request in that window.
Requests over the budget are rejected immediately with
:class:`RateLimitExceededError`, carrying the whole seconds until the
window resets.  Counters live in a ``cachetools.TTLCache`` so idle keys
expire on their own and memory stays bounded.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable

import structlog
from cachetools import TTLCache

from plantops.utils.errors import RateLimitExceededError

logger = structlog.get_logger(logger_name=__name__)


class FixedWindowRateLimiter:
    """Per-key fixed-window counter.

    Parameters
    ----------
    max_requests:
        Requests allowed per window.
    window_seconds:
        Window length in seconds.
    name:
        Label used in logs ("general", "upload").
    max_keys:
        Upper bound on tracked client keys.
    timer:
        Monotonic clock; tests inject a fake to step over window edges.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        name: str = "general",
        max_keys: int = 10_000,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests <= 0 or window_seconds <= 0:
            raise ValueError("max_requests and window_seconds must be positive")
        self._max_requests = max_requests
        self._window = window_seconds
        self._name = name
        self._timer = timer
        # (window_start, count) per key
        self._windows: TTLCache[str, tuple[float, int]] = TTLCache(
            maxsize=max_keys, ttl=window_seconds, timer=timer
        )

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window_seconds(self) -> float:
        return self._window

    def hit(self, key: str) -> int:
        """Count one request for *key*; return the requests left in the window.

        Raises
        ------
        RateLimitExceededError
            If *key* already used its budget in the current window.
        """
        now = self._timer()
        entry = self._windows.get(key)
        if entry is None or now - entry[0] >= self._window:
            self._windows[key] = (now, 1)
            return self._max_requests - 1

        window_start, count = entry
        if count >= self._max_requests:
            retry_after = max(1, math.ceil(window_start + self._window - now))
            logger.warning(
                "rate_limit_exceeded",
                limiter=self._name,
                client=key,
                retry_after=retry_after,
            )
            raise RateLimitExceededError(
                message="Too many requests, please try again later.",
                retry_after=retry_after,
            )

        self._windows[key] = (window_start, count + 1)
        return self._max_requests - count - 1

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._windows.clear()
        else:
            self._windows.pop(key, None)
