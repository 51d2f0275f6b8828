"""
Sliding-window request admission keyed by (session, player).

Each key keeps the timestamps of its admitted requests inside the trailing
window. State lives only for the lifetime of the process.
"""

from collections import deque
from typing import Callable, Deque, Dict, Optional
import logging
import threading
import time

from cardtable.errors import RateLimitExceeded

logger = logging.getLogger("cardtable.ratelimit")


def key_for(session_id: str, actor: str) -> str:
    """Composite key, so limits apply per player per session."""
    return f"{session_id}:{actor}"


class _Window:
    __slots__ = ("lock", "timestamps", "removed")

    def __init__(self):
        self.lock = threading.Lock()
        self.timestamps: Deque[float] = deque()
        # Set under `lock` once the window has been dropped from the table.
        self.removed = False


class RateLimiter:
    """
    Sliding-window rate limiter.

    Windows whose requests have all aged out are dropped, either by `purge`
    or opportunistically once per window length from `allow`, so the table
    only holds keys seen recently.

    >>> clock = lambda: 0.0
    >>> limiter = RateLimiter(clock=clock)
    >>> [limiter.allow("k", 60, 2) for _ in range(3)]
    [True, True, False]
    """

    def __init__(
        self,
        window_seconds: float = 60,
        max_requests: int = 10,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._table_lock = threading.Lock()
        self._last_purge: Optional[float] = None

    def _window(self, key: str) -> _Window:
        with self._table_lock:
            window = self._windows.get(key)
            if window is None:
                window = self._windows[key] = _Window()
            return window

    def _maybe_purge(self) -> None:
        now = self._clock()
        with self._table_lock:
            if self._last_purge is None:
                self._last_purge = now
                return
            if now - self._last_purge < self.window_seconds:
                return
            self._last_purge = now
        self.purge()

    def allow(
        self,
        key: str,
        window_seconds: Optional[float] = None,
        max_requests: Optional[int] = None,
    ) -> bool:
        """
        Admit or deny one request for `key`.

        Timestamps older than the window are pruned first. A denied request is
        not recorded.

        Args:
            key: Usually `key_for(session_id, actor)`
            window_seconds: Window length; defaults to the limiter's own
            max_requests: Requests admitted per window; defaults to the limiter's own
        """
        window_seconds = self.window_seconds if window_seconds is None else window_seconds
        max_requests = self.max_requests if max_requests is None else max_requests

        self._maybe_purge()
        while True:
            window = self._window(key)
            with window.lock:
                if window.removed:
                    # Purged between lookup and lock; use the fresh window.
                    continue
                now = self._clock()
                cutoff = now - window_seconds
                timestamps = window.timestamps
                while timestamps and timestamps[0] < cutoff:
                    timestamps.popleft()
                if len(timestamps) < max_requests:
                    timestamps.append(now)
                    return True
                break
        logger.debug(f"Rate limit hit for {key}")
        return False

    def check(
        self,
        key: str,
        window_seconds: Optional[float] = None,
        max_requests: Optional[int] = None,
    ) -> None:
        """
        Like `allow`, but raise instead of returning False.

        Raises:
            RateLimitExceeded
        """
        if not self.allow(key, window_seconds, max_requests):
            raise RateLimitExceeded(
                key,
                self.window_seconds if window_seconds is None else window_seconds,
                self.max_requests if max_requests is None else max_requests,
            )

    def _drop(self, key: str, window: _Window) -> None:
        """Remove `window` from the table. Caller holds `_table_lock` and `window.lock`."""
        window.removed = True
        if self._windows.get(key) is window:
            del self._windows[key]

    def purge(self, window_seconds: Optional[float] = None) -> int:
        """
        Drop windows with no request inside the trailing window.

        Args:
            window_seconds: Age that counts as idle; defaults to the limiter's own.
                Pass the largest per-call window in use so no live entry is lost.

        Returns:
            Number of windows removed
        """
        window_seconds = self.window_seconds if window_seconds is None else window_seconds
        cutoff = self._clock() - window_seconds
        removed = 0
        with self._table_lock:
            for key, window in list(self._windows.items()):
                with window.lock:
                    if window.timestamps and window.timestamps[-1] >= cutoff:
                        continue
                    self._drop(key, window)
                    removed += 1
        if removed:
            logger.debug(f"Purged {removed} idle rate limit windows")
        return removed

    def reset(self, key: Optional[str] = None) -> None:
        """Forget one key's window, or every window."""
        with self._table_lock:
            if key is None:
                keys = list(self._windows)
            else:
                keys = [key] if key in self._windows else []
            for name in keys:
                window = self._windows[name]
                with window.lock:
                    self._drop(name, window)

    def __len__(self) -> int:
        with self._table_lock:
            return len(self._windows)
