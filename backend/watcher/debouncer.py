"""
TagWeave Debouncer.

Coalesces bursts of file system events per path into one settled signal.
Requires Python 3.11+.
"""

import asyncio
import inspect
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4

from utils.logger import LoggerMixin


@dataclass
class PendingChange:
    """A pending file change waiting for its settle delay."""

    path: Path
    token: UUID
    timestamp: float


class Debouncer(LoggerMixin):
    """
    Debounces rapid changes to the same path.

    Every event stamps a fresh token for its path and arms a timer. When the
    timer fires it only dispatches if its token is still the newest one
    recorded for that path, so an editor writing a file several times in a
    few milliseconds produces exactly one callback. Paths settle
    independently of each other.
    """

    def __init__(
        self,
        delay_ms: int = 100,
        callback: Callable[[Path], Any] | None = None,
    ) -> None:
        """
        Initialize the debouncer.

        Args:
            delay_ms: Quiet period in milliseconds before a path settles
            callback: Function to call with each settled path
        """
        self._delay = max(1, delay_ms) / 1000.0
        self._callback = callback
        self._pending: dict[Path, PendingChange] = {}
        self._timers: dict[Path, threading.Timer] = {}
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def delay_ms(self) -> int:
        """The settle delay in milliseconds."""
        return int(self._delay * 1000)

    def set_callback(self, callback: Callable[[Path], Any]) -> None:
        """Set or update the callback function."""
        self._callback = callback

    def set_event_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Set the event loop for async callbacks."""
        self._loop = loop

    def debounce(self, path: Path) -> UUID:
        """
        Record a change for a path and restart its settle timer.

        Args:
            path: Path to the changed file

        Returns:
            The token now considered the newest for this path
        """
        token = uuid4()

        with self._lock:
            self._pending[path] = PendingChange(
                path=path,
                token=token,
                timestamp=time.monotonic(),
            )

            previous = self._timers.pop(path, None)
            if previous is not None:
                previous.cancel()

            timer = threading.Timer(self._delay, self._settle, args=(path, token))
            timer.daemon = True
            self._timers[path] = timer
            timer.start()

        return token

    def _settle(self, path: Path, token: UUID) -> None:
        """Timer entry point; dispatches only if no newer event arrived."""
        with self._lock:
            pending = self._pending.get(path)
            if pending is None or pending.token != token:
                return
            del self._pending[path]
            self._timers.pop(path, None)

        self.log.debug("file_settled", path=str(path))
        self._dispatch(path)

    def _dispatch(self, path: Path) -> None:
        """Invoke the callback for a settled path."""
        if self._callback is None:
            return

        try:
            if inspect.iscoroutinefunction(self._callback):
                if self._loop is not None:
                    asyncio.run_coroutine_threadsafe(self._callback(path), self._loop)
                else:
                    asyncio.run(self._callback(path))
            else:
                self._callback(path)
        except Exception as e:
            self.log.error("debounce_callback_failed", path=str(path), error=str(e))

    def flush(self) -> list[Path]:
        """
        Settle every pending path immediately.

        Returns:
            List of paths that were pending
        """
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()

            paths = list(self._pending.keys())
            self._pending.clear()

        for path in paths:
            self._dispatch(path)

        return paths

    def clear(self) -> None:
        """Drop all pending changes without dispatching them."""
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
            self._pending.clear()

    def latest_token(self, path: Path) -> UUID | None:
        """Get the newest token recorded for a pending path."""
        with self._lock:
            pending = self._pending.get(path)
            return pending.token if pending else None

    @property
    def pending_count(self) -> int:
        """Get number of paths waiting to settle."""
        return len(self._pending)

    @property
    def pending_paths(self) -> list[Path]:
        """Get list of paths waiting to settle."""
        return list(self._pending.keys())
