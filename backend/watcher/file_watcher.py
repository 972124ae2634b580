"""
TagWeave Folder Watcher.

Watches a folder for matching files and reports settled file changes.
Requires Python 3.11+.
"""

import fnmatch
import threading
from collections.abc import Callable, Iterable
from functools import partial
from pathlib import Path
from typing import Any

from watcher.debouncer import Debouncer
from watcher.sources import FOLDER_MOVED, ChangeSource, WatchdogChangeSource
from utils.logger import LoggerMixin

FileChangedCallback = Callable[[Path], Any]


class FolderWatcher(LoggerMixin):
    """
    Watches a directory tree and emits one ``file_changed`` per settled edit.

    Raw events come from a ChangeSource (watchdog by default), are filtered
    by file-name pattern and ignore list, then debounced per path. Folder
    renames settle separately and go to ``folder_renamed`` subscribers.
    Starting again disposes the previous session first; after ``stop``
    returns no further notifications are delivered.
    """

    def __init__(
        self,
        root_path: Path | None = None,
        patterns: Iterable[str] = ("*",),
        settle_delay_ms: int = 100,
        source: ChangeSource | None = None,
        ignore_patterns: list[str] | None = None,
        recursive: bool = True,
    ) -> None:
        """
        Initialize the folder watcher.

        Args:
            root_path: Root directory to watch
            patterns: File name glob patterns to report (e.g. ``*.dnaweb``)
            settle_delay_ms: Quiet period before a change is reported
            source: Native change source; a watchdog source when omitted
            ignore_patterns: Path fragments or glob patterns to ignore
            recursive: Whether to watch subdirectories
        """
        self._root_path = root_path
        self._patterns = list(patterns)
        self._settle_delay_ms = settle_delay_ms
        self._source: ChangeSource = source or WatchdogChangeSource()
        self._ignore_patterns = ignore_patterns or []
        self._recursive = recursive

        self._subscribers: list[FileChangedCallback] = []
        self._folder_subscribers: list[FileChangedCallback] = []
        self._debouncer: Debouncer | None = None
        self._folder_debouncer: Debouncer | None = None
        self._lock = threading.RLock()
        self._running = False
        # bumped by every start; settled paths from older sessions are dropped
        self._session = 0

    def subscribe(self, callback: FileChangedCallback) -> Callable[[], None]:
        """
        Register a callback for settled file changes.

        Returns:
            A function that removes the subscription
        """
        return self._add_subscriber(self._subscribers, callback)

    def subscribe_folder_renamed(self, callback: FileChangedCallback) -> Callable[[], None]:
        """Register a callback receiving the new path of a renamed or moved folder."""
        return self._add_subscriber(self._folder_subscribers, callback)

    def _add_subscriber(
        self, subscribers: list[FileChangedCallback], callback: FileChangedCallback
    ) -> Callable[[], None]:
        with self._lock:
            subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in subscribers:
                    subscribers.remove(callback)

        return unsubscribe

    def start(
        self,
        root_path: Path | None = None,
        patterns: Iterable[str] | None = None,
        settle_delay_ms: int | None = None,
    ) -> None:
        """
        Start watching, replacing any session already running.

        Raises:
            WatcherStartError: If the folder cannot be watched
            ValueError: If no root path was ever given
        """
        with self._lock:
            self.stop()

            if root_path is not None:
                self._root_path = root_path
            if patterns is not None:
                self._patterns = list(patterns)
            if settle_delay_ms is not None:
                self._settle_delay_ms = settle_delay_ms

            if self._root_path is None:
                raise ValueError("No folder to watch")

            self._session += 1
            self._debouncer = Debouncer(
                delay_ms=self._settle_delay_ms,
                callback=partial(self._notify, self._session, self._subscribers),
            )
            self._folder_debouncer = Debouncer(
                delay_ms=self._settle_delay_ms,
                callback=partial(self._notify, self._session, self._folder_subscribers),
            )
            self._source.start(self._root_path, self._on_native_event, self._recursive)
            self._running = True

        self.log.info(
            "folder_watcher_started",
            path=str(self._root_path),
            patterns=self._patterns,
            settle_delay_ms=self._settle_delay_ms,
        )

    def stop(self) -> None:
        """Stop watching and drop any changes still settling."""
        with self._lock:
            if not self._running:
                return

            self._running = False
            for debouncer in (self._debouncer, self._folder_debouncer):
                if debouncer is not None:
                    debouncer.clear()
            self._debouncer = None
            self._folder_debouncer = None
            self._source.stop()

        self.log.info("folder_watcher_stopped", path=str(self._root_path))

    def is_ignored(self, path: Path) -> bool:
        """Check if a path hits the ignore list."""
        path_str = str(path)
        return any(
            pattern in path.parts or fnmatch.fnmatch(path_str, pattern)
            for pattern in self._ignore_patterns
        )

    def matches(self, path: Path) -> bool:
        """Check if a path passes the pattern filter and ignore list."""
        if self.is_ignored(path):
            return False
        return any(fnmatch.fnmatch(path.name, pattern) for pattern in self._patterns)

    def _on_native_event(self, path: Path, change_type: str) -> None:
        """Receive a raw event from the change source."""
        if change_type == FOLDER_MOVED:
            if self.is_ignored(path):
                return
            debouncer = self._folder_debouncer if self._running else None
        elif self.matches(path):
            debouncer = self._debouncer if self._running else None
        else:
            return

        # No lock here: stop() joins the observer thread while holding it.
        # _notify drops paths settled by an older session.
        if debouncer is None:
            return

        self.log.debug("file_event", path=str(path), change_type=change_type)
        debouncer.debounce(path)

    def _notify(self, session: int, subscribers: list[FileChangedCallback], path: Path) -> None:
        """Fan a settled change out to subscribers of the session that saw it."""
        with self._lock:
            if not self._running or session != self._session:
                self.log.debug("stale_change_dropped", path=str(path), session=session)
                return

            for callback in list(subscribers):
                try:
                    callback(path)
                except Exception as e:
                    self.log.error("file_changed_subscriber_failed", path=str(path), error=str(e))

    def flush(self) -> list[Path]:
        """Immediately report every change still settling."""
        with self._lock:
            debouncers = [d for d in (self._debouncer, self._folder_debouncer) if d is not None]
        return [path for debouncer in debouncers for path in debouncer.flush()]

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._running

    @property
    def pending_count(self) -> int:
        """Get number of changes still settling."""
        return sum(
            d.pending_count for d in (self._debouncer, self._folder_debouncer) if d is not None
        )

    @property
    def root_path(self) -> Path | None:
        """The folder being watched."""
        return self._root_path

    def __enter__(self) -> "FolderWatcher":
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.stop()
