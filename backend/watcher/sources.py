"""
TagWeave Change Sources.

Native change notification behind a small subscription contract.
Requires Python 3.11+.
"""

import os
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from utils.logger import LoggerMixin

ChangeCallback = Callable[[Path, str], None]

# change type for a renamed or moved directory; the path is the destination
FOLDER_MOVED = "folder_moved"


class WatcherStartError(RuntimeError):
    """The native watch subsystem could not attach to the monitored folder."""


class ChangeSource(Protocol):
    """Anything that reports raw (path, change_type) events for a folder."""

    def start(self, root_path: Path, on_event: ChangeCallback, recursive: bool = True) -> None:
        ...

    def stop(self) -> None:
        ...


class ChangeEventHandler(FileSystemEventHandler, LoggerMixin):
    """
    Forwards watchdog file events to a change callback.

    Directory events are dropped except moves, which are reported as
    FOLDER_MOVED. File moves are reported as a change to the destination
    so editors that save via rename still trigger a rebuild.
    """

    def __init__(self, on_event: ChangeCallback) -> None:
        super().__init__()
        self._on_event = on_event

    def _forward(self, path: str | bytes, change_type: str) -> None:
        self._on_event(Path(os.fsdecode(path)), change_type)

    def on_created(self, event: FileCreatedEvent | DirCreatedEvent) -> None:
        """Handle file creation."""
        if isinstance(event, DirCreatedEvent):
            return
        self._forward(event.src_path, "created")

    def on_modified(self, event: FileModifiedEvent | DirModifiedEvent) -> None:
        """Handle file modification."""
        if isinstance(event, DirModifiedEvent):
            return
        self._forward(event.src_path, "modified")

    def on_deleted(self, event: FileDeletedEvent | DirDeletedEvent) -> None:
        """Handle file deletion."""
        if isinstance(event, DirDeletedEvent):
            return
        self._forward(event.src_path, "deleted")

    def on_moved(self, event: FileMovedEvent | DirMovedEvent) -> None:
        """Handle file or folder move/rename."""
        if isinstance(event, DirMovedEvent):
            self._forward(event.dest_path, FOLDER_MOVED)
            return
        self._forward(event.dest_path, "moved")


class WatchdogChangeSource(LoggerMixin):
    """Cross-platform native change source built on a watchdog Observer."""

    def __init__(self, join_timeout: float = 5.0) -> None:
        self._join_timeout = join_timeout
        self._observer: BaseObserver | None = None

    def start(self, root_path: Path, on_event: ChangeCallback, recursive: bool = True) -> None:
        """Attach an observer to the folder."""
        if not root_path.is_dir():
            raise WatcherStartError(f"Monitor path does not exist: {root_path}")

        observer = Observer()
        try:
            observer.schedule(ChangeEventHandler(on_event), str(root_path), recursive=recursive)
            observer.start()
        except OSError as e:
            raise WatcherStartError(f"Unable to watch {root_path}. {e}") from e

        self._observer = observer
        self.log.debug("observer_started", path=str(root_path), recursive=recursive)

    def stop(self) -> None:
        """Release the native watch resources."""
        if self._observer is None:
            return

        self._observer.stop()
        self._observer.join(timeout=self._join_timeout)
        self._observer = None
        self.log.debug("observer_stopped")
