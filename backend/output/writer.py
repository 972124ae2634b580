"""
TagWeave Output Writer.

Persists compiled text to output targets.
Requires Python 3.11+.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from core.events import EventSink
from core.models import LogType, OutputTarget
from utils.logger import LoggerMixin


@dataclass(slots=True)
class WriteResult:
    """Outcome of writing one output target."""

    success: bool
    path: Path
    error: str = ""

    @property
    def as_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"success": self.success, "path": str(self.path), "error": self.error}


class OutputWriter(LoggerMixin):
    """
    Writes generated files, creating directories as needed.

    Failures are returned, never raised. Writes to the same path are
    serialized so two runs cannot interleave on one file.
    """

    def __init__(self, sink: EventSink | None = None, encoding: str = "utf-8") -> None:
        self.sink = sink or EventSink()
        self.encoding = encoding
        self._locks: dict[Path, asyncio.Lock] = {}

    def _lock_for(self, path: Path) -> asyncio.Lock:
        lock = self._locks.get(path)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[path] = lock
        return lock

    async def write(self, text: str, target: OutputTarget) -> WriteResult:
        """Write text to a target path."""
        path = target.path
        try:
            path = path.resolve()
        except (OSError, ValueError) as e:
            return self._failed(path, e)

        async with self._lock_for(path):
            try:
                await asyncio.to_thread(self._write_file, path, text)
            except (OSError, ValueError) as e:
                return self._failed(path, e)

        self.sink.emit("Generated file", str(path), LogType.SUCCESS)
        return WriteResult(success=True, path=path)

    def _write_file(self, path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        # newline="" keeps the line endings produced by expansion
        with open(path, "w", encoding=self.encoding, newline="") as f:
            f.write(text)

    def _failed(self, path: Path, error: Exception) -> WriteResult:
        reason = getattr(error, "strerror", None) or str(error)
        message = f"Error saving generated file {path}. {reason}."
        self.log.warning("output_write_failed", path=str(path), error=str(error))
        return WriteResult(success=False, path=path, error=message)
