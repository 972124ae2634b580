"""
TagWeave Engine Data Models.

Defines the values that flow through a processing run.
Requires Python 3.11+.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any


class ProcessingState(str, Enum):
    """States a file-changed event moves through."""

    READING = "reading"
    EXPANDING = "expanding"
    WRITING = "writing"
    PROPAGATING = "propagating"
    DONE = "done"
    FAILED = "failed"


class LogType(str, Enum):
    """Severity of a message raised on the engine's event sink."""

    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    INFORMATION = "information"
    DIAGNOSTIC = "diagnostic"


@dataclass(slots=True)
class LogMessage:
    """A message raised by the engine for external observers."""

    type: LogType
    title: str
    message: str = ""
    time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(slots=True)
class MonitoredFile:
    """A file known to the current watch session."""

    full_path: Path
    is_partial: bool = False
    last_known_contents: str | None = None

    @property
    def exists(self) -> bool:
        """Re-validate the entry against the disk."""
        return self.full_path.is_file()


def read_source(path: Path, encoding: str = "utf-8") -> str:
    """Read a source file keeping its line endings as written."""
    with open(path, encoding=encoding, newline="") as f:
        return f.read()


@dataclass(slots=True)
class EngineVariable:
    """A named value substituted into output, optionally profile-specific."""

    name: str
    value: str
    profile: str | None = None
    group: str | None = None
    comment: str | None = None

    def __str__(self) -> str:
        suffix = f" [{self.profile}]" if self.profile else ""
        return f"{self.name}: {self.value}{suffix}"


@dataclass(slots=True)
class OutputTarget:
    """One output file requested for a source, with its profile."""

    path: Path
    profile: str | None = None
    contents: str | None = None

    @property
    def as_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"path": str(self.path), "profile": self.profile}


@dataclass(slots=True)
class FileProcessingData:
    """State for a single processing run of one source file."""

    full_path: Path
    is_partial: bool = False
    outputs: list[OutputTarget] = field(default_factory=list)
    contents: str = ""
    error: str = ""
    skip: bool = False
    skip_message: str = ""

    @property
    def successful(self) -> bool:
        """True while no error has been recorded."""
        return not self.error

    def add_error(self, message: str) -> None:
        """Append an error, keeping earlier ones."""
        self.error = f"{self.error}\n{message}" if self.error else message


@dataclass(slots=True)
class ProcessingResult:
    """Outcome of one orchestration run."""

    path: Path
    success: bool
    error: str = ""
    generated_files: list[Path] = field(default_factory=list)
    skipped: bool = False
    state: ProcessingState = ProcessingState.DONE
    dependents: list["ProcessingResult"] = field(default_factory=list)
    # stage a failed run stopped in; None when it failed unexpectedly
    failed_state: ProcessingState | None = None

    @property
    def all_succeeded(self) -> bool:
        """True if this run and every propagated run succeeded."""
        return self.success and all(d.all_succeeded for d in self.dependents)

    @property
    def as_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "path": str(self.path),
            "success": self.success,
            "error": self.error,
            "generated_files": [str(p) for p in self.generated_files],
            "skipped": self.skipped,
            "state": self.state.value,
            "failed_state": self.failed_state.value if self.failed_state else None,
            "dependents": [d.as_dict for d in self.dependents],
        }
