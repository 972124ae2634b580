"""
TagWeave Dependency Index.

Tracks which sources include which partials, so a partial edit can be
propagated to everything that uses it.
Requires Python 3.11+.
"""

import threading
from collections.abc import Callable, Iterable
from pathlib import Path

from core.models import MonitoredFile, read_source
from utils.logger import LoggerMixin

IncludeFinder = Callable[[Path, str], set[Path]]
PartialPredicate = Callable[[Path], bool]


class DependencyIndex(LoggerMixin):
    """
    Reverse include graph for one watch session.

    Every operation runs under a single lock, so a lookup never sees a
    half-replaced edge set. Only partial files report referencers; a regular
    page that happens to be included is regenerated on its own events.
    """

    def __init__(self, is_partial_path: PartialPredicate | None = None) -> None:
        self._lock = threading.Lock()
        self._is_partial_path = is_partial_path or (lambda path: False)
        self._files: dict[Path, MonitoredFile] = {}
        # source -> resolved includes
        self._includes: dict[Path, set[Path]] = {}
        # included -> sources including it
        self._referencers: dict[Path, set[Path]] = {}

    def build(
        self,
        paths: Iterable[Path],
        include_finder: IncludeFinder,
        partial_finder: Callable[[Path, str], bool] | None = None,
    ) -> int:
        """
        Scan every monitored file and record its includes.

        ``partial_finder`` flags files that are partial by their contents
        rather than their name.

        Unreadable files are logged and left without edges.

        Returns:
            Number of files indexed
        """
        count = 0
        for path in paths:
            path = path.resolve()
            try:
                contents = read_source(path)
            except (OSError, UnicodeDecodeError) as e:
                self.log.warning("index_read_failed", path=str(path), error=str(e))
                continue

            self.touch(path, contents)
            self.update(path, include_finder(path, contents))
            if partial_finder is not None and partial_finder(path, contents):
                self.mark_partial(path)
            count += 1

        self.log.info("dependency_index_built", files=count, partials=len(self.snapshot()))
        return count

    def clear(self) -> None:
        """Forget every file and edge, ready for a fresh build."""
        with self._lock:
            self._files.clear()
            self._includes.clear()
            self._referencers.clear()

    def update(self, source: Path, includes: Iterable[Path]) -> None:
        """Replace a source's include edges."""
        new_includes = set(includes)
        with self._lock:
            for old in self._includes.pop(source, set()):
                referencers = self._referencers.get(old)
                if referencers is not None:
                    referencers.discard(source)
                    if not referencers:
                        del self._referencers[old]

            if new_includes:
                self._includes[source] = new_includes
                for included in new_includes:
                    self._referencers.setdefault(included, set()).add(source)

    def remove(self, source: Path) -> None:
        """Forget a file that no longer exists."""
        self.update(source, ())
        with self._lock:
            self._files.pop(source, None)

    def touch(self, path: Path, contents: str | None = None) -> MonitoredFile:
        """Create or refresh the monitored entry for a file."""
        with self._lock:
            monitored = self._files.get(path)
            if monitored is None:
                monitored = MonitoredFile(full_path=path, is_partial=self._is_partial_path(path))
                self._files[path] = monitored
            if contents is not None:
                monitored.last_known_contents = contents
            return monitored

    def mark_partial(self, path: Path, is_partial: bool = True) -> None:
        """Record whether a file is partial by its contents."""
        with self._lock:
            monitored = self._files.setdefault(path, MonitoredFile(full_path=path))
            monitored.is_partial = is_partial or self._is_partial_path(path)

    def is_partial(self, path: Path) -> bool:
        with self._lock:
            return self._is_partial_locked(path)

    def _is_partial_locked(self, path: Path) -> bool:
        monitored = self._files.get(path)
        if monitored is not None and monitored.is_partial:
            return True
        return self._is_partial_path(path)

    def referencers(self, partial: Path) -> set[Path]:
        """Sources that directly include a partial."""
        with self._lock:
            if not self._is_partial_locked(partial):
                return set()
            return set(self._referencers.get(partial, set()))

    def includes_of(self, source: Path) -> set[Path]:
        with self._lock:
            return set(self._includes.get(source, set()))

    def monitored_files(self) -> list[MonitoredFile]:
        """Known files still present on disk."""
        with self._lock:
            files = list(self._files.values())
        return [f for f in files if f.exists]

    def snapshot(self) -> dict[Path, set[Path]]:
        """Copy of the partial -> referencers mapping."""
        with self._lock:
            return {
                path: set(sources)
                for path, sources in self._referencers.items()
                if self._is_partial_locked(path)
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._files)
