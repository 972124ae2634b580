"""
TagWeave File Watcher Package.

File system monitoring with per-path settle delays.
Requires Python 3.11+.
"""

from watcher.file_watcher import FolderWatcher
from watcher.debouncer import Debouncer
from watcher.sources import ChangeSource, WatchdogChangeSource, WatcherStartError

__all__ = [
    "FolderWatcher",
    "Debouncer",
    "ChangeSource",
    "WatchdogChangeSource",
    "WatcherStartError",
]
