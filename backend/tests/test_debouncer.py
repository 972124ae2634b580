"""
Tests for Debouncer.

Requires Python 3.11+.
"""

import asyncio
import threading
import time
from pathlib import Path

import pytest

from watcher.debouncer import Debouncer


class Recorder:
    """Thread-safe collector of settled paths."""

    def __init__(self) -> None:
        self.paths: list[Path] = []
        self.event = threading.Event()
        self._lock = threading.Lock()

    def __call__(self, path: Path) -> None:
        with self._lock:
            self.paths.append(path)
        self.event.set()


class TestDebouncer:
    """Test cases for Debouncer."""

    @pytest.fixture
    def recorder(self) -> Recorder:
        return Recorder()

    @pytest.fixture
    def debouncer(self, recorder: Recorder) -> Debouncer:
        """Create a debouncer with a short delay."""
        debouncer = Debouncer(delay_ms=50, callback=recorder)
        yield debouncer
        debouncer.clear()

    def test_burst_settles_once(self, debouncer: Debouncer, recorder: Recorder):
        """Test that a burst of events on one path produces one callback."""
        path = Path("/site/index.dnaweb")
        for _ in range(5):
            debouncer.debounce(path)
            time.sleep(0.005)

        assert recorder.event.wait(timeout=2.0)
        time.sleep(0.15)

        assert recorder.paths == [path]
        assert debouncer.pending_count == 0

    def test_paths_settle_independently(self, debouncer: Debouncer, recorder: Recorder):
        """Test that different paths each get their own callback."""
        first = Path("/site/index.dnaweb")
        second = Path("/site/about.dnaweb")

        debouncer.debounce(first)
        debouncer.debounce(second)
        time.sleep(0.3)

        assert sorted(recorder.paths) == sorted([first, second])

    def test_newer_event_supersedes_token(self, debouncer: Debouncer):
        """Test that each event replaces the path's token."""
        path = Path("/site/index.dnaweb")

        token1 = debouncer.debounce(path)
        token2 = debouncer.debounce(path)

        assert token1 != token2
        assert debouncer.latest_token(path) == token2

    def test_stale_timer_does_not_dispatch(self, recorder: Recorder):
        """Test that a timer whose token was superseded is ignored."""
        debouncer = Debouncer(delay_ms=10_000, callback=recorder)
        path = Path("/site/index.dnaweb")

        stale = debouncer.debounce(path)
        debouncer.debounce(path)
        debouncer._settle(path, stale)

        assert recorder.paths == []
        assert debouncer.pending_count == 1
        debouncer.clear()

    def test_clear_drops_pending(self, debouncer: Debouncer, recorder: Recorder):
        """Test that cleared changes are never delivered."""
        debouncer.debounce(Path("/site/index.dnaweb"))
        debouncer.clear()
        time.sleep(0.15)

        assert recorder.paths == []
        assert debouncer.pending_count == 0

    def test_flush_dispatches_immediately(self, recorder: Recorder):
        """Test flushing pending changes."""
        debouncer = Debouncer(delay_ms=10_000, callback=recorder)
        path = Path("/site/index.dnaweb")
        debouncer.debounce(path)

        assert debouncer.pending_paths == [path]
        assert debouncer.flush() == [path]
        assert recorder.paths == [path]
        assert debouncer.pending_count == 0

    def test_callback_errors_are_contained(self):
        """Test that a failing callback does not break the debouncer."""

        def failing(path: Path) -> None:
            raise RuntimeError("boom")

        debouncer = Debouncer(delay_ms=10_000, callback=failing)
        debouncer.debounce(Path("/site/index.dnaweb"))

        assert debouncer.flush() == [Path("/site/index.dnaweb")]

    async def test_coroutine_callback_runs_on_loop(self):
        """Test that async callbacks are scheduled on the configured loop."""
        loop = asyncio.get_running_loop()
        settled = asyncio.Event()
        received: list[Path] = []

        async def on_settled(path: Path) -> None:
            received.append(path)
            settled.set()

        debouncer = Debouncer(delay_ms=20, callback=on_settled)
        debouncer.set_event_loop(loop)
        debouncer.debounce(Path("/site/index.dnaweb"))

        await asyncio.wait_for(settled.wait(), timeout=2.0)
        assert received == [Path("/site/index.dnaweb")]
