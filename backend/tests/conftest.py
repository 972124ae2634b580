"""
TagWeave Test Configuration.

Pytest fixtures and configuration.
Requires Python 3.11+.
"""

import threading
from pathlib import Path

import pytest

from core.events import EventSink
from core.models import LogMessage
from core.profiles import HtmlProfile
from utils.config import EngineSettings
from watcher.sources import ChangeCallback


class SyntheticChangeSource:
    """Change source driven by the test instead of the operating system."""

    def __init__(self) -> None:
        self.root_path: Path | None = None
        self.on_event: ChangeCallback | None = None
        self.start_count = 0
        self.stop_count = 0
        self._lock = threading.Lock()

    def start(self, root_path: Path, on_event: ChangeCallback, recursive: bool = True) -> None:
        with self._lock:
            self.root_path = root_path
            self.on_event = on_event
            self.start_count += 1

    def stop(self) -> None:
        with self._lock:
            self.on_event = None
            self.stop_count += 1

    @property
    def active(self) -> bool:
        return self.on_event is not None

    def emit(self, path: Path, change_type: str = "modified") -> None:
        """Deliver a native event as the OS would."""
        with self._lock:
            on_event = self.on_event
        if on_event is not None:
            on_event(path, change_type)


@pytest.fixture
def change_source() -> SyntheticChangeSource:
    """A change source the test drives directly."""
    return SyntheticChangeSource()


@pytest.fixture
def profile() -> HtmlProfile:
    """The default HTML profile."""
    return HtmlProfile()


@pytest.fixture
def site_dir(tmp_path: Path) -> Path:
    """
    A small site: two pages sharing a header partial.

    index.dnaweb and about.dnaweb both include _header.dnaweb.
    """
    site = (tmp_path / "site").resolve()
    site.mkdir()

    (site / "_header.dnaweb").write_text("<header>$$SiteName$$</header>\n")
    (site / "index.dnaweb").write_text(
        "<!--$\n"
        "<Data>\n"
        '    <Variable Name="SiteName">Acme</Variable>\n'
        "</Data>\n"
        "$-->\n"
        "<!--@ include header @-->"
        "<main>Home</main>\n"
    )
    (site / "about.dnaweb").write_text(
        "<!--$\n"
        "<Data>\n"
        '    <Variable Name="SiteName">Acme</Variable>\n'
        "</Data>\n"
        "$-->\n"
        "<!--@ include _header.dnaweb @-->"
        "<main>About</main>\n"
    )
    return site


@pytest.fixture
def engine_settings(site_dir: Path) -> EngineSettings:
    """Engine settings pointed at the sample site."""
    return EngineSettings(monitor_path=site_dir, profile="html", settle_delay_ms=50)


@pytest.fixture
def sink() -> EventSink:
    """An event sink."""
    return EventSink()


@pytest.fixture
def messages(sink: EventSink) -> list[LogMessage]:
    """Every message raised on the sink."""
    received: list[LogMessage] = []
    sink.subscribe(received.append)
    return received
