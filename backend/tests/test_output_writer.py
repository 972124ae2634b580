"""
Tests for OutputWriter.

Requires Python 3.11+.
"""

import asyncio
from pathlib import Path

import pytest

from core.events import EventSink
from core.models import LogMessage, LogType, OutputTarget
from output.writer import OutputWriter


class TestOutputWriter:
    """Test cases for OutputWriter."""

    @pytest.fixture
    def writer(self, sink: EventSink) -> OutputWriter:
        return OutputWriter(sink)

    async def test_write_creates_directories(self, writer: OutputWriter, tmp_path: Path):
        """Test writing into a folder that does not exist yet."""
        target = OutputTarget(path=tmp_path / "out" / "deep" / "page.html")

        result = await writer.write("<p>hi</p>", target)

        assert result.success
        assert result.path == target.path.resolve()
        assert target.path.read_text() == "<p>hi</p>"

    async def test_line_endings_preserved(self, writer: OutputWriter, tmp_path: Path):
        """Test that text is written byte for byte."""
        target = OutputTarget(path=tmp_path / "page.html")

        await writer.write("a\r\nb\n", target)

        assert target.path.read_bytes() == b"a\r\nb\n"

    async def test_success_is_reported(
        self, writer: OutputWriter, tmp_path: Path, messages: list[LogMessage]
    ):
        """Test the success message on the event sink."""
        await writer.write("x", OutputTarget(path=tmp_path / "page.html"))

        assert messages[-1].type == LogType.SUCCESS
        assert messages[-1].title == "Generated file"
        assert messages[-1].message == str((tmp_path / "page.html").resolve())

    async def test_failure_is_returned(self, writer: OutputWriter, tmp_path: Path):
        """Test that a write into a file-as-folder fails without raising."""
        blocker = tmp_path / "blocked"
        blocker.write_text("not a folder")
        target = OutputTarget(path=blocker / "page.html")

        result = await writer.write("x", target)

        assert not result.success
        assert result.error.startswith(f"Error saving generated file {target.path.resolve()}. ")
        assert result.error.endswith(".")
        assert result.as_dict["success"] is False

    async def test_same_path_writes_are_serialized(self, writer: OutputWriter, tmp_path: Path):
        """Test that concurrent writes to one file never interleave."""
        target = OutputTarget(path=tmp_path / "page.html")
        texts = [str(i) * 10_000 for i in range(10)]

        results = await asyncio.gather(*(writer.write(text, target) for text in texts))

        assert all(r.success for r in results)
        assert target.path.read_text() in texts
