"""
Tests for DependencyIndex.

Requires Python 3.11+.
"""

import threading
from pathlib import Path

import pytest

from core.profiles import HtmlProfile
from references.index import DependencyIndex
from tags.processor import TagProcessor
from utils.config import EngineSettings


class TestDependencyIndex:
    """Test cases for DependencyIndex."""

    @pytest.fixture
    def index(self) -> DependencyIndex:
        """Create an index using the HTML partial naming convention."""
        return DependencyIndex(HtmlProfile().is_partial_path)

    def test_referencers_of_partial(self, index: DependencyIndex):
        """Test reverse lookup of includes."""
        header = Path("/site/_header.dnaweb")
        index.update(Path("/site/index.dnaweb"), {header})
        index.update(Path("/site/about.dnaweb"), {header})

        assert index.referencers(header) == {
            Path("/site/index.dnaweb"),
            Path("/site/about.dnaweb"),
        }

    def test_update_replaces_edges(self, index: DependencyIndex):
        """Test that an update drops the source's previous includes."""
        header = Path("/site/_header.dnaweb")
        footer = Path("/site/_footer.dnaweb")
        page = Path("/site/index.dnaweb")

        index.update(page, {header})
        index.update(page, {footer})

        assert index.referencers(header) == set()
        assert index.referencers(footer) == {page}
        assert index.includes_of(page) == {footer}

    def test_only_partials_have_referencers(self, index: DependencyIndex):
        """Test that regular pages never propagate."""
        about = Path("/site/about.dnaweb")
        index.update(Path("/site/index.dnaweb"), {about})

        assert index.referencers(about) == set()

        index.mark_partial(about)
        assert index.referencers(about) == {Path("/site/index.dnaweb")}

    def test_mark_partial_cannot_override_name(self, index: DependencyIndex):
        """Test that a partial by name stays partial."""
        header = Path("/site/_header.dnaweb")
        index.mark_partial(header, False)

        assert index.is_partial(header)

    def test_remove(self, index: DependencyIndex):
        """Test forgetting a deleted source."""
        header = Path("/site/_header.dnaweb")
        page = Path("/site/index.dnaweb")
        index.touch(page, "text")
        index.update(page, {header})

        index.remove(page)

        assert index.referencers(header) == set()
        assert len(index) == 0

    def test_clear(self, index: DependencyIndex):
        """Test forgetting every file and edge before a rebuild."""
        header = Path("/site/_header.dnaweb")
        index.touch(Path("/site/index.dnaweb"), "text")
        index.update(Path("/site/index.dnaweb"), {header})

        index.clear()

        assert index.referencers(header) == set()
        assert index.includes_of(Path("/site/index.dnaweb")) == set()
        assert len(index) == 0

    def test_touch_records_contents(self, index: DependencyIndex):
        monitored = index.touch(Path("/site/_header.dnaweb"), "<header/>")

        assert monitored.is_partial
        assert monitored.last_known_contents == "<header/>"
        assert index.touch(Path("/site/_header.dnaweb")).last_known_contents == "<header/>"

    def test_snapshot_lists_partials_only(self, index: DependencyIndex):
        """Test the partial -> referencers copy."""
        header = Path("/site/_header.dnaweb")
        about = Path("/site/about.dnaweb")
        page = Path("/site/index.dnaweb")
        index.update(page, {header, about})

        snapshot = index.snapshot()
        assert snapshot == {header: {page}}

        snapshot[header].add(Path("/site/other.dnaweb"))
        assert index.referencers(header) == {page}

    def test_build_from_site(self, site_dir: Path):
        """Test scanning a folder at session start."""
        processor = TagProcessor(HtmlProfile(), EngineSettings(monitor_path=site_dir))
        index = DependencyIndex(HtmlProfile().is_partial_path)
        (site_dir / "nav.dnaweb").write_text("<!--@ partial @-->\n<nav/>")

        count = index.build(
            sorted(site_dir.glob("*.dnaweb")),
            processor.find_includes,
            processor.is_partial_source,
        )

        assert count == 4
        assert index.referencers(site_dir / "_header.dnaweb") == {
            site_dir / "index.dnaweb",
            site_dir / "about.dnaweb",
        }
        assert index.is_partial(site_dir / "nav.dnaweb")
        assert {f.full_path for f in index.monitored_files()} == set(site_dir.glob("*.dnaweb"))

    def test_monitored_files_skips_deleted(self, index: DependencyIndex, tmp_path: Path):
        """Test that vanished files are not reported."""
        kept = tmp_path / "kept.dnaweb"
        kept.write_text("x")
        index.touch(kept)
        index.touch(tmp_path / "gone.dnaweb")

        assert [f.full_path for f in index.monitored_files()] == [kept]

    def test_concurrent_updates(self, index: DependencyIndex):
        """Test that parallel updates leave a consistent graph."""
        header = Path("/site/_header.dnaweb")
        pages = [Path(f"/site/page{i}.dnaweb") for i in range(50)]

        def update(page: Path) -> None:
            for _ in range(20):
                index.update(page, {header})
                index.update(page, set())
            index.update(page, {header})

        threads = [threading.Thread(target=update, args=(p,)) for p in pages]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert index.referencers(header) == set(pages)
