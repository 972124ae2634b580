"""
TagWeave Processing Orchestrator.

Drives one processing run per settled file change: read, expand, then
write outputs or propagate a partial edit to the files that include it.
Requires Python 3.11+.
"""

import asyncio
import fnmatch
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any

from core.events import EventSink
from core.models import (
    FileProcessingData,
    LogType,
    OutputTarget,
    ProcessingResult,
    ProcessingState,
    read_source,
)
from core.profiles import EngineProfile, get_profile
from output.writer import OutputWriter
from references.index import DependencyIndex
from tags.errors import TagError
from tags.processor import ScriptEvaluator, TagProcessor
from utils.config import EngineSettings
from utils.logger import LoggerMixin, session_context
from watcher.file_watcher import FolderWatcher
from watcher.sources import WatcherStartError


class ProcessingOrchestrator(LoggerMixin):
    """
    Owns a watch session and runs every file change through the pipeline.

    Each change runs as its own task on the event loop; reads, expansion and
    writes happen in worker threads. ``handle_file_changed`` never raises
    for a per-file problem: failures come back as a ProcessingResult and an
    ERROR message on the event sink.

    Usage:
        orchestrator = ProcessingOrchestrator(get_settings().engine)
        orchestrator.sink.subscribe(print)
        async with orchestrator:
            await asyncio.Event().wait()
    """

    def __init__(
        self,
        settings: EngineSettings,
        profile: EngineProfile | None = None,
        sink: EventSink | None = None,
        watcher: FolderWatcher | None = None,
        index: DependencyIndex | None = None,
        writer: OutputWriter | None = None,
        processor: TagProcessor | None = None,
        script_evaluator: ScriptEvaluator | None = None,
    ) -> None:
        self.settings = settings
        self.profile = profile or get_profile(settings.profile, settings.extensions)
        self.sink = sink or EventSink()
        self.processor = processor or TagProcessor(self.profile, settings, script_evaluator)
        self.index = index or DependencyIndex(self.profile.is_partial_path)
        self.writer = writer or OutputWriter(self.sink)
        self.watcher = watcher or FolderWatcher(
            root_path=self.root_path,
            patterns=self.profile.watch_patterns,
            settle_delay_ms=settings.settle_delay_ms,
            ignore_patterns=settings.ignore_patterns,
        )

        self._loop: asyncio.AbstractEventLoop | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._unsubscribers: list[Callable[[], None]] = []

    @property
    def root_path(self) -> Path:
        return Path(self.settings.monitor_path).resolve()

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Index the monitored folder and start watching it.

        Raises:
            WatcherStartError: If the folder is missing or cannot be watched
        """
        root = self.root_path
        if not root.is_dir():
            raise WatcherStartError(f"Folder to monitor does not exist {root}")

        self._loop = asyncio.get_running_loop()

        await self.build_index()

        if self.settings.generate_on_start:
            await self.generate_all()

        if not self._unsubscribers:
            self._unsubscribers = [
                self.watcher.subscribe(self._on_file_changed),
                self.watcher.subscribe_folder_renamed(self._on_folder_renamed),
            ]
        self.watcher.start(root, self.profile.watch_patterns, self.settings.settle_delay_ms)

        self.sink.emit(
            "Watching folder",
            f"{root} ({', '.join(self.profile.watch_patterns)})",
            LogType.INFORMATION,
        )

    async def stop(self) -> None:
        """Stop watching and wait for runs already in flight."""
        self.watcher.stop()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

        await self.wait_idle()
        self.sink.emit("Stopped watching folder", str(self.root_path), LogType.INFORMATION)

    async def wait_idle(self) -> None:
        """Wait until every scheduled run has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def __aenter__(self) -> "ProcessingOrchestrator":
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()

    def scan_files(self) -> list[Path]:
        """Every source file under the monitored folder."""
        files = []
        for path in sorted(self.root_path.rglob("*")):
            if path.is_file() and self._is_monitored(path):
                files.append(path.resolve())
        return files

    def _is_monitored(self, path: Path) -> bool:
        path_str = str(path)
        for pattern in self.settings.ignore_patterns:
            if pattern in path.parts or fnmatch.fnmatch(path_str, pattern):
                return False
        return self.profile.is_source(path)

    def _on_file_changed(self, path: Path) -> None:
        """Bridge a settled change from the watcher thread onto the loop."""
        self._call_on_loop(self.schedule, path)

    def _on_folder_renamed(self, path: Path) -> None:
        """Bridge a settled folder rename from the watcher thread onto the loop."""
        self._call_on_loop(self.schedule_folder_renamed, path)

    def _call_on_loop(self, callback: Callable[[Path], Any], path: Path) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            self.log.warning("file_change_dropped", path=str(path), reason="no event loop")
            return
        loop.call_soon_threadsafe(callback, path)

    def schedule(self, path: Path) -> asyncio.Task[ProcessingResult]:
        """Process a change as a background task on the running loop."""
        return self._track(self.handle_file_changed(path))

    def schedule_folder_renamed(self, path: Path) -> asyncio.Task[list[ProcessingResult]]:
        """Handle a folder rename as a background task on the running loop."""
        return self._track(self.handle_folder_renamed(path))

    def _track(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def build_index(self) -> int:
        """Rebuild the dependency index from a fresh scan of the monitored tree."""
        files = await asyncio.to_thread(self.scan_files)
        self.index.clear()
        return await asyncio.to_thread(
            self.index.build,
            files,
            self.processor.find_includes,
            self.processor.is_partial_source,
        )

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def handle_folder_renamed(self, path: Path) -> list[ProcessingResult]:
        """
        Re-index after a folder inside the monitored tree was renamed or moved.

        Includes that went through the old folder name are stale, so the
        index is rebuilt from disk. With ``regenerate_on_folder_rename`` set,
        every non-partial file is then regenerated.

        Returns:
            The regeneration results, empty when regeneration is disabled
        """
        self.sink.emit("Folder renamed", str(path), LogType.INFORMATION)
        try:
            with session_context(self.root_path, self.profile.name):
                indexed = await self.build_index()
        except OSError as e:
            self.sink.emit("Failed to rebuild file index", f"{path}. {e}", LogType.ERROR)
            return []

        self.log.info("index_rebuilt_after_folder_rename", path=str(path), files=indexed)
        if not self.settings.regenerate_on_folder_rename:
            return []
        return await self.generate_all()

    async def generate_all(self) -> list[ProcessingResult]:
        """Process every monitored file that is not a partial."""
        results = []
        for monitored in sorted(self.index.monitored_files(), key=lambda f: f.full_path):
            if self.index.is_partial(monitored.full_path):
                continue
            results.append(await self.handle_file_changed(monitored.full_path))

        failed = sum(1 for r in results if not r.success)
        self.log.info("generate_all_completed", files=len(results), failed=failed)
        return results

    async def handle_file_changed(
        self,
        path: Path,
        visited: set[Path] | None = None,
        depth: int = 0,
    ) -> ProcessingResult:
        """
        Run one file through the pipeline.

        Args:
            path: The changed file
            visited: Files already processed by the current propagation chain
            depth: Propagation depth, 0 for the original change

        Returns:
            The run's result, including propagated dependents
        """
        path = Path(path).resolve()
        if visited is None:
            visited = set()

        try:
            with session_context(self.root_path, self.profile.name):
                result = await self._process(path, visited, depth)
        except Exception as e:
            self.log.exception("processing_crashed", path=str(path))
            result = self._failed(path, None, f"Unexpected error processing {path}. {e}")

        self.sink.publish(result)
        return result

    async def _process(self, path: Path, visited: set[Path], depth: int) -> ProcessingResult:
        if path in visited:
            self.log.debug("already_processed", path=str(path), depth=depth)
            return ProcessingResult(path=path, success=True, skipped=True)
        visited.add(path)

        self.sink.emit("Processing file", str(path), LogType.DIAGNOSTIC)

        self._enter(path, ProcessingState.READING)
        if not path.is_file():
            return self._vanished(path)
        try:
            contents = await asyncio.to_thread(read_source, path)
        except FileNotFoundError:
            return self._vanished(path)
        except (OSError, UnicodeDecodeError) as e:
            return self._failed(path, ProcessingState.READING, f"Error reading file {path}. {e}")

        self.index.touch(path, contents)
        data = FileProcessingData(full_path=path, contents=contents)

        await self.profile.pre_process(data)
        if not data.successful:
            return self._failed(path, ProcessingState.READING, data.error)
        if data.skip:
            self.sink.emit("Skipped file", data.skip_message or str(path), LogType.INFORMATION)
            return ProcessingResult(path=path, success=True, skipped=True)

        self._enter(path, ProcessingState.EXPANDING)
        includes = await asyncio.to_thread(self.processor.find_includes, path, contents)
        self.index.update(path, includes)
        try:
            await asyncio.to_thread(self.processor.process, data)
        except TagError as e:
            return self._failed(path, ProcessingState.EXPANDING, str(e))

        await self.profile.post_expand(data)
        if not data.successful:
            return self._failed(path, ProcessingState.EXPANDING, data.error)

        self.index.mark_partial(path, data.is_partial)

        if data.is_partial:
            return await self._propagate(path, visited, depth)
        return await self._write_outputs(data)

    async def _write_outputs(self, data: FileProcessingData) -> ProcessingResult:
        path = data.full_path
        self._enter(path, ProcessingState.WRITING)
        targets = data.outputs or [
            OutputTarget(
                path=self.processor.default_output_path(path),
                contents=data.contents,
            )
        ]

        generated: list[Path] = []
        errors: list[str] = []
        for target in targets:
            write_result = await self.writer.write(target.contents or "", target)
            if write_result.success:
                generated.append(write_result.path)
            else:
                errors.append(write_result.error)
                self.sink.emit("Error saving generated file", write_result.error, LogType.ERROR)

        if errors:
            return ProcessingResult(
                path=path,
                success=False,
                error="\n".join(errors),
                generated_files=generated,
                state=ProcessingState.FAILED,
                failed_state=ProcessingState.WRITING,
            )

        self.sink.emit("Successfully processed file", str(path), LogType.SUCCESS)
        return ProcessingResult(path=path, success=True, generated_files=generated)

    async def _propagate(self, path: Path, visited: set[Path], depth: int) -> ProcessingResult:
        referencers = sorted(self.index.referencers(path))
        if not referencers:
            self.sink.emit("Partial file is not used by any file", str(path), LogType.INFORMATION)
            return ProcessingResult(path=path, success=True)

        self._enter(path, ProcessingState.PROPAGATING)
        self.log.info("propagating_partial", path=str(path), referencers=len(referencers), depth=depth)

        dependents = []
        for referencer in referencers:
            dependents.append(await self.handle_file_changed(referencer, visited, depth + 1))

        failed = [d for d in dependents if not d.all_succeeded]
        if failed:
            self.sink.emit(
                "Some files using this partial failed",
                f"{path}: " + ", ".join(str(d.path) for d in failed),
                LogType.WARNING,
            )

        return ProcessingResult(
            path=path,
            success=True,
            generated_files=[p for d in dependents for p in d.generated_files],
            dependents=dependents,
        )

    def _enter(self, path: Path, state: ProcessingState) -> None:
        self.log.debug("processing_state", path=str(path), state=state.value)

    def _vanished(self, path: Path) -> ProcessingResult:
        self.index.remove(path)
        self.sink.emit("File no longer exists", str(path), LogType.INFORMATION)
        return ProcessingResult(path=path, success=True, skipped=True)

    def _failed(self, path: Path, state: ProcessingState | None, error: str) -> ProcessingResult:
        self.sink.emit(f"Failed to process file {path}", error, LogType.ERROR)
        self.log.debug("processing_failed_in_state", path=str(path), state=state.value if state else None)
        return ProcessingResult(
            path=path,
            success=False,
            error=error,
            state=ProcessingState.FAILED,
            failed_state=state,
        )
