#!/usr/bin/env python3
"""
TagWeave Folder Watch Script.

Watches a folder of tagged sources and regenerates outputs on every change.
Requires Python 3.11+.

Usage:
    python scripts/watch_folder.py /path/to/site --profile html
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from core.models import LogMessage, LogType
from engine.orchestrator import ProcessingOrchestrator
from utils.config import get_settings
from utils.logger import configure_logging, get_logger
from watcher.file_watcher import FolderWatcher
from watcher.sources import WatchdogChangeSource, WatcherStartError


configure_logging()
logger = get_logger("watch_folder")


def print_message(message: LogMessage) -> None:
    """Print engine messages for the user; diagnostics stay in the log."""
    if message.type == LogType.DIAGNOSTIC:
        return
    detail = f" {message.message}" if message.message else ""
    print(f"[{message.type.value}] {message.title}{detail}")


async def watch_folder(
    root_path: Path,
    profile: str | None = None,
    settle_delay_ms: int | None = None,
    output_dir: Path | None = None,
    generate: bool = False,
    once: bool = False,
) -> int:
    """
    Run a watch session until cancelled.

    Returns:
        Number of failed files when run with ``once``, otherwise 0
    """
    settings = get_settings()
    updates: dict = {"monitor_path": root_path}
    if profile:
        updates["profile"] = profile.lower()
    if settle_delay_ms is not None:
        updates["settle_delay_ms"] = settle_delay_ms
    if output_dir is not None:
        updates["output_dir"] = output_dir
    if generate:
        updates["generate_on_start"] = True
    engine_settings = settings.engine.model_copy(update=updates)

    watcher = FolderWatcher(
        root_path=root_path,
        settle_delay_ms=engine_settings.settle_delay_ms,
        source=WatchdogChangeSource(join_timeout=settings.watcher.join_timeout),
        ignore_patterns=engine_settings.ignore_patterns,
        recursive=settings.watcher.recursive,
    )
    orchestrator = ProcessingOrchestrator(engine_settings, watcher=watcher)
    orchestrator.sink.subscribe(print_message)

    logger.info("watch_session_starting", path=str(root_path), profile=orchestrator.profile.name)

    if once:
        await orchestrator.build_index()
        results = await orchestrator.generate_all()
        return sum(1 for r in results if not r.success)

    async with orchestrator:
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            logger.info("watch_session_cancelled")
    return 0


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Watch a folder of tagged files and regenerate their outputs"
    )
    parser.add_argument(
        "path",
        type=Path,
        help="Folder to watch",
    )
    parser.add_argument(
        "--profile",
        default=None,
        help="Engine profile: html, csharp or debug",
    )
    parser.add_argument(
        "--settle-delay",
        type=int,
        default=None,
        help="Milliseconds a file must be quiet before it is processed",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Write generated files here instead of next to their sources",
    )
    parser.add_argument(
        "--generate",
        action="store_true",
        help="Generate every file once before watching",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Generate every file once and exit without watching",
    )

    args = parser.parse_args()

    if not args.path.is_dir():
        print(f"Error: Path is not a directory: {args.path}")
        sys.exit(1)

    try:
        failed = asyncio.run(watch_folder(
            args.path.resolve(),
            profile=args.profile,
            settle_delay_ms=args.settle_delay,
            output_dir=args.output_dir,
            generate=args.generate,
            once=args.once,
        ))
        if failed:
            print(f"\n{failed} file(s) failed")
            sys.exit(1)

    except KeyboardInterrupt:
        print("\nStopped watching")
    except (WatcherStartError, ValueError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
