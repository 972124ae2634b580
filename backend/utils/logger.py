"""
TagWeave Structured Logging Module.

Structured diagnostics for the engine. Every logger sits under the stdlib
``tagweave`` logger, which carries a NullHandler, so nothing is rendered
until the host calls ``configure_logging`` or installs its own handlers.
User-facing messages go through the engine's event sink instead.
Requires Python 3.11+.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import structlog
from structlog.types import Processor

from utils.config import LoggingSettings, get_settings

ROOT_LOGGER = "tagweave"

logging.getLogger(ROOT_LOGGER).addHandler(logging.NullHandler())


class _AppContext:
    """Processor stamping every entry with the application name and version."""

    def __init__(self, app_name: str, app_version: str) -> None:
        self.app_name = app_name
        self.app_version = app_version

    def __call__(
        self, logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        event_dict.setdefault("app", self.app_name)
        event_dict.setdefault("version", self.app_version)
        return event_dict


def configure_logging(logging_settings: LoggingSettings | None = None) -> None:
    """
    Configure structured logging for a host process.

    Call this once at startup. Log lines go to stderr so they never mix
    with output a host prints for the user.
    """
    settings = get_settings()
    log_settings = logging_settings or settings.logging
    level = getattr(logging, log_settings.level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        _AppContext(settings.app_name, settings.app_version),
    ]

    if log_settings.format == "json":
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
    )

    # watchdog logs every observer thread event at debug level
    logging.getLogger("watchdog").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


@contextmanager
def session_context(monitor_path: Path, profile: str) -> Iterator[None]:
    """
    Bind the watch session to every log entry emitted inside the block.

    Usage:
        with session_context(root, "html"):
            await orchestrator.handle_file_changed(path)
    """
    tokens = structlog.contextvars.bind_contextvars(
        monitor_path=str(monitor_path),
        profile=profile,
    )
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    The logger wraps a stdlib logger under ``tagweave`` rather than
    structlog's default stdout printer.

    Args:
        name: Logger name (typically the class or module name)

    Returns:
        Configured structlog logger
    """
    qualified = ROOT_LOGGER if not name or name == ROOT_LOGGER else f"{ROOT_LOGGER}.{name}"
    return structlog.wrap_logger(logging.getLogger(qualified))


logger = get_logger()


class LoggerMixin:
    """
    Mixin class to add logging capability to any class.

    Usage:
        class MyClass(LoggerMixin):
            def my_method(self):
                self.log.info("doing_something", key="value")
    """

    @property
    def log(self) -> structlog.stdlib.BoundLogger:
        """Get logger bound to this class name."""
        if not hasattr(self, "_logger"):
            self._logger = get_logger(self.__class__.__name__)
        return self._logger
