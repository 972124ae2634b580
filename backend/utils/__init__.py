"""
TagWeave Backend Utilities Package.

Common utilities shared across all backend modules.
Requires Python 3.11+.
"""

from utils.config import EngineSettings, Settings, get_settings
from utils.logger import configure_logging, get_logger, logger, LoggerMixin, session_context

__all__ = [
    "EngineSettings",
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    "logger",
    "LoggerMixin",
    "session_context",
]
