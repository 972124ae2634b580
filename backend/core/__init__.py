"""
TagWeave Core Package.

Data models, engine profiles and the event sink shared by every component.
Requires Python 3.11+.
"""

from core.models import (
    ProcessingState,
    LogType,
    LogMessage,
    MonitoredFile,
    EngineVariable,
    OutputTarget,
    FileProcessingData,
    ProcessingResult,
    read_source,
)
from core.events import EventSink
from core.profiles import (
    EngineProfile,
    HtmlProfile,
    CSharpProfile,
    DebugProfile,
    get_profile,
)

__all__ = [
    # Enums
    "ProcessingState",
    "LogType",
    # Data classes
    "LogMessage",
    "MonitoredFile",
    "EngineVariable",
    "OutputTarget",
    "FileProcessingData",
    "ProcessingResult",
    "read_source",
    # Events
    "EventSink",
    # Profiles
    "EngineProfile",
    "HtmlProfile",
    "CSharpProfile",
    "DebugProfile",
    "get_profile",
]
