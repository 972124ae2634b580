"""
TagWeave Engine Events.

The single log/result sink external collaborators subscribe to.
Requires Python 3.11+.
"""

import threading
from collections.abc import Callable

from core.models import LogMessage, LogType, ProcessingResult
from utils.logger import LoggerMixin

LogCallback = Callable[[LogMessage], None]
ResultCallback = Callable[[ProcessingResult], None]

# structlog method used to mirror each message type
_LOG_METHODS: dict[LogType, str] = {
    LogType.SUCCESS: "info",
    LogType.WARNING: "warning",
    LogType.ERROR: "error",
    LogType.INFORMATION: "info",
    LogType.DIAGNOSTIC: "debug",
}


class EventSink(LoggerMixin):
    """
    Fan-out point for engine messages and processing results.

    The engine never prints; hosts subscribe here. Every message is also
    mirrored to the structured logger, which only produces output once the
    host has configured logging.
    """

    def __init__(self) -> None:
        self._log_subscribers: list[LogCallback] = []
        self._result_subscribers: list[ResultCallback] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: LogCallback) -> Callable[[], None]:
        """Receive every LogMessage; returns an unsubscribe function."""
        with self._lock:
            self._log_subscribers.append(callback)
        return lambda: self._remove(self._log_subscribers, callback)

    def on_result(self, callback: ResultCallback) -> Callable[[], None]:
        """Receive every ProcessingResult; returns an unsubscribe function."""
        with self._lock:
            self._result_subscribers.append(callback)
        return lambda: self._remove(self._result_subscribers, callback)

    def _remove(self, subscribers: list, callback: Callable) -> None:
        with self._lock:
            if callback in subscribers:
                subscribers.remove(callback)

    def emit(self, title: str, message: str = "", log_type: LogType = LogType.DIAGNOSTIC) -> LogMessage:
        """Raise a log message to every subscriber."""
        log_message = LogMessage(type=log_type, title=title, message=message)

        log_method = getattr(self.log, _LOG_METHODS[log_type])
        if message:
            log_method(title, detail=message, log_type=log_type.value)
        else:
            log_method(title, log_type=log_type.value)

        with self._lock:
            subscribers = list(self._log_subscribers)
        for callback in subscribers:
            try:
                callback(log_message)
            except Exception as e:
                self.log.error("log_subscriber_failed", error=str(e))

        return log_message

    def publish(self, result: ProcessingResult) -> None:
        """Notify result subscribers of a finished run."""
        with self._lock:
            subscribers = list(self._result_subscribers)
        for callback in subscribers:
            try:
                callback(result)
            except Exception as e:
                self.log.error("result_subscriber_failed", path=str(result.path), error=str(e))
