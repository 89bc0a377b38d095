"""
Scan Observers

Receivers for the events a sweep produces:

  - progress  (integer percent)
  - status    (short human-readable line)
  - trace     (raw ``[SENT]`` / ``[RECEIVED]`` session lines)
  - result    (each emitted ScanResult)

Usage:
    scanner = FrequencyScanner(settings, session, observer=LoggingObserver())

    # Forward everything to one function:
    observer = CallbackObserver(lambda event, payload: print(event, payload))
"""

import logging
from typing import Callable, Iterable, List

from .models import ScanResult

logger = logging.getLogger(__name__)

EVENT_PROGRESS = "progress"
EVENT_STATUS = "status"
EVENT_TRACE = "trace"
EVENT_RESULT = "result"


# ─── Observer Interface ──────────────────────────────────────────────────────


class ScanObserver:
    """Base observer. Every hook is a no-op; override what you need."""

    def on_progress(self, percent: int) -> None:
        pass

    def on_status(self, message: str) -> None:
        pass

    def on_trace(self, line: str) -> None:
        pass

    def on_result(self, result: ScanResult) -> None:
        pass


# ─── Logging Observer ────────────────────────────────────────────────────────


class LoggingObserver(ScanObserver):
    """Writes sweep events to the application log."""

    def __init__(self, log: logging.Logger = logger):
        self.log = log

    def on_progress(self, percent: int) -> None:
        self.log.info(f"Progress: {percent}%")

    def on_status(self, message: str) -> None:
        self.log.info(message)

    def on_trace(self, line: str) -> None:
        self.log.debug(line)

    def on_result(self, result: ScanResult) -> None:
        self.log.info(f"Result: {result!r}")


# ─── Callback Observer ───────────────────────────────────────────────────────


class CallbackObserver(ScanObserver):
    """Forwards every event as ``callback(event_type, payload)``."""

    def __init__(self, callback: Callable[[str, object], None]):
        self.callback = callback

    def _emit(self, event_type: str, payload) -> None:
        try:
            self.callback(event_type, payload)
        except Exception as e:
            logger.error(f"Observer callback failed for {event_type}: {e}")

    def on_progress(self, percent: int) -> None:
        self._emit(EVENT_PROGRESS, percent)

    def on_status(self, message: str) -> None:
        self._emit(EVENT_STATUS, message)

    def on_trace(self, line: str) -> None:
        self._emit(EVENT_TRACE, line)

    def on_result(self, result: ScanResult) -> None:
        self._emit(EVENT_RESULT, result)


# ─── Fan-out ─────────────────────────────────────────────────────────────────


class MultiObserver(ScanObserver):
    """Dispatches each event to several observers in order."""

    def __init__(self, observers: Iterable[ScanObserver] = ()):
        self.observers: List[ScanObserver] = list(observers)

    def add(self, observer: ScanObserver) -> None:
        self.observers.append(observer)

    def _dispatch(self, method: str, payload) -> None:
        for observer in self.observers:
            try:
                getattr(observer, method)(payload)
            except Exception as e:
                logger.error(f"Observer {observer.__class__.__name__}.{method} failed: {e}")

    def on_progress(self, percent: int) -> None:
        self._dispatch("on_progress", percent)

    def on_status(self, message: str) -> None:
        self._dispatch("on_status", message)

    def on_trace(self, line: str) -> None:
        self._dispatch("on_trace", line)

    def on_result(self, result: ScanResult) -> None:
        self._dispatch("on_result", result)
