"""
Event log - the operator-facing narration of what the uploader is doing.

Entries are bounded: past MAX_ENTRIES the oldest are dropped so only the
most recent KEEP_ENTRIES remain.
"""
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Tuple

logger = logging.getLogger(__name__)

LEVELS = ("info", "warn", "error", "success")
MAX_ENTRIES = 1000
KEEP_ENTRIES = 800

_PY_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(frozen=True)
class LogEntry:
    id: str
    timestamp: float
    level: str
    message: str

    def format(self) -> str:
        stamp = time.strftime("%H:%M:%S", time.localtime(self.timestamp))
        return f"[{stamp}] [{self.level.upper()}] {self.message}"


class EventLog:
    """Append-only operational log with level filter and keyword search."""

    def __init__(self):
        self._entries: List[LogEntry] = []
        self._listeners: List[Callable[[LogEntry], None]] = []

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, level: str, message: str) -> LogEntry:
        if level not in LEVELS:
            raise ValueError(f"Unknown log level: {level}")
        entry = LogEntry(id=uuid.uuid4().hex, timestamp=time.time(), level=level, message=message)
        self._entries.append(entry)
        if len(self._entries) > MAX_ENTRIES:
            self._entries = self._entries[-KEEP_ENTRIES:]

        logger.log(_PY_LEVELS[level], message)
        for listener in self._listeners[:]:
            try:
                listener(entry)
            except Exception as e:
                logger.error(f"Error in event log listener: {e}")
        return entry

    def info(self, message: str) -> LogEntry:
        return self.add("info", message)

    def warn(self, message: str) -> LogEntry:
        return self.add("warn", message)

    def error(self, message: str) -> LogEntry:
        return self.add("error", message)

    def success(self, message: str) -> LogEntry:
        return self.add("success", message)

    def subscribe(self, callback: Callable[[LogEntry], None]) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def unsubscribe(self, callback: Callable[[LogEntry], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def entries(self) -> Tuple[LogEntry, ...]:
        return tuple(self._entries)

    def filtered(self, level: str = "all", keyword: str = "") -> List[LogEntry]:
        """Entries matching level (or "all") whose message contains keyword, case-insensitively."""
        result = self._entries
        if level != "all":
            result = [e for e in result if e.level == level]
        if keyword:
            needle = keyword.lower()
            result = [e for e in result if needle in e.message.lower()]
        return list(result)

    def clear(self) -> None:
        self._entries = []

    def export(self, path: Path) -> Path:
        path = Path(path)
        path.write_text("\n".join(e.format() for e in self._entries), encoding="utf-8")
        self.success(f"Log exported to: {path}")
        return path


class EventLogHandler(logging.Handler):
    """Mirror stdlib log records from the application's loggers into an EventLog."""

    def __init__(self, event_log: EventLog, prefix: str = "sheet_uploader", level=logging.INFO):
        super().__init__(level)
        self._event_log = event_log
        self._prefix = prefix

    def emit(self, record: logging.LogRecord) -> None:
        if record.name == logger.name or not record.name.startswith(self._prefix):
            return
        if record.levelno >= logging.ERROR:
            level = "error"
        elif record.levelno >= logging.WARNING:
            level = "warn"
        else:
            level = "info"
        try:
            self._event_log.add(level, record.getMessage())
        except Exception:
            self.handleError(record)
