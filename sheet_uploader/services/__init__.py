"""Services for sheet_uploader module."""
from .converter import ExcelConverter
from .event_log import EventLog, EventLogHandler, LogEntry
from .transfer_client import HTTPTransferClient

__all__ = [
    "ExcelConverter",
    "EventLog",
    "EventLogHandler",
    "LogEntry",
    "HTTPTransferClient",
]
