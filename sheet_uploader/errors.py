"""
Error taxonomy for sheet_uploader.

Setup errors (configuration, authentication) abort a run. Transfer errors
are recorded on the item that produced them and never abort a run.
"""
from typing import Optional


class UploaderError(Exception):
    """Base class for all sheet_uploader errors."""


class ConfigurationError(UploaderError, ValueError):
    """Raised when endpoint or credentials are missing."""


class AuthenticationError(UploaderError):
    """Raised when the login exchange fails or returns a malformed payload."""


class TransferError(UploaderError):
    """Raised when a single file transfer fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"[{self.status_code}] {self.message}"
        return self.message


class InvalidStateError(UploaderError, RuntimeError):
    """Raised on re-entrant run/initialize/clear/retry while busy."""


class IndexOutOfRange(UploaderError, IndexError):
    """Raised when a ledger index is outside the queue."""


class ConversionError(UploaderError):
    """Raised when scanning or converting spreadsheets fails."""
