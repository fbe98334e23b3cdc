"""
sheet_uploader - batch-convert spreadsheets and upload them to the import service.

Usage:
    from sheet_uploader import (
        ExcelConverter, HTTPTransferClient, ServerConfig, UploadOrchestrator,
    )

    converter = ExcelConverter()
    converted = await converter.convert_files(source, target, mappings)

    async with HTTPTransferClient() as client:
        orchestrator = UploadOrchestrator(client)
        orchestrator.initialize(converted)
        summary = await orchestrator.run(
            ServerConfig("http://localhost:3000", "admin", "secret")
        )
        print(f"{summary.completed} ok, {summary.failed} failed")

        # Re-attempt only the failures, reusing the session
        await orchestrator.retry_failed()
"""
from .errors import (
    AuthenticationError,
    ConfigurationError,
    ConversionError,
    IndexOutOfRange,
    InvalidStateError,
    TransferError,
    UploaderError,
)
from .ledger import ProgressLedger
from .models import (
    ColumnMapping,
    Credential,
    ImportStats,
    ProgressRecord,
    ProgressStatus,
    ScanResult,
    ServerConfig,
    Session,
    TransferItem,
    TransferResult,
    UploadConfig,
)
from .orchestrator import OrchestratorState, RunSummary, UploadOrchestrator
from .services import EventLog, EventLogHandler, ExcelConverter, HTTPTransferClient

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "OrchestratorState",
    "RunSummary",
    "ProgressLedger",
    # Models
    "ColumnMapping",
    "Credential",
    "ImportStats",
    "ProgressRecord",
    "ProgressStatus",
    "ScanResult",
    "ServerConfig",
    "Session",
    "TransferItem",
    "TransferResult",
    "UploadConfig",
    # Services
    "EventLog",
    "EventLogHandler",
    "ExcelConverter",
    "HTTPTransferClient",
    # Errors
    "UploaderError",
    "AuthenticationError",
    "ConfigurationError",
    "ConversionError",
    "IndexOutOfRange",
    "InvalidStateError",
    "TransferError",
]
