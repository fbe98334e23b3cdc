"""
Protocols (Interfaces) for Dependency Inversion.

The orchestrator only depends on these; concrete HTTP and spreadsheet
implementations live in ``services``.
"""
from pathlib import Path
from typing import Callable, List, Protocol, Sequence, runtime_checkable

from .models import ColumnMapping, Credential, ScanResult, Session, TransferItem, TransferResult


ProgressCallback = Callable[[int], None]


@runtime_checkable
class ITransferClient(Protocol):
    """Interface for authentication and single-file transfer."""

    async def authenticate(self, endpoint: str, username: str, password: str) -> Credential:
        """Exchange username/password for a credential."""
        ...

    async def transfer(
        self,
        item: TransferItem,
        session: Session,
        on_progress: ProgressCallback,
    ) -> TransferResult:
        """Send one file. Never retries."""
        ...


@runtime_checkable
class IConverter(Protocol):
    """Interface for the scan/convert step feeding the upload queue."""

    def scan_directory(self, source: Path) -> ScanResult:
        """Find spreadsheets under source."""
        ...

    async def convert_files(
        self,
        source: Path,
        target: Path,
        mappings: Sequence[ColumnMapping],
    ) -> List[Path]:
        """Convert every spreadsheet and return output paths."""
        ...
