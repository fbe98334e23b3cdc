"""
Models for sheet_uploader.

Immutable dataclasses for everything except ProgressRecord, which the
orchestrator mutates in place through the ledger.
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import ConfigurationError


XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class ProgressStatus(Enum):
    """Per-file transfer status."""
    PENDING = "pending"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProgressStatus.COMPLETED, ProgressStatus.FAILED)


@dataclass(frozen=True)
class TransferItem:
    """One file queued for upload."""
    display_name: str
    source: Path

    @classmethod
    def from_path(cls, path) -> "TransferItem":
        path = Path(path)
        return cls(display_name=path.name, source=path)


@dataclass(frozen=True)
class ImportStats:
    """Counters returned by the import endpoint."""
    modified_count: int = 0
    upserted_count: int = 0
    excel_count: int = 0

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ImportStats":
        return cls(
            modified_count=int(payload.get("modifiedCount") or 0),
            upserted_count=int(payload.get("upsertedCount") or 0),
            excel_count=int(payload.get("excelCount") or 0),
        )


@dataclass(frozen=True)
class TransferResult:
    """Immutable result of a single file transfer."""
    success: bool
    data: Optional[ImportStats] = None
    message: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "TransferResult":
        data = payload.get("data")
        return cls(
            success=bool(payload.get("success")),
            data=ImportStats.from_payload(data) if isinstance(data, dict) else None,
            message=payload.get("message"),
        )


@dataclass
class ProgressRecord:
    """Mutable per-item status entry, one per TransferItem."""
    file_index: int
    file_name: str
    progress: int = 0
    status: ProgressStatus = ProgressStatus.PENDING
    error: Optional[str] = None
    result: Optional[TransferResult] = None


@dataclass(frozen=True)
class Credential:
    """Opaque token returned by the login exchange."""
    token: str = field(repr=False)
    user_id: Optional[int] = None
    username: Optional[str] = None


@dataclass(frozen=True)
class Session:
    """Authenticated context established once per run."""
    endpoint: str
    credential: Credential

    @property
    def auth_header(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.credential.token}"}


@dataclass(frozen=True)
class ServerConfig:
    """Connection settings passed explicitly to UploadOrchestrator.run()."""
    endpoint: str = ""
    username: str = ""
    password: str = field(default="", repr=False)

    @property
    def base_url(self) -> str:
        return self.endpoint.strip().rstrip("/")

    def validate(self) -> None:
        missing = [
            name for name, value in (
                ("endpoint", self.endpoint),
                ("username", self.username),
                ("password", self.password),
            )
            if not (value or "").strip()
        ]
        if missing:
            raise ConfigurationError(f"Missing server configuration: {', '.join(missing)}")


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for upload operations."""
    inter_item_delay: float = 0.5  # seconds between items
    timeout: float = 60.0
    chunk_size: int = 64 * 1024
    only_valid_invention: bool = False


@dataclass(frozen=True)
class ColumnMapping:
    """Header rename applied during conversion."""
    original: str
    mapped: str

    @classmethod
    def parse(cls, value: str) -> "ColumnMapping":
        """Parse ``"original:mapped"``."""
        if ":" not in value:
            raise ValueError(f"Invalid column mapping (expected 'original:mapped'): {value!r}")
        original, mapped = value.split(":", 1)
        original = original.strip()
        if not original:
            raise ValueError(f"Column mapping has an empty original name: {value!r}")
        return cls(original=original, mapped=mapped.strip() or original)


DEFAULT_COLUMNS = ("申请号", "申请日", "名称", "类型", "法律状态", "申请人")


def default_mappings() -> List[ColumnMapping]:
    return [ColumnMapping(name, name) for name in DEFAULT_COLUMNS]


@dataclass(frozen=True)
class ScanResult:
    """Spreadsheets found under a source folder."""
    file_count: int
    total_size: int
    files: Tuple[Path, ...] = ()

    def can_convert(self, target: Optional[str]) -> bool:
        return self.file_count > 0 and bool(target)
