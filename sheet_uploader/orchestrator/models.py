"""Orchestrator data models."""
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from ..models import ProgressRecord


class OrchestratorState(Enum):
    """State of the upload queue."""
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    RUNNING = "running"
    PAUSED = "paused"
    RETRYING = "retrying"


@dataclass(frozen=True)
class RunSummary:
    """Aggregate outcome of a run; per-item failures are counted, not raised."""
    total: int
    completed: int
    failed: int
    records: Tuple[ProgressRecord, ...] = ()

    @property
    def all_success(self) -> bool:
        return self.failed == 0 and self.completed == self.total

    @classmethod
    def empty(cls) -> "RunSummary":
        return cls(total=0, completed=0, failed=0)
