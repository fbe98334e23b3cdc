"""
Progress ledger - ordered per-file status records plus derived metrics.

The orchestrator is the only writer. Readers get copies, so a snapshot
never changes under them while the current item is still uploading.
"""
from dataclasses import replace
from typing import Iterable, List, Tuple

from .errors import IndexOutOfRange, InvalidStateError
from .models import ProgressRecord, ProgressStatus, TransferItem, TransferResult


class ProgressLedger:
    """One ProgressRecord per queued TransferItem, dense indices from 0."""

    def __init__(self):
        self._records: List[ProgressRecord] = []
        self.running = False  # set by the orchestrator around a run

    def __len__(self) -> int:
        return len(self._records)

    def initialize(self, items: Iterable[TransferItem]) -> None:
        """Replace all records with fresh pending entries."""
        if self.running:
            raise InvalidStateError("Cannot initialize the ledger while a transfer is running")
        self._records = [
            ProgressRecord(file_index=index, file_name=item.display_name)
            for index, item in enumerate(items)
        ]

    def clear(self) -> None:
        if self.running:
            raise InvalidStateError("Cannot clear the ledger while a transfer is running")
        self._records = []

    # Read side

    def records(self) -> Tuple[ProgressRecord, ...]:
        return tuple(replace(record) for record in self._records)

    def get(self, index: int) -> ProgressRecord:
        return replace(self._at(index))

    def overall_progress(self) -> int:
        """Unweighted mean of per-item progress; completed items count as 100."""
        if not self._records:
            return 0
        total = sum(
            100 if record.status is ProgressStatus.COMPLETED else record.progress
            for record in self._records
        )
        # round half up, not banker's rounding
        return int(total / len(self._records) + 0.5)

    def completed_count(self) -> int:
        return sum(1 for r in self._records if r.status is ProgressStatus.COMPLETED)

    def failed_count(self) -> int:
        return sum(1 for r in self._records if r.status is ProgressStatus.FAILED)

    def failed_indices(self) -> List[int]:
        return [r.file_index for r in self._records if r.status is ProgressStatus.FAILED]

    # Write side

    def set_uploading(self, index: int) -> ProgressRecord:
        record = self._at(index)
        record.status = ProgressStatus.UPLOADING
        record.progress = 0
        record.error = None
        record.result = None
        return replace(record)

    def set_progress(self, index: int, pct: int) -> ProgressRecord:
        """Record transport progress; values never move backwards."""
        record = self._at(index)
        pct = max(0, min(100, int(pct)))
        if pct > record.progress:
            record.progress = pct
        return replace(record)

    def set_completed(self, index: int, result: TransferResult) -> ProgressRecord:
        record = self._at(index)
        record.status = ProgressStatus.COMPLETED
        record.progress = 100
        record.error = None
        record.result = result
        return replace(record)

    def set_failed(self, index: int, error: str) -> ProgressRecord:
        # progress keeps its last value
        record = self._at(index)
        record.status = ProgressStatus.FAILED
        record.error = error
        record.result = None
        return replace(record)

    def _at(self, index: int) -> ProgressRecord:
        if not isinstance(index, int) or not 0 <= index < len(self._records):
            raise IndexOutOfRange(
                f"Index {index} out of range for ledger of size {len(self._records)}"
            )
        return self._records[index]
