"""Tests for ProgressLedger."""
import pytest
from pathlib import Path

from sheet_uploader.errors import IndexOutOfRange, InvalidStateError
from sheet_uploader.ledger import ProgressLedger
from sheet_uploader.models import ProgressStatus, TransferItem, TransferResult


def _items(n):
    return [TransferItem.from_path(Path(f"/tmp/out/file{i}.xlsx")) for i in range(n)]


class TestInitialize:
    @pytest.mark.parametrize("n", [0, 1, 5])
    def test_fresh_pending_records(self, n):
        ledger = ProgressLedger()
        ledger.initialize(_items(n))

        records = ledger.records()
        assert len(records) == n
        assert [r.file_index for r in records] == list(range(n))
        assert all(r.status is ProgressStatus.PENDING for r in records)
        assert all(r.progress == 0 for r in records)
        assert all(r.error is None and r.result is None for r in records)

    def test_reinitialize_discards_previous_state(self):
        ledger = ProgressLedger()
        ledger.initialize(_items(2))
        ledger.set_uploading(0)
        ledger.set_failed(0, "boom")

        ledger.initialize(_items(3))

        assert ledger.failed_count() == 0
        assert ledger.get(0).error is None
        assert len(ledger) == 3

    def test_rejected_while_running(self):
        ledger = ProgressLedger()
        ledger.running = True
        with pytest.raises(InvalidStateError):
            ledger.initialize(_items(1))

    def test_file_name_is_display_name(self):
        ledger = ProgressLedger()
        ledger.initialize(_items(1))
        assert ledger.get(0).file_name == "file0.xlsx"


class TestMetrics:
    def test_overall_progress_empty(self):
        assert ProgressLedger().overall_progress() == 0

    def test_completed_counts_as_100_regardless_of_stored_value(self):
        ledger = ProgressLedger()
        ledger.initialize(_items(2))
        for i in range(2):
            ledger.set_uploading(i)
            ledger.set_completed(i, TransferResult(success=True))
            ledger._records[i].progress = 10  # stored value is ignored

        assert ledger.overall_progress() == 100

    def test_failed_item_keeps_last_progress(self):
        ledger = ProgressLedger()
        ledger.initialize(_items(3))
        ledger.set_uploading(0)
        ledger.set_completed(0, TransferResult(success=True))
        ledger.set_uploading(1)
        ledger.set_progress(1, 40)
        ledger.set_failed(1, "server error")
        ledger.set_uploading(2)
        ledger.set_completed(2, TransferResult(success=True))

        assert ledger.get(1).progress == 40
        assert ledger.completed_count() == 2
        assert ledger.failed_count() == 1
        assert ledger.overall_progress() == 80

    def test_rounds_to_nearest(self):
        ledger = ProgressLedger()
        ledger.initialize(_items(3))
        ledger.set_uploading(0)
        ledger.set_completed(0, TransferResult(success=True))
        ledger.set_uploading(1)
        ledger.set_completed(1, TransferResult(success=True))
        ledger.set_uploading(2)
        ledger.set_failed(2, "x")

        assert ledger.overall_progress() == 67

    def test_failed_indices(self):
        ledger = ProgressLedger()
        ledger.initialize(_items(3))
        ledger.set_failed(0, "a")
        ledger.set_failed(2, "b")
        assert ledger.failed_indices() == [0, 2]


class TestTransitions:
    @pytest.fixture
    def ledger(self):
        ledger = ProgressLedger()
        ledger.initialize(_items(2))
        return ledger

    def test_progress_never_decreases(self, ledger):
        ledger.set_uploading(0)
        ledger.set_progress(0, 50)
        ledger.set_progress(0, 30)
        assert ledger.get(0).progress == 50

    def test_progress_is_clamped(self, ledger):
        ledger.set_uploading(0)
        ledger.set_progress(0, 150)
        assert ledger.get(0).progress == 100

    def test_set_uploading_resets_progress_and_error(self, ledger):
        ledger.set_uploading(0)
        ledger.set_progress(0, 70)
        ledger.set_failed(0, "timeout")

        record = ledger.set_uploading(0)

        assert record.status is ProgressStatus.UPLOADING
        assert record.progress == 0
        assert record.error is None

    def test_completed_forces_100(self, ledger):
        ledger.set_uploading(1)
        ledger.set_progress(1, 12)
        result = TransferResult(success=True)
        record = ledger.set_completed(1, result)

        assert record.progress == 100
        assert record.result == result
        assert record.error is None

    @pytest.mark.parametrize("index", [-1, 2, 100])
    def test_index_out_of_range(self, ledger, index):
        with pytest.raises(IndexOutOfRange):
            ledger.set_uploading(index)
        with pytest.raises(IndexOutOfRange):
            ledger.set_progress(index, 10)
        with pytest.raises(IndexOutOfRange):
            ledger.set_completed(index, TransferResult(success=True))
        with pytest.raises(IndexOutOfRange):
            ledger.set_failed(index, "x")

    def test_index_out_of_range_is_an_index_error(self, ledger):
        with pytest.raises(IndexError):
            ledger.get(5)

    def test_records_are_snapshots(self, ledger):
        ledger.set_uploading(0)
        snapshot = ledger.get(0)
        ledger.set_progress(0, 60)

        assert snapshot.progress == 0
        snapshot.progress = 99
        assert ledger.get(0).progress == 60
