"""Tests for the single upload handler shared by run and retry."""
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from sheet_uploader.errors import TransferError
from sheet_uploader.ledger import ProgressLedger
from sheet_uploader.models import (
    Credential,
    ImportStats,
    ProgressStatus,
    Session,
    TransferItem,
    TransferResult,
)
from sheet_uploader.orchestrator.single_upload import SingleUploadHandler
from sheet_uploader.services.event_log import EventLog
from sheet_uploader.utils.events import EventEmitter

SESSION = Session(endpoint="http://import.local", credential=Credential(token="tok"))


def _build_handler(*names):
    client = AsyncMock()
    ledger = ProgressLedger()
    items = [TransferItem(name, Path("/out") / name) for name in names]
    ledger.initialize(items)
    events = EventEmitter()
    event_log = EventLog()
    handler = SingleUploadHandler(client, ledger, events, event_log)
    return handler, client, ledger, events, event_log, items


@pytest.mark.asyncio
async def test_upload_success_records_result():
    handler, client, ledger, events, event_log, items = _build_handler("a.xlsx", "b.xlsx")
    result = TransferResult(success=True, data=ImportStats(modified_count=2, upserted_count=5))

    async def transfer(item, session, on_progress):
        on_progress(30)
        on_progress(70)
        return result

    client.transfer.side_effect = transfer
    completed = MagicMock()
    events.on("item_complete", completed)

    record = await handler.upload(1, items[1], SESSION)

    assert record.status is ProgressStatus.COMPLETED
    assert record.progress == 100
    assert record.result == result
    assert ledger.get(0).status is ProgressStatus.PENDING
    client.transfer.assert_awaited_once()
    assert client.transfer.await_args.args[:2] == (items[1], SESSION)
    completed.assert_called_once_with(record)

    messages = [e.message for e in event_log.entries()]
    assert messages[0] == "Uploading [2/2] b.xlsx"
    assert messages[-1] == "Uploaded b.xlsx (modified: 2, added: 5)"


@pytest.mark.asyncio
async def test_upload_failure_is_recorded_not_raised():
    handler, client, ledger, events, event_log, items = _build_handler("a.xlsx")

    async def transfer(item, session, on_progress):
        on_progress(45)
        raise TransferError("bad sheet", status_code=422)

    client.transfer.side_effect = transfer
    failed = MagicMock()
    events.on("item_fail", failed)

    record = await handler.upload(0, items[0], SESSION)

    assert record.status is ProgressStatus.FAILED
    assert record.progress == 45
    assert record.error == "[422] bad sheet"
    failed.assert_called_once_with(record)
    assert event_log.entries()[-1].level == "error"
    assert event_log.entries()[-1].message == "Upload failed: a.xlsx: [422] bad sheet"


@pytest.mark.asyncio
async def test_upload_unexpected_exception_without_message():
    handler, client, ledger, _, _, items = _build_handler("a.xlsx")
    client.transfer.side_effect = ConnectionResetError()

    record = await handler.upload(0, items[0], SESSION)

    assert record.status is ProgressStatus.FAILED
    assert record.error == "ConnectionResetError"


@pytest.mark.asyncio
async def test_upload_resets_previous_failure():
    handler, client, ledger, _, _, items = _build_handler("a.xlsx")
    ledger.set_progress(0, 60)
    ledger.set_failed(0, "timeout")
    starts = []

    async def transfer(item, session, on_progress):
        starts.append(ledger.get(0))
        return TransferResult(success=True)

    client.transfer.side_effect = transfer

    record = await handler.upload(0, items[0], SESSION)

    assert starts[0].status is ProgressStatus.UPLOADING
    assert starts[0].progress == 0
    assert starts[0].error is None
    assert record.status is ProgressStatus.COMPLETED
