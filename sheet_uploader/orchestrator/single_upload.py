"""Single file upload handler shared by the run loop and retry."""
import logging

from ..ledger import ProgressLedger
from ..models import ProgressRecord, Session, TransferItem
from ..protocols import ITransferClient
from ..services.event_log import EventLog
from ..utils.events import EventEmitter

logger = logging.getLogger(__name__)


class SingleUploadHandler:
    """Moves one ledger record through uploading to completed or failed."""

    def __init__(
        self,
        client: ITransferClient,
        ledger: ProgressLedger,
        events: EventEmitter,
        event_log: EventLog,
    ):
        """
        Initialize single upload handler.

        Args:
            client: Transfer client (authentication already done)
            ledger: Ledger owned by the orchestrator
            events: Emitter for item_* events
            event_log: Operator-facing narration
        """
        self._client = client
        self._ledger = ledger
        self._events = events
        self._log = event_log

    async def upload(self, index: int, item: TransferItem, session: Session) -> ProgressRecord:
        """
        Transfer one item. Failures are recorded on the ledger, never raised.

        Returns:
            Snapshot of the record in its terminal state
        """
        record = self._ledger.set_uploading(index)
        self._log.info(f"Uploading [{index + 1}/{len(self._ledger)}] {item.display_name}")
        await self._events.emit("item_start", record)

        def on_progress(pct: int) -> None:
            snapshot = self._ledger.set_progress(index, pct)
            self._events.emit_nowait("item_progress", snapshot)

        try:
            result = await self._client.transfer(item, session, on_progress)
        except Exception as e:
            record = self._ledger.set_failed(index, str(e) or type(e).__name__)
            logger.debug(f"Transfer of {item.display_name} raised {type(e).__name__}", exc_info=True)
            self._log.error(f"Upload failed: {item.display_name}: {record.error}")
            await self._events.flush()
            await self._events.emit("item_fail", record)
            return record

        record = self._ledger.set_completed(index, result)
        if result.data is not None:
            self._log.success(
                f"Uploaded {item.display_name} "
                f"(modified: {result.data.modified_count}, added: {result.data.upserted_count})"
            )
        else:
            self._log.success(f"Uploaded {item.display_name}")
        await self._events.flush()
        await self._events.emit("item_complete", record)
        return record
