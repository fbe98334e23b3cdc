"""Core orchestrator - supervised sequential upload of a prepared queue."""
import asyncio
import logging
from typing import Callable, Iterable, List, Optional, Tuple

from ..errors import AuthenticationError, InvalidStateError
from ..ledger import ProgressLedger
from ..models import ProgressRecord, ProgressStatus, ServerConfig, Session, TransferItem, UploadConfig
from ..protocols import ITransferClient
from ..services.event_log import EventLog
from ..utils.events import EventEmitter

from .models import OrchestratorState, RunSummary
from .single_upload import SingleUploadHandler

logger = logging.getLogger(__name__)


class UploadOrchestrator:
    """
    Drives a queue of files through the ledger, one transfer at a time.

    Follows:
    - Dependency Injection (transfer client and event log injected)
    - Single Responsibility (one-item transfers delegated to SingleUploadHandler)

    Usage:
        async with HTTPTransferClient() as client:
            orchestrator = UploadOrchestrator(client)
            orchestrator.initialize(TransferItem.from_path(p) for p in converted)
            orchestrator.on_item_fail(lambda record: print(record.error))
            summary = await orchestrator.run(ServerConfig(url, user, password))
            if summary.failed:
                await orchestrator.retry_failed()

    A run only raises for setup problems (configuration, authentication,
    re-entrant calls). Per-item failures are recorded and the loop moves on.
    Pause takes effect between items only; an in-flight transfer always
    finishes.
    """

    def __init__(
        self,
        client: ITransferClient,
        config: Optional[UploadConfig] = None,
        event_log: Optional[EventLog] = None,
    ):
        self._client = client
        self._config = config or UploadConfig()
        self._log = event_log if event_log is not None else EventLog()
        self._ledger = ProgressLedger()
        self._events = EventEmitter()
        self._handler = SingleUploadHandler(client, self._ledger, self._events, self._log)

        self._items: List[TransferItem] = []
        self._current_index = -1
        self._running = False
        self._state = OrchestratorState.IDLE
        self._session: Optional[Session] = None
        # set = not paused
        self._resume_event = asyncio.Event()
        self._resume_event.set()

    # Event subscription methods
    def on_queue_initialized(self, callback: Callable[[int], None]):
        """Called after initialize(). Receives the queue size."""
        self._events.on("queue_initialized", callback)

    def on_run_start(self, callback: Callable[[int], None]):
        """Called once authentication succeeded. Receives the queue size."""
        self._events.on("run_start", callback)

    def on_item_start(self, callback: Callable[[ProgressRecord], None]):
        self._events.on("item_start", callback)

    def on_item_progress(self, callback: Callable[[ProgressRecord], None]):
        self._events.on("item_progress", callback)

    def on_item_complete(self, callback: Callable[[ProgressRecord], None]):
        self._events.on("item_complete", callback)

    def on_item_fail(self, callback: Callable[[ProgressRecord], None]):
        self._events.on("item_fail", callback)

    def on_pause(self, callback: Callable[[], None]):
        self._events.on("pause", callback)

    def on_resume(self, callback: Callable[[], None]):
        self._events.on("resume", callback)

    def on_finish(self, callback: Callable[[RunSummary], None]):
        """Called when the loop has visited every item. Receives RunSummary."""
        self._events.on("finish", callback)

    def on_cleared(self, callback: Callable[[], None]):
        self._events.on("cleared", callback)

    # State properties
    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def running(self) -> bool:
        return self._running

    @property
    def paused(self) -> bool:
        return not self._resume_event.is_set()

    @property
    def current_index(self) -> int:
        """Index of the in-flight item, -1 when idle."""
        return self._current_index

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def event_log(self) -> EventLog:
        return self._log

    @property
    def items(self) -> Tuple[TransferItem, ...]:
        return tuple(self._items)

    def records(self) -> Tuple[ProgressRecord, ...]:
        return self._ledger.records()

    def record(self, index: int) -> ProgressRecord:
        return self._ledger.get(index)

    @property
    def overall_progress(self) -> int:
        return self._ledger.overall_progress()

    @property
    def completed_count(self) -> int:
        return self._ledger.completed_count()

    @property
    def failed_count(self) -> int:
        return self._ledger.failed_count()

    # Queue lifecycle
    def initialize(self, items: Iterable) -> None:
        """Reset the queue with fresh pending records. Accepts TransferItems or paths."""
        if self._running:
            raise InvalidStateError("Cannot initialize the queue while an upload is running")
        queue = [
            item if isinstance(item, TransferItem) else TransferItem.from_path(item)
            for item in items
        ]
        self._ledger.initialize(queue)
        self._items = queue
        self._reset_queue_state()
        self._log.info(f"Upload queue initialized with {len(queue)} files")
        self._events.emit_nowait("queue_initialized", len(queue))

    def clear(self) -> None:
        """Drop the queue, its records and the session."""
        if self._running:
            raise InvalidStateError("Cannot clear the queue while an upload is running")
        self._ledger.clear()
        self._items = []
        self._reset_queue_state()
        self._session = None
        self._events.emit_nowait("cleared")

    def _reset_queue_state(self) -> None:
        self._current_index = -1
        self._state = OrchestratorState.IDLE
        self._resume_event.set()

    def _begin(self, state: OrchestratorState) -> None:
        self._running = True
        self._ledger.running = True
        self._state = state

    def _end(self) -> None:
        self._running = False
        self._ledger.running = False
        self._current_index = -1
        self._state = OrchestratorState.IDLE

    def _summary(self) -> RunSummary:
        return RunSummary(
            total=len(self._items),
            completed=self._ledger.completed_count(),
            failed=self._ledger.failed_count(),
            records=self._ledger.records(),
        )

    # Run loop
    async def run(self, config: ServerConfig) -> RunSummary:
        """
        Authenticate once, then upload every queued item strictly in order.

        Raises:
            InvalidStateError: a run or retry is already active
            ConfigurationError: endpoint, username or password is empty
            AuthenticationError: the login exchange failed; nothing was uploaded
        """
        if not self._items:
            self._log.warn("No files to upload")
            return RunSummary.empty()
        if self._running:
            raise InvalidStateError("An upload is already running")
        config.validate()

        total = len(self._items)
        self._begin(OrchestratorState.AUTHENTICATING)
        try:
            # each run establishes its own session
            self._session = None
            self._log.info(f"Logging in to {config.base_url} as {config.username}")
            try:
                credential = await self._client.authenticate(
                    config.base_url, config.username, config.password
                )
            except AuthenticationError as e:
                self._log.error(f"Login failed: {e}")
                raise
            self._session = Session(endpoint=config.base_url, credential=credential)
            self._log.success("Login succeeded")

            self._log.info(f"Starting upload of {total} files")
            await self._events.emit("run_start", total)

            for index in range(total):
                await self._wait_if_paused()
                self._current_index = index
                self._state = OrchestratorState.RUNNING
                await self._handler.upload(index, self._items[index], self._session)

                if index < total - 1 and self._config.inter_item_delay > 0:
                    await asyncio.sleep(self._config.inter_item_delay)
        finally:
            self._end()

        summary = self._summary()
        message = f"Upload finished: {summary.completed} succeeded, {summary.failed} failed"
        if summary.failed:
            self._log.warn(message)
        else:
            self._log.success(message)
        await self._events.emit("finish", summary)
        return summary

    async def _wait_if_paused(self) -> None:
        if self._resume_event.is_set():
            return
        self._state = OrchestratorState.PAUSED
        self._log.info("Upload paused, waiting to resume")
        await self._resume_event.wait()

    # Pause / resume
    def pause(self) -> None:
        """Stop before the next item. The in-flight transfer is not interrupted."""
        if self.paused:
            return
        self._resume_event.clear()
        self._log.info("Pause requested; takes effect after the current file")
        self._events.emit_nowait("pause")

    def resume(self) -> None:
        if not self.paused:
            return
        self._resume_event.set()
        self._log.info("Upload resumed")
        self._events.emit_nowait("resume")

    def toggle_pause(self) -> bool:
        """Flip the pause flag and return the new value."""
        if self.paused:
            self.resume()
        else:
            self.pause()
        return self.paused

    # Retry
    async def retry(self, index: int) -> ProgressRecord:
        """
        Re-attempt one failed item with the session of the last run.

        No-op unless the record is failed. A second failure is recorded on
        the ledger and logged; it is not raised.
        """
        record = self._ledger.get(index)
        if record.status is not ProgressStatus.FAILED:
            return record
        if self._running:
            raise InvalidStateError("Cannot retry while an upload is running")
        if self._session is None:
            self._log.warn(f"Cannot retry {record.file_name}: not logged in")
            return record

        self._begin(OrchestratorState.RETRYING)
        self._current_index = index
        try:
            self._log.info(f"Retrying {record.file_name}")
            record = await self._handler.upload(index, self._items[index], self._session)
        finally:
            self._end()

        if record.status is ProgressStatus.FAILED:
            logger.warning(f"Retry of {record.file_name} failed: {record.error}")
        return record

    async def retry_failed(self) -> RunSummary:
        """Retry every failed item in queue order."""
        for index in self._ledger.failed_indices():
            await self.retry(index)
        return self._summary()
