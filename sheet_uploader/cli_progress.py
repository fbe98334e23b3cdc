"""Console rendering and progress helpers for the sheet-up CLI."""
from __future__ import annotations

import time
from typing import Any, Dict, Optional

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from .models import ProgressRecord
from .orchestrator import RunSummary, UploadOrchestrator

console = Console()


def human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.1f} {units[unit_idx]}"


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]sheet-up[/bold green]",
        subtitle="[dim]spreadsheet import uploader[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_step(step: int, total: int, message: str) -> None:
    console.print(f"[bold blue][{step}/{total}][/bold blue] {message}")


def render_run_summary(summary: RunSummary) -> None:
    table = Table(title="Upload summary", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("File")
    table.add_column("Status")
    table.add_column("Detail", overflow="fold")

    palette = {"completed": "green", "failed": "red", "pending": "dim", "uploading": "yellow"}
    for record in summary.records:
        status = record.status.value
        color = palette.get(status, "white")
        if record.error:
            detail = record.error
        elif record.result is not None and record.result.data is not None:
            data = record.result.data
            detail = f"modified={data.modified_count} added={data.upserted_count}"
        else:
            detail = ""
        table.add_row(str(record.file_index + 1), record.file_name, f"[{color}]{status}[/{color}]", detail)

    console.print(table)
    console.print(
        f"[bold]Finished[/bold] completed={summary.completed} "
        f"failed={summary.failed} total={summary.total}"
    )


class QueueProgressDisplay:
    """Event-based console display for an upload queue."""

    def __init__(self):
        self._orchestrator: Optional[UploadOrchestrator] = None
        self._active_tasks: Dict[int, TaskID] = {}
        self._overall_task_id: Optional[TaskID] = None
        self._overall = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=28),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("[dim]{task.fields[detail]}", justify="left"),
            TimeElapsedColumn(),
            expand=False,
            console=console,
        )
        self._files = Progress(
            SpinnerColumn(),
            TextColumn("[bold green]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            expand=False,
            console=console,
        )
        self._live: Optional[Live] = None

    def attach(self, orchestrator: UploadOrchestrator) -> "QueueProgressDisplay":
        self._orchestrator = orchestrator
        orchestrator.on_run_start(self.on_run_start)
        orchestrator.on_item_start(self.on_item_start)
        orchestrator.on_item_progress(self.on_item_progress)
        orchestrator.on_item_complete(self.on_item_complete)
        orchestrator.on_item_fail(self.on_item_fail)
        orchestrator.on_pause(self.on_pause)
        orchestrator.on_resume(self.on_resume)
        orchestrator.on_finish(self.on_finish)
        return self

    def _emit_timeline(self, status: str, kind: str, name: str, error: Optional[str] = None) -> None:
        stamp = time.strftime("%H:%M:%S")
        palette = {"DONE": "green", "FAIL": "red", "INFO": "blue"}
        color = palette.get(status, "white")
        error_label = f" cause={error}" if error else ""
        console.print(f"[dim]{stamp}[/dim] [{color}]{status:<4}[/{color}] {kind}: {name}{error_label}")

    def _start_live(self) -> None:
        if self._live is not None:
            return
        self._live = Live(
            Group(self._overall, self._files),
            console=console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()

    def stop(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None

    def _update_overall(self) -> None:
        if self._orchestrator is None or self._overall_task_id is None:
            return
        self._overall.update(
            self._overall_task_id,
            completed=self._orchestrator.overall_progress,
            detail=(
                f"ok={self._orchestrator.completed_count} "
                f"failed={self._orchestrator.failed_count}"
            ),
        )

    def on_run_start(self, total: int) -> None:
        self._start_live()
        if self._overall_task_id is None:
            self._overall_task_id = self._overall.add_task(
                "overall", label=f"Overall ({total} files)", total=100, detail="ok=0 failed=0"
            )

    def on_item_start(self, record: ProgressRecord) -> None:
        self._start_live()
        self._active_tasks[record.file_index] = self._files.add_task(
            "upload", label=record.file_name[:60], total=100
        )

    def on_item_progress(self, record: ProgressRecord) -> None:
        task_id = self._active_tasks.get(record.file_index)
        if task_id is not None:
            self._files.update(task_id, completed=record.progress)
        self._update_overall()

    def _finish_item(self, record: ProgressRecord) -> None:
        task_id = self._active_tasks.pop(record.file_index, None)
        if task_id is not None:
            self._files.remove_task(task_id)
        self._update_overall()

    def on_item_complete(self, record: ProgressRecord) -> None:
        self._finish_item(record)
        self._emit_timeline("DONE", "file", record.file_name)

    def on_item_fail(self, record: ProgressRecord) -> None:
        self._finish_item(record)
        self._emit_timeline("FAIL", "file", record.file_name, error=record.error)

    def on_pause(self) -> None:
        self._emit_timeline("INFO", "queue", "paused after current file")

    def on_resume(self) -> None:
        self._emit_timeline("INFO", "queue", "resumed")

    def on_finish(self, summary: RunSummary) -> None:
        self._update_overall()
        self.stop()
