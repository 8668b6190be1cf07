"""Console rendering and progress helpers for the swarm-upload CLI."""
from __future__ import annotations

import time
from typing import Any, Dict, Optional

from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from .models import ItemOutcome, TransferProgress, UploadItem
from .services.result_logger import access_url


console = Console()


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
        title="[bold green]swarm-upload[/bold green]",
        subtitle="[dim]Swarm upload CLI[/dim]",
        border_style="blue",
    )
    console.print(panel)


class BatchUploadProgressDisplay:
    """Event-based console display for a batch of uploads."""

    def __init__(self, access_url_prefix: Optional[str] = None):
        self._access_url_prefix = access_url_prefix
        self._tasks: Dict[tuple, TaskID] = {}
        self._live: Optional[Live] = None
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=36),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            expand=False,
            console=console,
        )

    def _start_live(self) -> None:
        if self._live is not None:
            return
        self._live = Live(
            self._progress,
            console=console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()

    def _stop_live(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None

    def _emit_timeline(self, status: str, name: str, detail: Optional[str] = None) -> None:
        stamp = time.strftime("%H:%M:%S")
        palette = {"DONE": "green", "FAIL": "red", "INFO": "blue"}
        color = palette.get(status, "white")
        suffix = f" {detail}" if detail else ""
        console.print(f"[dim]{stamp}[/dim] [{color}]{status:<4}[/{color}] {escape(name)}{escape(suffix)}")

    def _remove_tasks(self, item: UploadItem) -> None:
        for key in [k for k in self._tasks if k[0] == item.index]:
            try:
                self._progress.remove_task(self._tasks.pop(key))
            except KeyError:
                pass

    def on_item_start(self, item: UploadItem) -> None:
        self._start_live()
        self._emit_timeline("INFO", f"File {item.number}", f"fetching {item.source_ref}")

    def on_item_progress(self, item: UploadItem, progress: TransferProgress) -> None:
        key = (item.index, progress.phase)
        task_id = self._tasks.get(key)
        if task_id is None:
            verb = "↓" if progress.phase == "download" else "↑"
            task_id = self._progress.add_task(
                progress.phase,
                label=f"{verb} {item.number}: {progress.filename[:48]}",
                total=progress.total_bytes,
            )
            self._tasks[key] = task_id
        self._progress.update(task_id, completed=progress.bytes_done, total=progress.total_bytes)

    def on_item_complete(self, outcome: ItemOutcome) -> None:
        self._remove_tasks(outcome.item)
        self._emit_timeline("DONE", f"File {outcome.item.number}: {outcome.filename}")

    def on_item_fail(self, outcome: ItemOutcome) -> None:
        self._remove_tasks(outcome.item)
        detail = f"{outcome.error_type}: {outcome.error}"
        if outcome.temp_path is not None:
            detail += f" (temp file kept at {outcome.temp_path})"
        self._emit_timeline("FAIL", f"File {outcome.item.number}: {outcome.filename}", detail)

    def on_error(self, error: Exception) -> None:
        self._stop_live()
        console.print(f"[red]Error:[/red] {escape(str(error))}")

    def on_finish(self, batch: Any) -> None:
        self._stop_live()

        table = Table(title="Upload results", show_lines=False)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Filename", style="bold")
        table.add_column("Reference / Error")
        table.add_column("Tag", justify="right")

        for outcome in batch.outcomes:
            if outcome.success:
                result = outcome.result
                reference = result.reference
                if self._access_url_prefix:
                    reference = f"{reference}\n[dim]{access_url(reference, self._access_url_prefix)}[/dim]"
                tag = "-" if result.tag_uid is None else str(result.tag_uid)
                table.add_row(str(outcome.item.number), escape(outcome.filename), reference, tag)
            else:
                table.add_row(
                    str(outcome.item.number),
                    escape(outcome.filename),
                    f"[red]{outcome.error_type}: {escape(outcome.error or '')}[/red]",
                    "-",
                )

        console.print(table)
        console.print(
            f"[bold]Finished[/bold] uploaded={batch.uploaded} total={batch.total} failed={batch.failed}"
        )
