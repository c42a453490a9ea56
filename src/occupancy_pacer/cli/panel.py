"""Live terminal status panel for a pacing run."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TaskID, TextColumn

from occupancy_pacer.pacing import ControllerState, QueueComplete, QueueStatus


def state_label(state: ControllerState) -> str:
    """Get rich markup for a controller state."""
    match state:
        case ControllerState.BURSTING:
            return "[green]Sending[/green]"
        case ControllerState.AWAITING_SLOT:
            return "[yellow]Waiting for free slot[/yellow]"
        case ControllerState.PAUSED:
            return "[dark_orange]Paused[/dark_orange]"
        case ControllerState.COMPLETE:
            return "[bold green]Complete[/bold green]"
        case ControllerState.DRAINING_ON_STOP:
            return "[red]Stopping[/red]"
        case _:
            return "[dim]Idle[/dim]"


def occupancy_label(occupancy: int | None) -> str:
    """Get rich markup for the last known occupancy."""
    if occupancy is None:
        return "[dim]pending: --[/dim]"
    if occupancy == 0:
        return "[green]pending: 0[/green]"
    return f"[yellow]pending: {occupancy}[/yellow]"


class StatusPanel:
    """StatusSink rendering a rich progress bar.

    Usage:
        with StatusPanel(console) as panel:
            controller = PacingController(adapter, observer, sink=panel)
            ...
    """

    def __init__(self, console: Console | None = None) -> None:
        self._progress = Progress(
            TextColumn("{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("{task.fields[detail]}"),
            console=console,
        )
        self._task_id: TaskID | None = None
        self.completion: QueueComplete | None = None

    def __enter__(self) -> StatusPanel:
        self._progress.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._progress.stop()

    def on_status(self, status: QueueStatus) -> None:
        detail = (
            f"[green]{status.submitted_count} sent[/green] "
            f"[red]{status.failed_count} failed[/red] | "
            f"{occupancy_label(status.last_known_occupancy)}"
        )
        if self._task_id is None:
            self._task_id = self._progress.add_task(
                state_label(status.state),
                total=status.total or None,
                detail=detail,
            )
        self._progress.update(
            self._task_id,
            description=state_label(status.state),
            total=status.total or None,
            completed=status.current,
            detail=detail,
        )

    def on_complete(self, event: QueueComplete) -> None:
        self.completion = event
        if self._task_id is not None:
            self._progress.update(
                self._task_id,
                description=state_label(ControllerState.COMPLETE),
                completed=event.total,
            )
