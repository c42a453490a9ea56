"""Queue commands: run a paced submission queue from a file."""

from __future__ import annotations

import json
from typing import Annotated

import httpx
import typer

from occupancy_pacer.actuator import ActuatorAdapter, EchoActuator, HttpFormActuator
from occupancy_pacer.cli.common import (
    DryRunOption,
    ItemsArgument,
    console,
    load_items,
    run_async_command,
)
from occupancy_pacer.cli.panel import StatusPanel
from occupancy_pacer.config import ActuatorConfig, get_settings
from occupancy_pacer.logging import queue_context
from occupancy_pacer.occupancy import PollTrigger, SignalObserver
from occupancy_pacer.pacing import PacingController, QueueComplete

app = typer.Typer(help="Paced submission queue commands")


@app.command("run")
def run_queue(
    items_file: ItemsArgument,
    probe_url: Annotated[
        str | None,
        typer.Option("--probe-url", help="Occupancy endpoint to probe when traffic is quiet"),
    ] = None,
    pattern: Annotated[
        str | None,
        typer.Option("--pattern", "-p", help="URL substring identifying occupancy responses"),
    ] = None,
    submit_url: Annotated[
        str | None,
        typer.Option("--submit-url", help="URL receiving each item as a form POST"),
    ] = None,
    field: Annotated[
        str,
        typer.Option("--field", help="Form field carrying the item text"),
    ] = "prompt",
    burst_size: Annotated[
        int | None,
        typer.Option("--burst-size", "-b", min=0, help="Items sent before reactive pacing"),
    ] = None,
    burst_delay_ms: Annotated[
        int | None,
        typer.Option("--burst-delay-ms", min=0, help="Delay between burst items"),
    ] = None,
    settle_delay_ms: Annotated[
        int | None,
        typer.Option("--settle-delay-ms", min=0, help="Delay after a free slot is seen"),
    ] = None,
    poll_interval_ms: Annotated[
        int | None,
        typer.Option("--poll-interval-ms", min=10, help="Interval between occupancy probes"),
    ] = None,
    dry_run: DryRunOption = False,
) -> None:
    """Submit every item in ITEMS_FILE, pacing on observed occupancy.

    Examples:
        occupancy-pacer queue run prompts.json \
            --probe-url https://host/api/pending --submit-url https://host/api/create
        occupancy-pacer queue run prompts.txt --dry-run --burst-size 5
    """
    settings = get_settings()

    try:
        items = load_items(items_file)
    except (ValueError, json.JSONDecodeError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    if not items:
        console.print("[red]Error:[/red] No work items found")
        raise typer.Exit(1)

    if not dry_run and not submit_url:
        console.print("[red]Error:[/red] --submit-url is required unless --dry-run is set")
        raise typer.Exit(1)

    pacing = settings.pacing.model_copy(
        update={
            key: value
            for key, value in {
                "burst_size": burst_size,
                "burst_delay_ms": burst_delay_ms,
                "settle_delay_ms": settle_delay_ms,
                "poll_interval_ms": poll_interval_ms,
            }.items()
            if value is not None
        }
    )
    signal = settings.signal.model_copy(
        update={
            key: value
            for key, value in {"occupancy_pattern": pattern, "probe_url": probe_url}.items()
            if value is not None
        }
    )
    actuator_config = (
        ActuatorConfig(pre_submit_delay_ms=0, fill_settle_delay_ms=0, post_activate_delay_ms=0)
        if dry_run
        else settings.actuator
    )

    async def _run() -> QueueComplete | None:
        observer = SignalObserver(signal.occupancy_pattern)
        client = observer.instrument(httpx.AsyncClient(follow_redirects=True))
        with queue_context(items_file.name):
            async with client:
                actuator = (
                    EchoActuator(console)
                    if dry_run
                    else HttpFormActuator(client, submit_url or "", field=field)
                )
                adapter = ActuatorAdapter(actuator, actuator_config)
                trigger = PollTrigger(client, observer, timeout=signal.probe_timeout_seconds)

                with StatusPanel(console) as panel:
                    controller = PacingController(
                        adapter,
                        observer,
                        trigger=trigger,
                        sink=panel,
                        config=pacing,
                        probe_url=signal.probe_url,
                    )
                    controller.start(items)
                    try:
                        await controller.wait()
                    finally:
                        await controller.close()
                    return panel.completion

    burst = min(pacing.burst_size, len(items))
    console.print(f"[dim]Queue of {len(items)} item(s), burst of {burst}[/dim]")
    if dry_run:
        console.print("[dim]  Mode: dry-run (nothing is submitted)[/dim]")
    if len(items) > pacing.burst_size and not signal.probe_url:
        console.print(
            "[yellow]Warning:[/yellow] no probe URL; items after the burst "
            "wait for organic occupancy traffic"
        )

    completion = run_async_command(_run(), error_prefix="Run failed")

    if completion is None:
        console.print("[yellow]Run stopped before completion[/yellow]")
        raise typer.Exit(1)

    console.print(
        f"\n[bold green]Queue complete[/bold green]: "
        f"{completion.submitted_count}/{completion.total} submitted, "
        f"{completion.failed_count} failed"
    )
