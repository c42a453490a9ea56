"""Common CLI option factories and helpers.

This module centralizes reusable CLI options and provides:
- `run_async_command`: Unified async execution with error handling for CLI commands
- `load_items`: Work item loading from JSON or plain-text files
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Coroutine
from pathlib import Path
from typing import Annotated, TypeVar

import typer
from pydantic import TypeAdapter, ValidationError
from rich.console import Console

from occupancy_pacer.schemas import WorkItem

# Shared console instance for CLI output
console = Console()

T = TypeVar("T")

_ITEMS_ADAPTER = TypeAdapter(list[WorkItem])


def run_async_command(
    coro: Coroutine[object, object, T],
    *,
    error_prefix: str = "Error",
) -> T:
    """Execute async code from synchronous CLI command with unified error handling.

    Uses asyncio.run() for clean event loop management. Catches exceptions,
    prints user-friendly error messages, and exits with code 1.

    Args:
        coro: Async coroutine to execute
        error_prefix: Prefix for error messages (default: "Error")

    Returns:
        Result from the coroutine

    Raises:
        typer.Exit: Re-raised from deliberate exits, or raised with code 1 on error
    """
    try:
        return asyncio.run(coro)
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]{error_prefix}:[/red] {e}")
        raise typer.Exit(1) from None


def load_items(path: Path) -> list[WorkItem]:
    """Load work items from a file.

    ``.json`` files hold a list of strings or item objects, optionally
    wrapped as ``{"items": [...]}`` or ``{"prompts": [...]}``. Any other
    file is read as one item per non-blank line.

    Args:
        path: File to read

    Returns:
        Work items in file order

    Raises:
        ValueError: If the JSON content is not a list of items
    """
    content = path.read_text(encoding="utf-8")

    if path.suffix.lower() != ".json":
        return [WorkItem(text=line.strip()) for line in content.splitlines() if line.strip()]

    data = json.loads(content)
    if isinstance(data, dict):
        data = data.get("items", data.get("prompts"))
    try:
        return _ITEMS_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise ValueError(f"{path.name} does not contain a list of work items") from e


# Options shared by queue commands

DryRunOption = Annotated[
    bool,
    typer.Option(
        "--dry-run",
        help="Print submissions instead of sending them",
    ),
]
"""Dry-run option type for CLI commands.

Usage:
    def command(dry_run: DryRunOption = False):
"""

ItemsArgument = Annotated[
    Path,
    typer.Argument(
        exists=True,
        dir_okay=False,
        readable=True,
        help="JSON list of items, or a text file with one item per line",
    ),
]
"""Required positional work item file argument."""
