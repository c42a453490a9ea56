"""Logging setup for the pacer, built on loguru.

Core modules log either through ``get_logger(__name__)`` or plain stdlib
``logging``; the latter, along with httpx, is routed into loguru so the
console shows one stream. Records bound with ``bind_run``/``bind_item``
carry the run generation and 1-based item number, which the console
format prints as a ``[run N item M]`` tag.
"""

from __future__ import annotations

import logging
import sys
from contextlib import AbstractContextManager
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

from loguru import logger

if TYPE_CHECKING:
    from loguru import Logger, Record

LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class InterceptHandler(logging.Handler):
    """Forwards stdlib log records (httpx, stdlib-logging modules) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        from types import FrameType

        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = str(record.levelno)

        # Skip logging's own frames so loguru reports the real caller
        frame: FrameType | None = logging.currentframe()
        depth = 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _console_format(record: Record) -> str:
    extra = record["extra"]
    source = "{extra[name]}" if "name" in extra else "{name}"
    tag = ""
    if "run" in extra:
        tag = " [run {extra[run]}" + (" item {extra[item]}" if "item" in extra else "") + "]"
    return (
        "<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | "
        f"<cyan>{source}</cyan>{tag} - <level>{{message}}</level>\n{{exception}}"
    )


def setup_logging(
    level: LogLevel = "INFO",
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
    serialize: bool = False,
) -> Logger:
    """Configure loguru sinks for a CLI invocation.

    Args:
        level: Base log level from settings
        verbose: Use DEBUG (wins over ``quiet``)
        quiet: Use WARNING
        log_file: Optional file sink, always at DEBUG
        rotation: When to rotate the file sink (e.g. "10 MB", "1 day")
        retention: How long rotated files are kept
        serialize: Write the file sink as JSON lines

    Returns:
        The configured loguru logger
    """
    effective_level: LogLevel
    if verbose:
        effective_level = "DEBUG"
    elif quiet:
        effective_level = "WARNING"
    else:
        effective_level = level

    logger.remove()
    logger.add(
        sys.stderr,
        level=effective_level,
        format=_console_format,
        colorize=True,
        backtrace=True,
        diagnose=True,
    )

    if log_file:
        logger.add(
            log_file,
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {function}:{line} | {extra} | {message}",
            rotation=rotation,
            retention=retention,
            compression="gz",
            serialize=serialize,
        )

    _intercept_stdlib_logging(effective_level)
    return logger


def _intercept_stdlib_logging(level: LogLevel) -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # httpx logs every request at INFO; the poll trigger would flood the console
    httpx_level = logging.DEBUG if level in ("TRACE", "DEBUG") else logging.WARNING
    logging.getLogger("httpx").setLevel(httpx_level)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> Logger:
    """Logger with ``name`` bound, for ``logger = get_logger(__name__)``."""
    return logger.bind(name=name)


def bind_run(generation: int) -> Logger:
    """Logger tagged with a pacing run generation."""
    return logger.bind(name="pacing", run=generation)


def bind_item(generation: int, index: int) -> Logger:
    """Logger tagged with a run generation and the item at 0-based ``index``."""
    return logger.bind(name="pacing", run=generation, item=index + 1)


def queue_context(source: str) -> AbstractContextManager[Any]:
    """Tag every record logged inside the block with the queue's source file.

    Usage:
        with queue_context("prompts.json"):
            await controller.wait()
    """
    return logger.contextualize(queue=source)


def reset_logging() -> None:
    """Remove all sinks (used between tests)."""
    logger.remove()
