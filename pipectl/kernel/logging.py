"""Centralized logging configuration for pipectl using Loguru.

Examples
--------
Basic usage:

>>> from pipectl.kernel.logging import get_logger
>>> logger = get_logger(__name__)
>>> logger.info("Pipeline {pipeline_id} started", pipeline_id="123")

Configure logging globally::

    from pipectl.kernel.logging import configure_logging
    configure_logging(level="DEBUG", format="rich")
"""

from __future__ import annotations

import contextvars
import sys
from contextlib import suppress
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from loguru import logger
from rich.logging import RichHandler

if TYPE_CHECKING:
    from loguru import Logger

LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["console", "json", "structured", "rich"]

_CURRENT_CONFIG: dict | None = None
_HANDLER_IDS: list[int] = []

# Correlation ID of the orchestrator operation in flight
correlation_id: contextvars.ContextVar[str] = contextvars.ContextVar("correlation_id", default="-")


def configure_logging(
    level: LogLevel = "INFO",
    format: LogFormat = "structured",
    output_file: str | Path | None = None,
    use_color: bool = True,
    include_timestamp: bool = True,
    force_reconfigure: bool = False,
) -> None:
    """Configure global logging for pipectl.

    Idempotent: calling it again with the same settings does not add handlers.

    Parameters
    ----------
    level : LogLevel, default="INFO"
        Minimum log level to output
    format : LogFormat, default="structured"
        Output format:
        - "console": plain single-line output
        - "json": serialized records for log aggregation
        - "structured": colored loguru format with source location
        - "rich": :class:`rich.logging.RichHandler` console sink
    output_file : str | Path | None, default=None
        Optional file path; file output is always JSON
    use_color : bool, default=True
        Use ANSI colors in structured format (auto-disabled for non-TTY)
    include_timestamp : bool, default=True
        Include timestamp in log output
    force_reconfigure : bool, default=False
        Reconfigure even if the settings did not change
    """
    global _CURRENT_CONFIG

    current_config = {
        "level": level,
        "format": format,
        "output_file": str(output_file) if output_file else None,
        "use_color": use_color,
        "include_timestamp": include_timestamp,
    }

    if not force_reconfigure and current_config == _CURRENT_CONFIG:
        return

    # Remove only handlers we added ourselves
    for handler_id in _HANDLER_IDS:
        with suppress(ValueError):
            logger.remove(handler_id)
    _HANDLER_IDS.clear()

    if _CURRENT_CONFIG is None:
        # Drop loguru's default stderr sink on first configuration
        with suppress(ValueError):
            logger.remove(0)

    if format == "rich":
        rich_handler = RichHandler(
            rich_tracebacks=True,
            markup=False,
            show_time=include_timestamp,
            show_level=True,
            show_path=True,
        )
        _HANDLER_IDS.append(logger.add(sink=rich_handler, level=level, format="{message}"))

    elif format == "json":
        _HANDLER_IDS.append(logger.add(sink=_stderr_sink, level=level, serialize=True))

    elif format == "structured":
        colorize = use_color and sys.stderr.isatty()
        timestamp_fmt = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> " if include_timestamp else ""
        color_level = "<level>{level: <8}</level>" if colorize else "{level: <8}"
        structured_format = (
            f"{timestamp_fmt}[{color_level}]"
            "<cyan>{extra[module]}</cyan> cid={extra[cid]} | <level>{message}</level>"
        )
        _HANDLER_IDS.append(
            logger.add(
                sink=_stderr_sink,
                level=level,
                format=structured_format,
                colorize=colorize,
                filter=_inject_correlation_id,
            )
        )

    else:  # console
        timestamp_fmt = "{time:YYYY-MM-DD HH:mm:ss} " if include_timestamp else ""
        console_format = f"{timestamp_fmt}{{level: <8}} | {{extra[module]}} | {{message}}"
        _HANDLER_IDS.append(
            logger.add(
                sink=_stderr_sink,
                level=level,
                format=console_format,
                colorize=False,
                filter=_inject_correlation_id,
            )
        )

    if output_file:
        output_path = Path(output_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        _HANDLER_IDS.append(
            logger.add(
                sink=output_path,
                level=level,
                serialize=True,
                rotation="10 MB",
                retention="1 week",
                filter=_inject_correlation_id,
            )
        )

    _CURRENT_CONFIG = current_config


def _stderr_sink(message: str) -> None:
    # Resolved per write so redirected streams (CLI runners, pytest capture) are honoured
    sys.stderr.write(message)


def _inject_correlation_id(record: dict) -> bool:
    """Loguru filter that stamps the current correlation ID on every record."""
    record["extra"]["cid"] = correlation_id.get()
    record["extra"].setdefault("module", record["name"])
    return True


def _ensure_configured() -> None:
    if _CURRENT_CONFIG is None:
        configure_logging()


@lru_cache(maxsize=256)
def get_logger(name: str) -> Logger:
    """Get a logger bound to the given module name (cached).

    Parameters
    ----------
    name : str
        Logger name, typically ``__name__`` of the calling module

    Returns
    -------
    loguru.Logger
        Logger instance bound with ``module=name``
    """
    _ensure_configured()
    return logger.bind(module=name)


def set_correlation_id(cid: str) -> contextvars.Token[str]:
    """Set the correlation ID for the current context.

    Returns the token so callers can restore the previous value with
    :func:`reset_correlation_id`.
    """
    return correlation_id.set(cid)


def reset_correlation_id(token: contextvars.Token[str]) -> None:
    """Restore the correlation ID that was active before ``set_correlation_id``."""
    correlation_id.reset(token)


def get_correlation_id() -> str:
    """Get the correlation ID of the current context (``"-"`` when unset)."""
    return correlation_id.get()
