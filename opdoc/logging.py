"""Loguru setup shared by the library and the CLI.

Library modules log through :func:`get_logger`; nothing is printed below
WARNING unless the application or the ``opdoc`` CLI asks for more::

    from opdoc.logging import get_logger
    logger = get_logger(__name__)
    logger.debug("Rewrote {target}", target="read_item")

The CLI calls :func:`configure_logging` once with the loaded settings.
Without that call the first :func:`get_logger` reads ``OPDOC_LOG_LEVEL``
and ``OPDOC_LOG_FORMAT``.
"""

import os
import sys
from contextlib import suppress
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

from loguru import logger
from rich.logging import RichHandler

if TYPE_CHECKING:
    from loguru import Logger

LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["structured", "json", "rich"]

STRUCTURED_FORMAT = (
    "<green>{time:HH:mm:ss}</green> <level>{level: <8}</level> "
    "<cyan>{name}</cyan> | <level>{message}</level>"
)

_active: tuple[str, str, str | None] | None = None
_handler_ids: list[int] = []


def configure_logging(
    level: LogLevel = "WARNING",
    format: LogFormat = "structured",
    output_file: str | Path | None = None,
    force_reconfigure: bool = False,
) -> None:
    """Route opdoc's log records to stderr and optionally a JSON file.

    Calling it again with the same arguments is a no-op. Only handlers
    added here are replaced, so sinks installed by the host application
    or by pytest stay in place.

    Parameters
    ----------
    level : LogLevel, default="WARNING"
        Minimum level written by every sink
    format : LogFormat, default="structured"
        ``structured`` (one coloured line per record), ``json`` (one
        serialized record per line) or ``rich`` (a Rich handler)
    output_file : str | Path | None, default=None
        Also write serialized records to this file
    force_reconfigure : bool, default=False
        Re-add the handlers even if the arguments are unchanged
    """
    global _active

    wanted = (level, format, str(output_file) if output_file else None)
    if wanted == _active and not force_reconfigure:
        return

    for handler_id in _handler_ids:
        with suppress(ValueError):
            logger.remove(handler_id)
    _handler_ids.clear()

    _handler_ids.append(logger.add(level=level, **_stderr_sink(format)))
    if output_file:
        path = Path(output_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        _handler_ids.append(logger.add(sink=path, level=level, serialize=True))

    _active = wanted


def _stderr_sink(format: LogFormat) -> dict[str, Any]:
    if format == "rich":
        return {
            "sink": RichHandler(rich_tracebacks=True, markup=False, show_path=False),
            "format": "{message}",
        }
    if format == "json":
        return {"sink": sys.stderr, "serialize": True}
    return {"sink": sys.stderr, "format": STRUCTURED_FORMAT, "colorize": sys.stderr.isatty()}


@lru_cache(maxsize=128)
def get_logger(name: str) -> "Logger":
    """Return the shared logger bound to ``name`` (usually ``__name__``)."""
    if _active is None:
        configure_logging(
            level=os.getenv("OPDOC_LOG_LEVEL", "WARNING").upper(),  # type: ignore[arg-type]
            format=os.getenv("OPDOC_LOG_FORMAT", "structured").lower(),  # type: ignore[arg-type]
        )
    return logger.bind(module=name)
