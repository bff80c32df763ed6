"""Centralized logging configuration for rankd."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Final, cast

from rich.console import Console
from rich.logging import RichHandler

__all__ = ["configure_logging", "console"]

_LOG_LEVEL_ENV: Final[str] = "RANKD_LOG_LEVEL"
_DEFAULT_LEVEL_NAME: Final[str] = "INFO"

console = Console()

if TYPE_CHECKING:

    class _ManagedRichHandler(RichHandler):
        _rankd_managed: bool
else:
    _ManagedRichHandler = RichHandler


def _resolve_level(level_name: str | None) -> int:
    """Return the logging level, the environment variable winning over ``level_name``."""
    name = os.getenv(_LOG_LEVEL_ENV) or level_name or _DEFAULT_LEVEL_NAME
    return getattr(logging, name.upper(), logging.INFO)


def configure_logging(level_name: str | None = None) -> None:
    """Configure logging once with a Rich handler."""
    root_logger = logging.getLogger()
    level = _resolve_level(level_name)

    managed_handler: _ManagedRichHandler | None = None
    for handler in root_logger.handlers:
        if isinstance(handler, RichHandler) and getattr(handler, "_rankd_managed", False):
            managed_handler = cast("_ManagedRichHandler", handler)
            break

    if managed_handler is None:
        root_logger.handlers.clear()
        handler = _ManagedRichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        handler._rankd_managed = True
        root_logger.addHandler(handler)

    root_logger.setLevel(level)

    # ibis logs every compiled query at DEBUG.
    logging.getLogger("ibis").setLevel(max(level, logging.WARNING))
    logging.captureWarnings(True)
