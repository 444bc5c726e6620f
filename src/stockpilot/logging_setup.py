# Logging setup — Rich console handler for the CLI and the token proxy.
# Created: 2026-10-19

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def setup_logging(level: str = "INFO", console: Console | None = None) -> None:
    """Install a RichHandler on the root logger.

    Safe to call more than once; existing handlers are replaced.
    """
    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
