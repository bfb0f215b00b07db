"""Logging setup for the CLI.

Core modules only create loggers; the CLI decides where records go. Records
are rendered on stderr by rich so they do not interleave with tables.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def configure_logging(verbosity: int = 0) -> None:
    """Install a RichHandler on the `rbkops` logger (0=WARNING, 1=INFO, 2+=DEBUG)."""
    level = _LEVELS.get(verbosity, logging.DEBUG)
    logger = logging.getLogger("rbkops")
    logger.handlers.clear()
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=verbosity >= 2,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
