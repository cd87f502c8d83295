"""
Logging setup for the constraints compiler.

stdout carries protocol frames only, so every handler writes to stderr.
"""

import logging
import time
from collections.abc import Generator
from contextlib import contextmanager

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER_NAME = "constraints_compiler"

_configured = False


def setup_logging(level: str | int = "INFO", console: Console | None = None) -> logging.Logger:
    """
    Configure the package logger with a Rich handler on stderr.

    Args:
        level: Logging level name or number
        console: Optional console to render to (defaults to stderr)

    Returns:
        The package root logger
    """
    global _configured

    root = logging.getLogger(ROOT_LOGGER_NAME)
    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        if not isinstance(resolved, int):
            resolved = logging.INFO
        level = resolved
    root.setLevel(level)

    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    root.addHandler(handler)
    root.propagate = False
    _configured = True
    return root


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the package namespace."""
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def is_configured() -> bool:
    return _configured


@contextmanager
def timed_operation(logger: logging.Logger, name: str) -> Generator[None, None, None]:
    """
    Context manager for timing operations.

    Args:
        logger: Logger that receives the timing line
        name: Name of the operation being timed
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        logger.debug(f"[TIMING] {name}: {elapsed:.3f}s")
