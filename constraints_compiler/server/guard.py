"""
Process-level fatal error boundary.
"""

import sys
import traceback
from collections.abc import Callable

from ..core.exceptions import format_error_message
from ..core.logging import get_logger, is_configured, setup_logging
from .protocol import Panic

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_INTERRUPTED = 130


def run_guarded(main: Callable[[], None], stdout=None) -> int:
    """
    Run ``main`` and turn anything that escapes it into a fatal panic.

    The panic frame carries the JSON-encoded traceback and is written to
    ``stdout`` (the binary stdout buffer by default) before returning.

    Returns:
        Process exit status
    """
    try:
        main()
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_INTERRUPTED
    except Exception as e:
        stack = traceback.format_exc()
        if not is_configured():
            setup_logging()
        logger.critical(f"Fatal error, exiting: {format_error_message(e)}\n{stack}")

        stream = stdout if stdout is not None else sys.stdout.buffer
        stream.write(Panic(stack).frame().encode("utf-8"))
        stream.flush()
        return EXIT_FATAL
    return EXIT_OK
