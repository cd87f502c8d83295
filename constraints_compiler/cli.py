"""
Command line entry point: serve the line protocol on stdin/stdout.
"""

import argparse
import asyncio
import os

from . import __version__
from .core.config import LOG_LEVEL_ENV_VAR, ROOT_ENV_VAR, load_service_config
from .core.logging import get_logger, setup_logging
from .runner.user_code_runner import UserCodeRunner
from .server.guard import run_guarded
from .server.loop import RequestLoop, StdinLineReader, StdoutFrameWriter

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="constraints-compiler",
        description="Type-check and evaluate constraint code over a stdin/stdout line protocol",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Protocol:
  ping                  -> pong
  {{"constraintCode": ..., "missionModelGeneratedCode": ...}}
                        -> success | error | panic, then a JSON payload line

Environment:
  {ROOT_ENV_VAR}   compiler root (overridden by --root)
  {LOG_LEVEL_ENV_VAR}   log level (overridden by --log-level)
        """,
    )
    parser.add_argument(
        "--root",
        type=str,
        default=None,
        help="Directory holding compiler_config.yaml and libs/",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Log level for stderr output (DEBUG, INFO, WARNING, ...)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def serve(root: str | None = None, log_level: str | None = None) -> None:
    """Load configuration, then answer requests until stdin closes."""
    config = load_service_config(root)
    setup_logging(log_level or config.compiler.logging.level)
    logger.info(
        f"Serving from {config.root} (target {config.compiler.compiler_options.target}, "
        f"timeout {config.timeout_ms} ms)"
    )

    runner = UserCodeRunner.from_config(config.compiler)
    try:
        loop = RequestLoop(config, runner, StdinLineReader(), StdoutFrameWriter())
        asyncio.run(loop.run())
    finally:
        runner.close()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)
    log_level = args.log_level or os.environ.get(LOG_LEVEL_ENV_VAR) or None
    # Configured early so startup failures are logged too.
    setup_logging(log_level or "INFO")
    return run_guarded(lambda: serve(args.root, log_level))
