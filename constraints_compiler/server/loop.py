"""
Sequential request/response loop over stdin and stdout.
"""

import asyncio
import sys
import traceback
from typing import Protocol

from ..bundle.source_bundle import SourceBundle
from ..core.config import ServiceConfig
from ..core.exceptions import ContractViolationError
from ..core.logging import get_logger, timed_operation
from ..runner.user_code_runner import UserCodeRunner
from .protocol import (
    Failure,
    Panic,
    Pong,
    Response,
    Success,
    decode_request,
    is_ping,
    strip_terminator,
)

logger = get_logger(__name__)

EXPECTED_OUTPUT_TYPE_NAME = "Constraint"


class LineReader(Protocol):
    async def readline(self) -> bytes:
        """Next raw line including its terminator, or ``b""`` at end of input."""
        ...


class FrameWriter(Protocol):
    async def write(self, frame: str) -> None: ...


class StdinLineReader:
    """Reads stdin from a worker thread so the event loop stays free."""

    def __init__(self, stream=None):
        self._stream = stream if stream is not None else sys.stdin.buffer

    async def readline(self) -> bytes:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._stream.readline)


class StdoutFrameWriter:
    def __init__(self, stream=None):
        self._stream = stream if stream is not None else sys.stdout.buffer

    async def write(self, frame: str) -> None:
        self._stream.write(frame.encode("utf-8"))
        self._stream.flush()


class RequestLoop:
    """
    Handles one line at a time and writes exactly one response per line.

    Failures of a single request become ``panic`` frames and the loop keeps
    serving. ``ContractViolationError`` is never handled here.
    """

    def __init__(
        self,
        config: ServiceConfig,
        runner: UserCodeRunner,
        reader: LineReader,
        writer: FrameWriter,
    ):
        self.config = config
        self.runner = runner
        self.reader = reader
        self.writer = writer

    async def run(self) -> None:
        """Serve until end of input."""
        while True:
            raw = await self.reader.readline()
            if not raw:
                logger.info("Input closed; shutting down")
                return
            response = await self.handle_raw(raw)
            await self.writer.write(response.frame())

    async def handle_raw(self, raw: bytes) -> Response:
        """Decode one input line; bytes that are not UTF-8 become a panic."""
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            stack = traceback.format_exc()
            logger.warning(f"Request is not valid UTF-8:\n{stack}")
            return Panic(stack, repr(raw.rstrip(b"\r\n")))
        return await self.handle_line(strip_terminator(text))

    async def handle_line(self, line: str) -> Response:
        if is_ping(line):
            logger.debug("ping")
            return Pong()
        try:
            with timed_operation(logger, "compile request"):
                return await self.compile(line)
        except ContractViolationError:
            raise
        except Exception:
            stack = traceback.format_exc()
            logger.warning(f"Request failed:\n{stack}")
            return Panic(stack, line)

    async def compile(self, line: str) -> Response:
        request = decode_request(line)
        bundle = SourceBundle.for_request(
            self.config.libraries, request.mission_model_generated_code
        )
        result = await self.runner.execute_user_code(
            request.constraint_code,
            [],
            EXPECTED_OUTPUT_TYPE_NAME,
            self.config.extra_type_roots,
            self.config.timeout_ms,
            bundle.files,
        )

        if result.is_err():
            diagnostics = result.unwrap_err()
            logger.debug(f"Request produced {len(diagnostics)} diagnostic(s)")
            return Failure(diagnostics)

        value = result.unwrap()
        if not value.has_ast_node:
            raise ContractViolationError(
                f"{value.type_name} value returned by constraint code has no ast_node"
            )
        logger.debug(f"Request succeeded with a {value.type_name}")
        return Success(value.ast_node)
