"""
Line-protocol server: request loop, framing and the fatal error guard.
"""

from .guard import EXIT_FATAL, EXIT_INTERRUPTED, EXIT_OK, run_guarded
from .loop import RequestLoop, StdinLineReader, StdoutFrameWriter
from .protocol import (
    CompilationRequest,
    Failure,
    Panic,
    Pong,
    Response,
    Success,
    decode_request,
)

__all__ = [
    "EXIT_FATAL",
    "EXIT_INTERRUPTED",
    "EXIT_OK",
    "CompilationRequest",
    "Failure",
    "Panic",
    "Pong",
    "RequestLoop",
    "Response",
    "StdinLineReader",
    "StdoutFrameWriter",
    "Success",
    "decode_request",
    "run_guarded",
]
