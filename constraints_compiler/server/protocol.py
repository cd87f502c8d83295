"""
Line protocol spoken on stdin/stdout.

Requests are single lines: the literal ``ping`` or a JSON object with
``constraintCode`` and ``missionModelGeneratedCode`` strings. Each response
is a marker line, optionally followed by one payload line.
"""

import json
from dataclasses import dataclass
from typing import Any

from ..core.exceptions import RequestDecodeError
from ..runner.diagnostics import Diagnostic

PING = "ping"

PONG_MARKER = "pong"
SUCCESS_MARKER = "success"
ERROR_MARKER = "error"
PANIC_MARKER = "panic"

CONSTRAINT_CODE_KEY = "constraintCode"
MISSION_MODEL_KEY = "missionModelGeneratedCode"


@dataclass(frozen=True)
class CompilationRequest:
    constraint_code: str
    mission_model_generated_code: str


def strip_terminator(line: str) -> str:
    if line.endswith("\r\n"):
        return line[:-2]
    if line.endswith("\n") or line.endswith("\r"):
        return line[:-1]
    return line


def is_ping(line: str) -> bool:
    return strip_terminator(line) == PING


def decode_request(line: str) -> CompilationRequest:
    """
    Decode a compilation request line.

    Raises:
        RequestDecodeError: if the line is not a JSON object with both
            string fields
    """
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise RequestDecodeError(f"invalid JSON ({e.msg} at column {e.colno})", line) from e

    if not isinstance(data, dict):
        raise RequestDecodeError(f"expected a JSON object, got {type(data).__name__}", line)

    values = {}
    for key in (CONSTRAINT_CODE_KEY, MISSION_MODEL_KEY):
        if key not in data:
            raise RequestDecodeError(f"missing field '{key}'", line)
        if not isinstance(data[key], str):
            raise RequestDecodeError(f"field '{key}' must be a string", line)
        values[key] = data[key]

    return CompilationRequest(
        constraint_code=values[CONSTRAINT_CODE_KEY],
        mission_model_generated_code=values[MISSION_MODEL_KEY],
    )


class Response:
    """A framed reply; ``frame()`` returns the exact text written to stdout."""

    marker: str = ""

    def payload(self) -> str | None:
        return None

    def frame(self) -> str:
        payload = self.payload()
        if payload is None:
            return self.marker + "\n"
        return f"{self.marker}\n{payload}\n"


class Pong(Response):
    marker = PONG_MARKER


class Success(Response):
    """Payload is the JSON structural representation of the value."""

    marker = SUCCESS_MARKER

    def __init__(self, ast_node: Any):
        # Serialize eagerly so a bad value fails before anything is written.
        self._payload = json.dumps(ast_node, allow_nan=False)

    def payload(self) -> str:
        return self._payload


class Failure(Response):
    marker = ERROR_MARKER

    def __init__(self, diagnostics: list[Diagnostic]):
        self.diagnostics = list(diagnostics)

    def payload(self) -> str:
        return json.dumps([diagnostic.to_json() for diagnostic in self.diagnostics])


class Panic(Response):
    """Traceback text, JSON encoded, optionally naming the offending line."""

    marker = PANIC_MARKER

    def __init__(self, stack: str, line: str | None = None):
        self.stack = stack
        self.line = line

    def payload(self) -> str:
        encoded = json.dumps(self.stack)
        if self.line is None:
            return encoded
        return f"{encoded} attempted to handle: {self.line}"
