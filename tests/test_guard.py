"""Tests for the fatal error guard and the CLI entry point."""

import asyncio
import io
import json

from constraints_compiler.cli import main
from constraints_compiler.core.config import ROOT_ENV_VAR, default_root, load_service_config
from constraints_compiler.core.exceptions import ContractViolationError
from constraints_compiler.runner import Ok, UserCodeValue
from constraints_compiler.server.guard import EXIT_FATAL, EXIT_INTERRUPTED, EXIT_OK, run_guarded
from constraints_compiler.server.loop import RequestLoop


class _Reader:
    def __init__(self, lines):
        self.lines = [line.encode("utf-8") for line in lines]

    async def readline(self):
        return self.lines.pop(0) if self.lines else b""


class _Writer:
    def __init__(self):
        self.frames = []

    async def write(self, frame):
        self.frames.append(frame)


class _Runner:
    def __init__(self, result):
        self.result = result

    async def execute_user_code(self, *args):
        return self.result


def test_clean_return_exits_zero():
    out = io.BytesIO()
    assert run_guarded(lambda: None, stdout=out) == EXIT_OK
    assert out.getvalue() == b""


def test_escaped_exception_writes_fatal_panic():
    def main_():
        raise ContractViolationError("Constraint value has no ast_node")

    out = io.BytesIO()
    assert run_guarded(main_, stdout=out) == EXIT_FATAL
    marker, payload, rest = out.getvalue().decode("utf-8").split("\n")
    assert marker == "panic"
    stack = json.loads(payload)
    assert "ContractViolationError" in stack
    assert "no ast_node" in stack
    assert rest == ""


def test_keyboard_interrupt_exits_130_without_frame():
    def main_():
        raise KeyboardInterrupt

    out = io.BytesIO()
    assert run_guarded(main_, stdout=out) == EXIT_INTERRUPTED
    assert out.getvalue() == b""


def test_startup_failure_is_fatal(tmp_path, monkeypatch, capsysbinary):
    monkeypatch.setenv(ROOT_ENV_VAR, str(tmp_path / "missing"))
    assert main([]) == EXIT_FATAL
    out = capsysbinary.readouterr().out.decode("utf-8")
    assert out.startswith("panic\n")
    assert "ConfigurationError" in json.loads(out.split("\n")[1])


def test_missing_ast_node_through_loop_is_fatal():
    service_config = load_service_config(default_root())
    runner = _Runner(Ok(UserCodeValue("int")))
    writer = _Writer()
    request = json.dumps({"constraintCode": "plain", "missionModelGeneratedCode": "M = 1\n"}) + "\n"
    loop = RequestLoop(service_config, runner, _Reader([request, "ping\n"]), writer)

    out = io.BytesIO()
    assert run_guarded(lambda: asyncio.run(loop.run()), stdout=out) == EXIT_FATAL
    marker, payload, rest = out.getvalue().decode("utf-8").split("\n")
    assert marker == "panic"
    assert "ContractViolationError" in json.loads(payload)
    assert rest == ""
    assert writer.frames == []
