"""Tests for the request/response loop."""

import io
import json

import pytest

from constraints_compiler.core.config import default_root, load_service_config
from constraints_compiler.core.exceptions import ContractViolationError, UserCodeRuntimeError
from constraints_compiler.runner import Diagnostic, Err, Ok, SourceLocation, UserCodeValue, timeout_diagnostic
from constraints_compiler.server.loop import RequestLoop, StdinLineReader, StdoutFrameWriter

NODE = {"kind": "ViolationsOf", "expression": {"kind": "WindowsExpressionActivityWindow", "alias": "A 0"}}


class _Reader:
    def __init__(self, lines):
        self.lines = list(lines)

    async def readline(self):
        if not self.lines:
            return b""
        line = self.lines.pop(0)
        return line if isinstance(line, bytes) else line.encode("utf-8")


class _Writer:
    def __init__(self):
        self.frames = []

    async def write(self, frame):
        self.frames.append(frame)


class _Runner:
    """Answers by constraint code: a callable or a fixed outcome per snippet."""

    def __init__(self, outcomes):
        self.outcomes = outcomes
        self.calls = []

    async def execute_user_code(
        self, user_source, closure_arguments, expected_output_type_name, extra_type_roots, timeout_ms, files
    ):
        self.calls.append((user_source, list(closure_arguments), expected_output_type_name, timeout_ms, files))
        outcome = self.outcomes[user_source]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def service_config():
    return load_service_config(default_root())


def _request(code, mission_model="ActivityTypeName = str\n"):
    return json.dumps({"constraintCode": code, "missionModelGeneratedCode": mission_model}) + "\n"


async def _serve(service_config, runner, lines):
    writer = _Writer()
    await RequestLoop(service_config, runner, _Reader(lines), writer).run()
    return writer.frames


@pytest.mark.asyncio
async def test_ping_pong_bypasses_runner(service_config):
    runner = _Runner({})
    frames = await _serve(service_config, runner, ["ping\n"])
    assert frames == ["pong\n"]
    assert runner.calls == []


@pytest.mark.asyncio
async def test_blank_line_gets_a_panic_response(service_config):
    runner = _Runner({})
    frames = await _serve(service_config, runner, ["\n", "  \n", "ping\n"])
    assert len(frames) == 3
    for frame in frames[:2]:
        marker, payload, _ = frame.split("\n")
        assert marker == "panic"
        assert "RequestDecodeError" in payload
    assert frames[0].split("\n")[1].endswith(" attempted to handle: ")
    assert frames[2] == "pong\n"
    assert runner.calls == []


@pytest.mark.asyncio
async def test_invalid_utf8_panics_with_raw_line(service_config):
    frames = await _serve(service_config, _Runner({}), [b"\xff\xfe{}\n", "ping\n"])
    assert len(frames) == 2
    marker, payload, _ = frames[0].split("\n")
    assert marker == "panic"
    assert "UnicodeDecodeError" in payload
    assert payload.endswith(" attempted to handle: " + repr(b"\xff\xfe{}"))
    assert frames[1] == "pong\n"


@pytest.mark.asyncio
async def test_success_frame(service_config):
    runner = _Runner({"ok": Ok(UserCodeValue("Constraint", NODE, True))})
    frames = await _serve(service_config, runner, [_request("ok", "M = 1\n")])
    assert frames == ["success\n" + json.dumps(NODE) + "\n"]

    user_source, arguments, expected, timeout_ms, files = runner.calls[0]
    assert (user_source, arguments, expected) == ("ok", [], "Constraint")
    assert timeout_ms == service_config.timeout_ms == 10000
    assert [f.filename for f in files] == [
        "constraints_ast.py",
        "constraints_edsl_fluent_api.py",
        "mission_model_generated_code.py",
    ]
    assert files[-1].contents == "M = 1\n"


@pytest.mark.asyncio
async def test_error_frame_has_one_entry_per_diagnostic(service_config):
    diagnostics = [
        Diagnostic("first", "syntax", SourceLocation(1, 1)),
        Diagnostic("second", "name-defined", SourceLocation(2, 5)),
    ]
    frames = await _serve(service_config, _Runner({"bad": Err(diagnostics)}), [_request("bad")])
    marker, payload, _ = frames[0].split("\n")
    assert marker == "error"
    assert [entry["message"] for entry in json.loads(payload)] == ["first", "second"]


@pytest.mark.asyncio
async def test_malformed_request_panics_and_loop_survives(service_config):
    frames = await _serve(service_config, _Runner({}), ["{not json\n", "ping\n"])
    assert len(frames) == 2
    marker, payload, _ = frames[0].split("\n")
    assert marker == "panic"
    assert payload.endswith(" attempted to handle: {not json")
    assert "RequestDecodeError" in payload
    assert frames[1] == "pong\n"


@pytest.mark.asyncio
async def test_runtime_error_panics(service_config):
    error = UserCodeRuntimeError("ValueError", "boom", "Traceback ...\nValueError: boom\n")
    frames = await _serve(service_config, _Runner({"raise": error}), [_request("raise"), "ping\n"])
    assert frames[0].startswith("panic\n")
    assert "boom" in frames[0]
    assert frames[1] == "pong\n"


@pytest.mark.asyncio
async def test_unserializable_node_panics(service_config):
    runner = _Runner({"nan": Ok(UserCodeValue("Constraint", {"value": float("nan")}, True))})
    frames = await _serve(service_config, runner, [_request("nan"), "ping\n"])
    assert frames[0].startswith("panic\n")
    assert frames[1] == "pong\n"


@pytest.mark.asyncio
async def test_missing_ast_node_is_fatal(service_config):
    runner = _Runner({"plain": Ok(UserCodeValue("int"))})
    writer = _Writer()
    loop = RequestLoop(service_config, runner, _Reader([_request("plain"), "ping\n"]), writer)
    with pytest.raises(ContractViolationError, match="no ast_node"):
        await loop.run()
    assert writer.frames == []


@pytest.mark.asyncio
async def test_timeout_then_ping(service_config):
    runner = _Runner({"slow": Err([timeout_diagnostic(10000)])})
    frames = await _serve(service_config, runner, [_request("slow"), "ping\n"])
    assert frames[0].startswith("error\n")
    assert json.loads(frames[0].split("\n")[1])[0]["category"] == "timeout"
    assert frames[1] == "pong\n"


@pytest.mark.asyncio
async def test_responses_follow_request_order(service_config):
    runner = _Runner(
        {
            "a": Ok(UserCodeValue("Constraint", {"n": 1}, True)),
            "b": Err([Diagnostic("x", "misc", SourceLocation(1, 1))]),
            "c": Ok(UserCodeValue("Constraint", {"n": 3}, True)),
        }
    )
    frames = await _serve(service_config, runner, [_request("a"), "ping\n", _request("b"), _request("c")])
    assert [frame.split("\n")[0] for frame in frames] == ["success", "pong", "error", "success"]
    assert json.loads(frames[3].split("\n")[1]) == {"n": 3}


@pytest.mark.asyncio
async def test_identical_requests_identical_frames(service_config):
    runner = _Runner({"same": Ok(UserCodeValue("Constraint", NODE, True))})
    frames = await _serve(service_config, runner, [_request("same"), _request("same")])
    assert frames[0] == frames[1]


@pytest.mark.asyncio
async def test_stdio_adapters_round_trip():
    reader = StdinLineReader(io.BytesIO(b"ping\nsecond\n"))
    assert await reader.readline() == b"ping\n"
    assert await reader.readline() == b"second\n"
    assert await reader.readline() == b""

    out = io.BytesIO()
    await StdoutFrameWriter(out).write("pong\n")
    assert out.getvalue() == b"pong\n"
