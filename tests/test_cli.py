"""Tests for command line parsing."""

import pytest

from constraints_compiler import __version__
from constraints_compiler.cli import build_parser


def test_parser_flags():
    args = build_parser().parse_args(["--root", "/opt/compiler", "--log-level", "debug"])
    assert args.root == "/opt/compiler"
    assert args.log_level == "debug"


def test_parser_defaults_defer_to_environment():
    args = build_parser().parse_args([])
    assert args.root is None
    assert args.log_level is None


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as excinfo:
        build_parser().parse_args(["--version"])
    assert excinfo.value.code == 0
    assert __version__ in capsys.readouterr().out
