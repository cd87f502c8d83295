"""Tests for compiler configuration loading and root resolution."""

import pytest

from constraints_compiler.core.config import (
    DEFAULT_ALLOWED_IMPORTS,
    DEFAULT_TIMEOUT_MS,
    ROOT_ENV_VAR,
    CompilerConfig,
    default_root,
    load_service_config,
    parse_target,
    resolve_root,
)
from constraints_compiler.core.exceptions import BundleError, ConfigurationError


def test_shipped_config_loads_with_defaults():
    config = CompilerConfig.load_from_file(default_root() / "compiler_config.yaml")
    assert config.compiler_options.target == "3.11"
    assert config.feature_version == (3, 11)
    assert config.sandbox.timeout_ms == DEFAULT_TIMEOUT_MS
    assert config.sandbox.memory_limit_mb == 512
    assert config.sandbox.allowed_imports == DEFAULT_ALLOWED_IMPORTS
    assert config.type_check.strict is True
    assert config.type_check.extra_type_roots == ()
    assert config.logging.level == "INFO"


def test_empty_config_file_uses_defaults(tmp_path):
    path = tmp_path / "compiler_config.yaml"
    path.write_text("", encoding="utf-8")
    config = CompilerConfig.load_from_file(path)
    assert config == CompilerConfig()


def test_json_config_is_supported(tmp_path):
    path = tmp_path / "compiler_config.json"
    path.write_text('{"compiler_options": {"target": "3.12"}, "sandbox": {"timeout_ms": 250}}', encoding="utf-8")
    config = CompilerConfig.load_from_file(path)
    assert config.feature_version == (3, 12)
    assert config.sandbox.timeout_ms == 250


def test_missing_config_file_raises(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        CompilerConfig.load_from_file(tmp_path / "compiler_config.yaml")


def test_non_mapping_config_raises(tmp_path):
    path = tmp_path / "compiler_config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="must be a mapping"):
        CompilerConfig.load_from_file(path)


def test_unparsable_yaml_raises(tmp_path):
    path = tmp_path / "compiler_config.yaml"
    path.write_text("compiler_options: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="Failed to parse"):
        CompilerConfig.load_from_file(path)


def test_unquoted_target_is_rejected(tmp_path):
    path = tmp_path / "compiler_config.yaml"
    path.write_text("compiler_options:\n  target: 3.10\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="quoted string"):
        CompilerConfig.load_from_file(path)


@pytest.mark.parametrize("target", ["2.7", "3.8", "4.0", "python3.11", "3"])
def test_invalid_targets_are_rejected(target):
    with pytest.raises(ConfigurationError):
        parse_target(target)


def test_parse_target_accepts_whitespace():
    assert parse_target(" 3.10 ") == (3, 10)


@pytest.mark.parametrize("timeout", [0, -5, "10", True, 1.5])
def test_invalid_timeout_is_rejected(timeout):
    with pytest.raises(ConfigurationError, match="timeout_ms"):
        CompilerConfig.from_dict({"sandbox": {"timeout_ms": timeout}})


def test_memory_limit_may_be_disabled():
    config = CompilerConfig.from_dict({"sandbox": {"memory_limit_mb": None}})
    assert config.sandbox.memory_limit_mb is None


def test_section_must_be_mapping():
    with pytest.raises(ConfigurationError, match="sandbox"):
        CompilerConfig.from_dict({"sandbox": ["timeout_ms"]})


def test_resolve_root_prefers_explicit_over_env(tmp_path, monkeypatch):
    monkeypatch.setenv(ROOT_ENV_VAR, str(tmp_path / "from-env"))
    assert resolve_root(tmp_path / "explicit") == (tmp_path / "explicit").resolve()


def test_resolve_root_uses_env(tmp_path, monkeypatch):
    monkeypatch.setenv(ROOT_ENV_VAR, str(tmp_path))
    assert resolve_root() == tmp_path.resolve()


def test_resolve_root_falls_back_to_package(monkeypatch):
    monkeypatch.delenv(ROOT_ENV_VAR, raising=False)
    assert resolve_root() == default_root()
    assert (default_root() / "libs").is_dir()


def test_load_service_config_reads_libraries(compiler_root):
    config = load_service_config(compiler_root)
    assert config.root == compiler_root.resolve()
    assert config.timeout_ms == DEFAULT_TIMEOUT_MS
    assert "class Constraint" in config.libraries.constraints_edsl
    assert "ConstraintNode" in config.libraries.constraints_ast


def test_load_service_config_missing_library(compiler_root):
    (compiler_root / "libs" / "constraints_ast.py").unlink()
    with pytest.raises(BundleError, match="constraints_ast.py"):
        load_service_config(compiler_root)


def test_extra_type_roots_resolve_against_root(compiler_root):
    (compiler_root / "compiler_config.yaml").write_text(
        "type_check:\n  extra_type_roots:\n    - stubs\n    - /opt/types\n",
        encoding="utf-8",
    )
    config = load_service_config(compiler_root)
    assert config.extra_type_roots == (
        str(compiler_root.resolve() / "stubs"),
        "/opt/types",
    )


def test_service_config_is_frozen(compiler_root):
    config = load_service_config(compiler_root)
    with pytest.raises(AttributeError):
        config.root = compiler_root
