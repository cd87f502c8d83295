"""
Configuration management for the constraints compiler.

Everything here is resolved once at startup and never mutated afterwards.
"""

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from ..bundle.source_bundle import LibrarySources

ROOT_ENV_VAR = "CONSTRAINTS_DSL_COMPILER_ROOT"
LOG_LEVEL_ENV_VAR = "CONSTRAINTS_DSL_COMPILER_LOG_LEVEL"
CONFIG_FILENAME = "compiler_config.yaml"

DEFAULT_TARGET = "3.11"
MIN_TARGET_MINOR = 9
DEFAULT_TIMEOUT_MS = 10000

_TARGET_PATTERN = re.compile(r"^3\.(\d+)$")

DEFAULT_ALLOWED_IMPORTS = (
    "collections",
    "dataclasses",
    "datetime",
    "decimal",
    "enum",
    "fractions",
    "functools",
    "itertools",
    "math",
    "operator",
    "re",
    "statistics",
    "typing",
)


def parse_target(target: Any) -> tuple[int, int]:
    """
    Parse a ``"3.N"`` language level into a ``(major, minor)`` tuple.

    YAML reads an unquoted ``3.10`` as the float ``3.1``, so only strings
    are accepted.
    """
    if not isinstance(target, str):
        raise ConfigurationError(
            f"compiler_options.target must be a quoted string like \"{DEFAULT_TARGET}\", "
            f"got {target!r}"
        )
    match = _TARGET_PATTERN.match(target.strip())
    if match is None:
        raise ConfigurationError(f"Invalid compiler target: {target!r}")
    minor = int(match.group(1))
    if minor < MIN_TARGET_MINOR:
        raise ConfigurationError(
            f"Compiler target {target} is older than 3.{MIN_TARGET_MINOR}"
        )
    return (3, minor)


@dataclass(frozen=True)
class CompilerOptions:
    """Options that govern parsing and type checking."""

    target: str = DEFAULT_TARGET

    @property
    def feature_version(self) -> tuple[int, int]:
        return parse_target(self.target)


@dataclass(frozen=True)
class SandboxOptions:
    """Execution sandbox configuration."""

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    memory_limit_mb: int | None = 512
    allowed_imports: tuple[str, ...] = DEFAULT_ALLOWED_IMPORTS


@dataclass(frozen=True)
class TypeCheckOptions:
    """Type checker configuration."""

    strict: bool = True
    cache_dir: str | None = None
    extra_type_roots: tuple[str, ...] = ()


@dataclass(frozen=True)
class LoggingOptions:
    level: str = "INFO"


@dataclass(frozen=True)
class CompilerConfig:
    """Parsed contents of ``compiler_config.yaml``."""

    compiler_options: CompilerOptions = field(default_factory=CompilerOptions)
    sandbox: SandboxOptions = field(default_factory=SandboxOptions)
    type_check: TypeCheckOptions = field(default_factory=TypeCheckOptions)
    logging: LoggingOptions = field(default_factory=LoggingOptions)

    @property
    def feature_version(self) -> tuple[int, int]:
        return self.compiler_options.feature_version

    @classmethod
    def load_from_file(cls, config_path: Path) -> "CompilerConfig":
        """Load configuration from file."""
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_path, encoding="utf-8") as f:
                if config_path.suffix.lower() == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to parse configuration {config_path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration {config_path} must be a mapping, got {type(data).__name__}"
            )
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CompilerConfig":
        compiler_data = _section(data, "compiler_options")
        target = compiler_data.get("target")
        if target is None:
            target = DEFAULT_TARGET
        # Validates eagerly so a bad target fails at startup.
        parse_target(target)
        compiler_options = CompilerOptions(target=target.strip())

        sandbox_data = _section(data, "sandbox")
        timeout_ms = sandbox_data.get("timeout_ms", DEFAULT_TIMEOUT_MS)
        if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int) or timeout_ms <= 0:
            raise ConfigurationError(f"sandbox.timeout_ms must be a positive integer, got {timeout_ms!r}")
        memory_limit_mb = sandbox_data.get("memory_limit_mb", 512)
        if memory_limit_mb is not None and (
            isinstance(memory_limit_mb, bool) or not isinstance(memory_limit_mb, int) or memory_limit_mb <= 0
        ):
            raise ConfigurationError(
                f"sandbox.memory_limit_mb must be a positive integer or null, got {memory_limit_mb!r}"
            )
        sandbox = SandboxOptions(
            timeout_ms=timeout_ms,
            memory_limit_mb=memory_limit_mb,
            allowed_imports=_string_tuple(
                sandbox_data.get("allowed_imports", DEFAULT_ALLOWED_IMPORTS), "sandbox.allowed_imports"
            ),
        )

        type_check_data = _section(data, "type_check")
        cache_dir = type_check_data.get("cache_dir")
        type_check = TypeCheckOptions(
            strict=bool(type_check_data.get("strict", True)),
            cache_dir=str(cache_dir) if cache_dir else None,
            extra_type_roots=_string_tuple(
                type_check_data.get("extra_type_roots", ()), "type_check.extra_type_roots"
            ),
        )

        logging_data = _section(data, "logging")
        logging_options = LoggingOptions(level=str(logging_data.get("level", "INFO")).upper())

        return cls(
            compiler_options=compiler_options,
            sandbox=sandbox,
            type_check=type_check,
            logging=logging_options,
        )


@dataclass(frozen=True)
class ServiceConfig:
    """
    Process-wide immutable state shared by every request.

    Attributes:
        root: Compiler root directory
        compiler: Parsed compiler configuration
        libraries: The two fixed library sources
    """

    root: Path
    compiler: CompilerConfig
    libraries: "LibrarySources"

    @property
    def timeout_ms(self) -> int:
        return self.compiler.sandbox.timeout_ms

    @property
    def extra_type_roots(self) -> tuple[str, ...]:
        roots = []
        for item in self.compiler.type_check.extra_type_roots:
            candidate = Path(item).expanduser()
            if not candidate.is_absolute():
                candidate = self.root / candidate
            roots.append(str(candidate))
        return tuple(roots)


def default_root() -> Path:
    """The installed package directory, which ships libraries and a default config."""
    return Path(__file__).resolve().parent.parent


def resolve_root(explicit: str | Path | None = None) -> Path:
    """Pick the compiler root: explicit argument, then environment, then package dir."""
    if explicit:
        return Path(explicit).expanduser().resolve()
    from_env = os.environ.get(ROOT_ENV_VAR, "").strip()
    if from_env:
        return Path(from_env).expanduser().resolve()
    return default_root()


def load_compiler_config(root: Path) -> CompilerConfig:
    return CompilerConfig.load_from_file(root / CONFIG_FILENAME)


def load_service_config(root: str | Path | None = None) -> ServiceConfig:
    """
    Build the process-wide configuration.

    Raises:
        ConfigurationError: configuration missing or invalid
        BundleError: a library source is missing or unreadable
    """
    from ..bundle.loader import load_library_sources

    resolved_root = resolve_root(root)
    compiler = load_compiler_config(resolved_root)
    libraries = load_library_sources(resolved_root)
    return ServiceConfig(root=resolved_root, compiler=compiler, libraries=libraries)


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"Configuration section '{name}' must be a mapping")
    return value


def _string_tuple(value: Any, name: str) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ConfigurationError(f"{name} must be a list of strings")
    return tuple(str(item).strip() for item in value if str(item).strip())
