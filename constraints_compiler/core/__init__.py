"""
Core functionality for the constraints compiler.
"""

from .exceptions import (
    BundleError,
    ConfigurationError,
    ConstraintsCompilerError,
    ContractViolationError,
    ExecutionError,
    RequestDecodeError,
    SandboxError,
    TypeCheckerError,
    UserCodeRuntimeError,
    format_error_message,
)
from .config import (
    CompilerConfig,
    CompilerOptions,
    SandboxOptions,
    ServiceConfig,
    TypeCheckOptions,
    load_service_config,
)
from .logging import get_logger, setup_logging

__all__ = [
    "BundleError",
    "CompilerConfig",
    "CompilerOptions",
    "ConfigurationError",
    "ConstraintsCompilerError",
    "ContractViolationError",
    "ExecutionError",
    "RequestDecodeError",
    "SandboxError",
    "SandboxOptions",
    "ServiceConfig",
    "TypeCheckOptions",
    "TypeCheckerError",
    "UserCodeRuntimeError",
    "format_error_message",
    "get_logger",
    "load_service_config",
    "setup_logging",
]
