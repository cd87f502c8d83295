"""
Custom exceptions for the constraints compiler.

Provides specific exception types for better error handling and user feedback.
"""


class ConstraintsCompilerError(Exception):
    """Base exception for constraints compiler errors."""


# Startup Errors


class ConfigurationError(ConstraintsCompilerError):
    """Error in compiler configuration."""

    def __init__(self, message: str):
        super().__init__(message)
        self.user_message = "The compiler configuration could not be loaded."
        self.recovery_hint = "Check compiler_config.yaml under the compiler root directory."


class BundleError(ConstraintsCompilerError):
    """Error assembling or loading a source bundle."""

    def __init__(self, message: str):
        super().__init__(message)
        self.user_message = "The constraint library sources are unavailable."
        self.recovery_hint = "Check that CONSTRAINTS_DSL_COMPILER_ROOT points at a complete install."


# Request Errors


class RequestDecodeError(ConstraintsCompilerError):
    """A request line could not be decoded into a compilation request."""

    def __init__(self, message: str, line: str = ""):
        super().__init__(f"Malformed request: {message}")
        self.line = line


# Execution Errors


class ExecutionError(ConstraintsCompilerError):
    """Base exception for execution errors."""


class UserCodeRuntimeError(ExecutionError):
    """User code raised while running inside the sandbox."""

    def __init__(self, error_type: str, message: str, stack: str = ""):
        super().__init__(f"{error_type}: {message}")
        self.error_type = error_type
        self.stack = stack
        self.user_message = "The constraint raised an exception while it was evaluated."
        self.recovery_hint = "Fix the failing expression and resubmit the constraint."

    def __str__(self) -> str:
        if self.stack:
            return self.stack.rstrip()
        return super().__str__()


class TypeCheckerError(ExecutionError):
    """The type checker crashed or was invoked incorrectly."""

    def __init__(self, message: str, exit_status: int | None = None):
        super().__init__(f"Type checker failure: {message}")
        self.exit_status = exit_status


class SandboxError(ExecutionError):
    """The sandbox process failed without reporting an outcome."""

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(f"Sandbox failure: {message}")
        self.exit_code = exit_code


# Fatal Errors


class ContractViolationError(ConstraintsCompilerError):
    """An internal invariant was broken; the process cannot keep serving."""


def format_error_message(error: Exception) -> str:
    """
    Format an error message for display to user.

    Args:
        error: Exception to format

    Returns:
        Formatted error message with recovery hints
    """
    if isinstance(error, ConstraintsCompilerError) and hasattr(error, "user_message"):
        message = f"{error.user_message} ({error})"
        if hasattr(error, "recovery_hint"):
            message += f"\n\n{error.recovery_hint}"
        return message
    else:
        return str(error)
