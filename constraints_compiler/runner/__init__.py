"""
User code runner: static checks, type checking and sandboxed execution.
"""

from .diagnostics import Diagnostic, SourceLocation, timeout_diagnostic
from .results import Err, Ok, Result, UserCodeArgument, UserCodeValue
from .type_checker import TypeChecker
from .user_code_runner import UserCodeRunner

__all__ = [
    "Diagnostic",
    "Err",
    "Ok",
    "Result",
    "SourceLocation",
    "TypeChecker",
    "UserCodeArgument",
    "UserCodeRunner",
    "UserCodeValue",
    "timeout_diagnostic",
]
