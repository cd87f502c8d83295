"""
Wraps a constraint snippet into a checkable, executable module.

The snippet is the body of an anonymous function. It becomes::

    from <bundle module> import *
    ...

    def __user_code__(<closure params>) -> <expected type>:
        <snippet, indented>

Positions reported against the wrapper are mapped back onto the snippet.
"""

import keyword
import textwrap
from collections.abc import Sequence
from dataclasses import dataclass

from .diagnostics import USER_CODE_FILENAME, SourceLocation
from .results import UserCodeArgument

ENTRYPOINT = "__user_code__"
USER_MODULE_NAME = USER_CODE_FILENAME[:-3]
INDENT = "    "


@dataclass(frozen=True, slots=True)
class UserModule:
    """Generated wrapper module plus what is needed to map positions back."""

    source: str
    header_lines: int
    user_lines: tuple[str, ...]

    @property
    def filename(self) -> str:
        return USER_CODE_FILENAME

    @property
    def module_name(self) -> str:
        return USER_MODULE_NAME

    def is_user_line(self, line: int) -> bool:
        return line > self.header_lines

    def to_user_location(self, line: int, column: int) -> SourceLocation:
        """Map a 1-based wrapper position onto the snippet."""
        last_line = max(len(self.user_lines), 1)
        if not self.is_user_line(line):
            return SourceLocation(1, 1)
        user_line = min(line - self.header_lines, last_line)
        user_column = column - len(INDENT) if column > len(INDENT) else 1
        return SourceLocation(user_line, user_column)

    def context(self, location: SourceLocation) -> str | None:
        if 1 <= location.line <= len(self.user_lines):
            return self.user_lines[location.line - 1]
        return None


def _validate_identifier(name: str, what: str) -> None:
    if not name.isidentifier() or keyword.iskeyword(name):
        raise ValueError(f"{what} must be a Python identifier, got {name!r}")


def build_user_module(
    user_source: str,
    closure_arguments: Sequence[UserCodeArgument],
    expected_output_type_name: str,
    module_names: Sequence[str],
) -> UserModule:
    """
    Build the wrapper module for ``user_source``.

    Args:
        user_source: Function body written by the user
        closure_arguments: Typed parameters of the wrapper function
        expected_output_type_name: Return annotation of the wrapper function
        module_names: Bundle modules star-imported ahead of the function

    Raises:
        ValueError: on an invalid type name or argument list
    """
    _validate_identifier(expected_output_type_name, "Expected output type name")
    seen: set[str] = set()
    for argument in closure_arguments:
        _validate_identifier(argument.name, "Closure argument name")
        if not argument.annotation.strip() or "\n" in argument.annotation:
            raise ValueError(f"Invalid annotation for closure argument {argument.name}")
        if argument.name in seen:
            raise ValueError(f"Duplicate closure argument: {argument.name}")
        seen.add(argument.name)

    normalized = user_source.replace("\r\n", "\n").replace("\r", "\n")
    user_lines = tuple(normalized.split("\n"))

    header = [f"from {name} import *" for name in module_names]
    params = ", ".join(f"{arg.name}: {arg.annotation}" for arg in closure_arguments)
    header += ["", "", f"def {ENTRYPOINT}({params}) -> {expected_output_type_name}:"]

    body = textwrap.indent(normalized, INDENT)
    source = "\n".join(header) + "\n" + body + "\n"
    return UserModule(source=source, header_lines=len(header), user_lines=user_lines)
