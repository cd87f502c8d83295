"""
Structured compile/type diagnostics.
"""

from dataclasses import dataclass
from typing import Any

USER_CODE_FILENAME = "user_code.py"


@dataclass(frozen=True, slots=True)
class SourceLocation:
    """1-based line and column."""

    line: int
    column: int

    def to_json(self) -> dict[str, int]:
        return {"line": self.line, "column": self.column}


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """
    One compiler, type-checker or sandbox-policy error.

    Attributes:
        message: Human readable description
        category: Error family (``syntax``, ``sandbox``, ``timeout`` or a
            type checker error code such as ``return-value``)
        location: Position inside ``file``
        file: Bundle filename the error belongs to
        source_context: The offending source line, when known
        hint: Extra notes attached by the type checker
        severity: Always ``error`` for diagnostics that fail a request
    """

    message: str
    category: str
    location: SourceLocation
    file: str = USER_CODE_FILENAME
    source_context: str | None = None
    hint: str | None = None
    severity: str = "error"

    def to_json(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "category": self.category,
            "severity": self.severity,
            "file": self.file,
            "location": self.location.to_json(),
            "sourceContext": self.source_context,
            "hint": self.hint,
        }


def timeout_diagnostic(timeout_ms: int) -> Diagnostic:
    return Diagnostic(
        message=f"Execution timed out after {timeout_ms} ms",
        category="timeout",
        location=SourceLocation(1, 1),
    )
