"""
Parse checks and sandbox policy checks that run before type checking.
"""

import ast
from collections.abc import Callable, Iterable

from ..bundle.source_bundle import SourceFile
from .diagnostics import Diagnostic, SourceLocation
from .user_module import UserModule

FORBIDDEN_FUNCTIONS = frozenset(
    {
        "__import__",
        "breakpoint",
        "compile",
        "delattr",
        "eval",
        "exec",
        "getattr",
        "globals",
        "input",
        "locals",
        "open",
        "setattr",
        "type",
        "vars",
    }
)

# str.format and format_map walk attribute paths given as text.
FORBIDDEN_ATTRIBUTES = frozenset({"format", "format_map"})

ALLOWED_DUNDER_NAMES = frozenset({"__all__"})


def check_library_syntax(source: SourceFile, feature_version: tuple[int, int]) -> list[Diagnostic]:
    """Parse one bundle unit; a syntax error is reported against that file."""
    try:
        ast.parse(source.contents, filename=source.filename, feature_version=feature_version)
    except SyntaxError as e:
        return [
            Diagnostic(
                message=e.msg,
                category="syntax",
                location=SourceLocation(e.lineno or 1, e.offset or 1),
                file=source.filename,
                source_context=(e.text or "").rstrip("\n") or None,
            )
        ]
    return []


def parse_user_module(
    module: UserModule, feature_version: tuple[int, int]
) -> tuple[ast.Module | None, list[Diagnostic]]:
    """Parse the wrapper; syntax errors are mapped onto the snippet."""
    try:
        tree = ast.parse(module.source, filename=module.filename, feature_version=feature_version)
    except SyntaxError as e:
        location = module.to_user_location(e.lineno or 1, e.offset or 1)
        return None, [
            Diagnostic(
                message=e.msg,
                category="syntax",
                location=location,
                source_context=module.context(location),
            )
        ]
    return tree, []


def _policy_findings(
    tree: ast.Module,
    allowed: frozenset[str],
    is_checked_line: Callable[[int], bool],
) -> list[tuple[int, int, str]]:
    found: list[tuple[int, int, str]] = []

    for node in ast.walk(tree):
        lineno = getattr(node, "lineno", None)
        if lineno is None or not is_checked_line(lineno):
            continue
        col = getattr(node, "col_offset", 0) + 1

        if isinstance(node, ast.Import):
            for alias in node.names:
                if alias.name.split(".")[0] not in allowed:
                    found.append((lineno, col, f"Import of '{alias.name}' is not allowed"))
        elif isinstance(node, ast.ImportFrom):
            if node.level:
                found.append((lineno, col, "Relative imports are not allowed"))
            elif node.module and node.module.split(".")[0] not in allowed:
                found.append((lineno, col, f"Import from '{node.module}' is not allowed"))
        elif isinstance(node, ast.Attribute):
            if node.attr.startswith("__"):
                found.append((lineno, col, f"Access to attribute '{node.attr}' is not allowed"))
            elif node.attr in FORBIDDEN_ATTRIBUTES:
                found.append((lineno, col, f"Use of '.{node.attr}' is not allowed"))
        elif isinstance(node, ast.Name):
            if node.id in FORBIDDEN_FUNCTIONS:
                found.append((lineno, col, f"Use of '{node.id}' is not allowed"))
            elif node.id.startswith("__") and node.id not in ALLOWED_DUNDER_NAMES:
                found.append((lineno, col, f"Use of name '{node.id}' is not allowed"))

    return sorted(found)


def check_sandbox_policy(
    tree: ast.Module,
    module: UserModule,
    allowed_imports: Iterable[str],
) -> list[Diagnostic]:
    """
    Reject constructs that reach outside the sandbox.

    Only the snippet is inspected; the generated header is trusted.
    """
    diagnostics = []
    for lineno, col, message in _policy_findings(tree, frozenset(allowed_imports), module.is_user_line):
        location = module.to_user_location(lineno, col)
        diagnostics.append(
            Diagnostic(
                message=message,
                category="sandbox",
                location=location,
                source_context=module.context(location),
            )
        )
    return diagnostics


def check_unit_policy(
    source: SourceFile,
    allowed_imports: Iterable[str],
    feature_version: tuple[int, int],
) -> list[Diagnostic]:
    """
    Apply the sandbox policy to a whole per-request unit.

    The unit must already parse; positions stay relative to its own file.
    """
    tree = ast.parse(source.contents, filename=source.filename, feature_version=feature_version)
    lines = source.contents.splitlines()
    diagnostics = []
    for lineno, col, message in _policy_findings(tree, frozenset(allowed_imports), lambda line: True):
        diagnostics.append(
            Diagnostic(
                message=message,
                category="sandbox",
                location=SourceLocation(lineno, col),
                file=source.filename,
                source_context=lines[lineno - 1] if lineno <= len(lines) else None,
            )
        )
    return diagnostics
