"""
Whole-bundle type checking with mypy.

The bundle and the wrapped snippet are written to a scratch directory and
checked in one mypy run, so cross-module errors surface exactly as they
would in a real project.
"""

import json
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from ..bundle.source_bundle import SourceFile
from ..core.exceptions import TypeCheckerError
from ..core.logging import get_logger
from .diagnostics import USER_CODE_FILENAME, Diagnostic, SourceLocation
from .user_module import UserModule

logger = get_logger(__name__)

MYPY_CONFIG_FILENAME = "mypy.ini"


class TypeChecker:
    """Runs mypy over a source bundle and maps its findings to diagnostics."""

    def __init__(
        self,
        *,
        target: str,
        strict: bool = True,
        cache_dir: str | None = None,
    ) -> None:
        self.target = target
        self.strict = strict
        self._owned_cache: tempfile.TemporaryDirectory | None = None
        if cache_dir:
            self.cache_dir = cache_dir
        else:
            self._owned_cache = tempfile.TemporaryDirectory(prefix="constraints-compiler-mypy-")
            self.cache_dir = self._owned_cache.name

    def close(self) -> None:
        if self._owned_cache is not None:
            self._owned_cache.cleanup()
            self._owned_cache = None

    def build_args(self, workdir: Path, files: Sequence[Path]) -> list[str]:
        args = [
            "--config-file",
            str(workdir / MYPY_CONFIG_FILENAME),
            "--python-version",
            self.target,
            "--output",
            "json",
            "--show-column-numbers",
            "--show-error-codes",
            "--no-error-summary",
            "--no-color-output",
            "--no-site-packages",
            "--cache-dir",
            self.cache_dir,
        ]
        if self.strict:
            args.append("--strict")
        args.extend(str(path) for path in files)
        return args

    def check(
        self,
        sources: Sequence[SourceFile],
        user_module: UserModule,
        extra_type_roots: Sequence[str] = (),
    ) -> list[Diagnostic]:
        """
        Type-check ``sources`` together with ``user_module``.

        Blocking; callers on the event loop run it in a worker thread.

        Returns:
            Diagnostics in the order mypy reported them

        Raises:
            TypeCheckerError: if mypy itself fails
        """
        # Imported here so sandbox children never load mypy.
        from mypy import api as mypy_api

        with tempfile.TemporaryDirectory(prefix="constraints-bundle-") as tmp:
            workdir = Path(tmp)
            paths = []
            for source in sources:
                path = workdir / source.filename
                path.write_text(source.contents, encoding="utf-8")
                paths.append(path)
            user_path = workdir / user_module.filename
            user_path.write_text(user_module.source, encoding="utf-8")
            paths.append(user_path)

            # Bundle files resolve each other through their shared directory;
            # mypy_path only adds the extra stub roots.
            (workdir / MYPY_CONFIG_FILENAME).write_text(
                "[mypy]\nmypy_path = " + ",".join(extra_type_roots) + "\n",
                encoding="utf-8",
            )

            stdout, stderr, exit_status = mypy_api.run(self.build_args(workdir, paths))

        if exit_status not in (0, 1):
            raise TypeCheckerError(stderr.strip() or stdout.strip() or "no output", exit_status)

        records = parse_json_output(stdout)
        if exit_status == 1 and not records:
            raise TypeCheckerError(stderr.strip() or stdout.strip() or "no output", exit_status)
        return [to_diagnostic(record, user_module) for record in records if record.get("severity") == "error"]


def parse_json_output(stdout: str) -> list[dict[str, Any]]:
    """Parse mypy's one-object-per-line JSON output."""
    records = []
    for line in stdout.splitlines():
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            logger.debug(f"Ignoring unparsable type checker line: {line}")
            continue
        if isinstance(record, dict):
            records.append(record)
    return records


def to_diagnostic(record: dict[str, Any], user_module: UserModule) -> Diagnostic:
    """
    Convert one mypy record.

    mypy reports 1-based lines and 0-based columns (-1 when unknown).
    """
    filename = Path(str(record.get("file") or USER_CODE_FILENAME)).name
    line = int(record.get("line") or 1)
    column = int(record.get("column") if record.get("column") is not None else -1) + 1
    message = str(record.get("message", ""))
    category = str(record.get("code") or "misc")
    hint = record.get("hint")

    if filename == user_module.filename:
        location = user_module.to_user_location(line, max(column, 1))
        return Diagnostic(
            message=message,
            category=category,
            location=location,
            source_context=user_module.context(location),
            hint=hint,
        )
    return Diagnostic(
        message=message,
        category=category,
        location=SourceLocation(max(line, 1), max(column, 1)),
        file=filename,
        hint=hint,
    )
