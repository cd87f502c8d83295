"""
Source bundle types.

A bundle is the full set of text compilation units that are type-checked
and executed together as one program.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from ..core.exceptions import BundleError

CONSTRAINTS_AST_FILENAME = "constraints_ast.py"
CONSTRAINTS_EDSL_FILENAME = "constraints_edsl_fluent_api.py"
MISSION_MODEL_FILENAME = "mission_model_generated_code.py"

# Shipped with the service; every other unit arrives with a request.
LIBRARY_FILENAMES = frozenset({CONSTRAINTS_AST_FILENAME, CONSTRAINTS_EDSL_FILENAME})


@dataclass(frozen=True, slots=True)
class SourceFile:
    """A named text unit of the bundle."""

    filename: str
    contents: str

    @property
    def module_name(self) -> str:
        """Import name of the unit inside the bundle."""
        stem = self.filename.rsplit("/", 1)[-1]
        if stem.endswith(".py"):
            stem = stem[:-3]
        return stem.replace("-", "_")


@dataclass(frozen=True, slots=True)
class LibrarySources:
    """The fixed library units, loaded once per process."""

    constraints_ast: str
    constraints_edsl: str

    def as_source_files(self) -> tuple[SourceFile, SourceFile]:
        return (
            SourceFile(CONSTRAINTS_AST_FILENAME, self.constraints_ast),
            SourceFile(CONSTRAINTS_EDSL_FILENAME, self.constraints_edsl),
        )


class SourceBundle:
    """Ordered, filename-unique collection of source files."""

    def __init__(self, files: Iterable[SourceFile]):
        ordered = tuple(files)
        seen: set[str] = set()
        for source in ordered:
            if not source.filename.endswith(".py"):
                raise BundleError(f"Bundle file must be a .py module: {source.filename}")
            if not source.module_name.isidentifier():
                raise BundleError(f"Bundle filename is not importable: {source.filename}")
            if source.filename in seen:
                raise BundleError(f"Duplicate filename in bundle: {source.filename}")
            seen.add(source.filename)
        self._files = ordered

    @classmethod
    def for_request(cls, libraries: LibrarySources, mission_model_generated_code: str) -> "SourceBundle":
        """Fixed libraries followed by the per-request generated module."""
        return cls(
            [
                *libraries.as_source_files(),
                SourceFile(MISSION_MODEL_FILENAME, mission_model_generated_code),
            ]
        )

    @property
    def files(self) -> tuple[SourceFile, ...]:
        return self._files

    @property
    def module_names(self) -> tuple[str, ...]:
        return tuple(source.module_name for source in self._files)

    def __iter__(self) -> Iterator[SourceFile]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)
