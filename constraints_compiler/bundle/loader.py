"""
Loads the fixed constraint library sources from the compiler root.
"""

from pathlib import Path

from ..core.exceptions import BundleError
from .source_bundle import CONSTRAINTS_AST_FILENAME, CONSTRAINTS_EDSL_FILENAME, LibrarySources

LIBS_DIRNAME = "libs"


def _read_library(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise BundleError(f"Library source not found: {path}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise BundleError(f"Library source unreadable: {path}: {e}") from e


def load_library_sources(root: Path) -> LibrarySources:
    """
    Read both library modules from ``root/libs``.

    Args:
        root: Compiler root directory

    Returns:
        Immutable library sources

    Raises:
        BundleError: if either file is missing or unreadable
    """
    libs_dir = root / LIBS_DIRNAME
    return LibrarySources(
        constraints_ast=_read_library(libs_dir / CONSTRAINTS_AST_FILENAME),
        constraints_edsl=_read_library(libs_dir / CONSTRAINTS_EDSL_FILENAME),
    )
