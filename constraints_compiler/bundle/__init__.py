"""
Source bundles: the fixed constraint libraries plus per-request units.
"""

from .loader import load_library_sources
from .source_bundle import (
    CONSTRAINTS_AST_FILENAME,
    CONSTRAINTS_EDSL_FILENAME,
    LIBRARY_FILENAMES,
    MISSION_MODEL_FILENAME,
    LibrarySources,
    SourceBundle,
    SourceFile,
)

__all__ = [
    "CONSTRAINTS_AST_FILENAME",
    "CONSTRAINTS_EDSL_FILENAME",
    "LIBRARY_FILENAMES",
    "MISSION_MODEL_FILENAME",
    "LibrarySources",
    "SourceBundle",
    "SourceFile",
    "load_library_sources",
]
