"""
Pytest configuration and fixtures for constraints compiler tests.
"""

import shutil

import pytest
from hypothesis import Verbosity, settings

from constraints_compiler.bundle import SourceBundle, load_library_sources
from constraints_compiler.core.config import default_root

# Configure hypothesis settings for property-based testing
settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.register_profile(
    "dev",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)

# Load profile from environment or use default
import os

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


MISSION_MODEL_CODE = '''from typing import Literal

ActivityTypeName = Literal["BiteBanana", "PeelBanana"]
RealResourceName = Literal["/fruit", "/plant"]
DiscreteResourceName = Literal["/peel", "/producer"]
'''


@pytest.fixture
def mission_model_code():
    """Generated mission model module used by most requests."""
    return MISSION_MODEL_CODE


@pytest.fixture
def library_sources():
    return load_library_sources(default_root())


@pytest.fixture
def bundle(library_sources, mission_model_code):
    return SourceBundle.for_request(library_sources, mission_model_code)


@pytest.fixture
def compiler_root(tmp_path):
    """A compiler root with the shipped libraries and default config."""
    root = tmp_path / "compiler"
    shutil.copytree(default_root() / "libs", root / "libs")
    shutil.copy(default_root() / "compiler_config.yaml", root / "compiler_config.yaml")
    return root
