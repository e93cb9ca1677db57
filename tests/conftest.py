"""Root-level pytest fixtures for the scoutcard test suite.

Provides shared configuration fixtures following the Pydantic-based config
architecture. Tests use these fixtures instead of creating raw dict configs.
"""

import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from scoutcard.schemas import ParamConfig, UserConfig, resolve_config
from tests.helpers.records import make_scan


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

@pytest.fixture
def param_config():
    """Expert configuration with all defaults."""
    return ParamConfig()


@pytest.fixture
def internal_config(param_config):
    """Fully validated runtime configuration (no overrides)."""
    return resolve_config(param_config, None, None)


@pytest.fixture
def make_config(param_config):
    """Factory fixture for creating custom test configs.

    Returns a callable that accepts UserConfig-compatible kwargs
    (aliases such as PASSES or field names such as passes_per_category).

    Examples
    --------
    >>> def test_more_passes(make_config):
    ...     config = make_config(PASSES=5)
    ...     assert config.aggregator.passes_per_category == 5
    """
    def _make(**user_overrides):
        if user_overrides:
            return resolve_config(param_config, UserConfig(**user_overrides), None)
        return resolve_config(param_config, None, None)

    return _make


# =============================================================================
# Record Fixtures
# =============================================================================

@pytest.fixture
def scan_factory():
    """Build ScanRecords from plain {category: count} dicts."""
    return make_scan


@pytest.fixture
def reference_now():
    """Fixed reference instant used by trend tests."""
    return datetime(2024, 1, 8, tzinfo=timezone.utc)


# =============================================================================
# Directory Fixtures
# =============================================================================

@pytest.fixture
def temp_dir():
    """Temporary directory that is cleaned up after test."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)
