"""
Shared test fixtures and configuration.
"""

import os
from pathlib import Path

import pytest

from devsetup.core.context import set_audit_writer
from devsetup.core.services.tool_install.detection import environment
from devsetup.core.services.tool_install.detection.backend_probe import DEFAULT_BACKEND_CACHE


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(autouse=True)
def _isolate_process_state():
    """Undo process-wide state a test may leave behind (audit ledger, cache, PATH and its claims)."""
    path_before = os.environ.get("PATH")
    yield
    set_audit_writer(None)
    DEFAULT_BACKEND_CACHE.invalidate()
    environment._claims.clear()
    if path_before is None:
        os.environ.pop("PATH", None)
    else:
        os.environ["PATH"] = path_before
