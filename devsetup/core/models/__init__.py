"""
Domain models — Pydantic types and records for the installer.

All models are re-exported here for convenient access:

    from devsetup.core.models import ToolDefinition, InstallationResult
"""

from devsetup.core.models.install import (
    AttemptOutcome,
    FailureKind,
    InstallationAttempt,
    InstallationResult,
    Severity,
)
from devsetup.core.models.settings import InstallSettings
from devsetup.core.models.tool import BackendKind, ToolDefinition

__all__ = [
    # install.py
    "AttemptOutcome",
    # tool.py
    "BackendKind",
    "FailureKind",
    "InstallSettings",
    "InstallationAttempt",
    "InstallationResult",
    "Severity",
    "ToolDefinition",
]
