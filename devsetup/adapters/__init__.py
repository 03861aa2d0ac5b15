"""Adapters — bindings for the external package managers.

Public re-exports for convenient access.
"""

from devsetup.adapters.backends import ChocolateyBackend, ScoopBackend, WingetBackend
from devsetup.adapters.base import Backend, Runner
from devsetup.core.models.tool import BackendKind


def default_backends() -> dict[BackendKind, Backend]:
    """One adapter per known backend, in priority order."""
    backends: list[Backend] = [WingetBackend(), ChocolateyBackend(), ScoopBackend()]
    return {b.kind: b for b in sorted(backends, key=lambda b: b.kind.priority)}


__all__ = [
    "Backend",
    "ChocolateyBackend",
    "Runner",
    "ScoopBackend",
    "WingetBackend",
    "default_backends",
]
