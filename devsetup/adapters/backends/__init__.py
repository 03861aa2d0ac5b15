"""Concrete package-manager backends."""

from devsetup.adapters.backends.chocolatey import ChocolateyBackend
from devsetup.adapters.backends.scoop import ScoopBackend
from devsetup.adapters.backends.winget import WingetBackend

__all__ = ["ChocolateyBackend", "ScoopBackend", "WingetBackend"]
