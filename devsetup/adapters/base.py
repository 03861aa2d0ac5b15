"""
Backend base — the contract between the installer and a package manager.

The installer only talks to package managers through this interface,
never by building command lines itself.  A backend knows its
executable, how to ask for its version, and how to spell a
non-interactive install; it does not run anything on its own except
through the runner it is handed.
"""

from __future__ import annotations

import shutil
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from devsetup.core.models.tool import BackendKind

if TYPE_CHECKING:
    from devsetup.core.services.tool_install.execution.subprocess_runner import (
        CommandResult,
    )

Runner = Callable[..., "CommandResult"]


class Backend(ABC):
    """Abstract base class for package-manager backends.

    To add a backend:
        1. Subclass Backend
        2. Implement kind, executable, install_command
        3. Return it from ``default_backends()``
    """

    version_args: tuple[str, ...] = ("--version",)

    @property
    @abstractmethod
    def kind(self) -> BackendKind:
        """Which package manager this is."""

    @property
    @abstractmethod
    def executable(self) -> str:
        """Executable name looked up on PATH (e.g. 'winget')."""

    @abstractmethod
    def install_command(
        self,
        package_id: str,
        *,
        force: bool = False,
        log_dir: str | Path | None = None,
    ) -> list[str]:
        """Full argument vector for a non-interactive install."""

    def resolve(self) -> str | None:
        """Absolute path of the executable, or None if not on PATH."""
        return shutil.which(self.executable)

    def version_command(self) -> list[str]:
        return [self.resolve() or self.executable, *self.version_args]

    def probe(self, timeout: float = 5.0, runner: Runner | None = None) -> tuple[bool, str]:
        """Check the executable resolves and answers a version query.

        Returns:
            (available, detail). ``detail`` is the version line when
            available, otherwise the reason it is not.
        """
        if runner is None:
            from devsetup.core.services.tool_install.execution.subprocess_runner import (
                run_command as runner,
            )

        path = self.resolve()
        if not path:
            return False, f"{self.executable} not found on PATH"

        result = runner([path, *self.version_args], timeout=timeout)
        if result.ok:
            lines = [ln.strip() for ln in result.stdout.splitlines() if ln.strip()]
            return True, lines[0] if lines else ""
        if result.timed_out:
            return False, f"version check timed out after {timeout:g}s"
        if result.error:
            return False, result.error
        return False, f"version check exited {result.returncode}"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} kind={self.kind.value!r}>"
