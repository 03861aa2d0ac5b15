"""
L4 Execution — Single-backend installer.

One call = one package-manager invocation.  Success is exit code 0
and nothing else; the installer performs no retries, no verification,
and no interpretation of the output.  That is the attempt loop's and
the classifier's job.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from devsetup.adapters import Backend, Runner, default_backends
from devsetup.core.models.tool import BackendKind
from devsetup.core.services.tool_install.execution.subprocess_runner import run_command

logger = logging.getLogger(__name__)


@dataclass
class InstallOutcome:
    """Result of one installer invocation."""

    ok: bool
    exit_code: int | None = None
    output: str = ""
    timed_out: bool = False
    cancelled: bool = False
    error: str = ""
    elapsed_ms: int = 0

    @property
    def reason(self) -> str:
        """One-line failure reason (empty on success)."""
        if self.ok:
            return ""
        if self.error:
            return self.error
        return f"exit code {self.exit_code}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "exit_code": self.exit_code,
            "timed_out": self.timed_out,
            "cancelled": self.cancelled,
            "error": self.error,
            "elapsed_ms": self.elapsed_ms,
        }


class BackendInstaller:
    """Invoke a backend's install command for one package identifier."""

    dry_run = False

    def __init__(
        self,
        backends: Mapping[BackendKind, Backend] | None = None,
        runner: Runner = run_command,
    ):
        self._backends = dict(backends) if backends is not None else default_backends()
        self._runner = runner

    def backend(self, kind: BackendKind) -> Backend:
        try:
            return self._backends[kind]
        except KeyError:
            raise ValueError(f"No adapter registered for backend {kind.value!r}") from None

    def install(
        self,
        kind: BackendKind,
        package_id: str,
        *,
        force: bool = False,
        timeout: float = 300.0,
        cancel: threading.Event | None = None,
        log_dir: str | Path | None = None,
    ) -> InstallOutcome:
        cmd = self.backend(kind).install_command(package_id, force=force, log_dir=log_dir)
        logger.info("Installing %s via %s", package_id, kind.value)

        result = self._runner(cmd, timeout=timeout, cancel=cancel, cwd=log_dir)

        outcome = InstallOutcome(
            ok=result.ok,
            exit_code=result.returncode,
            output=result.output,
            timed_out=result.timed_out,
            cancelled=result.cancelled,
            error=result.error,
            elapsed_ms=result.elapsed_ms,
        )
        if outcome.ok:
            logger.debug("%s install of %s exited 0 in %dms", kind.value, package_id, outcome.elapsed_ms)
        else:
            logger.debug("%s install of %s failed: %s", kind.value, package_id, outcome.reason)
        return outcome


class DryRunInstaller(BackendInstaller):
    """Stand-in installer that never spawns anything and always succeeds."""

    dry_run = True

    def __init__(self, backends: Mapping[BackendKind, Backend] | None = None):
        super().__init__(backends=backends, runner=_refuse_to_run)

    def install(
        self,
        kind: BackendKind,
        package_id: str,
        *,
        force: bool = False,
        timeout: float = 300.0,
        cancel: threading.Event | None = None,
        log_dir: str | Path | None = None,
    ) -> InstallOutcome:
        cmd = self.backend(kind).install_command(package_id, force=force)
        logger.info("[dry run] would run: %s", " ".join(cmd))
        return InstallOutcome(
            ok=True,
            exit_code=0,
            output=f"[dry run] would install {package_id} via {kind.value}",
        )


def _refuse_to_run(cmd, **kwargs):
    raise RuntimeError(f"dry run must not execute commands: {cmd}")
