"""
L3 Detection — Tool verification.

Read-only probes: resolves a tool's executable and runs its version
command.  Used twice per install: once up front (is the tool already
there?) and once after the installer reports success (is it actually
functional?).
"""

from __future__ import annotations

import logging
import shutil
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from devsetup.core.models.tool import ToolDefinition
from devsetup.core.services.tool_install.detection.environment import refresh_path
from devsetup.core.services.tool_install.execution.subprocess_runner import (
    CommandResult,
    run_command,
)

logger = logging.getLogger(__name__)


@dataclass
class VerificationResult:
    """Outcome of one functional check."""

    ok: bool
    version: str | None = None
    path: str | None = None
    error: str = ""
    skipped: bool = False          # tool has no command to check (fonts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "version": self.version,
            "path": self.path,
            "error": self.error,
            "skipped": self.skipped,
        }


def first_line(result: CommandResult) -> str | None:
    """First non-empty line of stdout, falling back to stderr.

    ``ssh -V`` and a few others print their version on stderr.
    """
    for stream in (result.stdout, result.stderr):
        for line in (stream or "").splitlines():
            if line.strip():
                return line.strip()
    return None


class ToolVerifier:
    """Resolve ``tool.command`` and exercise ``<command> <version_args>``."""

    def __init__(
        self,
        settle_delay: float = 2.0,
        timeout: float = 15.0,
        *,
        runner: Callable[..., CommandResult] = run_command,
        sleep: Callable[[float], None] = time.sleep,
        refresh_env: Callable[[], Any] = refresh_path,
        which: Callable[[str], str | None] = shutil.which,
    ):
        self.settle_delay = settle_delay
        self.timeout = timeout
        self._runner = runner
        self._sleep = sleep
        self._refresh_env = refresh_env
        self._which = which

    def verify(self, tool: ToolDefinition, *, settle: bool = True) -> VerificationResult:
        """Check that ``tool`` resolves and answers its version query.

        Args:
            tool: The tool to check.
            settle: Wait ``settle_delay`` and refresh PATH first.  Used
                after an install; the up-front check skips it.
        """
        if not tool.verifiable:
            logger.debug("%s has no command to verify", tool.name)
            return VerificationResult(ok=True, skipped=True)

        if settle:
            if self.settle_delay > 0:
                self._sleep(self.settle_delay)
            try:
                self._refresh_env()
            except OSError as e:
                logger.warning("Could not refresh PATH before verifying %s: %s", tool.name, e)

        path = self._which(tool.command)
        if not path:
            return VerificationResult(ok=False, error=f"{tool.command} not found on PATH")

        result = self._runner([path, *tool.version_args], timeout=self.timeout)
        if not result.ok:
            reason = result.error or f"exit code {result.returncode}"
            detail = first_line(result)
            return VerificationResult(
                ok=False,
                path=path,
                error=f"{tool.command} {' '.join(tool.version_args)} failed: {reason}"
                + (f" ({detail})" if detail else ""),
            )

        version = first_line(result)
        logger.debug("%s verified at %s: %s", tool.name, path, version)
        return VerificationResult(ok=True, version=version, path=path)
