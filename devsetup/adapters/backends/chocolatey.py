"""Chocolatey (secondary backend)."""

from __future__ import annotations

from pathlib import Path

from devsetup.adapters.base import Backend
from devsetup.core.models.tool import BackendKind


class ChocolateyBackend(Backend):

    @property
    def kind(self) -> BackendKind:
        return BackendKind.CHOCOLATEY

    @property
    def executable(self) -> str:
        return "choco"

    def install_command(
        self,
        package_id: str,
        *,
        force: bool = False,
        log_dir: str | Path | None = None,
    ) -> list[str]:
        # --yes answers every prompt, including license acceptance
        cmd = [self.resolve() or self.executable, "install", package_id, "--yes", "--no-progress"]
        if force:
            cmd.append("--force")
        if log_dir:
            cmd.append(f"--log-file={Path(log_dir) / 'choco.log'}")
        return cmd
