"""winget — the Windows Package Manager (primary backend)."""

from __future__ import annotations

from pathlib import Path

from devsetup.adapters.base import Backend
from devsetup.core.models.tool import BackendKind


class WingetBackend(Backend):
    """``winget install --id <id> --exact`` with agreements pre-accepted."""

    @property
    def kind(self) -> BackendKind:
        return BackendKind.WINGET

    @property
    def executable(self) -> str:
        return "winget"

    def install_command(
        self,
        package_id: str,
        *,
        force: bool = False,
        log_dir: str | Path | None = None,
    ) -> list[str]:
        cmd = [
            self.resolve() or self.executable,
            "install",
            "--id", package_id,
            "--exact",
            "--silent",
            "--accept-package-agreements",
            "--accept-source-agreements",
        ]
        if force:
            cmd.append("--force")
        if log_dir:
            cmd += ["--log", str(Path(log_dir) / "winget.log")]
        return cmd
