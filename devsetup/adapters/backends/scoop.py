"""scoop (tertiary backend).

scoop installs per-user and never prompts, so there are no
agreement flags to pass.  It has no force or log-file option either:
a forced reinstall would be ``scoop uninstall`` + ``install``, which
this backend does not do.
"""

from __future__ import annotations

import logging
from pathlib import Path

from devsetup.adapters.base import Backend
from devsetup.core.models.tool import BackendKind

logger = logging.getLogger(__name__)


class ScoopBackend(Backend):

    @property
    def kind(self) -> BackendKind:
        return BackendKind.SCOOP

    @property
    def executable(self) -> str:
        return "scoop"

    def install_command(
        self,
        package_id: str,
        *,
        force: bool = False,
        log_dir: str | Path | None = None,
    ) -> list[str]:
        if force:
            logger.debug("scoop has no --force; installing %s normally", package_id)
        return [self.resolve() or self.executable, "install", package_id]
