"""
L4 Execution — Rollback context.

Captured once per tool before the first attempt; owned by that tool's
worker only.  On failure ``cleanup`` removes the scratch directories
created during the attempts and takes back the PATH entries its own
verification refreshed in.  Entries another tool worker still relies
on stay.

Packages that a failed attempt may have half-installed are NOT
uninstalled: removing a package through its manager can take shared
dependencies with it.  The failure message says so instead.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from devsetup.core.models.tool import ToolDefinition
from devsetup.core.services.tool_install.detection.environment import (
    path_owner,
    pin_path,
    snapshot_path,
    withdraw_path,
)
from devsetup.core.services.tool_install.detection.tool_version import (
    ToolVerifier,
    VerificationResult,
)

logger = logging.getLogger(__name__)

SCRATCH_PREFIX = "devsetup-"


@dataclass
class InstallationContext:
    """Pre-install snapshot for one tool."""

    tool: str
    was_installed: bool = False
    prior_version: str | None = None
    path_snapshot: str | None = None
    temp_paths: list[Path] = field(default_factory=list)
    cleaned: bool = False
    captured_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "was_installed": self.was_installed,
            "prior_version": self.prior_version,
            "temp_paths": [str(p) for p in self.temp_paths],
            "cleaned": self.cleaned,
            "captured_at": self.captured_at,
        }


class RollbackContext:
    """Undo the reversible side effects of a failed install."""

    def __init__(self, context: InstallationContext):
        self.context = context
        self.cleanup_calls = 0
        self._report: dict[str, Any] | None = None

    @classmethod
    def capture(
        cls,
        tool: ToolDefinition,
        verifier: ToolVerifier | None = None,
        *,
        precheck: VerificationResult | None = None,
    ) -> RollbackContext:
        """Snapshot PATH and the tool's current install state.

        Args:
            tool: The tool about to be installed.
            verifier: Used to learn the prior state when ``precheck``
                is not given.  Without either, the tool is recorded as
                not installed.
            precheck: A verification already run up front.
        """
        state = precheck
        if state is None and verifier is not None and tool.verifiable:
            state = verifier.verify(tool, settle=False)

        installed = bool(state and state.ok and not state.skipped)
        context = InstallationContext(
            tool=tool.name,
            was_installed=installed,
            prior_version=state.version if installed else None,
            path_snapshot=snapshot_path(),
        )
        logger.debug(
            "Captured rollback context for %s (installed=%s)", tool.name, installed,
        )
        return cls(context)

    @contextmanager
    def tracking_path(self) -> Iterator[None]:
        """Claim PATH entries refreshed in by this thread for this install."""
        with path_owner(self):
            yield

    def new_scratch_dir(self, label: str = "") -> Path:
        """Create a temporary directory and record it for cleanup."""
        prefix = f"{SCRATCH_PREFIX}{self.context.tool}-"
        if label:
            prefix += f"{label}-"
        path = Path(tempfile.mkdtemp(prefix=prefix))
        self.context.temp_paths.append(path)
        return path

    def track(self, path: str | Path) -> None:
        """Record a path created outside ``new_scratch_dir``."""
        self.context.temp_paths.append(Path(path))

    def _remove_temp_paths(self) -> tuple[list[str], list[str]]:
        removed: list[str] = []
        errors: list[str] = []
        for path in self.context.temp_paths:
            if not path.exists():
                continue
            try:
                if path.is_dir():
                    shutil.rmtree(path)
                else:
                    path.unlink()
                removed.append(str(path))
            except OSError as e:
                logger.warning("Could not remove %s: %s", path, e)
                errors.append(f"{path}: {e}")
        return removed, errors

    def cleanup(self) -> dict[str, Any]:
        """Remove recorded temp paths and withdraw this install's PATH entries.

        Only entries refreshed in under ``tracking_path`` and not relied on
        by another worker are removed.  Idempotent.

        Returns:
            ``{"removed": [...], "errors": [...], "path_restored": bool,
            "already_cleaned": bool}``.  A second call changes nothing
            and returns the first call's report with
            ``already_cleaned=True``.
        """
        self.cleanup_calls += 1
        if self._report is not None:
            logger.debug("Rollback for %s already done", self.context.tool)
            return {**self._report, "already_cleaned": True}

        removed, errors = self._remove_temp_paths()
        path_restored = bool(withdraw_path(self))
        self.context.cleaned = True

        self._report = {
            "removed": removed,
            "errors": errors,
            "path_restored": path_restored,
            "already_cleaned": False,
        }
        logger.info(
            "Rolled back %s: %d temp path(s) removed%s",
            self.context.tool,
            len(removed),
            ", PATH restored" if path_restored else "",
        )
        return dict(self._report)

    def release(self) -> list[str]:
        """Success path: drop scratch directories, keep the PATH entries."""
        removed, _ = self._remove_temp_paths()
        pin_path(self)
        if removed:
            logger.debug("Released %d scratch path(s) for %s", len(removed), self.context.tool)
        return removed
