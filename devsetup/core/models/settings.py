"""
Install settings — per-run configuration for the orchestrator.

Loaded from ``devsetup.yml`` by ``core.config.loader`` and overridden
by CLI flags.  Validation failures surface as ``ConfigError`` — bad
configuration is the one thing the orchestrator refuses to run with.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class InstallSettings(BaseModel):
    """Knobs for one orchestrator run."""

    retry_count: int = Field(default=2, ge=0, le=10)
    timeout: float = Field(default=300.0, gt=0)          # per installer invocation
    probe_timeout: float = Field(default=5.0, gt=0)      # backend version check
    settle_delay: float = Field(default=2.0, ge=0)       # before post-install verify
    verify_timeout: float = Field(default=15.0, gt=0)
    backoff_step: float = Field(default=10.0, ge=0)
    backoff_cap: float = Field(default=30.0, ge=0)
    max_workers: int | None = Field(default=None, ge=1)  # None = one per tool
    dry_run: bool = False
    audit_log: str | None = None

    # Extra / overriding catalog entries, same shape as TOOL_CATALOG
    tools: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @property
    def max_attempts(self) -> int:
        return self.retry_count + 1
