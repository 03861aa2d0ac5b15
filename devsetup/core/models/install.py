"""
Install models — attempts, outcomes, and the result handed to callers.

``InstallationAttempt`` is transient bookkeeping inside the attempt
loop.  ``InstallationResult`` is the one object a caller ever gets
back from an install: expected failures are captured here, never
raised.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from devsetup.core.models.tool import BackendKind


class AttemptOutcome(StrEnum):
    """Outcome of one installer invocation."""

    SUCCESS = "success"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class Severity(StrEnum):
    """Reporting emphasis for a classified failure. Never drives control flow."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FailureKind(StrEnum):
    """Why an install did not succeed."""

    ENVIRONMENT = "environment"        # no backend available at all
    CANDIDATE = "candidate"            # one backend/identifier failed
    TIMEOUT = "timeout"                # one invocation exceeded its bound
    VERIFICATION = "verification"      # installed, but not functional
    EXHAUSTED = "exhausted"            # retry budget spent
    UNKNOWN_TOOL = "unknown_tool"
    NO_CANDIDATE = "no_candidate"      # no identifier for any available backend
    CANCELLED = "cancelled"


@dataclass
class InstallationAttempt:
    """One (backend, package) invocation within an attempt round."""

    attempt: int
    backend: BackendKind
    package_id: str
    started_at: float = field(default_factory=time.monotonic)
    elapsed: float = 0.0
    outcome: AttemptOutcome | None = None
    reason: str = ""

    def finish(self, outcome: AttemptOutcome, reason: str = "") -> None:
        self.outcome = outcome
        self.reason = reason
        self.elapsed = time.monotonic() - self.started_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempt": self.attempt,
            "backend": self.backend.value,
            "package_id": self.package_id,
            "elapsed": round(self.elapsed, 3),
            "outcome": self.outcome.value if self.outcome else None,
            "reason": self.reason,
        }


class InstallationResult(BaseModel):
    """Final outcome of installing one tool."""

    tool: str
    success: bool
    attempts: int = 0
    backend: BackendKind | None = None
    version: str | None = None
    message: str = ""
    suggestions: list[str] = Field(default_factory=list)
    duration: float = 0.0                 # seconds

    severity: Severity | None = None
    category: str | None = None
    already_installed: bool = False
    dry_run: bool = False
    cancelled: bool = False

    @classmethod
    def succeeded(cls, tool: str, message: str, **kwargs: Any) -> InstallationResult:
        """Create a success result."""
        return cls(tool=tool, success=True, message=message, **kwargs)

    @classmethod
    def failed(cls, tool: str, message: str, **kwargs: Any) -> InstallationResult:
        """Create a failure result."""
        return cls(tool=tool, success=False, message=message, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        data["duration"] = round(self.duration, 3)
        return data
