"""
L5 Orchestration — The install attempt loop.

Ties everything together for one tool:

    NOT_STARTED → PROBING_BACKENDS → ATTEMPTING_INSTALL → VERIFYING
        → SUCCEEDED | ROLLING_BACK → TERMINAL

and fans out across tools with one worker thread per tool.

Every expected failure (no backend, a candidate failing or timing
out, a tool that installs but does not run, an exhausted retry
budget, cancellation) ends in an ``InstallationResult`` with
``success=False``.  Only bad configuration raises.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import ValidationError

from devsetup.core.config.loader import ConfigError
from devsetup.core.models.install import (
    AttemptOutcome,
    FailureKind,
    InstallationAttempt,
    InstallationResult,
)
from devsetup.core.models.settings import InstallSettings
from devsetup.core.models.tool import BackendKind, ToolDefinition
from devsetup.core.observability.logging_config import log_success
from devsetup.core.reliability.backoff import backoff_delay, interruptible_sleep
from devsetup.core.services.audit_helpers import make_auditor
from devsetup.core.services.tool_install.detection.backend_probe import (
    DEFAULT_BACKEND_CACHE,
    BackendCache,
    BackendProber,
)
from devsetup.core.services.tool_install.detection.tool_version import (
    ToolVerifier,
    VerificationResult,
)
from devsetup.core.services.tool_install.domain.error_classifier import (
    Classification,
    classify_failure,
)
from devsetup.core.services.tool_install.domain.registry import Candidate, ToolRegistry
from devsetup.core.services.tool_install.execution.installer import (
    BackendInstaller,
    DryRunInstaller,
)
from devsetup.core.services.tool_install.execution.rollback import RollbackContext

logger = logging.getLogger(__name__)

_audit = make_auditor("tool_install")

NOT_UNINSTALLED_NOTE = (
    "Partially installed packages are not uninstalled automatically; "
    "check the package manager's installed list."
)


class InstallState(StrEnum):
    NOT_STARTED = "not_started"
    PROBING_BACKENDS = "probing_backends"
    ATTEMPTING_INSTALL = "attempting_install"
    VERIFYING = "verifying"
    SUCCEEDED = "succeeded"
    ROLLING_BACK = "rolling_back"
    TERMINAL = "terminal"


@dataclass
class _ToolRun:
    """Mutable bookkeeping for one tool's install.  Owned by one worker."""

    tool: ToolDefinition
    force: bool = False
    started: float = field(default_factory=time.monotonic)
    state: InstallState = InstallState.NOT_STARTED
    rounds: int = 0
    attempts: list[InstallationAttempt] = field(default_factory=list)
    backends_tried: list[BackendKind] = field(default_factory=list)
    failure_kind: FailureKind | None = None
    failure_reason: str = ""
    failure_output: str = ""
    cancelled: bool = False
    rollback: RollbackContext | None = None

    def transition(self, state: InstallState) -> None:
        logger.debug("%s: %s → %s", self.tool.name, self.state.value, state.value)
        self.state = state

    def note_failure(self, kind: FailureKind, reason: str, output: str = "") -> None:
        self.failure_kind = kind
        self.failure_reason = reason
        self.failure_output = output

    @property
    def failure_text(self) -> str:
        return "\n".join(p for p in (self.failure_reason, self.failure_output) if p)

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started


def _coerce_settings(settings: InstallSettings | Mapping[str, Any] | None) -> InstallSettings:
    if settings is None:
        return InstallSettings()
    if isinstance(settings, InstallSettings):
        return settings
    try:
        return InstallSettings.model_validate(dict(settings))
    except ValidationError as e:
        raise ConfigError(f"Invalid install settings: {e}") from e


class InstallOrchestrator:
    """Install tools through the available package managers.

    Every collaborator is injectable; anything left as None is built
    from ``settings``.

    Args:
        registry: Tool definitions.
        installer: Runs one backend install.  Replaced by a
            ``DryRunInstaller`` when ``settings.dry_run`` is set.
        verifier: Post-install (and up-front) functional check.
        backend_cache: Compute-once cache of available backends.
        prober: What the cache calls on first use.
        settings: Retry budget, timeouts, backoff, worker count.
        classifier: Failure text → severity and suggestions.
        sleep: ``(seconds, cancel_event) -> cancelled`` used for backoff.
        cancel_token: Shared cancellation signal.
        rollback_factory: Builds the per-tool rollback context.

    Raises:
        ConfigError: If ``settings`` is not valid.
    """

    def __init__(
        self,
        registry: ToolRegistry | None = None,
        installer: BackendInstaller | None = None,
        verifier: ToolVerifier | None = None,
        backend_cache: BackendCache | None = None,
        prober: BackendProber | None = None,
        settings: InstallSettings | Mapping[str, Any] | None = None,
        *,
        classifier: Callable[..., Classification] = classify_failure,
        sleep: Callable[[float, threading.Event | None], bool] | None = None,
        cancel_token: threading.Event | None = None,
        rollback_factory: Callable[..., RollbackContext] = RollbackContext.capture,
    ):
        self.settings = _coerce_settings(settings)
        self.registry = (
            registry if registry is not None
            else ToolRegistry.from_catalog(extra=self.settings.tools)
        )

        if self.settings.dry_run and not getattr(installer, "dry_run", False):
            if installer is not None:
                logger.debug("Dry run: replacing %s with a no-op installer", type(installer).__name__)
            installer = DryRunInstaller()
        self.installer = installer or BackendInstaller()

        self.verifier = verifier or ToolVerifier(
            settle_delay=self.settings.settle_delay,
            timeout=self.settings.verify_timeout,
        )
        self.backend_cache = backend_cache if backend_cache is not None else DEFAULT_BACKEND_CACHE
        self.prober = prober or BackendProber(timeout=self.settings.probe_timeout)
        self.classifier = classifier
        self._sleep = sleep or interruptible_sleep
        self._cancel = cancel_token if cancel_token is not None else threading.Event()
        self._rollback_factory = rollback_factory

    # ── Public API ──────────────────────────────────────────────

    @property
    def dry_run(self) -> bool:
        return bool(getattr(self.installer, "dry_run", False))

    @property
    def cancel_token(self) -> threading.Event:
        return self._cancel

    def cancel(self) -> None:
        """Stop issuing new attempts for every in-flight tool."""
        if not self._cancel.is_set():
            logger.warning("Cancellation requested")
        self._cancel.set()

    def available_backends(self, reprobe: bool = False) -> list[BackendKind]:
        if reprobe:
            return list(self.backend_cache.force_reprobe(self.prober))
        return list(self.backend_cache.get(self.prober))

    def install_tool(self, name: str, force: bool = False) -> InstallationResult:
        """Install one tool.  Never raises for install failures.

        Args:
            name: Tool name (case-insensitive).
            force: Skip the already-installed check and pass the
                backend's force flag.
        """
        started = time.monotonic()
        tool = self.registry.get(name)
        if tool is None:
            return self._unknown_tool(name, started)

        run = _ToolRun(tool=tool, force=force, started=started)
        try:
            return self._run(run)
        except Exception as e:
            logger.exception("Unexpected error while installing %s", tool.name)
            if run.rollback is not None:
                run.rollback.cleanup()
            run.note_failure(FailureKind.EXHAUSTED, f"Unexpected error: {e}")
            return self._fail(run, f"Failed to install {tool.label}: unexpected error: {e}")

    def install_tools(
        self,
        names: Iterable[str],
        force: bool = False,
        max_workers: int | None = None,
    ) -> list[InstallationResult]:
        """Install several tools concurrently, one worker per tool.

        Duplicate names are installed once.  Results come back in the
        order the names were first given.  Ctrl-C while waiting raises
        the cancellation signal; every worker still returns a result.
        """
        ordered = list(dict.fromkeys(n.strip().lower() for n in names if n and n.strip()))
        if not ordered:
            return []

        workers = max_workers or self.settings.max_workers or len(ordered)
        workers = max(1, min(workers, len(ordered)))
        logger.info("Installing %d tool(s) with %d worker(s)", len(ordered), workers)

        results: dict[str, InstallationResult] = {}
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="install") as pool:
            futures = {pool.submit(self.install_tool, n, force): n for n in ordered}
            try:
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
            except KeyboardInterrupt:
                self.cancel()
                for future, n in futures.items():
                    results[n] = future.result()

        return [results[n] for n in ordered]

    # ── The loop ────────────────────────────────────────────────

    def _run(self, run: _ToolRun) -> InstallationResult:
        tool = run.tool

        if self.dry_run:
            return self._dry_run(run)

        if self._cancel.is_set():
            run.cancelled = True
            run.note_failure(FailureKind.CANCELLED, "Cancelled before starting")
            return self._fail(run, f"Installation of {tool.label} cancelled before it started")

        _audit(
            "🔧 Tool Install",
            f"{tool.name}: started",
            action="started",
            target=tool.name,
        )

        # ── Already there? ──
        precheck: VerificationResult | None = None
        if not run.force:
            precheck = self.verifier.verify(tool, settle=False)
            if precheck.ok and not precheck.skipped:
                return self._already_installed(run, precheck)
            if tool.built_in and not tool.packages:
                return self._built_in_missing(run)
        elif tool.built_in and not tool.packages:
            return self._built_in_missing(run)

        # ── Backends ──
        run.transition(InstallState.PROBING_BACKENDS)
        available = self.available_backends()
        if not available:
            return self._no_backend(run)

        candidates = self.registry.candidates(tool, available)
        if not candidates:
            return self._no_candidate(run, available)

        # ── Attempts ──
        run.rollback = self._rollback_factory(tool, self.verifier, precheck=precheck)
        run.transition(InstallState.ATTEMPTING_INSTALL)
        max_attempts = self.settings.max_attempts

        for attempt in range(1, max_attempts + 1):
            run.rounds = attempt
            result = self._attempt_round(run, attempt, candidates)
            if result is not None:
                return result
            if run.cancelled:
                break
            if attempt < max_attempts:
                delay = backoff_delay(
                    attempt, self.settings.backoff_step, self.settings.backoff_cap,
                )
                logger.warning(
                    "Attempt %d/%d for %s failed; retrying in %gs",
                    attempt, max_attempts, tool.name, delay,
                )
                if self._sleep(delay, self._cancel):
                    run.cancelled = True
                    break

        return self._roll_back(run)

    def _attempt_round(
        self,
        run: _ToolRun,
        attempt: int,
        candidates: list[Candidate],
    ) -> InstallationResult | None:
        """One pass over every candidate.  Returns a result only on success."""
        tool = run.tool
        for kind, package_id in candidates:
            if self._cancel.is_set():
                run.cancelled = True
                return None

            if kind not in run.backends_tried:
                run.backends_tried.append(kind)
            record = InstallationAttempt(attempt=attempt, backend=kind, package_id=package_id)
            run.attempts.append(record)
            log_dir = run.rollback.new_scratch_dir(kind.value)

            outcome = self.installer.install(
                kind,
                package_id,
                force=run.force,
                timeout=self.settings.timeout,
                cancel=self._cancel,
                log_dir=log_dir,
            )

            if outcome.cancelled:
                record.finish(AttemptOutcome.CANCELLED, outcome.reason)
                run.cancelled = True
                return None

            if outcome.timed_out:
                record.finish(AttemptOutcome.TIMED_OUT, outcome.reason)
                run.note_failure(
                    FailureKind.TIMEOUT,
                    f"{kind.value} install of {package_id} timed out "
                    f"after {self.settings.timeout:g}s",
                    outcome.output,
                )
                logger.warning("%s (attempt %d)", run.failure_reason, attempt)
                continue

            if not outcome.ok:
                record.finish(AttemptOutcome.FAILED, outcome.reason)
                run.note_failure(
                    FailureKind.CANDIDATE,
                    f"{kind.value} install of {package_id} failed: {outcome.reason}",
                    outcome.output,
                )
                logger.warning("%s (attempt %d)", run.failure_reason, attempt)
                continue

            record.finish(AttemptOutcome.SUCCESS)
            run.transition(InstallState.VERIFYING)
            with run.rollback.tracking_path():
                check = self.verifier.verify(tool)
            if check.ok:
                return self._succeed(run, attempt, kind, package_id, check)

            run.note_failure(
                FailureKind.VERIFICATION,
                f"{tool.label} installed via {kind.value} ({package_id}) "
                f"but is not functional: {check.error}",
            )
            logger.warning("%s (attempt %d)", run.failure_reason, attempt)
            _audit(
                "⚠️ Installed But Not Functional",
                f"{tool.name}: {check.error}",
                action="verify_failed",
                target=tool.name,
                detail={"backend": kind.value, "package_id": package_id, "attempt": attempt},
            )
            run.transition(InstallState.ATTEMPTING_INSTALL)
            return None

        return None

    # ── Terminal states ─────────────────────────────────────────

    def _succeed(
        self,
        run: _ToolRun,
        attempt: int,
        kind: BackendKind,
        package_id: str,
        check: VerificationResult,
    ) -> InstallationResult:
        tool = run.tool
        run.transition(InstallState.SUCCEEDED)
        run.rollback.release()

        if check.skipped:
            message = f"{tool.label} installed via {kind.value} (nothing to verify)"
        elif check.version:
            message = f"{tool.label} installed via {kind.value}: {check.version}"
        else:
            message = f"{tool.label} installed via {kind.value}"

        log_success(logger, "✅ %s", message)
        _audit(
            "✅ Tool Installed",
            message,
            action="installed",
            target=tool.name,
            detail={
                "backend": kind.value,
                "package_id": package_id,
                "attempts": attempt,
                "version": check.version,
            },
        )
        run.transition(InstallState.TERMINAL)
        return InstallationResult.succeeded(
            tool.name,
            message,
            attempts=attempt,
            backend=kind,
            version=check.version,
            duration=run.elapsed,
        )

    def _already_installed(self, run: _ToolRun, check: VerificationResult) -> InstallationResult:
        tool = run.tool
        message = f"{tool.label} is already installed" + (f" ({check.version})" if check.version else "")
        logger.info(message)
        _audit(
            "🔧 Tool Already Installed",
            message,
            action="checked",
            target=tool.name,
        )
        run.transition(InstallState.TERMINAL)
        return InstallationResult.succeeded(
            tool.name,
            message,
            attempts=0,
            version=check.version,
            already_installed=True,
            duration=run.elapsed,
        )

    def _dry_run(self, run: _ToolRun) -> InstallationResult:
        """Report what would be installed.  Spawns nothing: no probe, no verify."""
        tool = run.tool
        backends = self.backend_cache.peek() or tuple(BackendKind.ordered())
        candidates = self.registry.candidates(tool, backends)
        if not candidates:
            message = f"dry run: no package to install for {tool.label}"
            logger.info(message)
            _audit("🔍 Dry Run", message, action="dry_run", target=tool.name)
            run.transition(InstallState.TERMINAL)
            return InstallationResult.succeeded(
                tool.name, message, dry_run=True, duration=run.elapsed,
            )

        kind, package_id = candidates[0]
        outcome = self.installer.install(
            kind, package_id, force=run.force, timeout=self.settings.timeout,
        )
        message = f"dry run: would install {tool.label} via {kind.value} ({package_id})"
        logger.info(message)
        _audit("🔍 Dry Run", message, action="dry_run", target=tool.name)
        run.transition(InstallState.TERMINAL)
        return InstallationResult(
            tool=tool.name,
            success=outcome.ok,
            attempts=1,
            backend=kind,
            message=message,
            dry_run=True,
            duration=run.elapsed,
        )

    def _unknown_tool(self, name: str, started: float) -> InstallationResult:
        classification = self.classifier(f"Unknown tool: {name}", category="unknown_tool")
        message = f"Unknown tool: {name}"
        logger.error(message)
        _audit("❌ Tool Install Failed", message, action="failed", target=name)
        return InstallationResult.failed(
            name,
            message,
            suggestions=classification.suggestions,
            severity=classification.severity,
            category=classification.category,
            duration=time.monotonic() - started,
        )

    def _built_in_missing(self, run: _ToolRun) -> InstallationResult:
        tool = run.tool
        where = f"; download it from {tool.manual_url}" if tool.manual_url else (
            "; enable it as an optional Windows feature"
        )
        run.note_failure(
            FailureKind.NO_CANDIDATE,
            f"{tool.label} ships with Windows but was not found, and no package "
            f"manager provides it{where}",
        )
        return self._fail(run, run.failure_reason, category="no_candidate")

    def _no_backend(self, run: _ToolRun) -> InstallationResult:
        names = ", ".join(k.value for k in BackendKind.ordered())
        run.note_failure(
            FailureKind.ENVIRONMENT,
            f"no backend available: none of {names} is installed and responding",
        )
        return self._fail(run, run.failure_reason, category="no_backend")

    def _no_candidate(self, run: _ToolRun, available: list[BackendKind]) -> InstallationResult:
        tool = run.tool
        run.note_failure(
            FailureKind.NO_CANDIDATE,
            f"No package identifier for {tool.label} on the available backends "
            f"({', '.join(k.value for k in available)})",
        )
        return self._fail(run, run.failure_reason, category="no_candidate")

    def _roll_back(self, run: _ToolRun) -> InstallationResult:
        tool = run.tool
        run.transition(InstallState.ROLLING_BACK)
        report = run.rollback.cleanup()
        if report["errors"]:
            logger.warning("Rollback for %s left %d path(s) behind", tool.name, len(report["errors"]))

        if run.cancelled:
            run.note_failure(FailureKind.CANCELLED, run.failure_reason or "Cancelled")
            message = (
                f"Installation of {tool.label} cancelled during attempt {run.rounds}. "
                f"{NOT_UNINSTALLED_NOTE}"
            )
            return self._fail(run, message, category="cancelled", cancelled=True)

        category = "verification" if run.failure_kind is FailureKind.VERIFICATION else None
        logger.debug("%s: %s after %d attempt(s)", tool.name, FailureKind.EXHAUSTED.value, run.rounds)
        message = (
            f"Failed to install {tool.label} after {run.rounds} attempt(s): "
            f"{run.failure_reason}. {NOT_UNINSTALLED_NOTE}"
        )
        return self._fail(run, message, category=category)

    def _fail(
        self,
        run: _ToolRun,
        message: str,
        *,
        category: str | None = None,
        cancelled: bool = False,
    ) -> InstallationResult:
        tool = run.tool
        classification = self.classifier(
            run.failure_text or message,
            tool,
            run.backends_tried,
            category=category,
        )
        logger.error("❌ %s", message)
        logger.debug(
            "%s failure kind=%s category=%s severity=%s",
            tool.name,
            run.failure_kind.value if run.failure_kind else None,
            classification.category,
            classification.severity.value,
        )
        _audit(
            "❌ Tool Install Failed",
            message,
            action="cancelled" if cancelled else "failed",
            target=tool.name,
            detail={
                "attempts": run.rounds,
                "category": classification.category,
                "severity": classification.severity.value,
                "invocations": [a.to_dict() for a in run.attempts],
            },
        )
        run.transition(InstallState.TERMINAL)
        return InstallationResult.failed(
            tool.name,
            message,
            attempts=run.rounds,
            suggestions=classification.suggestions,
            severity=classification.severity,
            category=classification.category,
            cancelled=cancelled,
            duration=run.elapsed,
        )


def build_orchestrator(
    settings: InstallSettings | Mapping[str, Any] | None = None,
    *,
    backend_cache: BackendCache | None = None,
    cancel_token: threading.Event | None = None,
) -> InstallOrchestrator:
    """Orchestrator wired with the real backends, verifier and prober."""
    return InstallOrchestrator(
        settings=settings,
        backend_cache=backend_cache,
        cancel_token=cancel_token,
    )
