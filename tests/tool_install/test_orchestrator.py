"""
Tests for the install attempt loop — retries, ordering, verification,
rollback, cancellation, dry run, and multi-tool fan-out.

Every collaborator is a fake: no test here spawns a process.
"""

import threading
from pathlib import Path

import pytest

from devsetup.core.config.loader import ConfigError
from devsetup.core.context import set_audit_writer
from devsetup.core.models.install import InstallationResult, Severity
from devsetup.core.models.settings import InstallSettings
from devsetup.core.models.tool import BackendKind
from devsetup.core.persistence.audit import AuditWriter
from devsetup.core.services.tool_install.detection.backend_probe import (
    BackendCache,
    BackendProber,
)
from devsetup.core.services.tool_install.detection.tool_version import (
    ToolVerifier,
    VerificationResult,
)
from devsetup.core.services.tool_install.domain.registry import ToolRegistry
from devsetup.core.services.tool_install.execution.installer import InstallOutcome
from devsetup.core.services.tool_install.execution.rollback import RollbackContext
from devsetup.core.services.tool_install.orchestration.orchestrator import (
    InstallOrchestrator,
)

from fakes import (
    FAILED,
    TIMED_OUT,
    FakeInstaller,
    FakeVerifier,
    SpyRollback,
    SpyRunner,
    no_sleep,
)

W, C, S = BackendKind.WINGET, BackendKind.CHOCOLATEY, BackendKind.SCOOP

CATALOG = {
    "fzf": {"packages": {"winget": "junegunn.fzf", "choco": "fzf"}},
    "solo": {"packages": {"choco": "solo"}},
    "multi": {"packages": {"winget": ["m1", "m2"], "choco": "m3"}},
    "font": {"packages": {"choco": ["font-a", "font-b"], "scoop": "font-c"}, "command": None},
    "tar": {"packages": {}, "built_in": True},
    "curl": {"packages": {"winget": "cURL.cURL"}, "built_in": True},
    "jq": {
        "packages": {"winget": "jqlang.jq", "scoop": "jq"},
        "manual_url": "https://jqlang.github.io/jq/download/",
    },
}


class _NoProbe:
    """Prober that must not be used (the cache is pre-seeded)."""

    def probe(self):
        raise AssertionError("backend probe should not run")


class _CountingProber:
    def __init__(self, available):
        self.available = list(available)
        self.calls = 0
        self._lock = threading.Lock()

    def probe(self):
        with self._lock:
            self.calls += 1
        return list(self.available)


def make(
    tmp_path: Path,
    *,
    available=(W, C),
    installer=None,
    verifier=None,
    retry_count=2,
    cache=None,
    prober=None,
    sleep=no_sleep,
    **settings,
):
    """Orchestrator over fakes.  Returns (orchestrator, installer, verifier, rollbacks)."""
    installer = installer if installer is not None else FakeInstaller()
    verifier = verifier if verifier is not None else FakeVerifier()
    capture, rollbacks = SpyRollback.factory(tmp_path)
    orch = InstallOrchestrator(
        registry=ToolRegistry.from_catalog(CATALOG),
        installer=installer,
        verifier=verifier,
        backend_cache=cache if cache is not None else BackendCache(initial=available),
        prober=prober or _NoProbe(),
        settings=InstallSettings(retry_count=retry_count, **settings),
        sleep=sleep,
        rollback_factory=capture,
    )
    return orch, installer, verifier, rollbacks


# ── Acceptance scenarios ─────────────────────────────────────────────


class TestScenarios:
    def test_a_primary_backend_installs_and_verifies(self, tmp_path: Path):
        verifier = FakeVerifier(
            after_install={"fzf": [VerificationResult(ok=True, version="0.44.1")]},
        )
        orch, installer, _, rollbacks = make(tmp_path, verifier=verifier)

        result = orch.install_tool("fzf")

        assert result.success is True
        assert result.attempts == 1
        assert result.backend == W
        assert result.version == "0.44.1"
        assert installer.calls == [(W, "junegunn.fzf")]
        assert rollbacks[0].cleanup_calls == 0

    def test_b_no_backend_available(self, tmp_path: Path):
        orch, installer, _, rollbacks = make(tmp_path, available=())

        result = orch.install_tool("fzf")

        assert result.success is False
        assert "no backend" in result.message
        assert result.severity == Severity.CRITICAL
        assert result.category == "no_backend"
        assert result.attempts == 0
        assert installer.calls == []
        assert rollbacks == []

    def test_c_only_candidate_times_out_every_attempt(self, tmp_path: Path):
        installer = FakeInstaller(default=TIMED_OUT)
        orch, _, _, rollbacks = make(tmp_path, available=(C,), installer=installer)

        result = orch.install_tool("solo")

        assert result.success is False
        assert result.attempts == 3
        assert installer.calls == [(C, "solo")] * 3
        assert len(rollbacks) == 1
        assert rollbacks[0].cleanup_calls == 1
        assert "not uninstalled automatically" in result.message

    def test_d_verification_fails_then_succeeds(self, tmp_path: Path):
        verifier = FakeVerifier(after_install={"fzf": [
            VerificationResult(ok=False, error="fzf not found on PATH"),
            VerificationResult(ok=True, version="0.44.1"),
        ]})
        orch, installer, _, rollbacks = make(tmp_path, verifier=verifier)

        result = orch.install_tool("fzf")

        assert result.success is True
        assert result.attempts == 2
        assert result.version == "0.44.1"
        # A failed verification ends the round; choco is never reached
        assert installer.calls == [(W, "junegunn.fzf"), (W, "junegunn.fzf")]
        assert rollbacks[0].cleanup_calls == 0

    def test_e_dry_run_spawns_nothing(self, tmp_path: Path):
        spy = SpyRunner()
        installer = FakeInstaller()
        orch = InstallOrchestrator(
            registry=ToolRegistry.from_catalog(CATALOG),
            installer=installer,
            verifier=ToolVerifier(runner=spy, which=lambda c: f"/bin/{c}", sleep=no_sleep),
            backend_cache=BackendCache(),
            prober=BackendProber(runner=spy),
            settings=InstallSettings(dry_run=True),
            sleep=no_sleep,
        )

        results = orch.install_tools(["fzf", "solo", "multi", "font", "tar"])

        assert spy.calls == []
        assert installer.calls == []
        assert orch.backend_cache.is_populated is False
        assert [r.tool for r in results] == ["fzf", "solo", "multi", "font", "tar"]
        for r in results:
            assert r.success is True
            assert r.dry_run is True
            assert "dry run" in r.message

    def test_e_dry_run_uses_cached_backends(self, tmp_path: Path):
        orch = InstallOrchestrator(
            registry=ToolRegistry.from_catalog(CATALOG),
            backend_cache=BackendCache(initial=(C,)),
            prober=_NoProbe(),
            settings=InstallSettings(dry_run=True),
        )
        result = orch.install_tool("fzf")
        assert result.backend == C
        assert "fzf" in result.message


# ── P1: idempotence ──────────────────────────────────────────────────


class TestIdempotence:
    @pytest.mark.parametrize("name", ["fzf", "solo", "multi", "jq", "curl", "tar"])
    def test_installed_tool_consumes_no_attempts(self, tmp_path: Path, name: str):
        verifier = FakeVerifier(installed=CATALOG, version="9.9.9")
        orch, installer, _, rollbacks = make(tmp_path, verifier=verifier)

        result = orch.install_tool(name)

        assert result.success is True
        assert result.attempts == 0
        assert result.already_installed is True
        assert result.version == "9.9.9"
        assert installer.calls == []
        assert rollbacks == []

    def test_installed_check_runs_before_probing(self, tmp_path: Path):
        verifier = FakeVerifier(installed={"fzf"})
        orch, _, _, _ = make(tmp_path, verifier=verifier, cache=BackendCache(), prober=_NoProbe())
        assert orch.install_tool("fzf").already_installed is True

    def test_force_skips_installed_check(self, tmp_path: Path):
        verifier = FakeVerifier(installed={"fzf"})
        orch, installer, _, _ = make(tmp_path, verifier=verifier)

        result = orch.install_tool("fzf", force=True)

        assert result.success is True
        assert result.already_installed is False
        assert result.attempts == 1
        assert installer.kwargs[0]["force"] is True

    def test_unverifiable_tool_is_never_already_installed(self, tmp_path: Path):
        verifier = FakeVerifier(installed={"font"})
        orch, installer, _, _ = make(tmp_path, verifier=verifier)

        result = orch.install_tool("font")

        assert result.success is True
        assert result.already_installed is False
        assert result.attempts == 1
        assert result.version is None
        assert installer.calls == [(C, "font-a")]


# ── P2: bounded retries ──────────────────────────────────────────────


class TestBoundedRetries:
    @pytest.mark.parametrize("retry_count", [0, 1, 2, 3])
    def test_invocations_equal_attempts_times_candidates(self, tmp_path: Path, retry_count: int):
        installer = FakeInstaller(default=FAILED)
        orch, _, _, rollbacks = make(tmp_path, installer=installer, retry_count=retry_count)

        result = orch.install_tool("multi")

        assert result.success is False
        assert result.attempts == retry_count + 1
        assert len(installer.calls) == (retry_count + 1) * 3
        assert rollbacks[0].cleanup_calls == 1

    def test_every_round_restarts_from_the_top(self, tmp_path: Path):
        installer = FakeInstaller(default=FAILED)
        orch, _, _, _ = make(tmp_path, installer=installer, retry_count=1)

        orch.install_tool("multi")

        round_ = [(W, "m1"), (W, "m2"), (C, "m3")]
        assert installer.calls == round_ + round_

    def test_backoff_grows_and_is_capped(self, tmp_path: Path):
        delays = []

        def record(seconds, cancel=None):
            delays.append(seconds)
            return False

        installer = FakeInstaller(default=FAILED)
        orch, _, _, _ = make(tmp_path, installer=installer, retry_count=4, sleep=record)

        orch.install_tool("solo")

        assert delays == [10, 20, 30, 30]

    def test_no_backoff_after_last_round(self, tmp_path: Path):
        delays = []
        orch, _, _, _ = make(
            tmp_path,
            installer=FakeInstaller(default=FAILED),
            retry_count=0,
            sleep=lambda s, c=None: delays.append(s) or False,
        )
        orch.install_tool("solo")
        assert delays == []

    def test_exhausted_failure_is_classified(self, tmp_path: Path):
        denied = InstallOutcome(ok=False, exit_code=5, output="Access is denied.")
        orch, _, _, _ = make(tmp_path, available=(C,), installer=FakeInstaller(default=denied))

        result = orch.install_tool("solo")

        assert result.category == "permission"
        assert result.severity == Severity.HIGH
        assert any("Administrator" in s for s in result.suggestions)

    def test_verification_exhaustion_is_reported_as_such(self, tmp_path: Path):
        verifier = FakeVerifier(after_install={"fzf": [VerificationResult(ok=False, error="exit code 1")]})
        orch, installer, _, rollbacks = make(tmp_path, verifier=verifier)

        result = orch.install_tool("fzf")

        assert result.success is False
        assert result.attempts == 3
        assert result.category == "verification"
        assert "not functional" in result.message
        assert len(installer.calls) == 3
        assert rollbacks[0].cleanup_calls == 1


# ── P3: priority ordering ────────────────────────────────────────────


class TestPriorityOrdering:
    def test_falls_through_to_lower_priority_backend(self, tmp_path: Path):
        installer = FakeInstaller(script={(W, "junegunn.fzf"): FAILED})
        orch, _, _, _ = make(tmp_path, installer=installer)

        result = orch.install_tool("fzf")

        assert result.success is True
        assert result.backend == C
        assert result.attempts == 1
        assert installer.calls == [(W, "junegunn.fzf"), (C, "fzf")]

    def test_all_identifiers_of_a_backend_before_the_next(self, tmp_path: Path):
        installer = FakeInstaller(script={(W, "m1"): FAILED, (W, "m2"): FAILED})
        orch, _, _, _ = make(tmp_path, installer=installer)

        result = orch.install_tool("multi")

        assert result.backend == C
        assert installer.calls == [(W, "m1"), (W, "m2"), (C, "m3")]

    def test_unavailable_backends_are_skipped(self, tmp_path: Path):
        installer = FakeInstaller()
        orch, _, _, _ = make(tmp_path, available=(C, S), installer=installer)

        result = orch.install_tool("jq")

        assert result.backend == S
        assert installer.calls == [(S, "jq")]

    def test_no_identifier_for_available_backends(self, tmp_path: Path):
        orch, installer, _, rollbacks = make(tmp_path, available=(W,))

        result = orch.install_tool("solo")

        assert result.success is False
        assert result.category == "no_candidate"
        assert result.attempts == 0
        assert installer.calls == []
        assert rollbacks == []


# ── P4: timeout isolation ────────────────────────────────────────────


class TestTimeoutIsolation:
    def test_timeout_moves_to_next_candidate(self, tmp_path: Path):
        installer = FakeInstaller(script={(W, "junegunn.fzf"): TIMED_OUT})
        orch, _, _, _ = make(tmp_path, installer=installer)

        result = orch.install_tool("fzf")

        assert result.success is True
        assert result.backend == C
        assert result.attempts == 1

    def test_timeout_is_passed_to_installer(self, tmp_path: Path):
        orch, installer, _, _ = make(tmp_path, timeout=42)
        orch.install_tool("fzf")
        assert installer.kwargs[0]["timeout"] == 42

    def test_all_timeouts_classify_as_network(self, tmp_path: Path):
        installer = FakeInstaller(default=TIMED_OUT)
        orch, _, _, _ = make(tmp_path, available=(C,), installer=installer)

        result = orch.install_tool("solo")

        assert result.category == "network"
        assert "timed out" in result.message


# ── P6: no rollback on success ───────────────────────────────────────


class TestNoRollbackOnSuccess:
    @pytest.mark.parametrize("script", [
        {},
        {(W, "m1"): FAILED},
        {(W, "m1"): TIMED_OUT, (W, "m2"): FAILED},
    ])
    def test_cleanup_never_runs(self, tmp_path: Path, script):
        orch, _, _, rollbacks = make(tmp_path, installer=FakeInstaller(script=script))

        result = orch.install_tool("multi")

        assert result.success is True
        assert rollbacks[0].cleanup_calls == 0
        assert rollbacks[0].release_calls == 1

    def test_real_context_keeps_path_and_drops_scratch(self, tmp_path: Path, monkeypatch):
        contexts = []

        def capture(tool, verifier=None, *, precheck=None):
            ctx = RollbackContext.capture(tool, verifier, precheck=precheck)
            contexts.append(ctx)
            return ctx

        orch = InstallOrchestrator(
            registry=ToolRegistry.from_catalog(CATALOG),
            installer=FakeInstaller(),
            verifier=FakeVerifier(),
            backend_cache=BackendCache(initial=(W,)),
            prober=_NoProbe(),
            sleep=no_sleep,
            rollback_factory=capture,
        )
        monkeypatch.setenv("PATH", "/before")

        def install_adds_path(**kwargs):
            monkeypatch.setenv("PATH", "/before:/after")
            return InstallOutcome(ok=True, exit_code=0)

        orch.installer.script[(W, "junegunn.fzf")] = install_adds_path

        assert orch.install_tool("fzf").success is True

        ctx = contexts[0]
        assert ctx.cleanup_calls == 0
        assert ctx.context.cleaned is False
        assert ctx.context.temp_paths
        assert not any(p.exists() for p in ctx.context.temp_paths)
        assert orch.installer.kwargs[0]["log_dir"] == ctx.context.temp_paths[0]


# ── Terminal failures ────────────────────────────────────────────────


class TestTerminalFailures:
    def test_unknown_tool(self, tmp_path: Path):
        orch, installer, _, _ = make(tmp_path)

        result = orch.install_tool("nope")

        assert isinstance(result, InstallationResult)
        assert result.success is False
        assert result.category == "unknown_tool"
        assert result.attempts == 0
        assert installer.calls == []

    def test_tool_lookup_is_case_insensitive(self, tmp_path: Path):
        orch, _, _, _ = make(tmp_path)
        assert orch.install_tool("  FZF ").tool == "fzf"

    def test_missing_built_in_without_package(self, tmp_path: Path):
        orch, installer, _, _ = make(tmp_path)

        result = orch.install_tool("tar")

        assert result.success is False
        assert "ships with Windows" in result.message
        assert installer.calls == []

    def test_missing_built_in_with_package_is_installed(self, tmp_path: Path):
        orch, installer, _, _ = make(tmp_path)
        result = orch.install_tool("curl")
        assert result.success is True
        assert installer.calls == [(W, "cURL.cURL")]

    def test_failure_names_manual_download_and_alternatives(self, tmp_path: Path):
        orch, _, _, _ = make(tmp_path, available=(W,), installer=FakeInstaller(default=FAILED))

        result = orch.install_tool("jq")

        assert any("https://jqlang.github.io/jq/download/" in s for s in result.suggestions)
        assert any("scoop" in s for s in result.suggestions)

    def test_unexpected_error_becomes_a_result(self, tmp_path: Path):
        def boom(**kwargs):
            raise RuntimeError("adapter exploded")

        installer = FakeInstaller(default=boom)
        orch, _, _, rollbacks = make(tmp_path, installer=installer)

        result = orch.install_tool("fzf")

        assert result.success is False
        assert "adapter exploded" in result.message
        assert rollbacks[0].cleanup_calls == 1

    def test_invalid_settings_raise_config_error(self):
        with pytest.raises(ConfigError):
            InstallOrchestrator(
                registry=ToolRegistry.from_catalog(CATALOG),
                settings={"retry_count": -1},
            )

    def test_settings_mapping_is_accepted(self):
        orch = InstallOrchestrator(
            registry=ToolRegistry.from_catalog(CATALOG),
            backend_cache=BackendCache(initial=()),
            settings={"retry_count": 4, "timeout": 60},
        )
        assert orch.settings.max_attempts == 5


# ── Cancellation ─────────────────────────────────────────────────────


class TestCancellation:
    def test_cancelled_before_start(self, tmp_path: Path):
        orch, installer, verifier, _ = make(tmp_path)
        orch.cancel()

        result = orch.install_tool("fzf")

        assert result.success is False
        assert result.cancelled is True
        assert installer.calls == []
        assert verifier.calls == []

    def test_cancel_between_candidates(self, tmp_path: Path):
        def fail_and_cancel(**kwargs):
            kwargs["cancel"].set()
            return FAILED

        installer = FakeInstaller(script={(W, "m1"): fail_and_cancel})
        orch, _, _, rollbacks = make(tmp_path, installer=installer)

        result = orch.install_tool("multi")

        assert result.cancelled is True
        assert result.category == "cancelled"
        assert installer.calls == [(W, "m1")]
        assert rollbacks[0].cleanup_calls == 1

    def test_cancelled_install_stops_the_loop(self, tmp_path: Path):
        killed = InstallOutcome(ok=False, cancelled=True, error="Cancelled")
        installer = FakeInstaller(script={(W, "junegunn.fzf"): killed})
        orch, _, _, rollbacks = make(tmp_path, installer=installer)

        result = orch.install_tool("fzf")

        assert result.cancelled is True
        assert result.attempts == 1
        assert installer.calls == [(W, "junegunn.fzf")]
        assert rollbacks[0].cleanup_calls == 1

    def test_cancel_during_backoff(self, tmp_path: Path):
        def cancelled_wait(seconds, cancel=None):
            cancel.set()
            return True

        installer = FakeInstaller(default=FAILED)
        orch, _, _, rollbacks = make(tmp_path, installer=installer, sleep=cancelled_wait)

        result = orch.install_tool("solo")

        assert result.cancelled is True
        assert result.attempts == 1
        assert len(installer.calls) == 1
        assert rollbacks[0].cleanup_calls == 1

    def test_shared_token_is_honoured(self, tmp_path: Path):
        token = threading.Event()
        orch, _, _, _ = make(tmp_path)
        orch2 = InstallOrchestrator(
            registry=orch.registry,
            installer=FakeInstaller(),
            verifier=FakeVerifier(),
            backend_cache=BackendCache(initial=(W,)),
            cancel_token=token,
        )
        token.set()
        assert orch2.cancel_token is token
        assert orch2.install_tool("fzf").cancelled is True


# ── Multiple tools ───────────────────────────────────────────────────


class TestInstallTools:
    def test_results_in_request_order_without_duplicates(self, tmp_path: Path):
        orch, installer, _, _ = make(tmp_path)

        results = orch.install_tools(["solo", "fzf", "SOLO", "multi", "fzf"])

        assert [r.tool for r in results] == ["solo", "fzf", "multi"]
        assert all(r.success for r in results)
        assert sorted(installer.calls) == sorted([(C, "solo"), (W, "junegunn.fzf"), (W, "m1")])

    def test_empty_request(self, tmp_path: Path):
        orch, _, _, _ = make(tmp_path)
        assert orch.install_tools([]) == []

    def test_tools_install_concurrently(self, tmp_path: Path):
        barrier = threading.Barrier(3, timeout=5)

        def meet(**kwargs):
            barrier.wait()
            return InstallOutcome(ok=True, exit_code=0)

        installer = FakeInstaller(default=meet)
        orch, _, _, _ = make(tmp_path, installer=installer)

        results = orch.install_tools(["fzf", "solo", "multi"])

        assert all(r.success for r in results), [r.message for r in results]

    def test_backends_probed_once_for_all_tools(self, tmp_path: Path):
        prober = _CountingProber([W, C])
        orch, _, _, _ = make(tmp_path, cache=BackendCache(), prober=prober)

        results = orch.install_tools(["fzf", "solo", "multi", "jq", "curl"])

        assert all(r.success for r in results)
        assert prober.calls == 1

    def test_one_failure_does_not_affect_others(self, tmp_path: Path):
        installer = FakeInstaller(script={(C, "solo"): FAILED})
        orch, _, _, _ = make(tmp_path, installer=installer, retry_count=0)

        results = {r.tool: r for r in orch.install_tools(["fzf", "solo"])}

        assert results["fzf"].success is True
        assert results["solo"].success is False

    def test_available_backends_reprobe(self, tmp_path: Path):
        prober = _CountingProber([S])
        orch, _, _, _ = make(tmp_path, cache=BackendCache(initial=(W,)), prober=prober)

        assert orch.available_backends() == [W]
        assert orch.available_backends(reprobe=True) == [S]
        assert prober.calls == 1


# ── Audit trail ──────────────────────────────────────────────────────


class TestAudit:
    def test_install_events_are_recorded(self, tmp_path: Path):
        writer = AuditWriter(tmp_path / "audit.ndjson")
        set_audit_writer(writer)
        orch, _, _, _ = make(tmp_path, installer=FakeInstaller(script={(C, "solo"): FAILED}), retry_count=0)

        orch.install_tools(["fzf", "solo"])

        actions = {(e.target, e.action) for e in writer.read_all()}
        assert ("fzf", "installed") in actions
        assert ("solo", "failed") in actions

    def test_no_ledger_is_fine(self, tmp_path: Path):
        set_audit_writer(None)
        orch, _, _, _ = make(tmp_path)
        assert orch.install_tool("fzf").success is True
