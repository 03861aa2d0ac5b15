"""
L3 Detection — Backend availability.

``BackendProber`` asks each known package manager for its version;
``BackendCache`` remembers the answer for the lifetime of the
orchestrator.  Both are read-only with respect to the host: the only
side effect is the version-check subprocess.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping

from devsetup.adapters import Backend, Runner, default_backends
from devsetup.core.models.tool import BackendKind
from devsetup.core.services.tool_install.execution.subprocess_runner import run_command

logger = logging.getLogger(__name__)


class BackendProber:
    """Probe which package managers are installed and responsive."""

    def __init__(
        self,
        backends: Mapping[BackendKind, Backend] | None = None,
        timeout: float = 5.0,
        runner: Runner = run_command,
    ):
        self._backends = dict(backends) if backends is not None else default_backends()
        self.timeout = timeout
        self._runner = runner
        self.last_details: dict[BackendKind, str] = {}

    def probe(self) -> list[BackendKind]:
        """Available backends, in priority order.

        A backend that is missing, exits non-zero, times out, or fails
        to start is left out; it never stops the others being probed.
        """
        available: list[BackendKind] = []
        details: dict[BackendKind, str] = {}

        for kind in BackendKind.ordered():
            backend = self._backends.get(kind)
            if backend is None:
                continue
            try:
                ok, detail = backend.probe(self.timeout, self._runner)
            except Exception as e:
                logger.warning("Probing %s raised: %s", kind.value, e)
                ok, detail = False, str(e)

            details[kind] = detail
            if ok:
                logger.info("Backend %s available (%s)", kind.value, detail or "version unknown")
                available.append(kind)
            else:
                logger.info("Backend %s unavailable: %s", kind.value, detail)

        self.last_details = details
        if not available:
            logger.warning("No package manager backend is available")
        return available


class BackendCache:
    """Compute-once cache of the available backends.

    The first ``get`` probes; every later call returns the same tuple
    until ``force_reprobe`` or ``invalidate``.  Concurrent first calls
    block on the lock so only one probe ever runs.

    Pass ``initial`` to pre-seed the cache (no probe will happen).
    """

    def __init__(self, initial: Iterable[BackendKind] | None = None):
        self._lock = threading.Lock()
        self._value: tuple[BackendKind, ...] | None = (
            tuple(initial) if initial is not None else None
        )
        self.probe_count = 0

    @property
    def is_populated(self) -> bool:
        return self._value is not None

    def peek(self) -> tuple[BackendKind, ...] | None:
        """The cached value without probing (None if not yet probed)."""
        return self._value

    def get(self, prober: BackendProber) -> tuple[BackendKind, ...]:
        value = self._value
        if value is not None:
            return value
        with self._lock:
            if self._value is None:
                self._value = self._run(prober)
            return self._value

    def force_reprobe(self, prober: BackendProber) -> tuple[BackendKind, ...]:
        """Probe again regardless of the cached value and replace it."""
        with self._lock:
            self._value = self._run(prober)
            return self._value

    def invalidate(self) -> None:
        with self._lock:
            self._value = None

    def _run(self, prober: BackendProber) -> tuple[BackendKind, ...]:
        self.probe_count += 1
        result = tuple(sorted(prober.probe(), key=lambda k: k.priority))
        logger.debug("Backend cache populated: %s", [k.value for k in result] or "none")
        return result


# Process-wide default; the CLI shares it between commands in one run
DEFAULT_BACKEND_CACHE = BackendCache()
