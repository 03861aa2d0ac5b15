"""
L4 Execution — Core subprocess runner.

The SINGLE PLACE where install, probe and verification subprocesses
are spawned.  Every child runs in its own process group so that a
deadline or a cancellation can take down the whole tree (package
managers routinely spawn msiexec, PowerShell, and friends).

Expected failures (missing executable, non-zero exit, timeout,
cancellation) come back as data in a ``CommandResult``; this module
never raises for them.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import threading
import time
from collections import deque
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)

OUTPUT_TAIL = 4000          # characters of stdout/stderr kept per stream
POLL_INTERVAL = 0.25        # seconds between cancellation checks
KILL_GRACE = 3.0            # seconds between SIGTERM and SIGKILL

_IS_WINDOWS = sys.platform == "win32"


@dataclass
class CommandResult:
    """What happened when a command ran."""

    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""
    elapsed_ms: int = 0
    timed_out: bool = False
    cancelled: bool = False
    error: str = ""

    @property
    def ok(self) -> bool:
        return (
            self.returncode == 0
            and not self.timed_out
            and not self.cancelled
            and not self.error
        )

    @property
    def output(self) -> str:
        """Combined stdout + stderr, trimmed."""
        parts = [p.strip() for p in (self.stdout, self.stderr) if p and p.strip()]
        return "\n".join(parts)


def _tail(text: str | None) -> str:
    if not text:
        return ""
    return text[-OUTPUT_TAIL:]


def _isolation_kwargs() -> dict:
    """Popen kwargs that put the child in its own process group."""
    if _IS_WINDOWS:
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


def _kill_tree(proc: subprocess.Popen) -> None:
    """Terminate ``proc`` and every process in its group."""
    if _IS_WINDOWS:
        try:
            subprocess.run(
                ["taskkill", "/F", "/T", "/PID", str(proc.pid)],
                capture_output=True,
                timeout=10,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug("taskkill failed for pid %s: %s", proc.pid, e)
        try:
            proc.kill()
        except OSError:
            pass
        return

    # start_new_session=True makes the child its own group leader
    try:
        os.killpg(proc.pid, signal.SIGTERM)
    except (ProcessLookupError, PermissionError):
        return
    try:
        proc.wait(timeout=KILL_GRACE)
    except subprocess.TimeoutExpired:
        pass
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        pass


def _terminate(proc: subprocess.Popen) -> None:
    """Kill the process tree and reap the child, bounded by the grace periods."""
    _kill_tree(proc)
    try:
        proc.wait(timeout=KILL_GRACE)
    except subprocess.TimeoutExpired:
        proc.kill()
        try:
            proc.wait(timeout=KILL_GRACE)
        except subprocess.TimeoutExpired:
            logger.warning("pid %s survived SIGKILL; abandoning it", proc.pid)


class _Drain(threading.Thread):
    """Reads one pipe to EOF, keeping only the last ``OUTPUT_TAIL`` characters.

    A descendant that detached from the process group can hold the pipe
    open long after the child is gone.  The runner never waits on EOF
    beyond ``KILL_GRACE``: it takes ``text()`` as it stands and leaves
    this daemon thread to finish on its own.
    """

    def __init__(self, pipe, name: str):
        super().__init__(name=f"drain-{name}", daemon=True)
        self._pipe = pipe
        self._chunks: deque[str] = deque()
        self._size = 0
        self._lock = threading.Lock()

    def run(self) -> None:
        try:
            for line in self._pipe:
                with self._lock:
                    self._chunks.append(line)
                    self._size += len(line)
                    while self._size > OUTPUT_TAIL and len(self._chunks) > 1:
                        self._size -= len(self._chunks.popleft())
        except (OSError, ValueError) as e:
            logger.debug("Stopped reading %s: %s", self.name, e)
        finally:
            try:
                self._pipe.close()
            except OSError:
                pass

    def text(self) -> str:
        with self._lock:
            return _tail("".join(self._chunks))


def run_command(
    cmd: Sequence[str],
    *,
    timeout: float,
    cancel: threading.Event | None = None,
    cwd: str | os.PathLike | None = None,
    env: Mapping[str, str] | None = None,
) -> CommandResult:
    """Run ``cmd`` with a wall-clock deadline and an optional cancel token.

    Args:
        cmd: Argument vector; never run through a shell.
        timeout: Seconds before the process tree is killed.
        cancel: When set, the process tree is killed at the next poll.
        cwd: Working directory for the child.
        env: Full environment for the child (default: inherit).

    Returns:
        ``CommandResult``.  ``timed_out``/``cancelled`` are set when the
        child was killed; ``error`` describes spawn failures.  The call
        returns within ``timeout`` plus the kill and drain grace periods,
        whatever the child's descendants do with its pipes.
    """
    argv = [str(c) for c in cmd]
    if not argv:
        return CommandResult(error="Empty command")

    logger.debug("Running: %s (timeout=%ss)", " ".join(argv), timeout)
    start = time.monotonic()

    def elapsed() -> int:
        return int((time.monotonic() - start) * 1000)

    try:
        proc = subprocess.Popen(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            cwd=cwd,
            env=dict(env) if env is not None else None,
            **_isolation_kwargs(),
        )
    except FileNotFoundError:
        return CommandResult(error=f"Executable not found: {argv[0]}", elapsed_ms=elapsed())
    except OSError as e:
        return CommandResult(error=f"Failed to start {argv[0]}: {e}", elapsed_ms=elapsed())

    drains = [_Drain(proc.stdout, "stdout"), _Drain(proc.stderr, "stderr")]
    for drain in drains:
        drain.start()

    def finish(**kwargs) -> CommandResult:
        drain_until = time.monotonic() + KILL_GRACE
        for drain in drains:
            drain.join(timeout=max(0.0, drain_until - time.monotonic()))
            if drain.is_alive():
                logger.debug("%s of pid %s still open; keeping output so far", drain.name, proc.pid)
        return CommandResult(
            returncode=proc.returncode,
            stdout=drains[0].text(),
            stderr=drains[1].text(),
            elapsed_ms=elapsed(),
            **kwargs,
        )

    deadline = start + timeout
    while True:
        if cancel is not None and cancel.is_set():
            _terminate(proc)
            logger.debug("Cancelled: %s (pid %s)", argv[0], proc.pid)
            return finish(cancelled=True, error="Cancelled")

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            _terminate(proc)
            logger.debug("Timed out after %ss: %s (pid %s)", timeout, argv[0], proc.pid)
            return finish(timed_out=True, error=f"Timed out after {timeout:g}s")

        try:
            proc.wait(timeout=min(POLL_INTERVAL, remaining))
            break
        except subprocess.TimeoutExpired:
            continue

    result = finish()
    logger.debug("Exit %s from %s in %dms", result.returncode, argv[0], result.elapsed_ms)
    return result
