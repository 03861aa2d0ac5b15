"""
Backoff — delay schedule between install attempt rounds.

Linear backoff with a ceiling: round N waits ``min(cap, N * step)``
seconds before round N+1 (10s, 20s, 30s, 30s, ... with the defaults).
Waits are cancellable: a raised cancellation event ends the wait early
so a cancelled run does not sit out a 30-second backoff.
"""

from __future__ import annotations

import logging
import threading

logger = logging.getLogger(__name__)

DEFAULT_STEP = 10.0
DEFAULT_CAP = 30.0


def backoff_delay(
    attempt: int,
    step: float = DEFAULT_STEP,
    cap: float = DEFAULT_CAP,
) -> float:
    """Seconds to wait after a failed attempt round (1-based ``attempt``)."""
    if attempt < 1:
        return 0.0
    return min(cap, attempt * step)


def interruptible_sleep(
    seconds: float,
    cancel: threading.Event | None = None,
) -> bool:
    """Sleep for ``seconds`` unless ``cancel`` is raised first.

    Returns:
        True if the wait ended because of cancellation.
    """
    if seconds <= 0:
        return bool(cancel and cancel.is_set())
    if cancel is None:
        threading.Event().wait(seconds)
        return False
    cancelled = cancel.wait(seconds)
    if cancelled:
        logger.debug("Backoff wait interrupted by cancellation")
    return cancelled
