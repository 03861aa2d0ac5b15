"""
Audit helpers — the one way install code records an audit event.

Services bind a card name once at import time::

    from devsetup.core.services.audit_helpers import make_auditor

    _audit = make_auditor("tool_install")
    _audit("✅ Tool Installed", "fzf 0.44.1 via winget", action="installed", target="fzf")

Tools install on parallel worker threads, so every event is stamped
with the worker's thread name; interleaved ledger lines can then be
grouped back per tool run.

No ledger registered (unit tests, or a CLI run without ``--audit-log``)
means the event is dropped.  Recording never raises into the installer.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)


def audit_event(card: str, label: str, summary: str, **fields: Any) -> bool:
    """Append one event to the registered ledger.

    Args:
        card: Domain of the event, e.g. ``"tool_install"``.
        label: Emoji-prefixed headline, e.g. ``"❌ Tool Install Failed"``.
        summary: One human-readable sentence.
        **fields: ``action``, ``target`` and ``detail`` for the entry.

    Returns:
        True if the event reached the ledger.
    """
    from devsetup.core.context import get_audit_writer
    from devsetup.core.persistence.audit import AuditEntry

    writer = get_audit_writer()
    if writer is None:
        return False

    detail = fields.pop("detail", None)
    if detail is None:
        detail = {}
    if isinstance(detail, dict):
        detail = {"thread": threading.current_thread().name, **detail}

    try:
        entry = AuditEntry(card=card, label=label, summary=summary, detail=detail, **fields)
    except ValueError as e:
        logger.debug("Dropping malformed audit event %r: %s", label, e)
        return False

    writer.write(entry)
    return True


def make_auditor(card: str) -> Callable[..., bool]:
    """Bind ``card`` and return ``_audit(label, summary, **fields)``."""

    def _audit(label: str, summary: str, **fields: Any) -> bool:
        return audit_event(card, label, summary, **fields)

    return _audit
