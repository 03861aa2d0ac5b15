"""
Run context — where audit events for the current process go.

The audit ledger is set ONCE at startup by whichever entry point
launches the run:

    - CLI:    ui/cli/tools.py → context.set_audit_writer(writer)
    - Tests:  context.set_audit_writer(AuditWriter(tmp_path / ...))

Design notes:
    - Module-level singleton (not a class).  Simple, no over-engineering.
    - get_audit_writer() returns None when unset — the audit helper
      silently skips, so the installer never depends on audit delivery.
    - Thread-safe for reads (simple reference assignment).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from devsetup.core.persistence.audit import AuditWriter


_audit_writer: Optional[AuditWriter] = None


def set_audit_writer(writer: Optional[AuditWriter]) -> None:
    """Register (or clear, with None) the audit ledger for this process."""
    global _audit_writer
    _audit_writer = writer


def get_audit_writer() -> Optional[AuditWriter]:
    """Return the current audit ledger, or None if not set."""
    return _audit_writer
