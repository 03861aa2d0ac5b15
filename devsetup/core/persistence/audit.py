"""
Install ledger — append-only NDJSON history of tool installs.

One JSON object per line, one line per event: started, checked,
installed, failed, cancelled, dry_run.  ``devsetup tools history``
reads it back; nothing ever rewrites or truncates it.

Tool workers append from several threads at once, so writes go
through a per-ledger lock.
"""

from __future__ import annotations

import json
import logging
import threading
from collections import deque
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_FILE = "devsetup-audit.ndjson"


class AuditEntry(BaseModel):
    """One ledger line."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    card: str = ""                 # domain, e.g. "tool_install"
    label: str = ""                # emoji headline
    summary: str = ""

    action: str = ""               # started, installed, failed, checked, ...
    target: str = ""               # tool name
    detail: dict[str, Any] = Field(default_factory=dict)


class AuditWriter:
    """Appends entries to, and reads them back from, one NDJSON file."""

    def __init__(self, path: Path | None = None):
        self._path = path if path is not None else Path(DEFAULT_AUDIT_FILE)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        """Append ``entry``.  I/O errors are logged, not raised."""
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._lock, self._path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            logger.error("Cannot append to install ledger %s: %s", self._path, e)
            return
        logger.debug("Ledger: %s %s", entry.action, entry.target)

    def _entries(self) -> Iterator[AuditEntry]:
        """Parse the ledger lazily, oldest first, skipping corrupt lines."""
        if not self._path.is_file():
            return
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for number, raw in enumerate(f, start=1):
                    if not raw.strip():
                        continue
                    try:
                        yield AuditEntry.model_validate(json.loads(raw))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("Ledger line %d is corrupt, skipped: %s", number, e)
        except OSError as e:
            logger.error("Cannot read install ledger %s: %s", self._path, e)

    def read_all(self) -> list[AuditEntry]:
        """Every entry, oldest first."""
        return list(self._entries())

    def read_recent(self, n: int = 20, target: str | None = None) -> list[AuditEntry]:
        """The last ``n`` entries, optionally only those for one tool."""
        if n <= 0:
            return []
        entries = (e for e in self._entries() if target is None or e.target == target)
        return list(deque(entries, maxlen=n))
