"""
L3 Detection — Process environment (PATH).

Package managers write the new PATH to the persisted OS environment
(the Windows registry) but cannot touch the environment of the
process that launched them.  ``refresh_path`` pulls the persisted
entries into ``os.environ`` so a freshly installed executable can be
resolved without opening a new terminal.

``os.environ`` is shared by every tool worker, so every read-modify-
write of PATH goes through ``ENV_LOCK``.
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

logger = logging.getLogger(__name__)

ENV_LOCK = threading.RLock()

# Refreshed-in PATH entry (normalized) -> the owners relying on it.
# Entries pinned by a successful install, or present before any refresh,
# are not tracked and are never withdrawn.
_claims: dict[str, set[object]] = {}
_local = threading.local()

_MACHINE_ENV_KEY = r"SYSTEM\CurrentControlSet\Control\Session Manager\Environment"
_USER_ENV_KEY = "Environment"


def _split(value: str | None) -> list[str]:
    return [p for p in (value or "").split(os.pathsep) if p.strip()]


def _read_persisted_path() -> list[str] | None:
    """Machine + user PATH entries from the registry (None off Windows)."""
    if sys.platform != "win32":
        return None

    import winreg

    entries: list[str] = []
    for hive, key in (
        (winreg.HKEY_LOCAL_MACHINE, _MACHINE_ENV_KEY),
        (winreg.HKEY_CURRENT_USER, _USER_ENV_KEY),
    ):
        try:
            with winreg.OpenKey(hive, key) as handle:
                value, _ = winreg.QueryValueEx(handle, "Path")
        except OSError as e:
            logger.debug("Could not read PATH from registry (%s): %s", key, e)
            continue
        entries.extend(os.path.expandvars(p) for p in _split(value))
    return entries


def merge_path(current: Iterable[str], persisted: Iterable[str]) -> list[str]:
    """Current entries first, then persisted entries not already present."""
    seen: set[str] = set()
    merged: list[str] = []
    for entry in [*current, *persisted]:
        key = os.path.normcase(os.path.normpath(entry))
        if key in seen:
            continue
        seen.add(key)
        merged.append(entry)
    return merged


def _key(entry: str) -> str:
    return os.path.normcase(os.path.normpath(entry))


@contextmanager
def path_owner(owner: object) -> Iterator[None]:
    """Attribute PATH entries refreshed in by this thread to ``owner``.

    Entries claimed this way can later be withdrawn with
    ``withdraw_path(owner)`` without disturbing entries other workers
    refreshed in, or entries that were on PATH to begin with.
    """
    previous = getattr(_local, "owner", None)
    _local.owner = owner
    try:
        yield
    finally:
        _local.owner = previous


def refresh_path(persisted: Iterable[str] | None = None) -> bool:
    """Merge the persisted PATH into the process PATH.

    Inside ``path_owner(owner)`` the entries this call adds are claimed
    for ``owner``, and so are matching entries another owner added
    earlier and still holds.  Entries added outside any owner stay for
    good.

    Args:
        persisted: PATH entries to merge (default: read from the OS).

    Returns:
        True if the process PATH changed.
    """
    entries = list(persisted) if persisted is not None else _read_persisted_path()
    if not entries:
        return False

    owner = getattr(_local, "owner", None)
    with ENV_LOCK:
        current = _split(os.environ.get("PATH"))
        present = {_key(p) for p in current}
        added = [p for p in merge_path([], entries) if _key(p) not in present]
        if owner is not None:
            for entry in added:
                _claims[_key(entry)] = set()
            for entry in entries:
                owners = _claims.get(_key(entry))
                if owners is not None:
                    owners.add(owner)
        if added:
            os.environ["PATH"] = os.pathsep.join([*current, *added])

    if added:
        logger.debug("Process PATH refreshed (+%d entries)", len(added))
    return bool(added)


def withdraw_path(owner: object) -> list[str]:
    """Drop ``owner``'s claims; remove entries nobody else still claims.

    Returns:
        The PATH entries removed.
    """
    removed: list[str] = []
    with ENV_LOCK:
        orphaned = set()
        for key, owners in list(_claims.items()):
            if owner in owners:
                owners.discard(owner)
                if not owners:
                    orphaned.add(key)
                    del _claims[key]
        if not orphaned:
            return removed
        kept = []
        for entry in _split(os.environ.get("PATH")):
            (removed if _key(entry) in orphaned else kept).append(entry)
        if removed:
            os.environ["PATH"] = os.pathsep.join(kept)
    logger.debug("Withdrew %d PATH entr%s", len(removed), "y" if len(removed) == 1 else "ies")
    return removed


def pin_path(owner: object) -> int:
    """Make ``owner``'s claimed entries permanent for this process.

    Returns:
        The number of entries pinned.
    """
    with ENV_LOCK:
        pinned = [key for key, owners in _claims.items() if owner in owners]
        for key in pinned:
            del _claims[key]
    return len(pinned)


def snapshot_path() -> str | None:
    with ENV_LOCK:
        return os.environ.get("PATH")
