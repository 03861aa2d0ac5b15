"""
Logging configuration — central setup for the devsetup CLI.

``main.py`` calls ``setup_logging`` once, before any command runs; every
module then logs through ``logging.getLogger(__name__)``.

Console level precedence:
    --debug / --verbose / --quiet  >  DEVSETUP_LOG_LEVEL  >  WARNING

A log file is opt-in through DEVSETUP_LOG_FILE, with its own threshold
in DEVSETUP_LOG_FILE_LEVEL (default: the console level).

Install events use an extra ``SUCCESS`` level (25).  It sits between
INFO and WARNING: ``--verbose`` shows "fzf installed via winget", the
default console does not.
"""

from __future__ import annotations

import logging
import os
import sys

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

ENV_LEVEL = "DEVSETUP_LOG_LEVEL"
ENV_FILE = "DEVSETUP_LOG_FILE"
ENV_FILE_LEVEL = "DEVSETUP_LOG_FILE_LEVEL"

# Full detail: level, worker thread, origin
_FMT_DETAILED = "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s:%(lineno)d  %(message)s"

# (upper bound, format, datefmt), first match wins
_CONSOLE_FORMATS = (
    (logging.DEBUG, _FMT_DETAILED, "%H:%M:%S"),
    (SUCCESS, "%(asctime)s [%(threadName)s] %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(message)s", None),
)

# Loggers that stay at WARNING unless the console is at DEBUG
_CHATTY_LOGGERS = ("urllib3", "asyncio")


def resolve_level(*, debug: bool = False, verbose: bool = False, quiet: bool = False) -> str:
    """Console level name from CLI flags, then the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get(ENV_LEVEL, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Configure the root logger for the whole process.

    Safe to call more than once: previous handlers are replaced.

    Args:
        level: Console level (DEBUG, INFO, SUCCESS, WARNING, ERROR, CRITICAL).
        log_file: Also write records to this file.
        log_file_level: Threshold for ``log_file`` (default: ``level``).
        quiet_third_party: Hold chatty library loggers at WARNING unless
            the console is at DEBUG.
    """
    console_level = _parse_level(level)
    fmt, datefmt = next(
        ((f, d) for bound, f, d in _CONSOLE_FORMATS if console_level <= bound),
        ("%(message)s", None),
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    handlers: list[logging.Handler] = [console]

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(_FMT_DETAILED, datefmt="%Y-%m-%d %H:%M:%S"))
        handlers.append(file_handler)

    root = logging.getLogger()
    for old in root.handlers[:]:
        root.removeHandler(old)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(min(h.level for h in handlers))

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    # A broken stderr must not turn into a failed install
    logging.raiseExceptions = False


def log_success(logger: logging.Logger, msg: str, *args: object) -> None:
    """Log ``msg`` at SUCCESS."""
    logger.log(SUCCESS, msg, *args)


def _parse_level(level: str | None) -> int:
    """Level name to number; unknown or empty names mean WARNING."""
    if not level:
        return logging.WARNING
    name = level.strip().upper()
    if name == "SUCCESS":
        return SUCCESS
    numeric = logging.getLevelName(name)
    return numeric if isinstance(numeric, int) else logging.WARNING
