"""Centralized logging setup for the file tree server.

Design goals
- Logging must never be required for functionality.
- Logs are split by purpose (core/access) and rotate by size.
- Runtime toggles are driven by env vars.

Environment variables
- FILETREE_LOG_DIR: directory for all server logs (no file logging when unset)
- FILETREE_LOG_CORE_ENABLE: 0/1 (default: 1)
- FILETREE_LOG_CORE_LEVEL: ERROR|WARNING|INFO|DEBUG (default: INFO)
- FILETREE_LOG_ACCESS_ENABLE: 0/1 (default: 0)
- FILETREE_LOG_ROTATE_MAX_MB: max size in MB for each log file before rotation (default: 2)
- FILETREE_LOG_ROTATE_BACKUPS: number of rotated files to keep (default: 3)

Notes
- Setup is idempotent to avoid duplicating handlers on reload/import.
- Runtime updates (level/enable/rotate params) are applied via refresh_runtime_from_env().
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Dict, Optional, Tuple

from services.config import env_bool, env_int


CORE_LOGGER_NAME = "filetree"
ACCESS_LOGGER_NAME = "filetree.access"

DEFAULT_CORE_LEVEL = "INFO"
DEFAULT_ROTATE_MAX_MB = 2
DEFAULT_ROTATE_BACKUPS = 3


_STATE: Dict[str, object] = {
    "configured": False,
    "log_dir": None,
    "handlers": {},  # type: ignore
}


def _parse_level(level_name: str) -> int:
    s = (level_name or "").strip().upper()
    if s in ("CRITICAL", "FATAL"):
        return logging.CRITICAL
    if s == "ERROR":
        return logging.ERROR
    if s in ("WARN", "WARNING"):
        return logging.WARNING
    if s == "DEBUG":
        return logging.DEBUG
    # conservative fallback
    return logging.INFO


def _mk_rotating_handler(path: str) -> RotatingFileHandler:
    max_mb = max(1, env_int("FILETREE_LOG_ROTATE_MAX_MB", DEFAULT_ROTATE_MAX_MB))
    backups = max(1, env_int("FILETREE_LOG_ROTATE_BACKUPS", DEFAULT_ROTATE_BACKUPS))
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    h = RotatingFileHandler(
        path,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backups,
        encoding="utf-8",
        delay=True,
    )
    h.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    return h


def setup_logging(log_dir: str) -> None:
    """Configure core/access loggers with rotating file handlers."""
    if _STATE.get("configured"):
        refresh_runtime_from_env()
        return

    os.makedirs(log_dir, exist_ok=True)
    core_path, access_path = get_paths(log_dir)

    handlers: Dict[str, RotatingFileHandler] = {
        "core": _mk_rotating_handler(core_path),
        "access": _mk_rotating_handler(access_path),
    }

    core = logging.getLogger(CORE_LOGGER_NAME)
    core.propagate = False
    core.addHandler(handlers["core"])

    access = logging.getLogger(ACCESS_LOGGER_NAME)
    access.propagate = False
    access.addHandler(handlers["access"])

    _STATE["configured"] = True
    _STATE["log_dir"] = log_dir
    _STATE["handlers"] = handlers

    refresh_runtime_from_env()


def reset_logging() -> None:
    """Detach and close handlers installed by setup_logging()."""
    handlers: Dict[str, RotatingFileHandler] = _STATE.get("handlers") or {}  # type: ignore
    core = logging.getLogger(CORE_LOGGER_NAME)
    access = logging.getLogger(ACCESS_LOGGER_NAME)
    for name, h in handlers.items():
        (access if name == "access" else core).removeHandler(h)
        h.close()
    for lg in (core, access):
        lg.propagate = True
        lg.disabled = False
        lg.setLevel(logging.NOTSET)
    _STATE["configured"] = False
    _STATE["log_dir"] = None
    _STATE["handlers"] = {}


def core_enabled() -> bool:
    return env_bool("FILETREE_LOG_CORE_ENABLE", default=True)


def access_enabled() -> bool:
    return env_bool("FILETREE_LOG_ACCESS_ENABLE", default=False)


def refresh_runtime_from_env() -> None:
    """Apply runtime settings (levels / rotation params) from env."""
    if not _STATE.get("configured"):
        return

    handlers: Dict[str, RotatingFileHandler] = _STATE.get("handlers") or {}  # type: ignore
    max_mb = max(1, env_int("FILETREE_LOG_ROTATE_MAX_MB", DEFAULT_ROTATE_MAX_MB))
    backups = max(1, env_int("FILETREE_LOG_ROTATE_BACKUPS", DEFAULT_ROTATE_BACKUPS))
    for h in handlers.values():
        h.maxBytes = max_mb * 1024 * 1024
        h.backupCount = backups

    core = logging.getLogger(CORE_LOGGER_NAME)
    core_h = handlers.get("core")

    if not core_enabled():
        core.disabled = True
        if core_h and core_h in core.handlers:
            core.removeHandler(core_h)
        # Drop everything even if .disabled isn't respected somewhere.
        core.setLevel(100)
    else:
        core.disabled = False
        if core_h and core_h not in core.handlers:
            core.addHandler(core_h)
        core.setLevel(_parse_level(os.environ.get("FILETREE_LOG_CORE_LEVEL", DEFAULT_CORE_LEVEL)))

    # Access is always INFO internally; the enable flag decides whether we log.
    logging.getLogger(ACCESS_LOGGER_NAME).setLevel(logging.INFO)


def get_paths(log_dir: Optional[str] = None) -> Tuple[str, str]:
    """Return (core_path, access_path)."""
    d = str(log_dir or _STATE.get("log_dir") or ".")
    return (
        os.path.join(d, "core.log"),
        os.path.join(d, "access.log"),
    )


def core_logger() -> logging.Logger:
    return logging.getLogger(CORE_LOGGER_NAME)


def access_logger() -> logging.Logger:
    return logging.getLogger(ACCESS_LOGGER_NAME)


def core_log(level: str, msg: str, **extra) -> None:
    """Write a ``msg | k=v, ...`` line into the core log (never raises)."""
    try:
        lg = core_logger()
        full = msg
        if extra:
            full = f"{msg} | " + ", ".join(f"{k}={v}" for k, v in extra.items())
        fn = getattr(lg, str(level or "info").lower(), None)
        if callable(fn):
            fn(full)
        else:
            lg.info(full)
    except Exception:
        pass
