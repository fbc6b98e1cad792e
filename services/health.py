"""Health and system information payloads."""

from __future__ import annotations

import datetime
import platform
import sys
import time
from typing import Any, Dict

try:
    import resource
except ImportError:  # not available on Windows
    resource = None  # type: ignore[assignment]


def _now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _fmt_mb(n: int) -> str:
    return f"{(float(n) / (1024.0 * 1024.0)):.2f} MB"


def _memory_info() -> Dict[str, Any]:
    if resource is None:
        return {"maxRss": None}
    rss = int(resource.getrusage(resource.RUSAGE_SELF).ru_maxrss)
    # ru_maxrss is in bytes on macOS and in KiB elsewhere.
    if sys.platform != "darwin":
        rss *= 1024
    return {"maxRss": _fmt_mb(rss), "maxRssBytes": rss}


def get_health(*, started_at: float, version: str, environment: str) -> Dict[str, Any]:
    return {
        "status": "OK",
        "timestamp": _now_iso(),
        "uptime": int(time.time() - started_at),
        "version": version,
        "environment": environment,
    }


def get_system_info(*, started_at: float) -> Dict[str, Any]:
    return {
        "status": "OK",
        "timestamp": _now_iso(),
        "system": {
            "platform": sys.platform,
            "arch": platform.machine(),
            "pythonVersion": platform.python_version(),
            "memory": _memory_info(),
            "uptime": int(time.time() - started_at),
        },
    }
