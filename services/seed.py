"""Startup seeding of the data directory with the bundled static files."""

from __future__ import annotations

import os
import shutil

from services.logging_setup import core_log as _core_log


def ensure_data_dir(data_dir: str) -> str:
    os.makedirs(data_dir, exist_ok=True)
    return data_dir


def seed_static_files(static_dir: str, data_dir: str) -> bool:
    """Copy ``static_dir`` into ``<data_dir>/static-files``.

    Existing files are overwritten, extra files in the destination are kept.
    Returns False when there is nothing to copy.
    """
    ensure_data_dir(data_dir)
    if not static_dir or not os.path.isdir(static_dir):
        _core_log("debug", "static files not found, nothing to seed", static_dir=static_dir)
        return False
    dest = os.path.join(data_dir, "static-files")
    shutil.copytree(static_dir, dest, dirs_exist_ok=True)
    _core_log("info", "static files copied to data directory", src=static_dir, dst=dest)
    return True
