"""Logical path -> filesystem path resolution, confined to a single root.

A logical path always uses forward slashes and is interpreted relative to
the root ("/" is the root itself, a leading slash does not mean the OS root).
"""

from __future__ import annotations

import datetime
import os
import posixpath
import stat
from dataclasses import dataclass
from typing import Union

from services.errors import InvalidPath, NotFound


def iso_instant(ts: float) -> str:
    """Render an mtime as an ISO-8601 UTC instant, e.g. 2024-05-01T10:00:00.000Z."""
    dt = datetime.datetime.fromtimestamp(float(ts), tz=datetime.timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def display_name(name: str) -> str:
    """Return ``name`` as valid UTF-8 text.

    Undecodable bytes in OS file names come back from ``os.listdir`` as lone
    surrogates; they are replaced with U+FFFD.
    """
    return os.fsencode(name).decode("utf-8", "replace")


@dataclass(frozen=True)
class ResolvedPath:
    logical: str
    abs_path: str

    @property
    def is_root(self) -> bool:
        return self.logical == "/"

    @property
    def name(self) -> str:
        return posixpath.basename(self.logical) or os.path.basename(self.abs_path.rstrip(os.sep))

    def child(self, name: str) -> "ResolvedPath":
        return ResolvedPath(
            logical=posixpath.join(self.logical, name),
            abs_path=os.path.join(self.abs_path, name),
        )


@dataclass(frozen=True)
class FileNode:
    path: ResolvedPath
    size: int
    mtime: float


@dataclass(frozen=True)
class DirectoryNode:
    path: ResolvedPath
    mtime: float


Node = Union[FileNode, DirectoryNode]


def _is_within(path: str, root: str) -> bool:
    try:
        return os.path.commonpath([path, root]) == root
    except ValueError:
        return False


class PathResolver:
    """Maps logical paths onto ``root`` and refuses anything that escapes it."""

    def __init__(self, root: str) -> None:
        if not root:
            raise ValueError("root is required")
        self.root = os.path.realpath(os.path.abspath(root))

    def resolve(self, logical: str | None) -> ResolvedPath:
        p = str(logical or "").strip() or "/"
        if "\x00" in p:
            raise InvalidPath("path contains a NUL byte", path=p)

        rel = p.lstrip("/")
        # Lexical normalization of the joined path; `..` is not clamped at the root.
        ap = os.path.normpath(os.path.join(self.root, rel)) if rel else self.root
        if not _is_within(ap, self.root):
            raise InvalidPath("path escapes the root directory", path=p)

        # Symlinks must not lead out of the root either.
        if not _is_within(os.path.realpath(ap), self.root):
            raise InvalidPath("path escapes the root directory", path=p)

        rel_norm = os.path.relpath(ap, self.root)
        if rel_norm == ".":
            return ResolvedPath(logical="/", abs_path=self.root)
        return ResolvedPath(logical="/" + rel_norm.replace(os.sep, "/"), abs_path=ap)

    def contains(self, abs_path: str) -> bool:
        """True when ``abs_path`` (symlinks resolved) lies inside the root."""
        return _is_within(os.path.realpath(abs_path), self.root)

    def stat(self, resolved: ResolvedPath) -> Node:
        """Stat ``resolved`` following symlinks and tag it as file or directory."""
        try:
            st = os.stat(resolved.abs_path)
        except FileNotFoundError:
            raise NotFound(f"{resolved.logical} does not exist", path=resolved.logical)
        except NotADirectoryError:
            raise NotFound(f"{resolved.logical} does not exist", path=resolved.logical)
        if stat.S_ISDIR(st.st_mode):
            return DirectoryNode(path=resolved, mtime=st.st_mtime)
        return FileNode(path=resolved, size=int(st.st_size), mtime=st.st_mtime)

    def lookup(self, logical: str | None) -> Node:
        return self.stat(self.resolve(logical))
