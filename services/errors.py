"""Error taxonomy for file tree operations.

Every error carries a stable ``kind`` (used as the ``error`` field of JSON
error payloads) and the HTTP status the API layer maps it to.
"""

from __future__ import annotations

from typing import Any, Dict


class FsError(Exception):
    kind = "fs_error"
    status = 500

    def __init__(self, message: str = "", *, path: str | None = None) -> None:
        super().__init__(message or self.kind)
        self.message = message or self.kind
        self.path = path

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.kind, "message": self.message}
        if self.path is not None:
            payload["item"] = self.path
        return payload


class InvalidPath(FsError):
    """Traversal attempt or malformed logical path."""

    kind = "invalid_path"
    status = 403


class NotFound(FsError):
    kind = "not_found"
    status = 404


class NotADirectory(FsError):
    kind = "not_a_directory"
    status = 400


class IsADirectory(FsError):
    kind = "is_a_directory"
    status = 400


class ReadFailure(FsError):
    kind = "read_failed"
    status = 500


class ArchiveFailure(FsError):
    """Walking or compressing failed.

    ``committed`` is True when bytes already reached the sink, i.e. the
    response status can no longer be changed.
    """

    kind = "archive_failed"
    status = 500

    def __init__(self, message: str = "", *, path: str | None = None, committed: bool = False) -> None:
        super().__init__(message, path=path)
        self.committed = bool(committed)


class SinkClosed(Exception):
    """The sink no longer accepts bytes (closed, aborted or client gone)."""
