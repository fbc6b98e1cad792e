"""Single-file reads: whole-file text content and chunked raw-byte streaming."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, BinaryIO, Dict, Optional

from services.errors import IsADirectory, NotFound, ReadFailure, SinkClosed
from services.logging_setup import core_log as _core_log
from services.paths import DirectoryNode, FileNode, PathResolver, iso_instant
from services.sinks import Sink


@dataclass(frozen=True)
class FileContent:
    content: str
    size: int
    modified: str

    def to_dict(self) -> Dict[str, Any]:
        return {"content": self.content, "size": self.size, "modified": self.modified}


class ContentReader:
    def __init__(self, resolver: PathResolver, *, chunk_size: int = 64 * 1024) -> None:
        self.resolver = resolver
        self.chunk_size = max(1, int(chunk_size))

    def read_file(self, logical: str | None) -> FileContent:
        """Read the whole file as UTF-8 text (invalid bytes become U+FFFD)."""
        node = self.resolver.lookup(logical)
        if isinstance(node, DirectoryNode):
            raise IsADirectory(f"{node.path.logical} is a directory, not a file", path=node.path.logical)

        try:
            with open(node.path.abs_path, "rb") as fp:
                st = os.fstat(fp.fileno())
                raw = fp.read()
        except FileNotFoundError:
            raise NotFound(f"{node.path.logical} does not exist", path=node.path.logical)
        except OSError as e:
            raise ReadFailure(f"cannot read {node.path.logical}: {e.strerror or e}", path=node.path.logical)

        return FileContent(
            content=raw.decode("utf-8", errors="replace"),
            size=int(st.st_size),
            modified=iso_instant(st.st_mtime),
        )

    def open_file(self, node: FileNode) -> BinaryIO:
        """Open ``node`` for a download, mapping OS errors to FsError."""
        logical = node.path.logical
        try:
            return open(node.path.abs_path, "rb")
        except FileNotFoundError:
            raise NotFound(f"{logical} does not exist", path=logical)
        except OSError as e:
            raise ReadFailure(f"cannot open {logical}: {e.strerror or e}", path=logical)

    def stream_file(self, node: FileNode, sink: Sink, fp: Optional[BinaryIO] = None) -> None:
        """Copy the file's bytes into ``sink`` chunk by chunk.

        ``fp`` is a file already returned by ``open_file()``; it is closed
        here. A client disconnect ends the copy quietly. Read errors after
        the first byte abort the sink and are logged, since the response is
        already committed.
        """
        logical = node.path.logical
        if fp is None:
            fp = self.open_file(node)

        with fp:
            while True:
                try:
                    chunk = fp.read(self.chunk_size)
                except OSError as e:
                    committed = sink.started
                    _core_log("error", "file download failed", path=logical, error=str(e), bytes_sent=sink.bytes_written)
                    if committed:
                        sink.abort()
                    raise ReadFailure(f"cannot read {logical}: {e.strerror or e}", path=logical)
                if not chunk:
                    return
                try:
                    sink.write(chunk)
                except SinkClosed:
                    _core_log("info", "file download cancelled by client", path=logical, bytes_sent=sink.bytes_written)
                    return
