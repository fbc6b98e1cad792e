"""Directory -> ZIP streaming.

The archive is never materialized: ``zipfile`` writes into a non-seekable
adapter (so every entry uses a data descriptor) and the adapter forwards the
compressed bytes to the sink as they are produced.

Entries are named after the source directory, so extracting ``docs.zip``
yields ``docs/<relative path>``. The order is the walk order of the
filesystem; entries are written whole, one after another.

Once bytes have reached the sink the HTTP status is committed, so a failure
after that point can only stop the stream, abort the sink (the client sees a
truncated archive) and leave a trace in core.log.
"""

from __future__ import annotations

import io
import os
import zipfile
from typing import List

from services.errors import ArchiveFailure, NotADirectory, SinkClosed
from services.logging_setup import core_log as _core_log
from services.paths import DirectoryNode, PathResolver, ResolvedPath, display_name
from services.sinks import Sink


class _SinkWriter(io.RawIOBase):
    """Write-only, non-seekable file object in front of a sink."""

    def __init__(self, sink: Sink, flush_size: int) -> None:
        super().__init__()
        self.sink = sink
        self.flush_size = max(1, int(flush_size))
        self._pending = bytearray()
        self.detached = False

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        n = len(b)
        if self.detached:
            return n
        self._pending += b
        if len(self._pending) >= self.flush_size:
            self.flush()
        return n

    def flush(self) -> None:
        if self.detached or not self._pending:
            return
        data = bytes(self._pending)
        self._pending.clear()
        self.sink.write(data)

    def detach_sink(self) -> None:
        # Later writes (e.g. zipfile finishing up) go nowhere.
        self.detached = True
        self._pending.clear()

    def close(self) -> None:
        # The sink belongs to the caller.
        return


class ArchiveStreamer:
    def __init__(self, resolver: PathResolver, *, compresslevel: int = 9, chunk_size: int = 64 * 1024) -> None:
        self.resolver = resolver
        self.compresslevel = max(0, min(9, int(compresslevel)))
        self.chunk_size = max(1, int(chunk_size))

    def stream_zip(self, logical: str | None, sink: Sink) -> None:
        node = self.resolver.lookup(logical)
        if not isinstance(node, DirectoryNode):
            raise NotADirectory(f"{node.path.logical} is not a directory", path=node.path.logical)
        self.stream_directory(node, sink)

    def stream_directory(self, node: DirectoryNode, sink: Sink) -> None:
        root_name = archive_root_name(node.path)
        writer = _SinkWriter(sink, self.chunk_size)
        zf = zipfile.ZipFile(
            writer,
            "w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=self.compresslevel,
            allowZip64=True,
            strict_timestamps=False,
        )
        entries = 0
        try:
            entries = self._write_tree(zf, writer, node.path, root_name)
            zf.close()
            writer.flush()
        except SinkClosed:
            self._discard(zf, writer)
            _core_log("info", "zip download cancelled by client", path=node.path.logical, entries=entries, bytes_sent=sink.bytes_written)
            return
        except Exception as e:  # noqa: BLE001
            committed = sink.started
            self._discard(zf, writer)
            sink.abort()
            _core_log(
                "error",
                "zip stream failed",
                path=node.path.logical,
                error=repr(e),
                committed=committed,
                bytes_sent=sink.bytes_written,
            )
            raise ArchiveFailure(f"failed to archive {node.path.logical}: {e}", path=node.path.logical, committed=committed) from e

        _core_log("info", "zip stream finished", path=node.path.logical, entries=entries, bytes_sent=sink.bytes_written)

    def _discard(self, zf: zipfile.ZipFile, writer: _SinkWriter) -> None:
        writer.detach_sink()
        try:
            zf.close()
        except Exception as e:  # noqa: BLE001
            _core_log("debug", "zip close after failure", error=repr(e))

    def _keep_dir(self, full: str) -> bool:
        if os.path.islink(full):
            _core_log("debug", "zip: skip symlinked directory", path=full)
            return False
        return True

    def _keep_file(self, full: str) -> bool:
        if not os.path.islink(full):
            return True
        if not os.path.exists(full):
            _core_log("debug", "zip: skip broken symlink", path=full)
            return False
        if not self.resolver.contains(full):
            _core_log("debug", "zip: skip symlink leaving root", path=full)
            return False
        return True

    def _write_tree(self, zf: zipfile.ZipFile, writer: _SinkWriter, top: ResolvedPath, root_name: str) -> int:
        src_dir = top.abs_path
        zf.write(src_dir, root_name + "/")
        writer.flush()
        entries = 1

        def _raise(err: OSError) -> None:
            raise err

        for dirpath, dirnames, filenames in os.walk(src_dir, topdown=True, onerror=_raise, followlinks=False):
            dirnames[:] = [d for d in dirnames if self._keep_dir(os.path.join(dirpath, d))]
            files: List[str] = [f for f in filenames if self._keep_file(os.path.join(dirpath, f))]

            rel_dir = os.path.relpath(dirpath, src_dir)
            rel_dir = "" if rel_dir == "." else rel_dir

            # Empty directories need an explicit entry to survive extraction.
            if rel_dir and not files and not dirnames:
                arc_dir = display_name("/".join([root_name, rel_dir.replace(os.sep, "/")])) + "/"
                zf.write(dirpath, arc_dir)
                writer.flush()
                entries += 1

            for fn in files:
                arc = display_name("/".join(p for p in (root_name, rel_dir.replace(os.sep, "/"), fn) if p))
                zf.write(os.path.join(dirpath, fn), arc)
                writer.flush()
                entries += 1
        return entries


def archive_root_name(path: ResolvedPath) -> str:
    name = display_name(path.name or "").strip().strip("/")
    return name or "download"
