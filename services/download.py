"""File-or-directory downloads: header contract and delegation.

``prepare()`` does everything that can fail cleanly (resolve, stat, open) before
any header or byte is produced; ``PreparedDownload.send()`` then streams the
body into a sink.
"""

from __future__ import annotations

import os
import posixpath
from dataclasses import dataclass
from typing import Any, BinaryIO, Dict, Optional
from urllib.parse import quote as _url_quote

from services.archive import ArchiveStreamer, archive_root_name
from services.content import ContentReader
from services.paths import DirectoryNode, FileNode, Node, PathResolver, display_name
from services.sinks import Sink


ZIP_MIMETYPE = "application/zip"
DEFAULT_MIMETYPE = "application/octet-stream"

CONTENT_TYPES: Dict[str, str] = {
    ".txt": "text/plain",
    ".json": "application/json",
    ".csv": "text/csv",
    ".md": "text/markdown",
    ".yaml": "application/x-yaml",
    ".yml": "application/x-yaml",
    ".xml": "application/xml",
    ".html": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".pdf": "application/pdf",
    ".zip": "application/zip",
}


def content_type_for(name: str) -> str:
    ext = posixpath.splitext(name or "")[1].lower()
    return CONTENT_TYPES.get(ext, DEFAULT_MIMETYPE)


def sanitize_download_filename(name: str, *, default: str = "download") -> str:
    """Sanitize filename for Content-Disposition header (prevent header injection)."""
    s = display_name(os.path.basename((name or "").strip()))
    s = s.replace("\r", "").replace("\n", "").replace('"', "")
    if not s:
        s = default
    # Keep header reasonably small.
    if len(s) > 180:
        s = s[:180]
    return s


def content_disposition_attachment(filename: str) -> str:
    """Build a safe Content-Disposition attachment header value."""
    fn = sanitize_download_filename(filename)
    if fn.isascii():
        return f'attachment; filename="{fn}"'
    # RFC 5987 filename* for UTF-8 names; the plain value is an ASCII fallback.
    fallback = fn.encode("ascii", "replace").decode("ascii").replace("?", "_")
    try:
        fn_star = _url_quote(fn, safe="")
    except UnicodeError:
        return f'attachment; filename="{fallback}"'
    return f'attachment; filename="{fallback}"; filename*=UTF-8\'\'{fn_star}'


@dataclass
class PreparedDownload:
    node: Node
    filename: str
    mimetype: str
    reader: ContentReader
    streamer: ArchiveStreamer
    source: Optional[BinaryIO] = None

    @property
    def is_directory(self) -> bool:
        return isinstance(self.node, DirectoryNode)

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Content-Disposition": content_disposition_attachment(self.filename),
            "Content-Type": self.mimetype,
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
        }

    def apply_headers(self, sink: Sink) -> None:
        for k, v in self.headers.items():
            sink.set_header(k, v)

    def close(self) -> None:
        """Release the opened file when the body is never sent (HEAD)."""
        if self.source is not None:
            self.source.close()
            self.source = None

    def send(self, sink: Sink) -> None:
        node = self.node
        if isinstance(node, FileNode):
            fp, self.source = self.source, None
            self.reader.stream_file(node, sink, fp)
        elif isinstance(node, DirectoryNode):
            self.streamer.stream_directory(node, sink)
        else:
            raise TypeError(f"unexpected node type: {type(node).__name__}")


class DownloadDispatcher:
    def __init__(self, resolver: PathResolver, reader: ContentReader, streamer: ArchiveStreamer) -> None:
        self.resolver = resolver
        self.reader = reader
        self.streamer = streamer

    def _plan(self, logical: str | None) -> PreparedDownload:
        node = self.resolver.lookup(logical)
        if isinstance(node, FileNode):
            filename = display_name(node.path.name)
            mimetype = content_type_for(filename)
        elif isinstance(node, DirectoryNode):
            filename = archive_root_name(node.path) + ".zip"
            mimetype = ZIP_MIMETYPE
        else:
            raise TypeError(f"unexpected node type: {type(node).__name__}")
        return PreparedDownload(node=node, filename=filename, mimetype=mimetype, reader=self.reader, streamer=self.streamer)

    def prepare(self, logical: str | None) -> PreparedDownload:
        """Resolve, stat and (for files) open the item before any byte is sent."""
        prepared = self._plan(logical)
        if isinstance(prepared.node, FileNode):
            prepared.source = self.reader.open_file(prepared.node)
        return prepared

    def download(self, logical: str | None, sink: Sink) -> None:
        prepared = self.prepare(logical)
        prepared.apply_headers(sink)
        prepared.send(sink)

    def describe(self, logical: str | None) -> Dict[str, Any]:
        """Download metadata for clients that asked for JSON instead of bytes."""
        prepared = self._plan(logical)
        node = prepared.node
        return {
            "message": "Download available",
            "itemName": display_name(node.path.name),
            "isDirectory": prepared.is_directory,
            "size": node.size if isinstance(node, FileNode) else 0,
            "filename": prepared.filename,
            "contentType": prepared.mimetype,
            "downloadUrl": f"/api/download?path={_url_quote(os.fsencode(node.path.logical), safe='/')}",
        }
