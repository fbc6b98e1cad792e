"""File tree API as a Flask Blueprint.

Endpoints (all read-only, rooted at the configured data directory):

- GET /api/list?path=/dir        -> JSON array of entries (folders first)
- GET /api/file?path=/a.txt      -> text/plain body (``format=json`` for content + metadata)
- GET /api/download?path=/x      -> file bytes, or a ZIP stream for directories

Errors raised before the response starts are mapped to a JSON payload by the
blueprint error handler. Errors in the middle of a download can only drop the
connection; they are recorded in core.log.
"""

from __future__ import annotations

import datetime
from typing import Any

from flask import Blueprint, Response, jsonify, request

from services.content import ContentReader
from services.download import DownloadDispatcher
from services.errors import FsError
from services.listing import DirectoryLister, list_payload
from services.logging_setup import core_log as _core_log
from services.paths import FileNode
from services.sinks import QueueSink, start_producer


def error_response(error: str, status: int = 400, *, ok: bool | None = None, **extra: Any) -> Any:
    payload = {"error": error, "statusCode": status}
    if ok is not None:
        payload["ok"] = ok
    payload["timestamp"] = datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    payload["path"] = request.path
    payload.update(extra)
    return jsonify(payload), status


def _wants_json() -> bool:
    return "application/json" in str(request.headers.get("Accept", "") or "")


def create_fs_blueprint(
    *,
    lister: DirectoryLister,
    reader: ContentReader,
    dispatcher: DownloadDispatcher,
    queue_size: int = 16,
) -> Blueprint:
    """Create the /api/list, /api/file and /api/download blueprint."""

    bp = Blueprint("fs", __name__)

    @bp.errorhandler(FsError)
    def _fs_error(e: FsError) -> Any:
        level = "error" if e.status >= 500 else "info"
        _core_log(level, "fs request failed", route=request.path, kind=e.kind, item=e.path, message=e.message)
        return error_response(e.kind, e.status, ok=False, **{k: v for k, v in e.to_payload().items() if k != "error"})

    @bp.get("/api/list")
    def api_list() -> Any:
        path = str(request.args.get("path", "") or "").strip() or "/"
        entries = lister.list(path)
        return jsonify(list_payload(entries))

    @bp.get("/api/file")
    def api_file() -> Any:
        path = str(request.args.get("path", "") or "").strip()
        if not path:
            return error_response("path_required", 400, ok=False, message="File path is required")

        data = reader.read_file(path)
        if str(request.args.get("format", "") or "").strip().lower() == "json":
            return jsonify(data.to_dict())

        resp = Response(data.content, mimetype="text/plain")
        resp.headers["X-File-Size"] = str(data.size)
        resp.headers["X-File-Modified"] = data.modified
        return resp

    @bp.get("/api/download")
    def api_download() -> Any:
        """Download a file, or a directory as a ZIP built on the fly.

        Query params:
          path=<logical path>

        Clients that explicitly prefer JSON get download metadata instead.
        """
        path = str(request.args.get("path", "") or "").strip()
        if not path:
            return error_response("path_required", 400, ok=False, message="Item path is required")

        if _wants_json():
            return jsonify(dispatcher.describe(path))

        # Resolve, stat and open first: errors still get a clean status.
        prepared = dispatcher.prepare(path)
        headers = {k: v for k, v in prepared.headers.items() if k != "Content-Type"}

        if request.method == "HEAD":
            prepared.close()
            if isinstance(prepared.node, FileNode):
                headers["Content-Length"] = str(prepared.node.size)
            return Response(iter(()), content_type=prepared.mimetype, headers=headers)

        sink = QueueSink(maxsize=queue_size)
        prepared.apply_headers(sink)
        _core_log(
            "info",
            "download started",
            item=prepared.node.path.logical,
            kind="zip" if prepared.is_directory else "file",
        )
        start_producer(prepared.send, sink, name=f"download:{prepared.filename}")

        return Response(sink.body(), content_type=prepared.mimetype, headers=headers, direct_passthrough=True)

    return bp
