"""Flask application factory for the file tree server."""

from __future__ import annotations

import time
from typing import Any

from flask import Flask, g, request
from werkzeug.exceptions import HTTPException

from routes_fs import create_fs_blueprint, error_response
from routes_health import create_health_blueprint
from services.archive import ArchiveStreamer
from services.config import ServerConfig
from services.content import ContentReader
from services.download import DownloadDispatcher
from services.listing import DirectoryLister
from services.logging_setup import access_enabled as _access_enabled
from services.logging_setup import access_logger as _get_access_logger
from services.logging_setup import core_log as _core_log
from services.logging_setup import setup_logging as _setup_logging
from services.paths import PathResolver
from services.seed import ensure_data_dir, seed_static_files


def create_app(config: ServerConfig) -> Flask:
    """Build the app for one data directory.

    Every component gets the root from ``config``; nothing is global, so
    several apps with different roots can live in one process.
    """
    if config.log_dir:
        _setup_logging(config.log_dir)

    ensure_data_dir(config.data_dir)
    if config.seed_static:
        seed_static_files(config.static_dir, config.data_dir)

    resolver = PathResolver(config.data_dir)
    reader = ContentReader(resolver, chunk_size=config.chunk_size)
    streamer = ArchiveStreamer(resolver, compresslevel=config.zip_level, chunk_size=config.chunk_size)
    lister = DirectoryLister(resolver)
    dispatcher = DownloadDispatcher(resolver, reader, streamer)

    app = Flask(__name__)
    app.config["FILETREE"] = config

    app.register_blueprint(create_fs_blueprint(lister=lister, reader=reader, dispatcher=dispatcher))
    app.register_blueprint(create_health_blueprint(version=config.version, environment=config.environment))

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException) -> Any:
        if not request.path.startswith("/api/"):
            return e
        if e.code == 404:
            return error_response("route_not_found", 404, message=f"Route {request.method}:{request.path} not found")
        return error_response(str(e.name or "http_error").lower().replace(" ", "_"), int(e.code or 500), message=e.description)

    # --- Access log (optional) ---
    @app.before_request
    def _access_log_before_request():
        g._filetree_t0 = time.time()
        return None

    @app.after_request
    def _access_log_after_request(response):
        if not _access_enabled():
            return response
        try:
            client = request.headers.get("X-Forwarded-For") or request.remote_addr or ""
            line = f"{client} {request.method} {request.path} -> {response.status_code}"
            t0 = getattr(g, "_filetree_t0", None)
            if t0:
                line += f" ({int((time.time() - float(t0)) * 1000.0)}ms)"
            _get_access_logger().info(line)
        except Exception:
            # Logging must never affect response
            pass
        return response

    _core_log("info", "app created", data_dir=config.data_dir, environment=config.environment)
    return app
