#!/usr/bin/env python3
"""Serve the file tree API with gevent's WSGI server.

Configuration comes from FILETREE_* env vars (see services/config.py);
--host/--port/--root override them for one run.
"""
from gevent import monkey

# Patch before anything else imports socket/threading: download producers
# then run as greenlets and file/socket waits yield to other requests.
monkey.patch_all()

import argparse  # noqa: E402
import dataclasses  # noqa: E402
import sys  # noqa: E402

from gevent import pywsgi  # noqa: E402

from app import create_app  # noqa: E402
from services.config import load_config  # noqa: E402
from services.logging_setup import core_log as _core_log  # noqa: E402


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="filetree-server", description="Read-only HTTP file tree with on-the-fly ZIP downloads")
    p.add_argument("--host", default=None, help="bind address (default: FILETREE_HOST or 0.0.0.0)")
    p.add_argument("-p", "--port", type=int, default=None, help="bind port (default: FILETREE_PORT or 3001)")
    p.add_argument("--root", default=None, help="directory to serve (default: FILETREE_DATA_DIR)")
    p.add_argument("--no-seed", action="store_true", help="do not copy bundled static files into the root")
    return p


def main(argv=None) -> int:
    args = build_arg_parser().parse_args(argv)
    cfg = load_config()
    overrides = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.root:
        overrides["data_dir"] = args.root
    if args.no_seed:
        overrides["seed_static"] = False
    if overrides:
        cfg = dataclasses.replace(cfg, **overrides)

    try:
        app = create_app(cfg)
    except OSError as e:
        print(f"Failed to start server: {e}", file=sys.stderr)
        return 1

    print(f"Data directory: {cfg.data_dir}")
    print(f"API endpoints available at: http://{cfg.host}:{cfg.port}/api")
    _core_log("info", "server starting", host=cfg.host, port=cfg.port, data_dir=cfg.data_dir)

    server = pywsgi.WSGIServer((cfg.host, cfg.port), app)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        _core_log("info", "server stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
