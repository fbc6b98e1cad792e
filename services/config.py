"""Server configuration.

Values come from an optional YAML file (``FILETREE_CONFIG``) overlaid by
environment variables. The result is an immutable ``ServerConfig`` that is
passed to every component at construction time.

Environment variables
- FILETREE_CONFIG: path to a YAML file with the keys below (lowercase, no prefix)
- FILETREE_ENV: development|production (default: development)
- FILETREE_DATA_DIR: root of the served tree (default: /data in production, ./data otherwise)
- FILETREE_HOST / FILETREE_PORT (PORT as fallback)
- FILETREE_ZIP_LEVEL: deflate level for directory downloads, 0..9 (default: 9)
- FILETREE_CHUNK_KB: read/stream chunk size (default: 64)
- FILETREE_SEED_STATIC: copy bundled static-files into the data dir at startup (default: 1)
- FILETREE_STATIC_DIR: where the bundled static-files live
- FILETREE_LOG_DIR: enables rotating file logs in this directory
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import yaml


APP_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3001
DEFAULT_ZIP_LEVEL = 9
DEFAULT_CHUNK_KB = 64
PRODUCTION_DATA_DIR = "/data"


def env_bool(name: str, default: bool = False, environ: Optional[Mapping[str, str]] = None) -> bool:
    v = (os.environ if environ is None else environ).get(name)
    if v is None:
        return default
    s = str(v).strip().lower()
    if s in ("1", "true", "yes", "on", "y"):
        return True
    if s in ("0", "false", "no", "off", "n"):
        return False
    return default


def env_int(name: str, default: int, environ: Optional[Mapping[str, str]] = None) -> int:
    v = (os.environ if environ is None else environ).get(name)
    if v is None:
        return default
    try:
        s = str(v).strip()
        if not s:
            return default
        return int(float(s))
    except (TypeError, ValueError):
        return default


def env_str(name: str, default: str = "", environ: Optional[Mapping[str, str]] = None) -> str:
    v = (os.environ if environ is None else environ).get(name)
    s = str(v or "").strip()
    return s or default


@dataclass(frozen=True)
class ServerConfig:
    data_dir: str
    environment: str = "development"
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    zip_level: int = DEFAULT_ZIP_LEVEL
    chunk_size: int = DEFAULT_CHUNK_KB * 1024
    seed_static: bool = True
    static_dir: str = os.path.join(APP_DIR, "static-files")
    log_dir: Optional[str] = None
    version: str = "1.0.0"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def _load_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"config file must contain a mapping: {path}")
    return data


def load_config(environ: Optional[Mapping[str, str]] = None) -> ServerConfig:
    """Build the config from FILETREE_CONFIG (if any) and the environment."""
    env = os.environ if environ is None else environ
    file_cfg: Dict[str, Any] = {}
    cfg_path = env_str("FILETREE_CONFIG", "", env)
    if cfg_path:
        file_cfg = _load_yaml(cfg_path)

    def _file_int(key: str, default: int) -> int:
        try:
            return int(file_cfg.get(key, default))
        except (TypeError, ValueError):
            return default

    environment = env_str("FILETREE_ENV", str(file_cfg.get("environment") or "development"), env).lower()
    if environment not in ("development", "production"):
        environment = "development"

    default_data = PRODUCTION_DATA_DIR if environment == "production" else os.path.join(APP_DIR, "data")
    data_dir = env_str("FILETREE_DATA_DIR", str(file_cfg.get("data_dir") or default_data), env)

    port = env_int("FILETREE_PORT", env_int("PORT", _file_int("port", DEFAULT_PORT), env), env)
    zip_level = env_int("FILETREE_ZIP_LEVEL", _file_int("zip_level", DEFAULT_ZIP_LEVEL), env)
    zip_level = max(0, min(9, zip_level))
    chunk_kb = max(1, env_int("FILETREE_CHUNK_KB", _file_int("chunk_kb", DEFAULT_CHUNK_KB), env))

    log_dir = env_str("FILETREE_LOG_DIR", str(file_cfg.get("log_dir") or ""), env) or None

    return ServerConfig(
        data_dir=os.path.abspath(data_dir),
        environment=environment,
        host=env_str("FILETREE_HOST", str(file_cfg.get("host") or DEFAULT_HOST), env),
        port=port,
        zip_level=zip_level,
        chunk_size=chunk_kb * 1024,
        seed_static=env_bool("FILETREE_SEED_STATIC", bool(file_cfg.get("seed_static", True)), env),
        static_dir=env_str("FILETREE_STATIC_DIR", str(file_cfg.get("static_dir") or os.path.join(APP_DIR, "static-files")), env),
        log_dir=log_dir,
    )
