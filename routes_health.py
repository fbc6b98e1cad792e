"""Health and system-info endpoints as a Flask Blueprint."""
from __future__ import annotations

import time
from typing import Any

from flask import Blueprint, jsonify

from services.health import get_health, get_system_info


def create_health_blueprint(*, version: str, environment: str, started_at: float | None = None) -> Blueprint:
    """Create blueprint with /api/health and /api/system."""
    bp = Blueprint("health", __name__)
    t0 = float(started_at if started_at is not None else time.time())

    @bp.get("/api/health")
    def api_health() -> Any:
        return jsonify(get_health(started_at=t0, version=version, environment=environment))

    @bp.get("/api/system")
    def api_system() -> Any:
        return jsonify(get_system_info(started_at=t0))

    return bp
