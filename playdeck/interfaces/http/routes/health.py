from __future__ import annotations

from flask import Blueprint, current_app, jsonify

health_bp = Blueprint("health_bp", __name__)


@health_bp.route("/healthz")
def healthz():
    checks = {}
    runner = current_app.extensions.get("loop_runner")
    engine = current_app.extensions.get("playdeck_engine")

    loop_ok = bool(runner and runner.running)
    checks["engine_loop"] = "ok" if loop_ok else "stopped"
    checks["engine"] = "ok" if engine is not None else "unavailable"
    if engine is not None:
        checks["backend"] = engine.state.active_backend.value
        checks["connected"] = engine.state.connected
        checks["background_tasks"] = len(engine.background)

    status = 200 if loop_ok and engine is not None else 503
    overall = "ok" if status == 200 else "degraded"
    return jsonify({"status": overall, "checks": checks}), status


@health_bp.route("/readyz")
def readyz():
    engine = current_app.extensions.get("playdeck_engine")
    ready = bool(engine is not None and engine.state.ready)
    payload = {
        "status": "ready" if ready else "starting",
        "building_playlists": bool(engine and engine.state.building_playlists),
    }
    return jsonify(payload), 200 if ready else 503
