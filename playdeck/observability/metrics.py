from __future__ import annotations

from flask import Blueprint, Response
from prometheus_client import Counter, Histogram, generate_latest

metrics_blueprint = Blueprint("metrics_bp", __name__)

CONTENT_TYPE_LATEST = "text/plain; version=0.0.4; charset=utf-8"

COMMANDS_ISSUED = Counter(
    "playdeck_commands_total",
    "Total number of playback commands issued to a backend.",
    ["backend", "command"],
)
COMMAND_FAILURES = Counter(
    "playdeck_command_failures_total",
    "Total number of playback commands a backend rejected.",
    ["backend", "command"],
)
DISCOVERY_POLLS = Histogram(
    "playdeck_device_discovery_polls",
    "Number of device polls needed after a player launch.",
    ["outcome"],
    buckets=(1, 2, 3, 4, 5, 6, 7, 10, float("inf")),
)
PLAYLIST_BUILD_TIME = Histogram(
    "playdeck_playlist_build_seconds",
    "Time spent building the playlist tree for the active backend.",
    buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10, float("inf")),
)


def record_command(backend: str, command: str, ok: bool) -> None:
    COMMANDS_ISSUED.labels(backend=backend, command=command).inc()
    if not ok:
        COMMAND_FAILURES.labels(backend=backend, command=command).inc()


def observe_discovery(outcome: str, polls: int) -> None:
    DISCOVERY_POLLS.labels(outcome=outcome).observe(polls)


def observe_playlist_build(duration_seconds: float) -> None:
    PLAYLIST_BUILD_TIME.observe(duration_seconds)


@metrics_blueprint.route("/metrics")
def metrics_endpoint() -> Response:
    return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)
