import os
import logging
from datetime import datetime
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from flask import Flask, request, g
from flask_cors import CORS

from config import Config
from playdeck.core import LoopRunner
from playdeck.engine import build_engine
from playdeck.interfaces.http.routes import (
    playback_bp,
    playlists_bp,
    devices_bp,
    events_bp,
    health_bp,
)
from playdeck.observability import configure_structured_logging, metrics_blueprint
from playdeck.settings import load_engine_settings


logger = logging.getLogger(__name__)


def configure_logging(log_dir: str) -> str:
    """
    Configure root logging with:
      - FileHandler (INFO+) to a new file per run: log-YYYY-MM-DD-HH-MM-SS
      - StreamHandler (WARNING+) to console when ENABLE_CONSOLE_LOGS is set
      - Werkzeug/Flask loggers routed to root

    Returns the path to the created log file.
    """
    os.makedirs(log_dir, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")
    log_path = os.path.join(log_dir, f"log-{timestamp}")

    root = logging.getLogger()
    root.setLevel(logging.INFO)

    # Preserve structured handlers; remove existing FileHandlers to avoid duplicates
    root.handlers = [h for h in root.handlers if not isinstance(h, logging.FileHandler)]

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    file_handler = logging.FileHandler(log_path, encoding='utf-8')
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    if Config.ENABLE_CONSOLE_LOGS:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    for name in ("werkzeug", "flask.app"):
        _l = logging.getLogger(name)
        _l.setLevel(logging.INFO)
        _l.handlers = []
        _l.propagate = True

    return log_path


def create_app(engine=None, settings_overrides=None, start_engine=True, initialize=True):
    """Build the Flask app around one playback engine running on its own loop."""
    app = Flask(__name__)
    app.config.from_object(Config)
    configure_structured_logging(app)

    @app.before_request
    def _assign_request_id():
        g.request_id = request.headers.get('X-Request-ID') or uuid4().hex

    @app.after_request
    def _inject_request_id(response):
        if getattr(g, 'request_id', None):
            response.headers.setdefault('X-Request-ID', g.request_id)
        return response

    allowed_origins = sorted({
        origin.strip()
        for origin in Config.CORS_ALLOWED_ORIGINS
        if origin and origin.strip() and origin.strip() != "*"
    })
    CORS(app, resources={r"/api/*": {"origins": allowed_origins}}, supports_credentials=True)

    if engine is None:
        settings = load_engine_settings(settings_overrides)
        if not settings.spotify_client_id or not settings.spotify_client_secret:
            app.logger.warning("Spotify API credentials are not configured; only the desktop players will work.")
        engine = build_engine(settings)

    runner = LoopRunner()
    app.extensions['playdeck_engine'] = engine
    app.extensions['state_broker'] = engine.broker
    app.extensions['loop_runner'] = runner

    if start_engine:
        runner.start()
        engine.start_timers(runner)
        if initialize:
            future = runner.submit(engine.orchestrator.initialize())
            future.add_done_callback(_log_initialize_failure)
        app.logger.info(
            "Playback engine started: backend=%s, platform=%s",
            engine.state.active_backend.value,
            engine.settings.platform,
        )

    app.register_blueprint(playback_bp)
    app.register_blueprint(playlists_bp)
    app.register_blueprint(devices_bp)
    app.register_blueprint(events_bp)
    app.register_blueprint(metrics_blueprint)
    app.register_blueprint(health_bp)

    return app


def _log_initialize_failure(future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Engine initialization failed: %s", exc, exc_info=exc)


if __name__ == '__main__':
    # In debug with the reloader only the child process configures file logging
    debug_mode = bool(Config.DEBUG)
    log_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'log')
    if not debug_mode or os.environ.get('WERKZEUG_RUN_MAIN') == 'true':
        log_file_path = configure_logging(log_dir)
        logger.info("File logging initialized at %s", log_file_path)

    app = create_app()
    app.logger.handlers = []
    app.logger.setLevel(logging.INFO)
    app.logger.propagate = True
    logger.info("Starting Flask application...")
    # threaded so the SSE stream keeps flowing while control requests are served
    app.run(debug=Config.DEBUG, host='127.0.0.1', port=Config.PORT, threaded=True)
