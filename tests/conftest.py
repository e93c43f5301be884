import os
import sys

import pytest

# Ensure project root is on sys.path so 'app', 'config', and 'playdeck' import correctly
_TESTS_DIR = os.path.dirname(__file__)
_ROOT_DIR = os.path.abspath(os.path.join(_TESTS_DIR, os.pardir))
if _ROOT_DIR not in sys.path:
    sys.path.insert(0, _ROOT_DIR)

from playdeck.engine import build_engine
from playdeck.models import BackendKind
from playdeck.settings import load_engine_settings
from tests.support import stubs as test_stubs

# every engine delay is zeroed so retry loops and reconciliation run instantly
ZERO_DELAYS = {
    "discovery_initial_delay": 0,
    "discovery_interval": 0,
    "reconcile_delay": 0,
    "like_restore_delay": 0,
    "platform": "linux",
    "curated_playlist_id": "",
    "spotify_client_id": None,
    "spotify_client_secret": None,
}


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    for name in ("SPOTIPY_CLIENT_ID", "SPOTIPY_CLIENT_SECRET", "APP_SERVICE_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def make_settings():
    def _make(**overrides):
        data = dict(ZERO_DELAYS)
        data.update(overrides)
        return load_engine_settings(data)

    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def cloud():
    return test_stubs.FakeBackend(BackendKind.CLOUD_WEB)


@pytest.fixture
def desktop():
    return test_stubs.FakeBackend(BackendKind.CLOUD_DESKTOP)


@pytest.fixture
def local():
    return test_stubs.FakeBackend(BackendKind.LOCAL_DESKTOP)


@pytest.fixture
def app_service():
    return test_stubs.FakeAppService()


@pytest.fixture
def events():
    return test_stubs.RecordingPublisher()


@pytest.fixture
def make_engine(settings, cloud, desktop, local, app_service, events):
    """Build an engine over the fake backends; keyword arguments override the defaults."""

    def _make(settings=settings, connected=True, **kwargs):
        backends = {
            BackendKind.CLOUD_WEB: cloud,
            BackendKind.CLOUD_DESKTOP: desktop,
            BackendKind.LOCAL_DESKTOP: local,
        }
        return build_engine(
            settings,
            backends=backends,
            app_service=kwargs.pop("app_service", app_service),
            publisher=events,
            connected=connected,
            **kwargs,
        )

    return _make


@pytest.fixture
def engine(make_engine):
    return make_engine()


@pytest.fixture
def app(engine):
    import app as app_module

    application = app_module.create_app(engine=engine, initialize=False)
    yield application
    application.extensions['loop_runner'].stop()


@pytest.fixture
def client(app):
    return app.test_client()
