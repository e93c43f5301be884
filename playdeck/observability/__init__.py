# noqa: D104 - package initialization
from .logging import configure_structured_logging  # noqa: F401
from .metrics import metrics_blueprint, observe_discovery, observe_playlist_build, record_command  # noqa: F401
