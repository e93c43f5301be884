"""Shared helpers for the engine-backed blueprints."""

from __future__ import annotations

import concurrent.futures
import functools
import logging
from typing import Any, Awaitable, Callable, Iterable

from flask import current_app, jsonify

from playdeck.core.runner import EngineNotRunning
from playdeck.domain.playback.errors import NotFound

logger = logging.getLogger(__name__)

ENGINE_CALL_TIMEOUT_SECONDS = 30.0


class BadPayload(ValueError):
    """The request body is missing a field or has the wrong type."""


def get_engine():
    return current_app.extensions.get('playdeck_engine')


def get_runner():
    return current_app.extensions.get('loop_runner')


def run_on_engine(coro: Awaitable[Any]) -> Any:
    """Hand a coroutine to the engine loop and wait for its result."""
    runner = get_runner()
    if runner is None:
        if hasattr(coro, 'close'):
            coro.close()
        raise EngineNotRunning('engine loop is not configured')
    timeout = current_app.config.get('ENGINE_CALL_TIMEOUT_SECONDS', ENGINE_CALL_TIMEOUT_SECONDS)
    return runner.call(coro, timeout=timeout)


def engine_route(view: Callable) -> Callable:
    """Map engine failures to JSON error responses."""

    @functools.wraps(view)
    def wrapper(*args, **kwargs):
        if get_engine() is None:
            return jsonify({'error': 'engine_unavailable'}), 503
        try:
            return view(*args, **kwargs)
        except BadPayload as exc:
            return jsonify({'error': 'invalid_payload', 'message': str(exc)}), 400
        except NotFound as exc:
            return jsonify({'error': 'not_found', 'message': str(exc)}), 404
        except EngineNotRunning as exc:
            logger.warning("Engine unavailable for %s: %s", view.__name__, exc)
            return jsonify({'error': 'engine_unavailable', 'message': str(exc)}), 503
        except concurrent.futures.TimeoutError:
            logger.warning("Engine call timed out in %s", view.__name__)
            return jsonify({'error': 'timeout'}), 504

    return wrapper


def dump(item: Any) -> Any:
    if item is None:
        return None
    return item.model_dump(mode='json')


def dump_all(items: Iterable[Any]) -> list:
    return [dump(item) for item in items]


def require_str(payload: dict, name: str) -> str:
    value = payload.get(name)
    if not isinstance(value, str) or not value.strip():
        raise BadPayload(f'{name} is required')
    return value.strip()


def optional_str(payload: dict, name: str):
    value = payload.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise BadPayload(f'{name} must be a string')
    return value.strip() or None
