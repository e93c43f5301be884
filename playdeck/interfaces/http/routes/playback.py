"""Transport, selection and like controls."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request
from flask_cors import cross_origin

from config import Config
from playdeck.domain.playback.dispatcher import TRANSPORT_COMMANDS
from playdeck.domain.playback.errors import NotFound
from playdeck.domain.playback.orchestrator import LAUNCH_CHOICES, PlayOutcome
from playdeck.models import BackendKind

from .common import BadPayload, dump, engine_route, get_engine, optional_str, require_str, run_on_engine

logger = logging.getLogger(__name__)

playback_bp = Blueprint('playback_bp', __name__, url_prefix='/api/playback')


def _result_body(result) -> dict:
    if result is None:
        return {'ok': False, 'message': 'Nothing to play'}
    return {'ok': result.ok, 'message': result.message}


@playback_bp.route('/<command>', methods=['POST'])
@cross_origin(origins=Config.CORS_ALLOWED_ORIGINS, supports_credentials=True)
@engine_route
def transport(command: str):
    if command not in TRANSPORT_COMMANDS:
        return jsonify({'error': 'unknown_command', 'command': command}), 404
    orchestrator = get_engine().orchestrator
    payload = request.get_json(silent=True) or {}

    if command == 'pause':
        result = run_on_engine(orchestrator.pause(needs_refresh=bool(payload.get('needs_refresh', True))))
    else:
        result = run_on_engine(getattr(orchestrator, command)())
    return jsonify(_result_body(result)), 200


@playback_bp.route('/select', methods=['POST'])
@cross_origin(origins=Config.CORS_ALLOWED_ORIGINS, supports_credentials=True)
@engine_route
def select():
    payload = request.get_json(silent=True) or {}
    playlist_id = require_str(payload, 'playlist_id')
    track_id = optional_str(payload, 'track_id')
    player = optional_str(payload, 'player')
    if player is not None and player not in LAUNCH_CHOICES:
        raise BadPayload(f"player must be one of {', '.join(LAUNCH_CHOICES)}")

    outcome = run_on_engine(get_engine().orchestrator.select(playlist_id, track_id, choice=player))
    if outcome is PlayOutcome.NOT_FOUND:
        raise NotFound(f'{track_id or playlist_id} was not found')

    body = {'outcome': outcome.value}
    if outcome is PlayOutcome.CONFIRMATION_REQUIRED:
        body['choices'] = list(LAUNCH_CHOICES)
    return jsonify(body), 202 if outcome is PlayOutcome.LAUNCHING else 200


@playback_bp.route('/like', methods=['POST'])
@cross_origin(origins=Config.CORS_ALLOWED_ORIGINS, supports_credentials=True)
@engine_route
def like():
    payload = request.get_json(silent=True) or {}
    liked = payload.get('liked')
    if not isinstance(liked, bool):
        raise BadPayload('liked must be a boolean')
    track_id = optional_str(payload, 'track_id')

    engine = get_engine()
    track = None
    if track_id:
        track = engine.state.find_track(track_id)
        if track is None:
            raise NotFound(f'track {track_id} was not found')

    ok = run_on_engine(engine.orchestrator.set_liked(liked, track))
    return jsonify({'ok': ok, 'liked': liked}), 200


@playback_bp.route('/backend', methods=['POST'])
@cross_origin(origins=Config.CORS_ALLOWED_ORIGINS, supports_credentials=True)
@engine_route
def switch_backend():
    payload = request.get_json(silent=True) or {}
    name = require_str(payload, 'backend')
    try:
        kind = BackendKind(name)
    except ValueError:
        raise BadPayload(f'unknown backend {name}') from None
    if kind is BackendKind.CLOUD_DESKTOP:
        raise BadPayload('the desktop player shares the cloud library; switch to CloudWeb instead')

    switched = run_on_engine(get_engine().orchestrator.switch_backend(kind))
    return jsonify({'switched': switched, 'backend': kind.value}), 200


@playback_bp.route('/state', methods=['GET'])
@cross_origin(origins=Config.CORS_ALLOWED_ORIGINS, supports_credentials=True)
@engine_route
def playback_state():
    state = get_engine().state
    return jsonify({
        'backend': state.active_backend.value,
        'connected': state.connected,
        'premium': state.is_premium,
        'ready': state.ready,
        'selected_playlist': dump(state.selected_playlist),
        'selected_track': dump(state.selected_track),
        'running_track': dump(state.running_track) if state.running_track.id else None,
    }), 200
