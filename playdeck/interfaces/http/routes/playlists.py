"""Playlist tree, playlist tracks and playlist management."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request
from flask_cors import cross_origin

from config import Config
from playdeck.domain.playback.errors import NotFound

from .common import BadPayload, dump, dump_all, engine_route, get_engine, require_str, run_on_engine

logger = logging.getLogger(__name__)

playlists_bp = Blueprint('playlists_bp', __name__, url_prefix='/api/playlists')


def _known_playlist(playlist_id: str):
    playlist = get_engine().state.get_playlist(playlist_id)
    if playlist is None:
        raise NotFound(f'playlist {playlist_id} was not found')
    return playlist


@playlists_bp.route('', methods=['GET'])
@cross_origin(origins=Config.CORS_ALLOWED_ORIGINS, supports_credentials=True)
@engine_route
def list_playlists():
    engine = get_engine()
    if not engine.state.ready:
        return jsonify({'ready': False, 'items': [dump(engine.playlists.items.loading())]}), 200
    return jsonify({'ready': True, 'items': dump_all(engine.playlists.current_items())}), 200


@playlists_bp.route('/refresh', methods=['POST'])
@cross_origin(origins=Config.CORS_ALLOWED_ORIGINS, supports_credentials=True)
@engine_route
def refresh_playlists():
    payload = request.get_json(silent=True) or {}
    refreshed = run_on_engine(get_engine().playlists.refresh(clear=bool(payload.get('clear', False))))
    return jsonify({'refreshed': refreshed}), 200 if refreshed else 409


@playlists_bp.route('/<path:playlist_id>/tracks', methods=['GET'])
@cross_origin(origins=Config.CORS_ALLOWED_ORIGINS, supports_credentials=True)
@engine_route
def playlist_tracks(playlist_id: str):
    engine = get_engine()
    _known_playlist(playlist_id)
    tracks = run_on_engine(engine.playlists.get_playlist_tracks(playlist_id))
    if not tracks:
        return jsonify({'playlist_id': playlist_id, 'items': [dump(engine.playlists.items.no_tracks())]}), 200
    return jsonify({'playlist_id': playlist_id, 'items': dump_all(tracks)}), 200


@playlists_bp.route('/<path:playlist_id>/tracks', methods=['POST'])
@cross_origin(origins=Config.CORS_ALLOWED_ORIGINS, supports_credentials=True)
@engine_route
def add_track(playlist_id: str):
    engine = get_engine()
    playlist = _known_playlist(playlist_id)
    track_id = require_str(request.get_json(silent=True) or {}, 'track_id')
    track = engine.state.find_track(track_id)
    if track is None:
        raise NotFound(f'track {track_id} was not found')
    added = run_on_engine(engine.orchestrator.add_track_to_playlist(track, playlist))
    return jsonify({'added': added}), 200


@playlists_bp.route('/<path:playlist_id>/tracks/<track_id>', methods=['DELETE'])
@cross_origin(origins=Config.CORS_ALLOWED_ORIGINS, supports_credentials=True)
@engine_route
def remove_track(playlist_id: str, track_id: str):
    engine = get_engine()
    _known_playlist(playlist_id)
    tracks = run_on_engine(engine.playlists.get_playlist_tracks(playlist_id))
    track = next((t for t in tracks if t.id == track_id), None)
    if track is None:
        raise NotFound(f'track {track_id} is not in playlist {playlist_id}')
    removed = run_on_engine(engine.orchestrator.remove_track_from_playlist(track))
    return jsonify({'removed': removed}), 200


@playlists_bp.route('/<path:playlist_id>/follow', methods=['POST'])
@cross_origin(origins=Config.CORS_ALLOWED_ORIGINS, supports_credentials=True)
@engine_route
def follow_playlist(playlist_id: str):
    playlist = _known_playlist(playlist_id)
    followed = run_on_engine(get_engine().orchestrator.follow_playlist(playlist))
    return jsonify({'followed': followed}), 200


@playlists_bp.route('', methods=['POST'])
@cross_origin(origins=Config.CORS_ALLOWED_ORIGINS, supports_credentials=True)
@engine_route
def create_playlist():
    engine = get_engine()
    payload = request.get_json(silent=True) or {}
    name = require_str(payload, 'name')
    track_ids = payload.get('track_ids') or []
    if not isinstance(track_ids, list) or not all(isinstance(t, str) for t in track_ids):
        raise BadPayload('track_ids must be a list of strings')

    tracks = []
    for track_id in track_ids:
        track = engine.state.find_track(track_id)
        if track is None:
            raise NotFound(f'track {track_id} was not found')
        tracks.append(track)

    playlist = run_on_engine(engine.orchestrator.create_playlist(name, tracks))
    if playlist is None:
        return jsonify({'error': 'create_failed'}), 502
    return jsonify({'playlist': dump(playlist)}), 201


@playlists_bp.route('/weekly-top', methods=['POST'])
@cross_origin(origins=Config.CORS_ALLOWED_ORIGINS, supports_credentials=True)
@engine_route
def weekly_top():
    engine = get_engine()
    if not engine.state.connected:
        return jsonify({'error': 'not_connected'}), 409
    playlist = run_on_engine(engine.orchestrator.generate_weekly_top_playlist())
    if playlist is None:
        return jsonify({'generated': False}), 200
    return jsonify({'generated': True, 'playlist': dump(playlist)}), 200
