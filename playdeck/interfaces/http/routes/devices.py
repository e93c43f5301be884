"""Device listing and playback transfer."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_cors import cross_origin

from config import Config
from playdeck.domain.playback.errors import NotFound

from .common import dump, dump_all, engine_route, get_engine, optional_str, run_on_engine

devices_bp = Blueprint('devices_bp', __name__, url_prefix='/api/devices')


@devices_bp.route('', methods=['GET'])
@cross_origin(origins=Config.CORS_ALLOWED_ORIGINS, supports_credentials=True)
@engine_route
def list_devices():
    engine = get_engine()
    if request.args.get('refresh', '').lower() in ('1', 'true', 'yes'):
        devices = run_on_engine(engine.orchestrator.refresh_devices())
    else:
        devices = engine.state.devices
    active = engine.dispatcher.resolve_device(devices)
    return jsonify({'devices': dump_all(devices), 'target': dump(active)}), 200


@devices_bp.route('/transfer', methods=['POST'])
@cross_origin(origins=Config.CORS_ALLOWED_ORIGINS, supports_credentials=True)
@engine_route
def transfer():
    engine = get_engine()
    device_id = optional_str(request.get_json(silent=True) or {}, 'device_id')
    device = None
    if device_id:
        device = next((d for d in engine.state.devices if d.id == device_id), None)
        if device is None:
            raise NotFound(f'device {device_id} was not found')

    result = run_on_engine(engine.orchestrator.transfer_to_computer_device(device))
    if result is None:
        return jsonify({'ok': False, 'error': 'no_computer_device'}), 404
    return jsonify({'ok': result.ok, 'message': result.message}), 200
