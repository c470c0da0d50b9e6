"""
Tracking control API endpoints.

Provides endpoints for:
- GET /api/tracking/status - Scheduler and cycle statistics
- GET /api/tracking/quota - Daily request quota snapshot
- POST /api/tracking/start|pause|resume|stop - Scheduler control
- POST /api/tracking/test-connection - One quota-gated probe request
"""

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify

from airguard.config import config

logger = logging.getLogger(__name__)

tracking_bp = Blueprint('tracking', __name__, url_prefix='/api/tracking')


def _pipeline():
    return current_app.config['TRACKING_PIPELINE']


@tracking_bp.route('/status', methods=['GET'])
def get_status():
    """
    Get tracking status.

    Returns scheduler state, cycle timing, counts of tracked aircraft
    and active violations, and the quota snapshot.
    """
    start_time = time.perf_counter()

    stats = _pipeline().statistics()

    query_time_ms = (time.perf_counter() - start_time) * 1000

    return jsonify({
        'tracking': stats,
        'config': {
            'opensky_authenticated': config.opensky.is_authenticated,
            'max_tracked_entities': config.tracking.max_tracked_entities,
        },
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'query_time_ms': round(query_time_ms, 2),
    })


@tracking_bp.route('/quota', methods=['GET'])
def get_quota():
    """Get current request quota usage."""
    return jsonify(_pipeline().client.usage_stats())


def _control_response(changed: bool, action: str):
    pipeline = _pipeline()
    if not changed:
        return jsonify({
            'success': False,
            'status': pipeline.status.value,
            'message': f'Cannot {action} while {pipeline.status.value}',
        }), 409

    return jsonify({
        'success': True,
        'status': pipeline.status.value,
        'message': pipeline.status_message,
    })


@tracking_bp.route('/start', methods=['POST'])
def start_tracking():
    return _control_response(_pipeline().start(), 'start')


@tracking_bp.route('/pause', methods=['POST'])
def pause_tracking():
    return _control_response(_pipeline().pause(), 'pause')


@tracking_bp.route('/resume', methods=['POST'])
def resume_tracking():
    return _control_response(_pipeline().resume(), 'resume')


@tracking_bp.route('/stop', methods=['POST'])
def stop_tracking():
    """Stop tracking and discard tracked aircraft and violations."""
    _pipeline().stop()
    return _control_response(True, 'stop')


@tracking_bp.route('/test-connection', methods=['POST'])
def test_connection():
    """
    Probe the OpenSky API.

    Counts against the daily quota like any other request; returns 503
    when the probe fails (including a closed quota gate).
    """
    result = _pipeline().test_connection()
    return jsonify(result), 200 if result['success'] else 503
