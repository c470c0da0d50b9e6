"""
Airspace violation API endpoints.

Provides endpoints for:
- GET /api/violations - Active violations
- GET /api/violations/history - Retained violations, newest first
- GET /api/violations/stats - Counts by classification and zone
"""

import logging
import time

from flask import Blueprint, current_app, jsonify, request

logger = logging.getLogger(__name__)

violations_bp = Blueprint('violations', __name__, url_prefix='/api/violations')


def _detector():
    return current_app.config['TRACKING_PIPELINE'].detector


@violations_bp.route('', methods=['GET'])
def list_active():
    violations = _detector().active_violations()
    return jsonify({
        'violations': [v.to_dict() for v in violations],
        'count': len(violations),
    })


@violations_bp.route('/history', methods=['GET'])
def list_history():
    """
    Violation history.

    Query parameters:
    - limit: int, max results to return (default 100)
    - alertable_only: boolean, only prohibited/danger/military zones
    """
    try:
        limit = min(int(request.args.get('limit', 100)), 1000)
    except ValueError:
        return jsonify({'error': 'limit must be an integer'}), 400
    alertable_only = request.args.get('alertable_only', 'false').lower() == 'true'

    history = list(reversed(_detector().history()))
    if alertable_only:
        history = [v for v in history if v.alertable]

    return jsonify({
        'violations': [v.to_dict() for v in history[:limit]],
        'count': len(history),
    })


@violations_bp.route('/stats', methods=['GET'])
def get_stats():
    return jsonify(_detector().statistics(time.time()))
