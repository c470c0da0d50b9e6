"""
Tracked aircraft API endpoints.

Provides endpoints for:
- GET /api/aircraft - List or search tracked aircraft
- GET /api/aircraft/<entity_id> - Single aircraft with interpolated position
"""

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request

logger = logging.getLogger(__name__)

aircraft_bp = Blueprint('aircraft', __name__, url_prefix='/api/aircraft')


def _lifecycle():
    return current_app.config['TRACKING_PIPELINE'].lifecycle


@aircraft_bp.route('', methods=['GET'])
def list_aircraft():
    """
    List currently tracked aircraft.

    Query parameters:
    - q: case-insensitive substring over callsign and ICAO24
    - limit: int, max results to return (default 100)
    - sort: string, sort field (contact|altitude|speed, default contact)
    """
    start_time = time.perf_counter()

    term = request.args.get('q', '')
    try:
        limit = min(int(request.args.get('limit', 100)), 500)
    except ValueError:
        return jsonify({'error': 'limit must be an integer'}), 400
    sort_by = request.args.get('sort', 'contact')

    aircraft = _lifecycle().search(term)

    if sort_by == 'altitude':
        aircraft.sort(key=lambda e: e.altitude_ft or 0, reverse=True)
    elif sort_by == 'speed':
        aircraft.sort(key=lambda e: e.speed_kts or 0, reverse=True)
    else:
        aircraft.sort(key=lambda e: e.last_contact_time, reverse=True)

    aircraft = aircraft[:limit]

    query_time_ms = (time.perf_counter() - start_time) * 1000

    return jsonify({
        'aircraft': [e.to_dict() for e in aircraft],
        'count': len(aircraft),
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'query_time_ms': round(query_time_ms, 2),
    })


@aircraft_bp.route('/<entity_id>', methods=['GET'])
def get_aircraft(entity_id: str):
    """
    Get one tracked aircraft.

    Query parameters:
    - at: Unix time for the interpolated position (default now)
    """
    lifecycle = _lifecycle()
    entity = lifecycle.get(entity_id)
    if entity is None:
        return jsonify({'error': 'Aircraft not found'}), 404

    try:
        at = float(request.args.get('at', time.time()))
    except ValueError:
        return jsonify({'error': 'at must be a Unix timestamp'}), 400

    result = entity.to_dict()
    interpolated = lifecycle.interpolated_position_at(entity.id, at)
    result['interpolated_position'] = interpolated.to_dict() if interpolated else None
    result['interpolated_at'] = at

    return jsonify(result)
