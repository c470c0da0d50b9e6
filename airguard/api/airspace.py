"""
Airspace zone API endpoints.

Provides endpoints for:
- GET /api/airspace/zones - Loaded zones and whether each is restricted
- POST /api/airspace/zones - Replace zones from an openAIP GeoJSON body
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from airguard.airspace.zones import load_zones_geojson

logger = logging.getLogger(__name__)

airspace_bp = Blueprint('airspace', __name__, url_prefix='/api/airspace')


def _pipeline():
    return current_app.config['TRACKING_PIPELINE']


@airspace_bp.route('/zones', methods=['GET'])
def list_zones():
    pipeline = _pipeline()
    restricted_only = request.args.get('restricted_only', 'false').lower() == 'true'

    zones = []
    for zone in pipeline.zones:
        restricted = pipeline.detector.is_restricted(zone)
        if restricted_only and not restricted:
            continue
        zones.append({**zone.to_dict(), 'restricted': restricted})

    return jsonify({
        'zones': zones,
        'count': len(zones),
    })


@airspace_bp.route('/zones', methods=['POST'])
def replace_zones():
    """
    Replace all airspace zones.

    Body: GeoJSON FeatureCollection in openAIP export format.
    Takes effect from the next tracking cycle.
    """
    data = request.get_json(silent=True)
    if data is None:
        return jsonify({'error': 'JSON body required'}), 400

    try:
        zones = load_zones_geojson(data)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    pipeline = _pipeline()
    pipeline.set_zones(zones)
    restricted = sum(1 for zone in zones if pipeline.detector.is_restricted(zone))

    return jsonify({
        'success': True,
        'count': len(zones),
        'restricted_count': restricted,
        'message': f'Loaded {len(zones)} airspace zones',
    })
