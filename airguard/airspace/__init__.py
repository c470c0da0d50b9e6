"""
Restricted airspace: zone definitions, altitude bound parsing and the
violation detector.
"""

from airguard.airspace.altitude import parse_altitude_ft
from airguard.airspace.detector import Violation, ViolationCheckResult, ViolationDetector
from airguard.airspace.zones import (
    AirspaceZone,
    AltitudeBound,
    AltitudeDatum,
    RestrictionFlags,
    load_zones_file,
    load_zones_geojson,
)

__all__ = [
    'AirspaceZone',
    'AltitudeBound',
    'AltitudeDatum',
    'RestrictionFlags',
    'Violation',
    'ViolationCheckResult',
    'ViolationDetector',
    'load_zones_file',
    'load_zones_geojson',
    'parse_altitude_ft',
]
