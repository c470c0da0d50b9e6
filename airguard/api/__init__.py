"""
API module for AirGuard.

Provides REST endpoints for:
- Tracking control and quota status
- Tracked aircraft
- Airspace violations
- Airspace zones
"""

from airguard.api.aircraft import aircraft_bp
from airguard.api.airspace import airspace_bp
from airguard.api.tracking import tracking_bp
from airguard.api.violations import violations_bp

__all__ = ['aircraft_bp', 'airspace_bp', 'tracking_bp', 'violations_bp']
