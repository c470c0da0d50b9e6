"""
AirGuard Package.

Airspace incursion monitor built with Flask, SQLAlchemy, and NumPy.

Modules:
    api/         REST endpoints for tracking control, aircraft, violations, zones
    models/      SQLAlchemy ORM models (QuotaUsage)
    ingestion/   Quota-aware OpenSky client and the tracking scheduler
    tracking/    Tracked aircraft entities, classification, lifecycle
    airspace/    Airspace zones, altitude parsing, violation detection
    analytics/   NumPy-based fleet statistics
    events.py    Typed event bus for UI/visualization collaborators
    geo.py       Great-circle distance and point-in-polygon helpers
    config.py    Centralized configuration from environment variables
"""

__version__ = '1.0.0'
