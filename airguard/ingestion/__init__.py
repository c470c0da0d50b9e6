"""
Data ingestion module for AirGuard.

Handles polling the OpenSky API under a persisted daily quota and
scheduling tracking cycles.
"""

from airguard.ingestion.opensky_client import BoundingBox, OpenSkyClient, Snapshot, StateVector
from airguard.ingestion.pipeline import TrackingPipeline, region_bbox
from airguard.ingestion.quota import QuotaState, QuotaStore

__all__ = [
    'BoundingBox',
    'OpenSkyClient',
    'QuotaState',
    'QuotaStore',
    'Snapshot',
    'StateVector',
    'TrackingPipeline',
    'region_bbox',
]
