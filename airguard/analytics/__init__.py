"""
Analytics module for AirGuard.

Fleet-wide aggregate statistics computed with NumPy on every tracking
cycle.
"""

from airguard.analytics.fleet_statistics import (
    MetricSummary,
    fleet_statistics,
    summarize,
)

__all__ = [
    'MetricSummary',
    'fleet_statistics',
    'summarize',
]
