"""
Aircraft tracking module for AirGuard.

Turns validated state vectors into long-lived tracked entities with
bounded trails and interpolated motion.
"""

from airguard.tracking.classifier import AircraftCategory, classify
from airguard.tracking.entity import (
    InterpolationWindow,
    Position,
    TrackedEntity,
    TrailPoint,
    Velocity,
)
from airguard.tracking.lifecycle import AircraftLifecycleManager

__all__ = [
    'AircraftCategory',
    'AircraftLifecycleManager',
    'InterpolationWindow',
    'Position',
    'TrackedEntity',
    'TrailPoint',
    'Velocity',
    'classify',
]
