"""
Aggregate statistics over the tracked fleet using NumPy.

Computed once per cycle and published with the entities-updated event,
so it works purely on in-memory entities (no database round trip).
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import numpy as np

from airguard.tracking.entity import TrackedEntity

logger = logging.getLogger(__name__)

# Altitude bands in feet, upper bound exclusive
ALTITUDE_BANDS = (
    ('low', 0.0, 10000.0),
    ('medium', 10000.0, 25000.0),
    ('high', 25000.0, float('inf')),
)


@dataclass
class MetricSummary:
    """Summary of one metric across the fleet."""
    mean: float
    std: float
    min_val: float
    max_val: float
    count: int

    def to_dict(self) -> dict:
        return {
            'mean': round(self.mean, 1),
            'std': round(self.std, 1),
            'min': round(self.min_val, 1),
            'max': round(self.max_val, 1),
            'count': self.count,
        }


def summarize(values: np.ndarray) -> Optional[MetricSummary]:
    """Summary over the finite values; None if there are none."""
    valid = values[np.isfinite(values)]
    if len(valid) == 0:
        return None

    return MetricSummary(
        mean=float(np.mean(valid)),
        std=float(np.std(valid)),
        min_val=float(np.min(valid)),
        max_val=float(np.max(valid)),
        count=len(valid),
    )


def _as_array(values: List[Optional[float]]) -> np.ndarray:
    return np.array([np.nan if v is None else v for v in values], dtype=np.float64)


def fleet_statistics(
    entities: Iterable[TrackedEntity],
    now: float,
    active_threshold_seconds: float = 300.0,
) -> dict:
    """
    Compute aggregate metrics for the current entity set.

    Altitude is reported in feet and speed in knots; aircraft on the
    ground are excluded from both summaries.
    """
    entities = list(entities)

    by_category: Dict[str, int] = {}
    for entity in entities:
        key = entity.category.value
        by_category[key] = by_category.get(key, 0) + 1

    on_ground = sum(1 for e in entities if e.on_ground)
    active = sum(1 for e in entities if e.is_active(now, active_threshold_seconds))
    airborne = [e for e in entities if not e.on_ground]

    altitudes = _as_array([e.altitude_ft for e in airborne])
    speeds = _as_array([e.speed_kts for e in airborne])

    by_altitude_band = {name: 0 for name, _, _ in ALTITUDE_BANDS}
    finite_altitudes = altitudes[np.isfinite(altitudes)]
    for name, lower, upper in ALTITUDE_BANDS:
        mask = (finite_altitudes >= lower) & (finite_altitudes < upper)
        by_altitude_band[name] = int(mask.sum())

    altitude = summarize(altitudes)
    speed = summarize(speeds)

    return {
        'total': len(entities),
        'active': active,
        'on_ground': on_ground,
        'in_flight': len(airborne),
        'by_category': by_category,
        'by_altitude_band': by_altitude_band,
        'altitude_ft': altitude.to_dict() if altitude else None,
        'speed_kts': speed.to_dict() if speed else None,
    }
