"""
Airspace zone definitions.

Zones are supplied from outside the core (typically an openAIP GeoJSON
export) and are read-only here. Loading keeps the altitude bounds as
strings; they are parsed during detection so a bad bound only takes its
own zone out of evaluation.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)


class AltitudeDatum(str, Enum):
    """Altitude reference."""
    AGL = 'AGL'
    MSL = 'MSL'


@dataclass(frozen=True)
class AltitudeBound:
    """One vertical limit, e.g. AltitudeBound('FL95', AltitudeDatum.MSL)."""
    value: Union[str, int, float, None]
    datum: AltitudeDatum = AltitudeDatum.MSL

    @property
    def is_agl(self) -> bool:
        return self.datum == AltitudeDatum.AGL

    def __str__(self) -> str:
        return f'{self.value} {self.datum.value}'


@dataclass(frozen=True)
class RestrictionFlags:
    """Activation flags published with a zone."""
    on_demand: bool = False
    on_request: bool = False
    by_notam: bool = False
    special_agreement: bool = False
    request_compliance: bool = False


@dataclass(frozen=True)
class AirspaceZone:
    """
    Restricted-airspace candidate.

    polygon is a ring of (longitude, latitude) vertices; a closing vertex
    equal to the first one is allowed.
    """
    id: str
    name: str
    classification: str
    polygon: Tuple[Tuple[float, float], ...]
    lower: AltitudeBound
    upper: AltitudeBound
    restrictions: RestrictionFlags = field(default_factory=RestrictionFlags)
    country: str = ''

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'classification': self.classification,
            'country': self.country,
            'lower': str(self.lower),
            'upper': str(self.upper),
            'vertices': len(self.polygon),
            'restrictions': {
                'on_demand': self.restrictions.on_demand,
                'on_request': self.restrictions.on_request,
                'by_notam': self.restrictions.by_notam,
                'special_agreement': self.restrictions.special_agreement,
                'request_compliance': self.restrictions.request_compliance,
            },
        }


# openAIP icaoClass codes
ICAO_CLASS_NAMES = {
    0: 'A',
    1: 'B',
    2: 'C',
    3: 'D',
    4: 'E',
    5: 'F',
    6: 'G',
    7: 'UNCLASSIFIED',
    8: 'DANGER',
}

# openAIP limit units
_UNIT_FEET = 1
_UNIT_FLIGHT_LEVEL = 6


def _limit_to_bound(limit: Optional[Dict[str, Any]]) -> AltitudeBound:
    """
    Convert an openAIP limit object {value, unit, referenceDatum}.

    Unit 1 is feet, unit 6 is flight level, anything else is meters.
    Reference datum 0 is ground; 1 (MSL) and 2 (standard pressure) are
    both treated as MSL.
    """
    if not isinstance(limit, dict) or not isinstance(limit.get('value'), (int, float)):
        return AltitudeBound(None)

    value = limit['value']
    unit = limit.get('unit')
    if unit == _UNIT_FEET:
        text = f'{value}FT'
    elif unit == _UNIT_FLIGHT_LEVEL:
        text = f'FL{int(value)}'
    else:
        text = f'{value}M'

    datum = AltitudeDatum.AGL if limit.get('referenceDatum') == 0 else AltitudeDatum.MSL
    return AltitudeBound(text, datum)


def zone_from_feature(feature: Dict[str, Any]) -> Optional[AirspaceZone]:
    """Build a zone from one GeoJSON feature; None for non-polygon features."""
    properties = feature.get('properties') or {}
    geometry = feature.get('geometry') or {}

    if geometry.get('type') != 'Polygon' or not geometry.get('coordinates'):
        return None

    ring = tuple(
        (float(vertex[0]), float(vertex[1]))
        for vertex in geometry['coordinates'][0]
        if isinstance(vertex, (list, tuple)) and len(vertex) >= 2
    )

    icao_class = properties.get('icaoClass', 6)
    classification = ICAO_CLASS_NAMES.get(icao_class, str(icao_class).upper())

    return AirspaceZone(
        id=str(feature.get('id') or properties.get('_id') or properties.get('name')),
        name=properties.get('name') or 'Unknown Airspace',
        classification=classification,
        polygon=ring,
        lower=_limit_to_bound(properties.get('lowerLimit')),
        upper=_limit_to_bound(properties.get('upperLimit')),
        restrictions=RestrictionFlags(
            on_demand=bool(properties.get('onDemand')),
            on_request=bool(properties.get('onRequest')),
            by_notam=bool(properties.get('byNotam')),
            special_agreement=bool(properties.get('specialAgreement')),
            request_compliance=bool(properties.get('requestCompliance')),
        ),
        country=properties.get('country') or '',
    )


def load_zones_geojson(data: Dict[str, Any]) -> List[AirspaceZone]:
    """
    Convert a GeoJSON FeatureCollection into airspace zones.

    Raises ValueError if data is not a FeatureCollection-like dict.
    """
    if not isinstance(data, dict) or not isinstance(data.get('features'), list):
        raise ValueError('Invalid GeoJSON data')

    zones = []
    for feature in data['features']:
        if not isinstance(feature, dict):
            continue
        try:
            zone = zone_from_feature(feature)
        except (TypeError, ValueError) as e:
            logger.warning(f'Skipping airspace feature {feature.get("id")}: {e}')
            continue
        if zone is not None:
            zones.append(zone)

    logger.info(f'Loaded {len(zones)} airspace zones from {len(data["features"])} features')
    return zones


def load_zones_file(path: Union[str, Path]) -> List[AirspaceZone]:
    """Read zones from a GeoJSON file."""
    with open(path, encoding='utf-8') as f:
        return load_zones_geojson(json.load(f))
