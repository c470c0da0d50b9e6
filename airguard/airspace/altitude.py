"""
Airspace altitude bound parsing.

Bounds arrive as strings in the notations airspace publications use:
    FL100       flight level, hundreds of feet      -> 10000 ft
    3000M       meters                              -> 9842.5 ft
    5000FT      feet (a bare number is also feet)   -> 5000 ft
    GND / SFC   surface                             -> 0 ft
    UNL         unlimited                           -> infinity
A trailing AGL/MSL/AMSL reference is accepted and ignored here; the
datum is carried separately on the bound.
"""

import math
import re
from typing import Union

from airguard.errors import MalformedZone

METERS_TO_FEET = 3.28084

# Assumed ground elevation under AGL bounds. This is a fixed approximation,
# not measured terrain: bounds referenced to ground are shifted up by it.
TERRAIN_BUFFER_FT = 1000.0

_FLIGHT_LEVEL = re.compile(r'^FL\s*(\d+)$')
_NUMERIC = re.compile(r'^(\d+(?:\.\d+)?)\s*(FT|F|M)?(?:\s+(?:AGL|MSL|AMSL|ALT|GND|SFC))?$')

SURFACE = {'GND', 'SFC', 'SURFACE'}
UNLIMITED = {'UNL', 'UNLTD', 'UNLIMITED'}


def parse_altitude_ft(
    value: Union[str, int, float, None],
    agl: bool = False,
    terrain_buffer_ft: float = TERRAIN_BUFFER_FT,
) -> float:
    """
    Convert an altitude bound to feet.

    Args:
        value: Bound string (or a number, taken as feet)
        agl: Bound is referenced to ground level; adds terrain_buffer_ft.
            Flight levels are pressure altitudes and never get the buffer.
        terrain_buffer_ft: Assumed ground elevation for AGL bounds

    Raises:
        MalformedZone if the value cannot be parsed.
    """
    if value is None or isinstance(value, bool):
        raise MalformedZone(f'Unparsable altitude bound: {value!r}')

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise MalformedZone(f'Unparsable altitude bound: {value!r}')
        feet = float(value)
        return feet + terrain_buffer_ft if agl else feet

    text = str(value).strip().upper()
    if not text:
        raise MalformedZone('Empty altitude bound')

    if text in UNLIMITED:
        return math.inf

    match = _FLIGHT_LEVEL.match(text)
    if match:
        return int(match.group(1)) * 100.0

    if text in SURFACE:
        feet = 0.0
    else:
        match = _NUMERIC.match(text)
        if not match:
            raise MalformedZone(f'Unparsable altitude bound: {value!r}')
        feet = float(match.group(1))
        if match.group(2) == 'M':
            feet *= METERS_TO_FEET

    if agl:
        feet += terrain_buffer_ft
    return feet
