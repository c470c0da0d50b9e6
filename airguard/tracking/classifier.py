"""
Aircraft category classification.

Categories form a closed set. Classification walks an ordered list of
(predicate, category) rules and stops at the first match; the list ends
with an unconditional UNKNOWN rule, so every aircraft gets exactly one
category.
"""

import re
from enum import Enum
from typing import Callable, List, Optional, Pattern, Sequence, Tuple


class AircraftCategory(str, Enum):
    """Aircraft category tags."""
    COMMERCIAL = 'commercial'
    GENERAL_AVIATION = 'general'
    HELICOPTER = 'helicopter'
    LIGHT = 'light'
    MILITARY = 'military'
    UNKNOWN = 'unknown'

    @property
    def display_name(self) -> str:
        return CATEGORY_NAMES[self]


CATEGORY_NAMES = {
    AircraftCategory.COMMERCIAL: 'Commercial Airliner',
    AircraftCategory.GENERAL_AVIATION: 'General Aviation',
    AircraftCategory.HELICOPTER: 'Helicopter',
    AircraftCategory.LIGHT: 'Light Aircraft',
    AircraftCategory.MILITARY: 'Military/Government',
    AircraftCategory.UNKNOWN: 'Unknown/Unclassified',
}


# (category, callsign regexes, type-code substrings) in evaluation order
_CATEGORY_PATTERNS: Sequence[Tuple[AircraftCategory, Sequence[Pattern], Sequence[str]]] = (
    (
        AircraftCategory.COMMERCIAL,
        (re.compile(r'^[A-Z]{3}\d+'), re.compile(r'^[A-Z]{2}\d+')),
        ('A3', 'B7', 'A32', 'B73', 'A33', 'A35', 'B77', 'B78', 'A38'),
    ),
    (
        AircraftCategory.GENERAL_AVIATION,
        (re.compile(r'^N\d+[A-Z]*'), re.compile(r'^G-[A-Z]+'), re.compile(r'^D-[A-Z]+')),
        ('C1', 'PA', 'SR', 'BE', 'P28', 'C17', 'C20', 'C25'),
    ),
    (
        AircraftCategory.HELICOPTER,
        (re.compile(r'HEMS'), re.compile(r'POLICE'), re.compile(r'RESCUE')),
        ('R44', 'H12', 'EC1', 'AS3', 'B06', 'S76', 'AW1'),
    ),
    (
        AircraftCategory.LIGHT,
        (re.compile(r'^GLIDER'), re.compile(r'^ULTRA')),
        ('GLID', 'UL', 'GYRO'),
    ),
    (
        AircraftCategory.MILITARY,
        (re.compile(r'^[A-Z]+\d{2,4}$'), re.compile(r'AIR FORCE'), re.compile(r'NAVY')),
        ('F16', 'F18', 'C13', 'KC1', 'E3', 'P8'),
    ),
)

MILITARY_INDICATORS = (
    'ARMY', 'NAVY', 'FORCE', 'GUARD', 'RESCUE', 'MILITARY',
    'FIGHTER', 'BOMBER', 'CARGO', 'TANKER', 'RECON',
)
_MILITARY_CALLSIGN = re.compile(r'^[A-Z]{2,4}\d{2,4}$')

HELICOPTER_INDICATORS = ('HELI', 'MEDIC', 'RESCUE', 'POLICE', 'NEWS', 'LIFEFLIGHT')

PRIVATE_REGISTRATIONS = (
    re.compile(r'^N\d+[A-Z]*$'),    # US: N12345A
    re.compile(r'^G-[A-Z]+$'),      # UK: G-ABCD
    re.compile(r'^D-[A-Z]+$'),      # Germany: D-ABCD
    re.compile(r'^F-[A-Z]+$'),      # France: F-ABCD
    re.compile(r'^OE-[A-Z]+$'),     # Austria: OE-ABC
    re.compile(r'^S5-[A-Z]+$'),     # Slovenia: S5-ABC
)

Rule = Tuple[Callable[[str], bool], AircraftCategory]


def _callsign_rule(patterns: Sequence[Pattern]) -> Callable[[str], bool]:
    return lambda callsign: any(p.search(callsign) for p in patterns)


def _substring_rule(needles: Sequence[str]) -> Callable[[str], bool]:
    return lambda callsign: any(n in callsign for n in needles)


def _build_rules() -> List[Rule]:
    rules: List[Rule] = []
    for category, callsign_patterns, type_patterns in _CATEGORY_PATTERNS:
        # Callsign patterns are the more reliable signal, so they go first
        rules.append((_callsign_rule(callsign_patterns), category))
        rules.append((_substring_rule(type_patterns), category))

    rules.append((
        lambda cs: _substring_rule(MILITARY_INDICATORS)(cs) or bool(_MILITARY_CALLSIGN.match(cs)),
        AircraftCategory.MILITARY,
    ))
    rules.append((_substring_rule(HELICOPTER_INDICATORS), AircraftCategory.HELICOPTER))
    rules.append((_callsign_rule(PRIVATE_REGISTRATIONS), AircraftCategory.GENERAL_AVIATION))
    rules.append((lambda cs: True, AircraftCategory.UNKNOWN))
    return rules


CLASSIFICATION_RULES: List[Rule] = _build_rules()


def classify(callsign: Optional[str]) -> AircraftCategory:
    """
    Classify an aircraft from its callsign.

    Aircraft without a callsign are UNKNOWN.
    """
    normalized = (callsign or '').strip().upper()
    if not normalized:
        return AircraftCategory.UNKNOWN

    for predicate, category in CLASSIFICATION_RULES:
        if predicate(normalized):
            return category
    return AircraftCategory.UNKNOWN
