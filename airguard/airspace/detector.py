"""
Airspace violation detection.

Every cycle each active aircraft is tested against each restricted zone.
Containment is the altitude band test followed by a ray-casting
point-in-polygon test. An (aircraft, zone) pair that becomes contained
opens exactly one violation; the violation is resolved the first cycle
the pair is no longer contained.

Zones that cannot be evaluated (fewer than three vertices, non-finite
vertices, unparsable altitude bounds) are logged and skipped for the
cycle without affecting other zones.
"""

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from airguard.airspace.altitude import parse_altitude_ft
from airguard.airspace.zones import AirspaceZone
from airguard.config import config
from airguard.errors import MalformedZone
from airguard.geo import point_in_polygon
from airguard.tracking.entity import METERS_TO_FEET, TrackedEntity

logger = logging.getLogger(__name__)

RESTRICTED_NAME_KEYWORDS = ('RESTRICTED', 'PROHIBITED', 'DANGER', 'MILITARY')
ALERT_KEYWORDS = ('PROHIBITED', 'DANGER', 'MILITARY')

ViolationKey = Tuple[str, str]


@dataclass
class Violation:
    """
    One incursion of an aircraft into a restricted zone.

    alertable marks prohibited, danger and military zones so a UI
    collaborator can raise a notification.
    """
    id: str
    entity_id: str
    zone_id: str
    zone_name: str
    zone_classification: str
    callsign: Optional[str]
    detected_at: float
    alertable: bool = False
    resolved: bool = False
    resolved_at: Optional[float] = None

    @property
    def key(self) -> ViolationKey:
        return (self.entity_id, self.zone_id)

    def resolve(self, now: float) -> None:
        self.resolved = True
        self.resolved_at = now

    @property
    def message(self) -> str:
        aircraft = self.callsign or self.entity_id
        action = 'exited' if self.resolved else 'entered'
        return f'Aircraft {aircraft} {action} restricted airspace {self.zone_name}'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'entity_id': self.entity_id,
            'callsign': self.callsign,
            'zone_id': self.zone_id,
            'zone_name': self.zone_name,
            'zone_classification': self.zone_classification,
            'detected_at': self.detected_at,
            'resolved_at': self.resolved_at,
            'resolved': self.resolved,
            'alertable': self.alertable,
            'message': self.message,
        }


@dataclass
class ViolationCheckResult:
    detected: List[Violation] = field(default_factory=list)
    resolved: List[Violation] = field(default_factory=list)


@dataclass(frozen=True)
class _ZoneEnvelope:
    """A zone with its altitude band resolved to feet."""
    zone: AirspaceZone
    lower_ft: float
    upper_ft: float


class ViolationDetector:
    """
    Tracks active violations per (entity id, zone id).

    Configuration:
    - restricted_classes: zone classifications always treated as restricted
    - freshness_seconds: aircraft with older contact are not evaluated
    - history_limit: violations retained after resolution (oldest dropped)
    - terrain_buffer_ft: assumed ground elevation added to AGL bounds
    """

    def __init__(
        self,
        restricted_classes: Optional[Iterable[str]] = None,
        freshness_seconds: Optional[float] = None,
        history_limit: Optional[int] = None,
        terrain_buffer_ft: Optional[float] = None,
    ):
        if restricted_classes is None:
            restricted_classes = config.detection.restricted_classes
        self.restricted_classes: Set[str] = {c.upper() for c in restricted_classes}
        self.freshness_seconds = (
            freshness_seconds if freshness_seconds is not None
            else config.detection.freshness_seconds
        )
        self.history_limit = (
            history_limit if history_limit is not None else config.detection.history_limit
        )
        self.terrain_buffer_ft = (
            terrain_buffer_ft if terrain_buffer_ft is not None
            else config.detection.terrain_buffer_ft
        )

        self.enabled = True
        self._active: Dict[ViolationKey, Violation] = {}
        self._history: Deque[Violation] = deque(maxlen=self.history_limit)
        self._malformed_reported: Set[str] = set()

    # -------------------------------------------------------------------------
    # Zone classification
    # -------------------------------------------------------------------------

    def is_restricted(self, zone: AirspaceZone) -> bool:
        """Classification, restriction flags, then name keywords."""
        if (zone.classification or '').upper() in self.restricted_classes:
            return True

        if zone.restrictions.by_notam or zone.restrictions.special_agreement:
            return True

        name = (zone.name or '').upper()
        return any(keyword in name for keyword in RESTRICTED_NAME_KEYWORDS)

    @staticmethod
    def is_alertable(zone: AirspaceZone) -> bool:
        """Prohibited, danger and military zones warrant a notification."""
        classification = (zone.classification or '').upper()
        name = (zone.name or '').upper()
        return any(
            keyword in classification or keyword in name
            for keyword in ALERT_KEYWORDS
        )

    def _envelope(self, zone: AirspaceZone) -> _ZoneEnvelope:
        """Validate a zone and resolve its altitude band. Raises MalformedZone."""
        if len(zone.polygon) < 3:
            raise MalformedZone(f'polygon has {len(zone.polygon)} vertices')
        for lon, lat in zone.polygon:
            if not (math.isfinite(lon) and math.isfinite(lat)):
                raise MalformedZone('polygon has a non-finite vertex')

        lower = parse_altitude_ft(zone.lower.value, zone.lower.is_agl, self.terrain_buffer_ft)
        upper = parse_altitude_ft(zone.upper.value, zone.upper.is_agl, self.terrain_buffer_ft)
        return _ZoneEnvelope(zone, lower, upper)

    def _restricted_envelopes(self, zones: Sequence[AirspaceZone]) -> List[_ZoneEnvelope]:
        envelopes = []
        for zone in zones:
            if not self.is_restricted(zone):
                continue
            try:
                envelopes.append(self._envelope(zone))
            except MalformedZone as e:
                if zone.id not in self._malformed_reported:
                    self._malformed_reported.add(zone.id)
                    logger.warning(f'Skipping airspace {zone.id} ({zone.name}): {e}')
        return envelopes

    # -------------------------------------------------------------------------
    # Containment
    # -------------------------------------------------------------------------

    @staticmethod
    def _contains(envelope: _ZoneEnvelope, entity: TrackedEntity) -> bool:
        altitude_m = entity.position.altitude
        if altitude_m is None:
            return False

        altitude_ft = altitude_m * METERS_TO_FEET
        if altitude_ft < envelope.lower_ft or altitude_ft > envelope.upper_ft:
            return False

        return point_in_polygon(
            entity.position.longitude,
            entity.position.latitude,
            envelope.zone.polygon,
        )

    def contains(self, zone: AirspaceZone, entity: TrackedEntity) -> bool:
        """Altitude band and polygon test for one pair. Raises MalformedZone."""
        return self._contains(self._envelope(zone), entity)

    # -------------------------------------------------------------------------
    # Cycle
    # -------------------------------------------------------------------------

    def check_violations(
        self,
        entities: Iterable[TrackedEntity],
        zones: Sequence[AirspaceZone],
        now: float,
    ) -> ViolationCheckResult:
        """
        Evaluate all active entities against all restricted zones.

        Returns violations opened and resolved by this cycle.
        """
        result = ViolationCheckResult()
        if not self.enabled:
            return result

        envelopes = self._restricted_envelopes(zones)
        contained: Set[ViolationKey] = set()

        for entity in entities:
            if entity.position is None or not entity.is_active(now, self.freshness_seconds):
                continue

            for envelope in envelopes:
                if not self._contains(envelope, entity):
                    continue

                key = (entity.id, envelope.zone.id)
                contained.add(key)
                if key in self._active:
                    continue

                violation = Violation(
                    id=f'{entity.id}_{envelope.zone.id}_{int(now * 1000)}',
                    entity_id=entity.id,
                    zone_id=envelope.zone.id,
                    zone_name=envelope.zone.name,
                    zone_classification=envelope.zone.classification,
                    callsign=entity.callsign,
                    detected_at=now,
                    alertable=self.is_alertable(envelope.zone),
                )
                self._active[key] = violation
                self._history.append(violation)
                result.detected.append(violation)
                logger.warning(
                    f'Airspace violation detected: {entity.display_callsign} '
                    f'entered {envelope.zone.name}'
                )

        for key in [k for k in self._active if k not in contained]:
            violation = self._active.pop(key)
            violation.resolve(now)
            result.resolved.append(violation)
            logger.info(
                f'Airspace violation resolved: {violation.callsign or violation.entity_id} '
                f'exited {violation.zone_name}'
            )

        return result

    # -------------------------------------------------------------------------
    # Query surface
    # -------------------------------------------------------------------------

    def active_violations(self) -> List[Violation]:
        return list(self._active.values())

    def history(self) -> List[Violation]:
        return list(self._history)

    def recent_violations(self, now: float, hours: float = 24) -> List[Violation]:
        cutoff = now - hours * 3600
        return [v for v in self._history if v.detected_at >= cutoff]

    def statistics(self, now: float) -> dict:
        by_classification: Dict[str, int] = {}
        by_zone: Dict[str, int] = {}
        for violation in self._history:
            classification = violation.zone_classification or 'Unknown'
            by_classification[classification] = by_classification.get(classification, 0) + 1
            by_zone[violation.zone_name] = by_zone.get(violation.zone_name, 0) + 1

        return {
            'active_violations': len(self._active),
            'total_violations': len(self._history),
            'by_classification': by_classification,
            'by_zone': by_zone,
            'recent_violations': len(self.recent_violations(now)),
        }

    # -------------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------------

    def set_enabled(self, enabled: bool) -> None:
        """Disabling also drops active violations."""
        self.enabled = enabled
        if not enabled:
            self._active.clear()
        logger.info(f'Violation detection {"enabled" if enabled else "disabled"}')

    def set_restricted_classes(self, classes: Iterable[str]) -> None:
        self.restricted_classes = {c.upper() for c in classes}
        logger.info(f'Restricted airspace classes updated: {sorted(self.restricted_classes)}')

    def clear_history(self) -> None:
        self._history.clear()
        logger.info('Violation history cleared')

    def reset(self) -> None:
        """Discard active violations and history."""
        self._active.clear()
        self._history.clear()
