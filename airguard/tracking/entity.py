"""
TrackedEntity - live state of one aircraft across snapshots.

An entity owns a bounded trail of confirmed fixes and the interpolation
window built from the last two of them. Fix timestamps are the reconcile
time, so the trail is ordered by construction.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

from airguard.geo import haversine_distance
from airguard.tracking.classifier import AircraftCategory, classify

if TYPE_CHECKING:
    from airguard.ingestion.opensky_client import StateVector

METERS_TO_FEET = 3.28084
MPS_TO_KNOTS = 1.94384
MPS_TO_FPM = 196.85


@dataclass(frozen=True)
class Position:
    """WGS84 position; altitude in meters, None if not reported."""
    longitude: float
    latitude: float
    altitude: Optional[float] = None

    def distance_to(self, other: 'Position') -> float:
        """Great-circle distance in meters (altitude ignored)."""
        return haversine_distance(self.latitude, self.longitude, other.latitude, other.longitude)

    def to_dict(self) -> dict:
        return {
            'longitude': self.longitude,
            'latitude': self.latitude,
            'altitude': self.altitude,
        }


@dataclass(frozen=True)
class Velocity:
    """Ground speed (m/s), track angle (degrees), vertical rate (m/s)."""
    ground_speed: Optional[float] = None
    track: Optional[float] = None
    vertical_rate: Optional[float] = None


@dataclass(frozen=True)
class TrailPoint:
    position: Position
    timestamp: float


@dataclass(frozen=True)
class InterpolationWindow:
    """Two consecutive confirmed fixes and their times."""
    t0: float
    fix0: Position
    t1: float
    fix1: Position

    def position_at(self, time: float, tolerance: float) -> Optional[Position]:
        """
        Linear blend between fix0 and fix1.

        Returns None before t0 or more than tolerance seconds past t1.
        The blend is written as fix0*(1-f) + fix1*f so both ends are
        reproduced exactly.
        """
        if time < self.t0 or time > self.t1 + tolerance:
            return None

        fraction = min(1.0, max(0.0, (time - self.t0) / (self.t1 - self.t0)))

        def blend(a: float, b: float) -> float:
            return a * (1.0 - fraction) + b * fraction

        altitude = None
        if self.fix0.altitude is not None and self.fix1.altitude is not None:
            altitude = blend(self.fix0.altitude, self.fix1.altitude)

        return Position(
            longitude=blend(self.fix0.longitude, self.fix1.longitude),
            latitude=blend(self.fix0.latitude, self.fix1.latitude),
            altitude=altitude,
        )


@dataclass
class TrackedEntity:
    """
    One tracked aircraft, keyed by ICAO24.

    Created from the first snapshot that contains the id with a valid
    position and merged with every later snapshot that contains it.
    """
    id: str
    callsign: Optional[str]
    origin_country: Optional[str]
    position: Position
    velocity: Velocity
    on_ground: bool
    squawk: Optional[str]
    last_contact_time: float
    first_seen_time: float
    category: AircraftCategory = AircraftCategory.UNKNOWN
    update_count: int = 1
    trail: List[TrailPoint] = field(default_factory=list)
    interpolation: Optional[InterpolationWindow] = None

    # Trail policy, set by the lifecycle manager
    max_trail_length: int = field(default=20, repr=False)
    min_displacement_m: float = field(default=100.0, repr=False)

    @classmethod
    def from_state(
        cls,
        state: 'StateVector',
        now: float,
        max_trail_length: int = 20,
        min_displacement_m: float = 100.0,
    ) -> 'TrackedEntity':
        """Build a new entity from its first validated state vector."""
        last_contact = float(state.last_contact) if state.last_contact is not None else now
        position = Position(state.longitude, state.latitude, state.altitude)
        return cls(
            id=state.icao24,
            callsign=state.callsign,
            origin_country=state.origin_country,
            position=position,
            velocity=Velocity(state.velocity, state.true_track, state.vertical_rate),
            on_ground=state.on_ground,
            squawk=state.squawk,
            last_contact_time=last_contact,
            first_seen_time=last_contact,
            category=classify(state.callsign),
            trail=[TrailPoint(position, now)],
            max_trail_length=max_trail_length,
            min_displacement_m=min_displacement_m,
        )

    def apply_state(self, state: 'StateVector', now: float) -> None:
        """Merge a newer state vector for the same aircraft."""
        self.callsign = state.callsign
        self.origin_country = state.origin_country
        self.position = Position(state.longitude, state.latitude, state.altitude)
        self.velocity = Velocity(state.velocity, state.true_track, state.vertical_rate)
        self.on_ground = state.on_ground
        self.squawk = state.squawk
        if state.last_contact is not None:
            self.last_contact_time = float(state.last_contact)
        else:
            self.last_contact_time = now
        self.update_count += 1

        # Callsign may have appeared or changed since the last snapshot
        self.category = classify(state.callsign)

        self.append_fix(self.position, now)

    def append_fix(self, position: Position, timestamp: float) -> bool:
        """
        Append a confirmed fix if it moved far enough from the last one.

        Returns True if the trail grew.
        """
        if self.trail:
            last = self.trail[-1]
            if timestamp < last.timestamp:
                return False
            if last.position.distance_to(position) <= self.min_displacement_m:
                return False

        self.trail.append(TrailPoint(position, timestamp))
        if len(self.trail) > self.max_trail_length:
            del self.trail[0]

        self._update_interpolation()
        return True

    def _update_interpolation(self) -> None:
        if len(self.trail) < 2:
            return
        previous, current = self.trail[-2], self.trail[-1]
        if current.timestamp <= previous.timestamp:
            return
        self.interpolation = InterpolationWindow(
            t0=previous.timestamp,
            fix0=previous.position,
            t1=current.timestamp,
            fix1=current.position,
        )

    def interpolated_position_at(self, time: float, tolerance: float = 30.0) -> Optional[Position]:
        """Smoothed position at time, or None outside the interpolation window."""
        if len(self.trail) < 2 or self.interpolation is None:
            return None
        return self.interpolation.position_at(time, tolerance)

    # -------------------------------------------------------------------------
    # Status and display helpers
    # -------------------------------------------------------------------------

    def contact_age(self, now: float) -> float:
        return now - self.last_contact_time

    def is_active(self, now: float, max_age_seconds: float = 300.0) -> bool:
        """Contact within the freshness threshold."""
        return self.contact_age(now) <= max_age_seconds

    @property
    def altitude_ft(self) -> Optional[float]:
        if self.position.altitude is None:
            return None
        return self.position.altitude * METERS_TO_FEET

    @property
    def speed_kts(self) -> Optional[float]:
        if self.velocity.ground_speed is None:
            return None
        return self.velocity.ground_speed * MPS_TO_KNOTS

    @property
    def vertical_rate_fpm(self) -> Optional[float]:
        if self.velocity.vertical_rate is None:
            return None
        return self.velocity.vertical_rate * MPS_TO_FPM

    @property
    def display_callsign(self) -> str:
        """Callsign for display, with fallback."""
        return (self.callsign or '').strip() or self.id.upper()

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict for API responses."""
        return {
            'id': self.id,
            'callsign': self.display_callsign,
            'origin_country': self.origin_country,
            'category': self.category.value,
            'position': self.position.to_dict(),
            'telemetry': {
                'altitude_ft': round(self.altitude_ft) if self.altitude_ft is not None else None,
                'speed_kts': round(self.speed_kts) if self.speed_kts is not None else None,
                'track': self.velocity.track,
                'vertical_rate_fpm': (
                    round(self.vertical_rate_fpm) if self.vertical_rate_fpm is not None else None
                ),
            },
            'status': {
                'on_ground': self.on_ground,
                'squawk': self.squawk,
            },
            'trail': [
                {**point.position.to_dict(), 'timestamp': point.timestamp}
                for point in self.trail
            ],
            'timestamps': {
                'first_seen': self.first_seen_time,
                'last_contact': self.last_contact_time,
            },
            'update_count': self.update_count,
        }
