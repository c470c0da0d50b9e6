"""
OpenSky Network API client.

Handles communication with the OpenSky REST API, including:
- Daily request quota and minimum request spacing (persisted via QuotaStore)
- Bounding box queries for geographic filtering
- Failure classification and exponential backoff
- Per-record validation before data reaches the tracker

OpenSky state vector format (array indices):
0: icao24          - ICAO24 hex address
1: callsign        - Callsign (8 chars max)
2: origin_country  - Country of registration
3: time_position   - Unix timestamp of last position update
4: last_contact    - Unix timestamp of last message
5: longitude       - WGS84 longitude
6: latitude        - WGS84 latitude
7: baro_altitude   - Barometric altitude (meters)
8: on_ground       - Boolean
9: velocity        - Ground speed (m/s)
10: true_track     - Track angle (degrees, 0=north)
11: vertical_rate  - Vertical rate (m/s)
12: sensors        - Sensor IDs (array)
13: geo_altitude   - Geometric altitude (meters)
14: squawk         - Transponder code
15: spi            - Special position indicator
16: position_source - 0=ADS-B, 1=ASTERIX, 2=MLAT, 3=FLARM
"""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Optional, List, Any, Callable

import requests
from requests.auth import HTTPBasicAuth

from airguard.config import config, REGION_PRESETS
from airguard.errors import AuthDenied, MalformedRecord, QuotaExceeded, TransientError
from airguard.ingestion.quota import QuotaStore, local_day, seconds_until_local_midnight

logger = logging.getLogger(__name__)


@dataclass
class BoundingBox:
    """
    Geographic bounding box for API queries.

    OpenSky expects: lamin, lomin, lamax, lomax
    (latitude min, longitude min, latitude max, longitude max)
    """
    lat_min: float
    lat_max: float
    lon_min: float
    lon_max: float

    @classmethod
    def from_center_radius(
        cls,
        center_lat: float,
        center_lon: float,
        radius_km: float
    ) -> 'BoundingBox':
        """
        Create bounding box from center point and radius.

        Uses approximate conversion: 1 degree ~ 111 km at equator.
        Adjusts for latitude to account for longitude convergence.
        """
        lat_delta = radius_km / 111.0
        lon_delta = radius_km / (111.0 * abs(math.cos(math.radians(center_lat))))

        return cls(
            lat_min=center_lat - lat_delta,
            lat_max=center_lat + lat_delta,
            lon_min=center_lon - lon_delta,
            lon_max=center_lon + lon_delta,
        )

    @classmethod
    def from_bounds(cls, bounds) -> 'BoundingBox':
        """Build from a (lamin, lomin, lamax, lomax) tuple."""
        lamin, lomin, lamax, lomax = bounds
        return cls(lat_min=lamin, lat_max=lamax, lon_min=lomin, lon_max=lomax)

    @classmethod
    def from_preset(cls, name: str) -> 'BoundingBox':
        """Look up a named region (see config.REGION_PRESETS)."""
        try:
            return cls.from_bounds(REGION_PRESETS[name.lower()])
        except KeyError:
            raise ValueError(f'Unknown region preset: {name}') from None

    def to_params(self) -> dict:
        """Convert to OpenSky API query parameters."""
        return {
            'lamin': self.lat_min,
            'lamax': self.lat_max,
            'lomin': self.lon_min,
            'lomax': self.lon_max,
        }


def _is_valid_coordinate(value: Any, limit: float) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and -limit <= value <= limit


def _optional_number(arr: List[Any], index: int, name: str, icao24: str) -> Optional[float]:
    value = arr[index]
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise MalformedRecord(f'State vector {icao24} has a non-numeric {name}: {value!r}')
    return value


@dataclass
class StateVector:
    """
    Parsed state vector from OpenSky API.

    Normalizes the raw array format into a typed dataclass. Only the
    identifier and coordinates are guaranteed; everything else may be
    None if not reported by the aircraft.
    """
    icao24: str
    callsign: Optional[str]
    origin_country: Optional[str]
    time_position: Optional[int]
    last_contact: Optional[int]
    longitude: float
    latitude: float
    baro_altitude: Optional[float]
    on_ground: bool
    velocity: Optional[float]
    true_track: Optional[float]
    vertical_rate: Optional[float]
    geo_altitude: Optional[float]
    squawk: Optional[str]
    spi: bool
    position_source: Optional[int]

    @classmethod
    def from_array(cls, arr: List[Any]) -> 'StateVector':
        """
        Parse OpenSky state vector array into StateVector object.

        Raises MalformedRecord if the array is malformed, has no
        identifier, or lacks a finite, in-range position.
        """
        if not isinstance(arr, (list, tuple)) or len(arr) < 17:
            raise MalformedRecord('State vector must be an array of at least 17 fields')

        icao24 = arr[0]
        if not icao24 or not isinstance(icao24, str) or not icao24.strip():
            raise MalformedRecord('State vector has no ICAO24 identifier')

        longitude, latitude = arr[5], arr[6]
        if not (_is_valid_coordinate(longitude, 180.0) and _is_valid_coordinate(latitude, 90.0)):
            raise MalformedRecord(f'State vector {icao24} has no valid position')

        # Normalize callsign (strip whitespace, handle None)
        callsign = arr[1]
        if callsign is not None and not isinstance(callsign, str):
            raise MalformedRecord(f'State vector {icao24} has a non-string callsign: {callsign!r}')
        if callsign:
            callsign = callsign.strip() or None

        return cls(
            icao24=icao24.strip().lower(),  # Normalize to lowercase
            callsign=callsign,
            origin_country=arr[2],
            time_position=_optional_number(arr, 3, 'time_position', icao24),
            last_contact=_optional_number(arr, 4, 'last_contact', icao24),
            longitude=float(longitude),
            latitude=float(latitude),
            baro_altitude=_optional_number(arr, 7, 'baro_altitude', icao24),
            on_ground=bool(arr[8]),
            velocity=_optional_number(arr, 9, 'velocity', icao24),
            true_track=_optional_number(arr, 10, 'true_track', icao24),
            vertical_rate=_optional_number(arr, 11, 'vertical_rate', icao24),
            geo_altitude=_optional_number(arr, 13, 'geo_altitude', icao24),
            squawk=arr[14],
            spi=bool(arr[15]),
            position_source=arr[16],
        )

    @property
    def altitude(self) -> Optional[float]:
        """Preferred altitude in meters: geometric if reported, else barometric."""
        return self.geo_altitude if self.geo_altitude is not None else self.baro_altitude


@dataclass
class Snapshot:
    """One validated poll result."""
    api_time: int
    fetched_at: float
    states: List[StateVector] = field(default_factory=list)
    raw_count: int = 0


def parse_states(
    states_raw: List[Any],
    fetch_time: float,
    max_age_seconds: float = 300.0,
) -> List[StateVector]:
    """
    Validate raw state arrays.

    Malformed records are skipped one by one; records whose last contact
    is more than max_age_seconds before fetch_time are dropped as stale.
    """
    states = []
    malformed = 0
    stale = 0

    for arr in states_raw:
        try:
            sv = StateVector.from_array(arr)
        except MalformedRecord as e:
            malformed += 1
            logger.debug(f'Skipping state vector: {e}')
            continue

        if sv.last_contact is not None and fetch_time - sv.last_contact > max_age_seconds:
            stale += 1
            continue

        states.append(sv)

    if malformed or stale:
        logger.debug(f'Dropped {malformed} malformed and {stale} stale state vectors')

    return states


class OpenSkyClient:
    """
    Quota-aware client for the OpenSky Network API.

    Handles:
    - GET requests to /states/all endpoint
    - Daily quota and minimum spacing gate shared by every caller
    - Charging the quota before each attempt, so an interrupted request
      still counts
    - Retry with exponential backoff for transient failures only
    """

    def __init__(
        self,
        quota_store: Optional[QuotaStore] = None,
        base_url: str = 'https://opensky-network.org/api',
        username: Optional[str] = None,
        password: Optional[str] = None,
        daily_limit: int = 400,
        min_request_interval: float = 30.0,
        retry_attempts: int = 3,
        timeout_ms: int = 10000,
        max_record_age: float = 300.0,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.base_url = base_url
        self.auth = None
        if username and password:
            self.auth = HTTPBasicAuth(username, password)
            logger.info('OpenSky client initialized with authentication')
        else:
            logger.info('OpenSky client running without authentication')

        self.session = session or requests.Session()
        self.daily_limit = daily_limit
        self.min_request_interval = min_request_interval
        self.retry_attempts = retry_attempts
        self.timeout_ms = timeout_ms
        self.max_record_age = max_record_age
        self._clock = clock
        self._sleep = sleep

        self.quota_store = quota_store or QuotaStore()
        self.quota = self.quota_store.load(local_day(self._clock()), daily_limit)

        # Error tracking
        self.consecutive_errors: int = 0
        self.last_error: Optional[str] = None
        self.is_online: bool = True

    @classmethod
    def from_config(cls, quota_store: Optional[QuotaStore] = None) -> 'OpenSkyClient':
        """Create client from application configuration."""
        return cls(
            quota_store=quota_store,
            base_url=config.opensky.base_url,
            username=config.opensky.username,
            password=config.opensky.password,
            daily_limit=config.quota.daily_limit,
            min_request_interval=config.quota.min_request_interval,
            retry_attempts=config.opensky.retry_attempts,
            timeout_ms=config.opensky.timeout_ms,
            max_record_age=config.tracking.max_record_age_seconds,
        )

    # -------------------------------------------------------------------------
    # Quota gate
    # -------------------------------------------------------------------------

    def _refresh_day(self, now: float) -> None:
        if self.quota.roll_over(local_day(now)):
            logger.info(f'New day {self.quota.day_marker}, request counter reset')
            self.quota_store.save(self.quota)

    def can_request(self) -> bool:
        """True if both the daily quota and the minimum spacing allow a request."""
        now = self._clock()
        self._refresh_day(now)

        if self.quota.exhausted:
            return False
        return now - self.quota.last_request_time >= self.min_request_interval

    def time_until_next_request(self) -> float:
        """
        Seconds until the gate opens.

        With the quota exhausted this is the time to the next local
        midnight; otherwise the remaining spacing deficit (0 if none).
        """
        now = self._clock()
        self._refresh_day(now)

        if self.quota.exhausted:
            return seconds_until_local_midnight(now)

        elapsed = now - self.quota.last_request_time
        return max(0.0, self.min_request_interval - elapsed)

    def _gate_error(self) -> QuotaExceeded:
        wait = self.time_until_next_request()
        if self.quota.exhausted:
            return QuotaExceeded(
                f'Daily API limit reached ({self.daily_limit} requests). Resets at midnight.',
                retry_after=wait,
            )
        return QuotaExceeded(
            f'Rate limited. Next request allowed in {math.ceil(wait)} seconds.',
            retry_after=wait,
        )

    def usage_stats(self) -> dict:
        """Point-in-time quota and connectivity snapshot."""
        return {
            'requests_used': self.quota.requests_used,
            'requests_remaining': self.quota.remaining,
            'daily_limit': self.daily_limit,
            'daily_limit_reached': self.quota.exhausted,
            'time_until_next_request': round(self.time_until_next_request(), 1),
            'consecutive_errors': self.consecutive_errors,
            'last_error': self.last_error,
            'is_online': self.is_online,
        }

    def reset_daily_counter(self) -> None:
        """Manually zero today's counter (operator override)."""
        self.quota.requests_used = 0
        self.quota_store.save(self.quota)
        logger.info('Daily request counter reset')

    # -------------------------------------------------------------------------
    # Fetching
    # -------------------------------------------------------------------------

    def _request(self, params: dict) -> dict:
        """
        Perform one charged HTTP attempt.

        Returns the decoded payload, or raises QuotaExceeded / AuthDenied /
        TransientError.
        """
        # Charge before the call so a crash mid-flight still counts
        self.quota.charge(self._clock())
        self.quota_store.save(self.quota)

        url = f'{self.base_url}/states/all'
        logger.debug(f'Fetching states: {url} params={params}')

        try:
            response = self.session.get(
                url,
                params=params,
                auth=self.auth,
                headers={'Accept': 'application/json'},
                timeout=self.timeout_ms / 1000.0,
            )
        except requests.exceptions.Timeout:
            raise TransientError(f'Request timeout after {self.timeout_ms}ms') from None
        except requests.exceptions.RequestException as e:
            raise TransientError(f'OpenSky request failed: {e}') from e

        status = response.status_code
        if status == 429:
            raise QuotaExceeded(
                'Rate limit exceeded by OpenSky API',
                retry_after=self.time_until_next_request(),
                remote=True,
            )
        if status in (401, 403):
            raise AuthDenied('Authentication failed or access denied', status_code=status)
        if status >= 400:
            raise TransientError(f'HTTP {status}: {response.reason}', status_code=status)

        try:
            data = response.json()
        except ValueError:
            raise TransientError('Invalid JSON in OpenSky response') from None

        if not isinstance(data, dict):
            raise TransientError('Invalid API response format')

        return data

    def _record_failure(self, error: Exception) -> None:
        self.consecutive_errors += 1
        self.last_error = str(error)
        self.is_online = False

    def fetch_snapshot(self, bbox: Optional[BoundingBox] = None) -> Snapshot:
        """
        Fetch and validate current state vectors.

        Args:
            bbox: Optional bounding box to filter by geography (None = global)

        Returns:
            Snapshot with validated StateVectors

        Raises:
            QuotaExceeded without any network call if the gate is closed,
            or if OpenSky answers 429; AuthDenied on 401/403;
            TransientError after retries are exhausted.
        """
        if not self.can_request():
            raise self._gate_error()

        params = bbox.to_params() if bbox else {}
        last_error: Optional[TransientError] = None

        for attempt in range(self.retry_attempts + 1):
            if attempt:
                delay = 2 ** attempt  # 2s, 4s, 8s
                logger.info(f'Retrying OpenSky request in {delay}s (attempt {attempt}/{self.retry_attempts})')
                self._sleep(delay)
                self._refresh_day(self._clock())
                if self.quota.exhausted:
                    error = self._gate_error()
                    self._record_failure(error)
                    raise error

            try:
                data = self._request(params)
            except (QuotaExceeded, AuthDenied) as e:
                logger.warning(f'OpenSky request rejected: {e}')
                self._record_failure(e)
                raise
            except TransientError as e:
                last_error = e
                logger.warning(f'OpenSky request attempt {attempt + 1} failed: {e}')
                continue

            fetched_at = self._clock()
            states_raw = data.get('states') or []
            states = parse_states(states_raw, fetched_at, self.max_record_age)

            self.consecutive_errors = 0
            self.last_error = None
            self.is_online = True

            logger.info(f'Parsed {len(states)} valid aircraft from {len(states_raw)} states')
            return Snapshot(
                api_time=data.get('time') or int(fetched_at),
                fetched_at=fetched_at,
                states=states,
                raw_count=len(states_raw),
            )

        self._record_failure(last_error)
        raise last_error

    def fetch_in_region(
        self,
        center_lat: float,
        center_lon: float,
        radius_km: float = 50.0,
    ) -> Snapshot:
        """
        Fetch states within radius of a center point.

        Convenience method that constructs bounding box from center + radius.
        """
        bbox = BoundingBox.from_center_radius(center_lat, center_lon, radius_km)
        return self.fetch_snapshot(bbox)
