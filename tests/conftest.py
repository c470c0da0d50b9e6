import os
from datetime import datetime

# Keep the module-level engine off the developer database
os.environ.setdefault('DATABASE_URL', 'sqlite://')

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from airguard.airspace.detector import ViolationDetector
from airguard.airspace.zones import AirspaceZone, AltitudeBound, AltitudeDatum
from airguard.events import EventBus, EventKind
from airguard.ingestion.opensky_client import BoundingBox, OpenSkyClient
from airguard.ingestion.pipeline import TrackingPipeline
from airguard.ingestion.quota import QuotaStore
from airguard.models import init_db
from airguard.tracking.entity import Position, TrackedEntity, Velocity
from airguard.tracking.lifecycle import AircraftLifecycleManager

# Local noon, far from the midnight quota rollover
T0 = datetime(2026, 10, 19, 12, 0, 0).timestamp()


class FakeClock:
    """Manually advanced time source; sleep() advances it too."""

    def __init__(self, start: float = T0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeResponse:
    def __init__(self, status_code=200, payload=None, reason='OK', invalid_json=False):
        self.status_code = status_code
        self.reason = reason
        self._payload = payload
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError('No JSON object could be decoded')
        return self._payload


class FakeSession:
    """
    Stands in for requests.Session.

    Each get() consumes the next queued item: a FakeResponse is returned,
    an exception instance is raised.
    """

    def __init__(self, responses=()):
        self.responses = list(responses)
        self.calls = []

    def queue(self, *responses) -> None:
        self.responses.extend(responses)

    def get(self, url, **kwargs):
        self.calls.append({'url': url, **kwargs})
        if not self.responses:
            raise AssertionError('Unexpected request to OpenSky')
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def state_row(
    icao24='abc123',
    callsign='DLH123  ',
    longitude=14.5,
    latitude=46.0,
    altitude=3000.0,
    last_contact=None,
    on_ground=False,
    velocity=200.0,
):
    """One raw OpenSky state vector array."""
    return [
        icao24,
        callsign,
        'Germany',
        last_contact,
        last_contact,
        longitude,
        latitude,
        altitude,  # baro_altitude
        on_ground,
        velocity,
        90.0,  # true_track
        0.0,  # vertical_rate
        None,  # sensors
        altitude,  # geo_altitude
        '1000',
        False,
        0,
    ]


def ok_response(states, api_time=None):
    return FakeResponse(200, {'time': api_time or int(T0), 'states': states})


def make_entity(
    entity_id='abc123',
    longitude=14.5,
    latitude=46.0,
    altitude_m=914.4,
    last_contact=T0,
    callsign='DLH123',
):
    return TrackedEntity(
        id=entity_id,
        callsign=callsign,
        origin_country='Germany',
        position=Position(longitude, latitude, altitude_m),
        velocity=Velocity(200.0, 90.0, 0.0),
        on_ground=False,
        squawk=None,
        last_contact_time=last_contact,
        first_seen_time=last_contact,
    )


def make_zone(
    zone_id='z1',
    name='LJD1 Test Area',
    classification='DANGER',
    polygon=((14.0, 45.5), (15.0, 45.5), (15.0, 46.5), (14.0, 46.5), (14.0, 45.5)),
    lower=AltitudeBound('0FT', AltitudeDatum.AGL),
    upper=AltitudeBound('10000FT', AltitudeDatum.AGL),
    **kwargs
):
    return AirspaceZone(
        id=zone_id,
        name=name,
        classification=classification,
        polygon=tuple(polygon),
        lower=lower,
        upper=upper,
        **kwargs
    )


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def quota_store(session_factory):
    return QuotaStore(session_factory)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def http():
    return FakeSession()


@pytest.fixture
def make_client(quota_store, clock, http):
    def factory(**kwargs):
        return OpenSkyClient(
            quota_store=quota_store,
            base_url='https://opensky.test/api',
            session=http,
            clock=clock,
            sleep=clock.sleep,
            **kwargs
        )
    return factory


@pytest.fixture
def make_pipeline(make_client, clock):
    """Factory returning (pipeline, published events)."""
    def factory(zones=(), base_update_interval=30, **client_kwargs):
        bus = EventBus()
        events = []
        for kind in EventKind:
            bus.subscribe(kind, events.append)

        pipeline = TrackingPipeline(
            client=make_client(**client_kwargs),
            lifecycle=AircraftLifecycleManager(
                max_tracked=100,
                cleanup_interval=300,
                trail_length=20,
                min_trail_displacement_m=100,
                interpolation_tolerance=30,
            ),
            detector=ViolationDetector(
                restricted_classes=('DANGER', 'PROHIBITED', 'RESTRICTED'),
                freshness_seconds=300,
                history_limit=1000,
                terrain_buffer_ft=1000,
            ),
            bus=bus,
            bbox=BoundingBox.from_preset('slovenia'),
            zones=zones,
            base_update_interval=base_update_interval,
            region_name='slovenia',
            clock=clock,
        )
        return pipeline, events
    return factory
