import math

import pytest
import requests

from airguard.errors import AuthDenied, MalformedRecord, QuotaExceeded, TransientError
from airguard.ingestion.opensky_client import BoundingBox, StateVector, parse_states

from conftest import T0, FakeResponse, ok_response, state_row


def test_exhausted_quota_fails_without_network_call(make_client, http):
    client = make_client(daily_limit=400)
    client.quota.requests_used = 400

    assert client.can_request() is False
    with pytest.raises(QuotaExceeded) as exc:
        client.fetch_snapshot()

    assert http.calls == []
    assert exc.value.remote is False
    assert exc.value.retry_after > 0


def test_successful_fetch_parses_states(make_client, http):
    client = make_client()
    http.queue(ok_response([state_row(last_contact=int(T0))]))

    snapshot = client.fetch_snapshot(BoundingBox.from_preset('slovenia'))

    assert len(snapshot.states) == 1
    state = snapshot.states[0]
    assert state.icao24 == 'abc123'
    assert state.callsign == 'DLH123'
    assert state.altitude == 3000.0
    assert http.calls[0]['url'] == 'https://opensky.test/api/states/all'
    assert http.calls[0]['params']['lamin'] == 45.4
    assert http.calls[0]['timeout'] == 10.0
    assert client.is_online is True
    assert client.quota.requests_used == 1


def test_requests_are_spaced_by_min_interval(make_client, http, clock):
    client = make_client(min_request_interval=30)
    http.queue(ok_response([]), ok_response([]))

    client.fetch_snapshot()
    assert client.time_until_next_request() == 30

    clock.advance(29)
    with pytest.raises(QuotaExceeded):
        client.fetch_snapshot()
    assert len(http.calls) == 1

    clock.advance(1)
    client.fetch_snapshot()
    assert len(http.calls) == 2


def test_transient_failures_retry_with_backoff(make_client, http, clock):
    client = make_client(retry_attempts=3)
    http.queue(*[FakeResponse(503, reason='Service Unavailable') for _ in range(4)])

    with pytest.raises(TransientError) as exc:
        client.fetch_snapshot()

    assert exc.value.status_code == 503
    assert clock.sleeps == [2, 4, 8]
    assert len(http.calls) == 4
    assert client.is_online is False
    assert client.consecutive_errors == 1
    assert 'HTTP 503' in client.last_error
    # Every attempt is charged
    assert client.quota.requests_used == 4


def test_transient_failure_then_success(make_client, http, clock):
    client = make_client()
    http.queue(
        requests.exceptions.ConnectionError('connection reset'),
        ok_response([state_row(last_contact=int(T0))]),
    )

    snapshot = client.fetch_snapshot()

    assert len(snapshot.states) == 1
    assert clock.sleeps == [2]
    assert client.is_online is True
    assert client.consecutive_errors == 0
    assert client.last_error is None


def test_timeout_is_transient(make_client, http):
    client = make_client(retry_attempts=0, timeout_ms=5000)
    http.queue(requests.exceptions.Timeout('read timed out'))

    with pytest.raises(TransientError, match='Request timeout after 5000ms'):
        client.fetch_snapshot()


def test_auth_denied_is_not_retried(make_client, http, clock):
    client = make_client(retry_attempts=3)
    http.queue(FakeResponse(401, reason='Unauthorized'))

    with pytest.raises(AuthDenied) as exc:
        client.fetch_snapshot()

    assert exc.value.status_code == 401
    assert len(http.calls) == 1
    assert clock.sleeps == []
    assert client.is_online is False


def test_remote_rate_limit_is_not_retried(make_client, http, clock):
    client = make_client()
    http.queue(FakeResponse(429, reason='Too Many Requests'))

    with pytest.raises(QuotaExceeded) as exc:
        client.fetch_snapshot()

    assert exc.value.remote is True
    assert len(http.calls) == 1
    assert clock.sleeps == []


def test_invalid_json_is_transient(make_client, http):
    client = make_client(retry_attempts=0)
    http.queue(FakeResponse(200, invalid_json=True))

    with pytest.raises(TransientError):
        client.fetch_snapshot()


def test_null_states_is_empty_snapshot(make_client, http):
    client = make_client()
    http.queue(FakeResponse(200, {'time': int(T0), 'states': None}))

    snapshot = client.fetch_snapshot()

    assert snapshot.states == []
    assert snapshot.raw_count == 0


def test_usage_stats(make_client, http):
    client = make_client(daily_limit=10)
    http.queue(ok_response([]))
    client.fetch_snapshot()

    stats = client.usage_stats()

    assert stats['requests_used'] == 1
    assert stats['requests_remaining'] == 9
    assert stats['daily_limit_reached'] is False
    assert stats['time_until_next_request'] == 30.0
    assert stats['is_online'] is True


def test_parse_states_drops_invalid_records():
    fetch_time = T0
    rows = [
        state_row('aaa111', last_contact=int(T0)),
        state_row(None, last_contact=int(T0)),
        state_row('', last_contact=int(T0)),
        state_row('bbb222', longitude=math.nan, last_contact=int(T0)),
        state_row('ccc333', latitude=None, last_contact=int(T0)),
        state_row('ddd444', latitude=95.0, last_contact=int(T0)),
        state_row('eee555', last_contact=int(T0) - 301),
        ['fff666', 'SHORT'],
        'not-an-array',
    ]

    states = parse_states(rows, fetch_time, max_age_seconds=300)

    assert [s.icao24 for s in states] == ['aaa111']


def test_parse_states_skips_badly_typed_fields():
    bad_altitude = state_row('ccc333', last_contact=int(T0))
    bad_altitude[13] = 'high'
    rows = [
        state_row('aaa111', callsign=12345, last_contact=int(T0)),
        state_row('bbb222', last_contact='yesterday'),
        bad_altitude,
        state_row('good01', last_contact=int(T0)),
    ]

    states = parse_states(rows, T0)

    assert [s.icao24 for s in states] == ['good01']


def test_state_vector_requires_identifier():
    with pytest.raises(MalformedRecord):
        StateVector.from_array(state_row(icao24='   '))


def test_state_vector_prefers_geometric_altitude():
    row = state_row(altitude=1000.0)
    row[13] = 1050.0

    assert StateVector.from_array(row).altitude == 1050.0

    row[13] = None
    assert StateVector.from_array(row).altitude == 1000.0


def test_bounding_box_from_center_radius():
    bbox = BoundingBox.from_center_radius(46.0, 14.5, 111.0)

    assert bbox.lat_min == pytest.approx(45.0)
    assert bbox.lat_max == pytest.approx(47.0)
    assert bbox.lon_max - bbox.lon_min > 2.0


def test_unknown_region_preset():
    with pytest.raises(ValueError):
        BoundingBox.from_preset('atlantis')
