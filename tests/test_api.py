import pytest

from airguard.app import create_app

from conftest import T0, make_zone, ok_response, state_row

ZONES_GEOJSON = {
    'type': 'FeatureCollection',
    'features': [{
        'type': 'Feature',
        'id': 'ljp1',
        'properties': {
            'name': 'LJP1 Krsko',
            'icaoClass': 6,
            'type': 'PROHIBITED',
            'lowerLimit': {'value': 0, 'unit': 1, 'referenceDatum': 0},
            'upperLimit': {'value': 100, 'unit': 6, 'referenceDatum': 2},
        },
        'geometry': {
            'type': 'Polygon',
            'coordinates': [[[15.4, 45.9], [15.6, 45.9], [15.6, 46.0], [15.4, 46.0], [15.4, 45.9]]],
        },
    }],
}


@pytest.fixture
def pipeline(make_pipeline):
    pipeline, _ = make_pipeline(zones=[make_zone()])
    yield pipeline
    pipeline.stop()


@pytest.fixture
def client(pipeline):
    app = create_app(start_tracking=False, pipeline=pipeline)
    app.config['TESTING'] = True
    return app.test_client()


@pytest.fixture
def tracked(pipeline, http):
    http.queue(ok_response([
        state_row('abc123', 'DLH123', altitude=900.0, last_contact=int(T0)),
        state_row('def456', 'RYR9ZX', longitude=16.0, altitude=10000.0, last_contact=int(T0)),
    ]))
    pipeline.run_cycle()
    return pipeline


def test_health(client):
    response = client.get('/health')

    assert response.status_code == 200
    assert response.get_json() == {'status': 'ok', 'tracking': 'stopped'}


def test_tracking_status(client):
    response = client.get('/api/tracking/status')

    assert response.status_code == 200
    data = response.get_json()
    assert data['tracking']['status'] == 'stopped'
    assert data['tracking']['region'] == 'slovenia'
    assert data['tracking']['quota']['daily_limit'] == 400


def test_quota(client):
    data = client.get('/api/tracking/quota').get_json()

    assert data['requests_used'] == 0
    assert data['requests_remaining'] == 400


def test_list_and_search_aircraft(client, tracked):
    data = client.get('/api/aircraft').get_json()
    assert data['count'] == 2

    data = client.get('/api/aircraft?q=ryr').get_json()
    assert [a['id'] for a in data['aircraft']] == ['def456']


def test_aircraft_sorted_by_altitude(client, tracked):
    data = client.get('/api/aircraft?sort=altitude').get_json()

    assert [a['id'] for a in data['aircraft']] == ['def456', 'abc123']


def test_get_aircraft(client, tracked):
    response = client.get(f'/api/aircraft/ABC123?at={T0}')

    assert response.status_code == 200
    data = response.get_json()
    assert data['id'] == 'abc123'
    assert data['callsign'] == 'DLH123'
    # A single fix has no interpolation window yet
    assert data['interpolated_position'] is None


def test_get_unknown_aircraft(client):
    response = client.get('/api/aircraft/ffffff')

    assert response.status_code == 404


def test_violations(client, tracked):
    data = client.get('/api/violations').get_json()
    assert data['count'] == 1
    assert data['violations'][0]['entity_id'] == 'abc123'
    assert data['violations'][0]['alertable'] is True

    history = client.get('/api/violations/history').get_json()
    assert history['count'] == 1

    stats = client.get('/api/violations/stats').get_json()
    assert stats['active_violations'] == 1
    assert stats['by_zone'] == {'LJD1 Test Area': 1}


def test_replace_zones(client, pipeline):
    response = client.post('/api/airspace/zones', json=ZONES_GEOJSON)

    assert response.status_code == 200
    assert response.get_json()['count'] == 1
    assert [z.id for z in pipeline.zones] == ['ljp1']

    data = client.get('/api/airspace/zones').get_json()
    assert data['zones'][0]['name'] == 'LJP1 Krsko'
    # Class G with no restriction flags or keywords
    assert data['zones'][0]['restricted'] is False


def test_replace_zones_rejects_invalid_body(client):
    assert client.post('/api/airspace/zones', data='nope', content_type='text/plain').status_code == 400
    assert client.post('/api/airspace/zones', json={'type': 'Feature'}).status_code == 400


def test_resume_when_stopped_conflicts(client):
    response = client.post('/api/tracking/resume')

    assert response.status_code == 409
    assert response.get_json()['success'] is False


def test_start_and_stop(client, pipeline):
    # Gate closed until midnight, so no request is made
    pipeline.client.quota.requests_used = pipeline.client.daily_limit

    response = client.post('/api/tracking/start')
    assert response.status_code == 200
    assert response.get_json()['status'] == 'running'

    response = client.post('/api/tracking/stop')
    assert response.status_code == 200
    assert response.get_json()['status'] == 'stopped'


def test_connection_with_closed_gate(client, pipeline, http):
    pipeline.client.quota.requests_used = pipeline.client.daily_limit

    response = client.post('/api/tracking/test-connection')

    assert response.status_code == 503
    assert response.get_json()['error'] == 'QuotaExceeded'
    assert http.calls == []
