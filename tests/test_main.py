import pytest
import requests

from conftest import eastward_payloads, make_snapshots
from fakes import FakeResponse, FakeSession
from driftline.cache import TTLCache
from driftline.intelligence.pipeline import build_constellation
from driftline.main import create_app
from driftline.objects.openmeteo import WindObservation


class StubDaemon:
    def __init__(self, constellation=None):
        self.constellation = constellation
        self.last_error = None
        self.refreshed = 0

    def refresh(self):
        self.refreshed += 1
        return self.constellation is not None

    def get_status(self):
        return {'is_running': False, 'cycle_count': self.refreshed}


def _weather(lat, lon, altitude_m, hour_offset):
    return WindObservation(speed_kmh=60.0, bearing_deg=90.0, pressure_level='100hPa')


@pytest.fixture
def constellation():
    return build_constellation(make_snapshots(eastward_payloads([-100.0, 0.0, 100.0])))


@pytest.fixture
def upstream():
    return FakeSession(lambda url, params: FakeResponse([[45.0, -122.0, 10.5]]))


@pytest.fixture
def client(constellation, upstream):
    app = create_app(daemon=StubDaemon(constellation), weather=_weather, session=upstream, cache=TTLCache())
    return app.test_client()


@pytest.fixture
def empty_client(upstream):
    return create_app(daemon=StubDaemon(), weather=_weather, session=upstream).test_client()


def test_hour_proxy_relays_payload_with_headers(client, upstream):
    resp = client.get('/api/05.json')
    assert resp.status_code == 200
    assert resp.get_json() == [[45.0, -122.0, 10.5]]
    assert resp.headers['Access-Control-Allow-Origin'] == '*'
    assert resp.headers['Access-Control-Allow-Methods'] == 'GET'
    assert resp.headers['Cache-Control'] == 's-maxage=3600, stale-while-revalidate'
    assert upstream.calls[0]['url'].endswith('/05.json')

    client.get('/api/05.json')
    assert len(upstream.calls) == 1


@pytest.mark.parametrize("path", ['/api/5.json', '/api/123.json', '/api/ab.json'])
def test_hour_proxy_rejects_bad_names(client, path):
    resp = client.get(path)
    assert resp.status_code == 400
    assert resp.get_json() == {'error': 'Invalid hour parameter'}


def test_hour_proxy_only_serves_json_names(client, upstream):
    assert client.get('/api/05.txt').status_code == 404
    assert client.get('/api/05').status_code == 404
    assert upstream.calls == []


def test_refresh_is_post_only(client):
    assert client.get('/api/refresh').status_code == 405
    assert client.get('/api/refresh.json').status_code == 400


def test_hour_proxy_relays_upstream_status(constellation):
    session = FakeSession(lambda url, params: FakeResponse(status_code=404, reason='Not Found'))
    client = create_app(daemon=StubDaemon(constellation), weather=_weather, session=session).test_client()

    resp = client.get('/api/07.json')
    assert resp.status_code == 404
    assert resp.get_json() == {'error': 'Failed to fetch data: Not Found'}


def test_hour_proxy_network_failure_is_500(constellation):
    session = FakeSession(lambda url, params: requests.ConnectionError("down"))
    client = create_app(daemon=StubDaemon(constellation), weather=_weather, session=session).test_client()

    resp = client.get('/api/07.json')
    assert resp.status_code == 500
    assert resp.get_json() == {'error': 'Internal server error'}


def test_hour_proxy_bad_upstream_json_is_500(constellation):
    session = FakeSession(lambda url, params: FakeResponse(bad_json=True))
    client = create_app(daemon=StubDaemon(constellation), weather=_weather, session=session).test_client()

    resp = client.get('/api/07.json')
    assert resp.status_code == 500
    assert resp.get_json() == {'error': 'Internal server error'}


def test_refresh_invalidates_proxied_hours(client, upstream):
    client.get('/api/05.json')
    client.get('/api/05.json')
    assert len(upstream.calls) == 1

    assert client.post('/api/refresh').get_json()['published'] is True
    client.get('/api/05.json')
    assert len(upstream.calls) == 2


@pytest.mark.parametrize("path", [
    '/api/balloons', '/api/tracks', '/api/tracks/balloon-0', '/api/clusters', '/api/density',
    '/api/regions', '/api/altitude', '/api/anomalies', '/api/shear', '/api/relationships',
    '/api/drift/balloon-0',
])
def test_analytics_need_data(empty_client, path):
    resp = empty_client.get(path)
    assert resp.status_code == 503
    assert resp.get_json() == {'success': False, 'message': 'No balloon data available'}


def test_status_without_data(empty_client):
    data = empty_client.get('/api/status').get_json()
    assert data['success'] is True
    assert data['summary'] is None


def test_status(client):
    data = client.get('/api/status').get_json()
    assert data['summary']['total_balloons'] == 3


def test_balloons_with_altitude_filter(client):
    data = client.get('/api/balloons').get_json()
    assert data['total'] == 3
    assert data['balloons'][0]['id'] == 'balloon-0'

    assert client.get('/api/balloons?max_alt=10000').get_json()['total'] == 0


def test_tracks_and_time_window(client):
    tracks = client.get('/api/tracks').get_json()['tracks']
    assert len(tracks['balloon-0']) == 26

    window = client.get('/api/tracks?start=0&end=4').get_json()['tracks']
    assert len(window['balloon-0']) == 5

    assert client.get('/api/tracks?start=5&end=1').status_code == 400


def test_track_detail(client):
    data = client.get('/api/tracks/balloon-2').get_json()
    assert data['balloon']['index'] == 2
    assert data['analysis']['speed_tier'] == 'slow'

    assert client.get('/api/tracks/balloon-99').status_code == 404


def test_clusters_with_overrides(client):
    assert client.get('/api/clusters').get_json()['total'] == 0

    data = client.get('/api/clusters?eps=20000&min_pts=2').get_json()
    assert data['total'] == 1
    assert data['clustered'] == 3

    assert client.get('/api/clusters?eps=-1').status_code == 400


def test_density(client):
    data = client.get('/api/density').get_json()
    assert data['stats']['total'] == 3

    coarse = client.get('/api/density?cell_size=180').get_json()
    assert coarse['stats']['cells'] == 2
    assert coarse['top'][0] == {'lat': 0, 'lon': 0, 'count': 2}

    assert client.get('/api/density?cell_size=0').status_code == 400


def test_regions(client):
    data = client.get('/api/regions').get_json()
    assert data['hemispheres'] == {'northern': 3, 'southern': 0}


def test_altitude(client):
    data = client.get('/api/altitude').get_json()
    assert data['mean_m'] == 15000
    assert data['layer'] == 'lower_stratosphere'

    assert client.get('/api/altitude?min_alt=20000').get_json()['mean_m'] == 0


def test_anomalies_and_shear(client):
    data = client.get('/api/anomalies').get_json()
    assert set(data['tracks']) == {'balloon-0', 'balloon-1', 'balloon-2'}
    assert len(data['convergence']) == 3
    assert data['shear_layers'] == []
    assert client.get('/api/shear').get_json()['shear_layers'] == []


def test_relationships(client):
    data = client.get('/api/relationships').get_json()
    assert len(data['relationships']) == 3


def test_drift_against_model(client):
    data = client.get('/api/drift/balloon-1').get_json()
    assert data['pressure_level'] == '100hPa'
    assert data['speed_tier'] == 'slow'
    assert data['model_coverage'] == 24
    segment = data['segments'][0]
    assert segment['error']['speed_error_kmh'] == pytest.approx(-10, abs=1e-6)

    assert client.get('/api/drift/balloon-99').status_code == 404


def test_refresh(client, empty_client):
    assert client.post('/api/refresh').get_json()['published'] is True
    assert empty_client.post('/api/refresh').status_code == 503


class BatchWeather:
    def __init__(self):
        self.batches = []

    def __call__(self, lat, lon, altitude_m, hour_offset):
        raise AssertionError("drift should resolve segments as one batch")

    def lookup_many(self, queries):
        self.batches.append(list(queries))
        return {query: _weather(*query) for query in queries}


def test_drift_resolves_segments_in_one_batch(constellation, upstream):
    weather = BatchWeather()
    client = create_app(daemon=StubDaemon(constellation), weather=weather, session=upstream).test_client()

    data = client.get('/api/drift/balloon-1').get_json()
    assert data['model_coverage'] == 24
    assert len(weather.batches) == 1
    assert len(weather.batches[0]) == 24
