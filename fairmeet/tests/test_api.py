import pytest

from fairmeet.app import create_app
from fairmeet.config import Settings

from conftest import P1_START, P2_START, FakeMaps, make_place


@pytest.fixture
def client(fake_maps):
    app = create_app(Settings(google_maps_api_key='test-key'), maps_service=fake_maps)
    app.testing = True
    return app.test_client()


@pytest.fixture
def unconfigured_client():
    app = create_app(Settings(google_maps_api_key=None))
    return app.test_client()


def _rank_payload(**overrides):
    payload = {
        'title': 'Friday dinner',
        'participants': [
            {'id': 'p1', 'name': 'Ana', 'start': {'type': 'address', 'query': 'Ferry Building, San Francisco'}},
            {'id': 'p2', 'name': 'Ben', 'start': {'type': 'coordinate', 'lat': P2_START.lat,
                                                  'lng': P2_START.lng, 'label': 'Office'}},
        ],
        'mode': 'drive',
        'category': 'restaurant',
        'preferences': {'food_types': ['sushi', 'ramen', 'thai', 'pizza', 'tacos']},
    }
    payload.update(overrides)
    return payload


def test_health_check(client):
    response = client.get('/')
    assert response.status_code == 200
    assert response.get_json()['status'] == 'healthy'
    assert 'X-Process-Time-ms' in response.headers


def test_geocoding(client):
    response = client.post('/api/geocode', json={'address': 'Lake Merritt, Oakland'})
    assert response.status_code == 200
    data = response.get_json()
    assert data['success']
    assert data['data']['lat'] == P2_START.lat


def test_geocoding_errors(client):
    assert client.post('/api/geocode', json={}).status_code == 400
    response = client.post('/api/geocode', json={'address': 'Nowhere at all'})
    assert response.status_code == 404
    assert response.get_json()['success'] is False


def test_travel_time(client, place_a):
    payload = {
        'origin': P1_START.to_dict(),
        'destination': place_a.coordinate.to_dict(),
        'mode': 'drive',
    }
    response = client.post('/api/travel-time', json=payload)
    assert response.status_code == 200
    assert response.get_json()['data'] == {
        'mode': 'drive',
        'travel_time_seconds': 600.0,
        'travel_time_minutes': 10.0,
    }


def test_travel_time_validation(client, place_a):
    assert client.post('/api/travel-time', json={'origin': {'lat': 1}}).status_code == 400
    response = client.post('/api/travel-time', json={
        'origin': P1_START.to_dict(), 'destination': place_a.coordinate.to_dict(), 'mode': 'rocket'
    })
    assert response.status_code == 400


def test_travel_time_without_route(client):
    response = client.post('/api/travel-time', json={
        'origin': {'lat': 0, 'lng': 0}, 'destination': {'lat': 1, 'lng': 1}
    })
    assert response.status_code == 404
    assert response.get_json()['success'] is False


def test_rank(client):
    response = client.post('/api/rank', json=_rank_payload())
    assert response.status_code == 200
    data = response.get_json()['data']

    ranked = data['ranked_places']
    assert [p['id'] for p in ranked] == ['b', 'a']
    assert ranked[0]['combined_score'] == pytest.approx(0.14375)
    assert ranked[1]['combined_score'] == pytest.approx(0.15875)
    assert ranked[1]['travel_times_seconds'] == {'p1': 600.0, 'p2': 1200.0}
    assert ranked[1]['complete'] is True
    assert data['participants'][1]['start_label'] == 'Office'
    assert data['candidates_considered'] == 2
    assert 'X-Compute-Time-ms' in response.headers


def test_rank_uses_current_location(client):
    payload = _rank_payload(current_location=P1_START.to_dict())
    payload['participants'][0]['start'] = {'type': 'current'}
    response = client.post('/api/rank', json=payload)
    assert response.status_code == 200
    assert response.get_json()['data']['participants'][0]['start_label'] == 'Current Location'


def test_rank_reports_unresolved_locations(client):
    payload = _rank_payload()
    payload['participants'][0]['start'] = {'type': 'address', 'query': 'Nowhere at all'}
    response = client.post('/api/rank', json=payload)
    assert response.status_code == 400
    assert 'p1' in response.get_json()['participant_errors']


@pytest.mark.parametrize('overrides', [
    {'participants': []},
    {'participants': 'Ana and Ben'},
    {'mode': 'teleport'},
    {'category': 'spa'},
])
def test_rank_validation(client, overrides):
    assert client.post('/api/rank', json=_rank_payload(**overrides)).status_code == 400


def test_rank_with_no_candidates():
    app = create_app(Settings(google_maps_api_key='test-key'), maps_service=FakeMaps(
        addresses={'Ferry Building, San Francisco': P1_START}
    ))
    response = app.test_client().post('/api/rank', json=_rank_payload())
    assert response.status_code == 404
    assert response.get_json()['success'] is False


def test_transit_hubs(client, fake_maps):
    fake_maps.places.append(make_place('oak', 'Oakland International Airport', 37.71, -122.21))
    response = client.post('/api/transit-hubs', json={'locations': [
        {'type': 'address', 'query': 'Ferry Building, San Francisco'},
        {'type': 'coordinate', 'lat': P2_START.lat, 'lng': P2_START.lng},
    ]})
    assert response.status_code == 200
    hubs = response.get_json()['data']['transit_hubs']
    assert [h['id'] for h in hubs] == ['oak']
    assert hubs[0]['distance_from_midpoint_km'] > 0


def test_transit_hubs_validation(client):
    assert client.post('/api/transit-hubs', json={'locations': []}).status_code == 400
    response = client.post('/api/transit-hubs', json={'locations': [{'type': 'current'}]})
    assert response.status_code == 400


def test_unconfigured_service(unconfigured_client):
    assert unconfigured_client.post('/api/rank', json=_rank_payload()).status_code == 500
    assert unconfigured_client.post('/api/geocode', json={'address': 'x'}).status_code == 500
    config = unconfigured_client.get('/api/config').get_json()['data']
    assert config['googleMapsApiKey'] is None
    assert 'flight' in config['travelModes']


def test_unknown_endpoint(client):
    response = client.get('/api/nope')
    assert response.status_code == 404
    assert response.get_json()['error'] == 'Endpoint not found'


def test_travel_times_are_cached_between_requests(client, fake_maps, place_a):
    payload = {'origin': P1_START.to_dict(), 'destination': place_a.coordinate.to_dict()}
    for _ in range(2):
        assert client.post('/api/travel-time', json=payload).status_code == 200
    assert len(fake_maps.route_calls) == 1
    stats = client.application.extensions['fairmeet']['travel_times'].cache_stats()
    assert stats['hits'] == 1


def test_activities_filtered_by_preferences(client, fake_maps):
    response = client.post('/api/activities', json={
        'location': {'type': 'address', 'query': 'Ferry Building, San Francisco'},
        'category': 'restaurant',
        'preferences': {'food_types': ['sushi']},
    })
    assert response.status_code == 200
    data = response.get_json()['data']
    assert [p['id'] for p in data['places']] == ['a']
    assert data['center'] == P1_START.to_dict()
    assert data['category'] == 'restaurant'
    assert fake_maps.search_calls[0]['radius'] == 5000


def test_activities_without_preferences(client, fake_maps):
    response = client.post('/api/activities', json={
        'location': {'type': 'current'},
        'current_location': P2_START.to_dict(),
        'query': 'bowling',
        'radius': 2000,
    })
    assert response.status_code == 200
    assert [p['id'] for p in response.get_json()['data']['places']] == ['a', 'b']
    assert fake_maps.search_calls[0]['category'].value == 'activity'


def test_activities_validation(client):
    assert client.post('/api/activities', json={}).status_code == 400
    assert client.post('/api/activities', json={'location': {'type': 'current'}}).status_code == 400
    response = client.post('/api/activities', json={
        'location': {'type': 'address', 'query': 'Union Square'}, 'radius': -1
    })
    assert response.status_code == 400
    response = client.post('/api/activities', json={
        'location': {'type': 'address', 'query': 'Union Square'}, 'category': 'spa'
    })
    assert response.status_code == 400
