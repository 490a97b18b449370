import pytest
import json

from app import app
from rate_data import RateDataProvider


@pytest.fixture
def client(provider):
    app.config['TESTING'] = True
    original = app.config['RATE_DATA']
    app.config['RATE_DATA'] = provider
    with app.test_client() as client:
        yield client
    app.config['RATE_DATA'] = original


@pytest.fixture
def empty_client(tmp_path):
    app.config['TESTING'] = True
    original = app.config['RATE_DATA']
    app.config['RATE_DATA'] = RateDataProvider(tmp_path / 'no-data')
    with app.test_client() as client:
        yield client
    app.config['RATE_DATA'] = original


def _search(client, **payload):
    response = client.post('/api/search', json=payload)
    return response.status_code, json.loads(response.data)


@pytest.mark.parametrize('method', ['get', 'put', 'patch', 'delete', 'options'])
def test_non_post_returns_usage_hint(client, method):
    """Non-POST requests are not errors; they describe the expected body."""
    response = getattr(client, method)('/api/search')
    assert response.status_code == 200
    data = json.loads(response.data)
    assert data['ok'] is True
    assert 'pincode' in data['msg'] and 'weightKg' in data['msg']


def test_index_page(client):
    response = client.get('/')
    assert response.status_code == 200
    assert b'/api/search' in response.data


def test_normal_quote(client):
    status, data = _search(client, pincode='500001', weightKg=0.7, serviceType='normal')
    assert status == 200
    assert data == {
        'ok': True,
        'areaName': 'Abids',
        'category': 'Local',
        'categoryLabel': 'Local (HYD)',
        'serviceType': 'Normal',
        'price': 170,
        'weightGrams': 700,
        'transportMode': None,
    }


def test_normal_quote_per_kg(client):
    status, data = _search(client, pincode='400001', weightKg=5.001, serviceType='normal', transportMode='air')
    assert status == 200
    assert data['price'] == 6 * 200
    assert data['transportMode'] == 'air'


def test_normal_quote_air_not_offered(client):
    status, data = _search(client, pincode='500001', weightKg=6, serviceType='normal', transportMode='air')
    assert status == 400
    assert data['ok'] is False
    assert 'not available' in data['msg']


def test_urgent_quote_range_row(client):
    status, data = _search(client, pincode='500001', weightKg=0.2, serviceType='urgent')
    assert status == 200
    assert data['serviceType'] == 'Urgent'
    assert data['price'] == 90


def test_urgent_quote_band_columns(client):
    status, data = _search(client, pincode='400001', weightKg=0.7, serviceType='URGENT')
    assert status == 200
    assert data['category'] == 'MetroTier1'
    assert data['price'] == 300


def test_urgent_price_not_available(client):
    status, data = _search(client, pincode='500001', weightKg=0.7, serviceType='urgent')
    assert status == 404
    assert data == {'ok': False, 'msg': 'Urgent price not available for this weight/category.'}


def test_urgent_no_destination_for_category(client):
    status, data = _search(client, pincode='600001', weightKg=0.2, serviceType='urgent')
    assert status == 404


def test_pincode_not_found(client):
    status, data = _search(client, pincode='123456', weightKg=1, serviceType='normal')
    assert status == 404
    assert data['msg'] == 'Pincode not found in pincode file'


def test_missing_category_for_pincode(client):
    status, data = _search(client, pincode='999999', weightKg=1, serviceType='normal')
    assert status == 500
    assert data['ok'] is False


@pytest.mark.parametrize('payload', [
    {},
    {'pincode': '500001', 'serviceType': 'normal'},
    {'pincode': '500001', 'weightKg': 0, 'serviceType': 'normal'},
    {'pincode': '', 'weightKg': 1, 'serviceType': 'normal'},
    {'pincode': '500001', 'weightKg': 1},
])
def test_missing_params(client, payload):
    status, data = _search(client, **payload)
    assert status == 400
    assert data['msg'] == 'Missing required params: pincode, weightKg, serviceType'


@pytest.mark.parametrize('payload', [
    {'pincode': '500001', 'weightKg': 'heavy', 'serviceType': 'normal'},
    {'pincode': '500001', 'weightKg': -2, 'serviceType': 'normal'},
    {'pincode': '500001', 'weightKg': 'nan', 'serviceType': 'normal'},
    {'pincode': '500001', 'weightKg': 1e306, 'serviceType': 'normal'},
    {'pincode': '500001', 'weightKg': 1, 'serviceType': 'express'},
    {'pincode': '500001', 'weightKg': 6, 'serviceType': 'normal', 'transportMode': 'sea'},
])
def test_invalid_params(client, payload):
    status, data = _search(client, **payload)
    assert status == 400
    assert data['ok'] is False


def test_non_json_body(client):
    response = client.post('/api/search', data='pincode=500001', content_type='text/plain')
    assert response.status_code == 400


def test_missing_rate_data(empty_client):
    status, data = _search(empty_client, pincode='500001', weightKg=1, serviceType='normal')
    assert status == 500
    assert data['ok'] is False
    assert 'not found' in data['msg']


def test_missing_rate_data_reported_before_input_errors(empty_client):
    status, data = _search(empty_client)
    assert status == 500


def test_same_request_same_response(client):
    first = _search(client, pincode='600001', weightKg=2.3, serviceType='normal')
    second = _search(client, pincode='600001', weightKg=2.3, serviceType='normal')
    assert first == second
    # Chennai: 180 + ceil(1800 / 500) * 110
    assert first[1]['price'] == 180 + 4 * 110


def test_unexpected_error_is_json(client, monkeypatch):
    def broken_find(pincode):
        raise RuntimeError('boom')

    client.application.config['RATE_DATA'].ensure_loaded()
    monkeypatch.setattr(client.application.config['RATE_DATA'], 'find_pincode', broken_find)
    status, data = _search(client, pincode='500001', weightKg=1, serviceType='normal')
    assert status == 500
    assert data == {'ok': False, 'msg': 'boom'}


def test_overflowing_weight_is_a_validation_error(client):
    status, data = _search(client, pincode='500001', weightKg=1e306, serviceType='urgent')
    assert status == 400
    assert data == {'ok': False, 'msg': 'weightKg is too large'}
