"""Tests for /api/funnel and /api/progress."""
from unittest.mock import patch

ADDRESS = '123 Main Street, Las Vegas, NV 89101'


def _start(client, **body):
    resp = client.post('/api/funnel', json=body)
    assert resp.status_code == 201
    return resp.get_json()


class TestFunnelApi:
    """Session lifecycle over HTTP."""

    def test_start_with_address(self, client):
        data = _start(client, address=ADDRESS)
        assert data['step']['id'] == 'property-details'
        assert data['ok'] is True
        assert data['sessionId']

    def test_start_without_body(self, client):
        resp = client.post('/api/funnel')
        assert resp.status_code == 201
        assert resp.get_json()['step']['id'] == 'address'

    def test_get_unknown_session(self, client):
        assert client.get('/api/funnel/nope').status_code == 404
        assert client.post('/api/funnel/nope/next').status_code == 404

    def test_validation_error_is_422(self, client):
        sid = _start(client)['sessionId']
        resp = client.post(f'/api/funnel/{sid}/next')
        assert resp.status_code == 422
        assert resp.get_json()['errors'] == {'address': 'Address is required'}

    def test_answer_then_next(self, client):
        sid = _start(client)['sessionId']
        client.post(f'/api/funnel/{sid}/answer', json={'values': {'address': ADDRESS}})
        resp = client.post(f'/api/funnel/{sid}/next')
        assert resp.status_code == 200
        assert resp.get_json()['step']['id'] == 'property-details'

    def test_answer_requires_values_object(self, client):
        sid = _start(client)['sessionId']
        assert client.post(f'/api/funnel/{sid}/answer', json={'values': 'x'}).status_code == 400

    def test_wrong_operation_for_step_is_409(self, client):
        sid = _start(client, address=ADDRESS)['sessionId']
        resp = client.post(f'/api/funnel/{sid}/select', json={'value': 'asap'})
        assert resp.status_code == 409

    def test_toggle_and_back(self, client):
        sid = _start(client, address=ADDRESS)['sessionId']
        client.post(f'/api/funnel/{sid}/next')
        data = client.post(f'/api/funnel/{sid}/toggle', json={'value': 'divorce'}).get_json()
        assert data['formData']['motivations'] == ['divorce']
        data = client.post(f'/api/funnel/{sid}/back').get_json()
        assert data['step']['id'] == 'property-details'
        data = client.post(f'/api/funnel/{sid}/back').get_json()
        assert data['noop'] is True

    def test_select_schedules_auto_advance(self, client):
        sid = _start(client, address=ADDRESS)['sessionId']
        client.post(f'/api/funnel/{sid}/next')
        client.post(f'/api/funnel/{sid}/toggle', json={'value': 'divorce'})
        client.post(f'/api/funnel/{sid}/next')
        data = client.post(f'/api/funnel/{sid}/select', json={'value': 'unsure'}).get_json()
        assert data['pendingAdvance']['stepId'] == 'price-expectations'


class TestProgressApi:
    """Resume banner over HTTP."""

    def test_banner_after_real_progress(self, client):
        sid = _start(client, address=ADDRESS)['sessionId']
        client.post(f'/api/funnel/{sid}/answer', json={'values': {'beds': 3}})
        client.post(f'/api/funnel/{sid}/next')
        data = client.get(f'/api/progress/{sid}').get_json()
        assert data['showBanner'] is True
        assert data['banner']['address'] == ADDRESS

    def test_no_banner_for_address_only(self, client):
        sid = _start(client, address=ADDRESS)['sessionId']
        data = client.get(f'/api/progress/{sid}').get_json()
        assert data == {'showBanner': False, 'banner': None}

    def test_dismiss(self, client, fake_redis):
        sid = _start(client, address=ADDRESS)['sessionId']
        client.post(f'/api/funnel/{sid}/next')
        resp = client.delete(f'/api/progress/{sid}')
        assert resp.status_code == 200
        assert fake_redis.get(f'progress:{sid}') is None
