"""Tests for /health, /api/health, /slots and /property-lookup."""
from unittest.mock import patch


class TestHealth:
    """Liveness and vendor breakers."""

    def test_health(self, client):
        resp = client.get('/health')
        assert resp.status_code == 200
        assert resp.get_json() == {'status': 'healthy'}

    def test_vendor_health(self, client):
        data = client.get('/api/health').get_json()
        assert data['status'] == 'healthy'
        assert data['redis'] == 'ok'
        assert {'ghl', 'attom', 'realtymole', 'sendgrid'} <= set(data['services'])

    def test_open_breaker_is_degraded_and_resettable(self, client, breakers):
        for _ in range(3):
            try:
                breakers['ghl'].call(self._fail)
            except ValueError:
                pass
        data = client.get('/api/health').get_json()
        assert data['status'] == 'degraded'
        assert data['degraded'] == ['ghl']

        resp = client.post('/api/health/ghl/reset')
        assert resp.status_code == 200
        assert resp.get_json()['service']['state'] == 'closed'

    def test_redis_down_is_degraded(self, client, fake_redis):
        with patch.object(fake_redis, 'ping', side_effect=ConnectionError('refused')):
            data = client.get('/api/health').get_json()
        assert data['redis'] == 'unavailable'
        assert data['status'] == 'degraded'

    def test_reset_unknown_service(self, client):
        assert client.post('/api/health/nope/reset').status_code == 404

    def test_recent_submissions(self, client):
        from homemaxx.services.db import persist_submission
        persist_submission('funnel', {'email': 'a@example.com'})
        data = client.get('/api/submissions/recent?limit=5').get_json()
        assert data['submissions'][0]['email'] == 'a@example.com'

    @staticmethod
    def _fail():
        raise ValueError('down')


class TestSlots:
    """GET/POST /slots"""

    def test_read(self, client):
        data = client.get('/slots').get_json()
        assert data['remaining'] == 5
        assert len(data['monthKey']) == 7

    def test_decrement(self, client):
        assert client.post('/slots', json={'action': 'decrement'}).get_json() == {'remaining': 4}
        assert client.get('/slots').get_json()['remaining'] == 4

    def test_never_below_zero(self, client):
        for _ in range(7):
            data = client.post('/slots', json={'action': 'decrement'}).get_json()
        assert data == {'remaining': 0}

    def test_unknown_action(self, client):
        assert client.post('/slots', json={'action': 'increment'}).status_code == 400


class TestPropertyLookup:
    """GET /property-lookup"""

    def test_missing_address(self, client):
        resp = client.get('/property-lookup')
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'Missing address parameter'}

    @patch('homemaxx.routes.property.lookup_property')
    def test_lookup(self, mock_lookup, client):
        mock_lookup.return_value = {'provider': 'attom', 'beds': 3}
        resp = client.get('/property-lookup?address=123+Main+St')
        assert resp.status_code == 200
        assert resp.get_json() == {'ok': True, 'data': {'provider': 'attom', 'beds': 3}}
        mock_lookup.assert_called_once_with('123 Main St')

    @patch('homemaxx.routes.property.lookup_property', side_effect=RuntimeError('boom'))
    def test_lookup_crash_still_200(self, _lookup, client):
        resp = client.get('/property-lookup?address=123+Main+St')
        assert resp.status_code == 200
        data = resp.get_json()
        assert data['ok'] is False
        assert data['data']['provider'] == 'none'
