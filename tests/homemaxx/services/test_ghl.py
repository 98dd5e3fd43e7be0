"""Tests for homemaxx.services.ghl: webhook payload, webhook delivery, appointments."""
import json
from datetime import datetime, timezone

import pytest
import requests
from unittest.mock import MagicMock, patch

from homemaxx.models.lead_record import LeadRecord
from homemaxx.services import ghl

NOW = datetime(2024, 6, 3, 15, 0, tzinfo=timezone.utc)

FORM = {
    'address': '123 Main Street, Las Vegas, NV 89101',
    'fullName': 'Jordan Lee Reyes',
    'email': 'jordan@example.com',
    'phone': '7025550142',
    'timeline': 'asap',
    'kitchenQuality': 'dated',
    'motivations': ['divorce'],
    'propertyIssues': ['none'],
    'ownerType': 'owner',
    'smsConsent': True,
}


def _response(status=200, body=None):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body or {}
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f'{status} error')
    return resp


class TestBuildWebhookPayload:
    """Funnel answers → {contact: {...}}"""

    def test_contact_fields(self):
        contact = ghl.build_webhook_payload(FORM, user_type='owner', now=NOW)['contact']
        assert contact['firstName'] == 'Jordan'
        assert contact['lastName'] == 'Lee Reyes'
        assert contact['address'] == FORM['address']
        assert contact['seller_timeline'] == 'asap'
        assert contact['property_condition'] == 'dated'
        assert contact['sms_consent'] == 'yes'
        assert contact['sms_consent_timestamp'] == NOW.isoformat()
        assert contact['funnel_version'] == '2.0'
        assert contact['leadSource'] == 'HomeMAXX Funnel'
        assert json.loads(contact['raw_form_data'])['email'] == 'jordan@example.com'

    def test_missing_answers_are_marked(self):
        contact = ghl.build_webhook_payload({}, preconfirmed_address='9 Elm Rd', now=NOW)['contact']
        assert contact['address'] == '9 Elm Rd'
        assert contact['seller_timeline'] == 'not_specified'
        assert contact['hoa_monthly_fees'] == '0'
        assert contact['property_issues'] == ['none']
        assert contact['user_type'] == 'owner'
        assert contact['sms_consent'] == 'no'
        assert contact['sms_consent_timestamp'] is None


class TestSendLeadWebhook:
    """Webhook delivery never raises."""

    def test_skipped_without_url(self):
        with patch.object(ghl, 'GHL_WEBHOOK_URL', None):
            assert ghl.send_lead_webhook({'contact': {}}) == ghl.WEBHOOK_SKIPPED

    @patch('homemaxx.services.ghl.requests.post')
    def test_sent(self, mock_post):
        mock_post.return_value = _response(200)
        with patch.object(ghl, 'GHL_WEBHOOK_URL', 'https://hooks.example.com/lead'):
            assert ghl.send_lead_webhook({'contact': {'email': 'a@b.co'}}) == ghl.WEBHOOK_SENT
        assert mock_post.call_args[0][0] == 'https://hooks.example.com/lead'
        assert mock_post.call_args[1]['timeout'] == 10

    @patch('homemaxx.services.ghl.requests.post')
    def test_http_error_is_failed(self, mock_post):
        mock_post.return_value = _response(500)
        with patch.object(ghl, 'GHL_WEBHOOK_URL', 'https://hooks.example.com/lead'):
            assert ghl.send_lead_webhook({'contact': {}}) == ghl.WEBHOOK_FAILED

    @patch('homemaxx.services.ghl.requests.post')
    def test_server_errors_trip_the_circuit(self, mock_post, breakers):
        mock_post.return_value = _response(503)
        with patch.object(ghl, 'GHL_WEBHOOK_URL', 'https://hooks.example.com/lead'):
            for _ in range(3):
                assert ghl.send_lead_webhook({'contact': {}}) == ghl.WEBHOOK_FAILED
        assert breakers['ghl'].state == 'open'

    @patch('homemaxx.services.ghl.requests.post')
    def test_open_circuit_is_failed(self, mock_post, breakers):
        mock_post.side_effect = requests.ConnectionError('refused')
        with patch.object(ghl, 'GHL_WEBHOOK_URL', 'https://hooks.example.com/lead'):
            for _ in range(3):
                assert ghl.send_lead_webhook({'contact': {}}) == ghl.WEBHOOK_FAILED
            mock_post.reset_mock()
            assert ghl.send_lead_webhook({'contact': {}}) == ghl.WEBHOOK_FAILED
        mock_post.assert_not_called()
        assert breakers['ghl'].state == 'open'


class TestAppointments:
    """Calendar booking and contact upsert."""

    SLOT = {'startTime': '2024-06-04T16:00:00Z', 'endTime': '2024-06-04T16:30:00Z'}

    @pytest.fixture
    def lead(self, qualified_lead):
        return LeadRecord.from_dict(qualified_lead)

    @patch('homemaxx.services.ghl.requests.post')
    def test_create_appointment_returns_id(self, mock_post, lead):
        mock_post.return_value = _response(200, {'id': 'apt_123'})
        assert ghl.create_appointment(lead, self.SLOT) == 'apt_123'
        body = mock_post.call_args[1]['json']
        assert body['startTime'] == self.SLOT['startTime']
        assert body['title'] == '$7500 Cash Offer Consultation - Jordan Reyes'
        assert 'Estimated Value: $350,000' in body['notes']

    @patch('homemaxx.services.ghl.requests.post')
    def test_create_appointment_failure_raises(self, mock_post, lead):
        mock_post.return_value = _response(422)
        with pytest.raises(ghl.AppointmentError):
            ghl.create_appointment(lead, self.SLOT)

    @patch('homemaxx.services.ghl.requests.post')
    def test_create_appointment_without_id_raises(self, mock_post, lead):
        mock_post.return_value = _response(200, {})
        with pytest.raises(ghl.AppointmentError):
            ghl.create_appointment(lead, self.SLOT)

    @patch('homemaxx.services.ghl.requests.post')
    def test_contact_upsert(self, mock_post, lead):
        mock_post.return_value = _response(200, {'id': 'ct_9'})
        assert ghl.create_or_update_contact(lead, 'apt_123') == 'ct_9'
        body = mock_post.call_args[1]['json']
        assert body['tags'] == ['$7500-qualified', 'website-lead', 'high-priority']
        assert body['customFields']['appointment_id'] == 'apt_123'

    @patch('homemaxx.services.ghl.requests.post')
    def test_contact_upsert_failure_returns_none(self, mock_post, lead):
        mock_post.side_effect = requests.Timeout('slow')
        assert ghl.create_or_update_contact(lead, 'apt_123') is None

    @patch('homemaxx.services.ghl.requests.get')
    def test_fetch_appointments(self, mock_get):
        mock_get.return_value = _response(200, {'appointments': [{'startTime': 'x', 'endTime': 'y'}]})
        start = NOW
        result = ghl.fetch_appointments(start, start)
        assert result == [{'startTime': 'x', 'endTime': 'y'}]
        assert mock_get.call_args[1]['params']['startDate'] == NOW.isoformat()
