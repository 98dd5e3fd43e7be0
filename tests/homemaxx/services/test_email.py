"""Tests for homemaxx.services.email: confirmation email and reminder schedule."""
from datetime import datetime, timezone

import pytest
import requests
from unittest.mock import MagicMock, patch

from homemaxx.models.lead_record import LeadRecord
from homemaxx.services import email

SLOT = {'startTime': '2024-06-04T16:00:00Z', 'endTime': '2024-06-04T16:30:00Z'}


@pytest.fixture
def lead(qualified_lead):
    return LeadRecord.from_dict(qualified_lead)


class TestRenderConfirmation:
    """HTML body from templates/emails/appointment_confirmation.html."""

    def test_renders_details(self, app, lead):
        with app.app_context():
            html = email.render_confirmation(lead, SLOT, 'apt_123')
        assert 'Hi Jordan,' in html
        assert 'Tuesday, June 4, 2024' in html
        assert '4:00 PM UTC' in html
        assert '#apt_123' in html


class TestSendConfirmationEmail:
    """SendGrid delivery is best-effort."""

    def test_no_api_key_skips(self, app, lead):
        with patch.object(email, 'SENDGRID_API_KEY', None), app.app_context():
            assert email.send_confirmation_email(lead, SLOT, 'apt_123') is False

    @patch('homemaxx.services.email.requests.post')
    def test_sends_via_sendgrid(self, mock_post, app, lead):
        mock_post.return_value = MagicMock(status_code=202)
        with patch.object(email, 'SENDGRID_API_KEY', 'sg-key'), app.app_context():
            assert email.send_confirmation_email(lead, SLOT, 'apt_123') is True
        body = mock_post.call_args[1]['json']
        assert body['personalizations'][0]['to'][0] == {'email': 'jordan@example.com', 'name': 'Jordan Reyes'}
        assert body['subject'] == email.CONFIRMATION_SUBJECT
        assert mock_post.call_args[1]['headers']['Authorization'] == 'Bearer sg-key'

    @patch('homemaxx.services.email.requests.post')
    def test_failure_returns_false(self, mock_post, app, lead):
        mock_post.side_effect = requests.ConnectionError('refused')
        with patch.object(email, 'SENDGRID_API_KEY', 'sg-key'), app.app_context():
            assert email.send_confirmation_email(lead, SLOT, 'apt_123') is False


class TestScheduleReminders:
    """24h and 1h before the appointment."""

    def test_reminder_times(self, lead):
        reminders = email.schedule_reminders(lead, SLOT, 'apt_123', now=datetime(2024, 6, 1, tzinfo=timezone.utc))
        assert reminders == [
            {'type': '24h', 'time': '2024-06-03T16:00:00+00:00'},
            {'type': '1h', 'time': '2024-06-04T15:00:00+00:00'},
        ]

    def test_past_reminders_dropped(self, lead):
        # Booked 3 hours ahead: only the 1h reminder is still to come
        now = datetime(2024, 6, 4, 13, 0, tzinfo=timezone.utc)
        reminders = email.schedule_reminders(lead, SLOT, 'apt_123', now=now)
        assert reminders == [{'type': '1h', 'time': '2024-06-04T15:00:00+00:00'}]

    def test_slot_in_the_past_has_no_reminders(self, lead):
        now = datetime(2024, 6, 5, tzinfo=timezone.utc)
        assert email.schedule_reminders(lead, SLOT, 'apt_123', now=now) == []


class TestParseSlotTime:

    def test_offset_less_time_is_utc(self):
        assert email.parse_slot_time('2024-06-04T16:00:00') == datetime(2024, 6, 4, 16, tzinfo=timezone.utc)

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            email.parse_slot_time('next tuesday')
