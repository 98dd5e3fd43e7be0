"""
Appointment emails via SendGrid.

Email failure never blocks a booking: send_confirmation_email() logs and
returns False.
"""
import logging
from datetime import datetime, timedelta, timezone

import requests
from flask import render_template

from homemaxx.config import (
    APPOINTMENTS_FROM_EMAIL, APPOINTMENTS_FROM_NAME, EMAIL_TIMEOUT,
    SENDGRID_API_KEY, SENDGRID_API_URL,
)
from homemaxx.services.circuit_breaker import get_breaker

logger = logging.getLogger('services.email')

CONFIRMATION_SUBJECT = '🎉 Your $7,500 Cash Offer Consultation is Confirmed!'
REMINDER_OFFSETS = [('24h', timedelta(hours=24)), ('1h', timedelta(hours=1))]


def parse_slot_time(value):
    """
    ISO-8601 slot time → aware datetime. No offset means UTC.

    Raises ValueError for anything unparseable.
    """
    parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def render_confirmation(lead, slot, appointment_id):
    start = parse_slot_time(slot['startTime'])
    return render_template(
        'emails/appointment_confirmation.html',
        first_name=lead.first_name,
        appointment_date=f"{start:%A, %B} {start.day}, {start.year}",
        appointment_time=f"{start.hour % 12 or 12}:{start:%M %p %Z}".strip(),
        appointment_id=appointment_id,
    )


def send_confirmation_email(lead, slot, appointment_id):
    """Send the booking confirmation. Returns True when SendGrid accepted it."""
    if not SENDGRID_API_KEY:
        logger.warning("SENDGRID_API_KEY not set, confirmation for %s not sent", lead.email)
        return False

    try:
        body = {
            'personalizations': [{
                'to': [{'email': lead.email, 'name': lead.full_name}],
            }],
            'from': {'email': APPOINTMENTS_FROM_EMAIL, 'name': APPOINTMENTS_FROM_NAME},
            'subject': CONFIRMATION_SUBJECT,
            'content': [{'type': 'text/html', 'value': render_confirmation(lead, slot, appointment_id)}],
        }
        cb = get_breaker('sendgrid')
        response = cb.call_http(
            requests.post, SENDGRID_API_URL, json=body,
            headers={'Authorization': f'Bearer {SENDGRID_API_KEY}'},
            timeout=EMAIL_TIMEOUT,
        )
    except Exception:
        logger.error("Failed to send confirmation email to %s", lead.email, exc_info=True)
        return False

    logger.info("Confirmation email sent to %s for appointment %s", lead.email, appointment_id)
    return True


def schedule_reminders(lead, slot, appointment_id, now=None):
    """
    Compute the 24h / 1h reminder times for an appointment.

    Delivery is handled by the CRM's workflow automation; we only record the
    schedule. Reminders already in the past are dropped.
    """
    start = parse_slot_time(slot['startTime'])
    now = now or datetime.now(timezone.utc)
    reminders = [
        {'type': kind, 'time': (start - offset).isoformat()}
        for kind, offset in REMINDER_OFFSETS
        if start - offset > now
    ]
    logger.info(
        "Reminders scheduled for appointment %s (%s): %s",
        appointment_id, lead.email, ', '.join(r['time'] for r in reminders) or 'none',
    )
    return reminders
