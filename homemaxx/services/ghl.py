"""
GoHighLevel CRM: lead webhook, contacts, appointments.

The webhook is fire-and-forget from the funnel's point of view: failures are
logged and reported as a status string, never raised. Appointment creation
is the one call whose failure the caller must see (AppointmentError).
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from homemaxx.config import (
    CRM_TIMEOUT, GHL_API_BASE, GHL_API_KEY, GHL_ASSIGNED_USER_ID,
    GHL_CALENDAR_ID, GHL_LOCATION_ID, GHL_WEBHOOK_URL,
)
from homemaxx.models.lead_record import LeadRecord
from homemaxx.services.circuit_breaker import CircuitOpenError, get_breaker

logger = logging.getLogger('services.ghl')

WEBHOOK_SENT = 'sent'
WEBHOOK_FAILED = 'failed'
WEBHOOK_SKIPPED = 'skipped'

QUALIFIED_TAGS = ['$7500-qualified', 'website-lead', 'high-priority']
QUALIFIED_SOURCE = 'HomeMAXX Website - $7500 Offer Qualified'


class AppointmentError(Exception):
    """The CRM refused or failed to create an appointment."""


def _headers():
    return {
        'Authorization': f'Bearer {GHL_API_KEY}',
        'Content-Type': 'application/json',
    }


def _split_name(full_name):
    parts = (full_name or '').split()
    return (parts[0] if parts else ''), ' '.join(parts[1:])


def build_webhook_payload(form_data: Dict[str, Any], user_type: Optional[str] = None,
                          preconfirmed_address: str = '', now=None) -> Dict[str, Any]:
    """Map accumulated funnel answers onto the CRM's `{contact: {...}}` shape."""
    now = now or datetime.now(timezone.utc)
    first_name, last_name = _split_name(form_data.get('fullName'))
    address = form_data.get('address') or preconfirmed_address or ''
    sms_consent = bool(form_data.get('smsConsent'))
    issues = form_data.get('propertyIssues')

    return {
        'contact': {
            'firstName': first_name,
            'lastName': last_name,
            'email': form_data.get('email', ''),
            'phone': form_data.get('phone', ''),
            'address': address,
            'property_address': address,
            'seller_timeline': form_data.get('timeline') or 'not_specified',
            'property_condition': form_data.get('kitchenQuality') or 'not_specified',
            'kitchen_countertops': form_data.get('kitchenCountertops') or 'not_specified',
            'kitchen_quality': form_data.get('kitchenQuality') or 'not_specified',
            'bathroom_quality': form_data.get('bathroomQuality') or 'not_specified',
            'living_room_quality': form_data.get('livingRoomQuality') or 'not_specified',
            'hoa_status': form_data.get('hasHOA') or 'not_specified',
            'hoa_monthly_fees': form_data.get('hoaFees') or '0',
            'motivations': list(form_data.get('motivations') or []),
            'price_expectation_type': form_data.get('priceExpectationType') or 'not_specified',
            'price_expectation': form_data.get('priceExpectation', ''),
            'property_issues': list(issues) if isinstance(issues, list) else ['none'],
            'owner_type': form_data.get('ownerType') or 'owner',
            'user_type': user_type or 'owner',
            'sms_consent': 'yes' if sms_consent else 'no',
            'sms_consent_timestamp': now.isoformat() if sms_consent else None,
            'lead_priority': 'Standard - Funnel Completion',
            'cash_offer_claimed': bool(form_data.get('cashOfferClaimed', False)),
            'funnel_version': '2.0',
            'leadSource': 'HomeMAXX Funnel',
            'funnelStep': 'Completed',
            'submissionDate': now.isoformat(),
            'raw_form_data': json.dumps(form_data, default=str),
        }
    }


def send_lead_webhook(payload: Dict[str, Any]) -> str:
    """POST a lead to the CRM webhook. Returns 'sent', 'failed' or 'skipped'."""
    if not GHL_WEBHOOK_URL:
        logger.warning("GHL_WEBHOOK_URL not set, lead webhook skipped")
        return WEBHOOK_SKIPPED

    email = payload.get('contact', {}).get('email', '?')
    cb = get_breaker('ghl')
    try:
        response = cb.call_http(
            requests.post, GHL_WEBHOOK_URL, json=payload,
            headers={'Accept': 'application/json'}, timeout=CRM_TIMEOUT,
        )
    except CircuitOpenError as e:
        logger.error("GHL circuit open, lead webhook for %s not sent: %s", email, e)
        return WEBHOOK_FAILED
    except Exception:
        logger.error("GHL lead webhook failed for %s", email, exc_info=True)
        return WEBHOOK_FAILED

    logger.info("GHL lead webhook sent for %s (%d)", email, response.status_code)
    return WEBHOOK_SENT


def _appointment_notes(lead: LeadRecord):
    value = f"${lead.estimated_value:,.0f}" if lead.estimated_value else 'TBD'
    timeline = lead.timeline.value if lead.timeline else 'not specified'
    return '\n'.join([
        f"Property: {lead.address or 'Address pending'}",
        f"Timeline: {timeline}",
        f"Property Type: {lead.property_type or 'not specified'}",
        f"Estimated Value: {value}",
        'Special Notes: Qualified for $7500 instant cash offer',
    ])


def create_appointment(lead: LeadRecord, slot: Dict[str, Any]) -> str:
    """Book the consultation on the CRM calendar. Returns the appointment id."""
    body = {
        'calendarId': GHL_CALENDAR_ID,
        'locationId': GHL_LOCATION_ID,
        'contactId': None,
        'startTime': slot.get('startTime'),
        'endTime': slot.get('endTime'),
        'title': f"$7500 Cash Offer Consultation - {lead.full_name}",
        'appointmentStatus': 'confirmed',
        'assignedUserId': GHL_ASSIGNED_USER_ID,
        'notes': _appointment_notes(lead),
    }
    cb = get_breaker('ghl')
    try:
        response = cb.call_http(
            requests.post, f'{GHL_API_BASE}/appointments',
            json=body, headers=_headers(), timeout=CRM_TIMEOUT,
        )
        appointment_id = response.json().get('id')
    except Exception as e:
        logger.error("GHL appointment creation failed for %s", lead.email, exc_info=True)
        raise AppointmentError(f'GHL appointment creation failed: {e}') from e

    if not appointment_id:
        raise AppointmentError('GHL appointment creation returned no id')
    logger.info("GHL appointment %s created for %s", appointment_id, lead.email)
    return appointment_id


def create_or_update_contact(lead: LeadRecord, appointment_id: str) -> Optional[str]:
    """Upsert the qualified contact. Returns the contact id, or None on failure."""
    body = {
        'firstName': lead.first_name,
        'lastName': lead.last_name,
        'email': lead.email,
        'phone': lead.phone,
        'address1': lead.address,
        'city': lead.city,
        'state': lead.state,
        'postalCode': lead.zip_code,
        'source': QUALIFIED_SOURCE,
        'tags': list(QUALIFIED_TAGS),
        'customFields': {
            'property_type': lead.property_type,
            'timeline': lead.timeline.value if lead.timeline else None,
            'property_condition': lead.property_condition,
            'estimated_value': lead.estimated_value,
            'appointment_id': appointment_id,
            'qualification_date': datetime.now(timezone.utc).isoformat(),
        },
    }
    cb = get_breaker('ghl')
    try:
        response = cb.call_http(
            requests.post, f'{GHL_API_BASE}/contacts',
            json=body, headers=_headers(), timeout=CRM_TIMEOUT,
        )
        return response.json().get('id')
    except Exception:
        logger.error("GHL contact upsert failed for %s", lead.email, exc_info=True)
        return None


def fetch_appointments(start: datetime, end: datetime) -> List[Dict[str, Any]]:
    """Existing calendar appointments between start and end. Raises on failure."""
    cb = get_breaker('ghl')
    response = cb.call_http(
        requests.get, f'{GHL_API_BASE}/appointments',
        params={
            'calendarId': GHL_CALENDAR_ID,
            'startDate': start.isoformat(),
            'endDate': end.isoformat(),
        },
        headers=_headers(), timeout=CRM_TIMEOUT,
    )
    return response.json().get('appointments', []) or []
