"""
Consultation booking: free calendar slots and the $7,500 offer appointment.

Booking order: qualify → GHL appointment (hard failure) → GHL contact,
confirmation email, reminders (returned and kept on the ledger row), ledger row
(all best-effort). The slot time is checked before anything is booked.
"""
import logging

from flask import Blueprint, jsonify, request

from homemaxx.models.lead_record import LeadRecord
from homemaxx.offers.qualification import qualify_lead
from homemaxx.routes.common import BadRequest, json_body
from homemaxx.services import db, email, ghl, scheduling

logger = logging.getLogger('routes.appointments')

bp = Blueprint('appointments', __name__)


@bp.route('/get-available-slots')
def get_available_slots():
    try:
        groups, tz_name = scheduling.get_available_slots(request.args.get('timezone'))
    except Exception as e:
        logger.error("Error generating slots: %s", e, exc_info=True)
        return jsonify({'error': 'Internal server error', 'details': str(e)}), 500
    return jsonify({'success': True, 'slots': groups, 'timezone': tz_name})


def _ledger_lead(lead_data, lead):
    flat = dict(lead_data)
    flat.update({
        'address': lead.address,
        'firstName': lead.first_name,
        'lastName': lead.last_name,
        'email': lead.email,
        'phone': lead.phone,
        'userType': lead.user_type.value if lead.user_type else None,
        'timeline': lead.timeline.value if lead.timeline else None,
    })
    return flat


@bp.route('/book-appointment', methods=['POST'])
def book_appointment():
    try:
        data = json_body()
    except BadRequest as e:
        return jsonify({'error': str(e)}), 400

    lead_data = data.get('leadData')
    slot = data.get('selectedSlot')
    if not isinstance(lead_data, dict) or not isinstance(slot, dict) or not slot.get('startTime'):
        return jsonify({'error': 'leadData and selectedSlot are required'}), 400
    try:
        email.parse_slot_time(slot['startTime'])
    except ValueError:
        return jsonify({'error': 'selectedSlot.startTime is not a valid ISO-8601 time'}), 400

    lead = LeadRecord.from_dict(lead_data)
    qualification = qualify_lead(lead)
    if not qualification.qualified:
        logger.info("Booking refused for %s: score %d", lead.email, qualification.score)
        return jsonify({
            'error': 'Lead not qualified for $7500 offer',
            'reason': qualification.reasons,
            'qualificationScore': qualification.score,
        }), 400

    try:
        appointment_id = ghl.create_appointment(lead, slot)
    except ghl.AppointmentError as e:
        return jsonify({'error': 'Internal server error', 'details': str(e)}), 500

    contact_id = ghl.create_or_update_contact(lead, appointment_id)
    email.send_confirmation_email(lead, slot, appointment_id)
    reminders = email.schedule_reminders(lead, slot, appointment_id)

    ledger_lead = _ledger_lead(lead_data, lead)
    ledger_lead['appointmentId'] = appointment_id
    ledger_lead['reminders'] = reminders
    db.persist_submission(
        'appointment', ledger_lead,
        webhook_status=ghl.WEBHOOK_SENT if contact_id else ghl.WEBHOOK_FAILED,
        offer={'qualificationScore': qualification.to_dict()},
    )

    return jsonify({
        'success': True,
        'appointmentId': appointment_id,
        'contactId': contact_id,
        'qualificationScore': qualification.score,
        'reminders': reminders,
        'message': 'Appointment booked successfully',
    })
