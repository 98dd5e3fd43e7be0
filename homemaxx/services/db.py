"""
Lead-submission ledger helpers, called after a lead is submitted.

All writes are wrapped in try/except so a lead is never blocked on DB errors.
"""
import logging

from homemaxx import database
from homemaxx.models.submission import LeadSubmission

logger = logging.getLogger('services.db')


def persist_submission(source, lead, webhook_status='skipped', offer=None, session_id=None):
    """
    INSERT a lead submission record.

    `lead` is the flat lead dict; `offer` is the serialized offer dict (if one
    was calculated). Returns the new row id, or None when the write failed.
    """
    session = database.get_session()
    try:
        address = lead.get('address') or ''
        if isinstance(address, dict):
            address = address.get('full', '')

        row = LeadSubmission(
            source=source,
            session_id=session_id,
            address=address,
            first_name=lead.get('firstName', ''),
            last_name=lead.get('lastName', ''),
            email=lead.get('email', ''),
            phone=lead.get('phone', ''),
            user_type=lead.get('userType'),
            timeline=lead.get('timeline'),
            webhook_status=webhook_status,
            payload=lead,
        )
        if offer:
            row.qualification_score = (offer.get('qualificationScore') or {}).get('total')
            row.priority_level = (offer.get('leadPriorityScore') or {}).get('level')
            row.bonus_tier = (offer.get('bonusEligibility') or {}).get('tier')
            row.fallback_used = bool(offer.get('fallbackUsed'))

        session.add(row)
        session.commit()
        return row.id
    except Exception:
        session.rollback()
        logger.error("Failed to persist %s submission for %s", source, lead.get('email', '?'), exc_info=True)
        return None
    finally:
        session.close()


def recent_submissions(limit=20):
    """Most recent submissions, newest first."""
    session = database.get_session()
    try:
        rows = (
            session.query(LeadSubmission)
            .order_by(LeadSubmission.id.desc())
            .limit(limit)
            .all()
        )
        return [
            {
                'id': row.id,
                'source': row.source,
                'address': row.address,
                'email': row.email,
                'webhook_status': row.webhook_status,
                'qualification_score': row.qualification_score,
                'priority_level': row.priority_level,
                'bonus_tier': row.bonus_tier,
                'fallback_used': row.fallback_used,
            }
            for row in rows
        ]
    finally:
        session.close()
