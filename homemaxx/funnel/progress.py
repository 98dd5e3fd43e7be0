"""
Funnel progress snapshots and the "finish your offer" resume banner.

    progress:{session_id}  → JSON snapshot, 24h TTL
    progress_banner:{session_id} → JSON banner currently offered to the visitor

Snapshots older than PROGRESS_MAX_AGE_HOURS are treated as gone even if Redis
has not expired them yet (the TTL is refreshed on every save, the timestamp is
not). A snapshot with only an address is noise: it never earns a banner and is
cleared on the next check.
"""
import json
import logging
import time
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from homemaxx.config import PROGRESS_MAX_AGE_HOURS

logger = logging.getLogger('funnel.progress')

PROGRESS_PREFIX = 'progress'
BANNER_PREFIX = 'progress_banner'
RESUME_PAGE = 'pages/get-offer.html'
FRESH_START_PAGE = 'pages/address-entry.html'
DEFAULT_TOTAL_STEPS = 8


def _as_int(value, default=0):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def has_real_progress(record: Optional[Dict[str, Any]]) -> bool:
    """Address plus anything beyond the first step."""
    if not record or not record.get('address'):
        return False
    return bool(
        _as_int(record.get('currentStep')) > 1
        or _as_int(record.get('lastStep')) > 1
        or record.get('propertyDetails')
        or record.get('contactInfo')
        or record.get('timeline')
    )


def resume_url(record: Dict[str, Any]) -> str:
    """Link back into the funnel at the saved step."""
    if not record or not record.get('address'):
        return FRESH_START_PAGE
    params = {
        'address': record['address'],
        'step': _as_int(record.get('lastStep', record.get('currentStep'))),
    }
    if record.get('cashOfferClaimed'):
        params['cashOffer'] = 'true'
        if record.get('cashOfferAmount'):
            params['amount'] = record['cashOfferAmount']
    params['resume'] = 'true'
    return f'{RESUME_PAGE}?{urlencode(params)}'


class ProgressStore:

    def __init__(self, redis_client, max_age_hours=PROGRESS_MAX_AGE_HOURS, clock=time.time):
        self.redis = redis_client
        self.max_age_seconds = max_age_hours * 3600
        self.clock = clock

    def _key(self, session_id):
        return f'{PROGRESS_PREFIX}:{session_id}'

    def _banner_key(self, session_id):
        return f'{BANNER_PREFIX}:{session_id}'

    def save(self, session_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Write a timestamped snapshot. Failures are logged, never raised."""
        snapshot = dict(record)
        snapshot['timestamp'] = self.clock()
        snapshot['lastStep'] = _as_int(record.get('currentStep'))
        if not snapshot.get('address') and record.get('propertyAddress'):
            snapshot['address'] = record['propertyAddress']
        try:
            self.redis.setex(self._key(session_id), int(self.max_age_seconds), json.dumps(snapshot, default=str))
        except Exception:
            logger.error("Failed to save progress for %s", session_id, exc_info=True)
        return snapshot

    def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        """The snapshot if younger than the max age; stale or corrupt ones are cleared."""
        raw = self.redis.get(self._key(session_id))
        if not raw:
            return None
        try:
            record = json.loads(raw)
            age = self.clock() - float(record['timestamp'])
        except (ValueError, KeyError, TypeError):
            logger.warning("Corrupt progress record for %s, clearing", session_id)
            self.clear(session_id)
            return None
        if age >= self.max_age_seconds:
            logger.info("Progress for %s is %.1fh old, clearing", session_id, age / 3600)
            self.clear(session_id)
            return None
        return record

    def clear(self, session_id: str):
        self.redis.delete(self._key(session_id), self._banner_key(session_id))

    def check_for_saved_progress(self, session_id: str) -> Optional[Dict[str, Any]]:
        """
        Decide whether to offer the resume banner.

        Any previously offered banner is dropped first, so repeated checks
        never stack banners. Address-only snapshots are cleared.
        """
        self.redis.delete(self._banner_key(session_id))
        record = self.load(session_id)

        if has_real_progress(record):
            step = _as_int(record.get('lastStep', record.get('currentStep')))
            banner = {
                'address': record['address'],
                'step': step,
                'message': f"You were on step {step + 1} of {record.get('totalSteps') or DEFAULT_TOTAL_STEPS}",
                'resumeUrl': resume_url(record),
            }
            self.redis.setex(self._banner_key(session_id), int(self.max_age_seconds), json.dumps(banner))
            return banner

        if record and record.get('address') and _as_int(record.get('currentStep')) <= 1:
            logger.info("Auto-clearing address-only progress for %s", session_id)
            self.clear(session_id)
        return None

    def dismiss(self, session_id: str):
        """Visitor closed the banner: forget the progress too."""
        self.clear(session_id)
