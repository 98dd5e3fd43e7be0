"""
Funnel sessions: load → transition → side effects → save.

    funnel:{session_id}            → JSON FunnelState, 24h TTL
    funnel:{session_id}:submitted  → SET NX marker; whoever sets it runs the
                                     submission side effects, then replaces
                                     it with the JSON qualification view

A request that loses the marker race adopts the winner's qualification view,
or saves nothing while the winner is still running.

Submission side effects, in order:
  1. CRM webhook (failure logged, never blocks)
  2. offer calculation (never raises, may be degraded)
  3. lead ledger row (failure logged)
The qualification view stored on the state is what the browser renders after
the last step.
"""
import json
import logging
import time
import uuid
from typing import Any, Dict, Optional

from homemaxx.config import QUALIFIED_SCORE_THRESHOLD
from homemaxx.funnel.machine import FunnelMachine, FunnelState
from homemaxx.offers import calculator
from homemaxx.services import db, ghl

logger = logging.getLogger('funnel.service')

KEY_PREFIX = 'funnel'
SESSION_TTL_SECONDS = 24 * 3600


class FunnelNotFound(LookupError):
    """No live funnel session with that id."""


def lead_from_form(form_data: Dict[str, Any], address: str) -> Dict[str, Any]:
    """Flatten funnel answers into the lead shape the offer calculator reads."""
    lead = dict(form_data)
    lead['address'] = address
    parts = (form_data.get('fullName') or '').split()
    lead['firstName'] = parts[0] if parts else ''
    lead['lastName'] = ' '.join(parts[1:])
    return lead


class FunnelService:

    def __init__(self, redis_client, progress_store, clock=time.time):
        self.redis = redis_client
        self.progress = progress_store
        self.clock = clock

    def _key(self, session_id):
        return f'{KEY_PREFIX}:{session_id}'

    def _submitted_key(self, session_id):
        return f'{KEY_PREFIX}:{session_id}:submitted'

    # ── Persistence ──────────────────────────────────────────────────────────

    def load(self, session_id: str) -> FunnelMachine:
        raw = self.redis.get(self._key(session_id))
        if not raw:
            raise FunnelNotFound(session_id)
        return FunnelMachine(FunnelState.from_dict(json.loads(raw)))

    def _save(self, machine: FunnelMachine):
        state = machine.state
        self.redis.setex(self._key(state.session_id), SESSION_TTL_SECONDS, json.dumps(state.to_dict()))
        if state.submitted:
            self.progress.clear(state.session_id)
        else:
            self.progress.save(state.session_id, machine.progress_snapshot())

    # ── Operations ───────────────────────────────────────────────────────────

    def start(self, address: Optional[str] = None, session_id: Optional[str] = None) -> FunnelMachine:
        machine = FunnelMachine.start(session_id or uuid.uuid4().hex, address=address)
        self._save(machine)
        logger.info("Funnel %s started at step '%s'", machine.state.session_id, machine.current.id)
        return machine

    def get(self, session_id: str, now: Optional[float] = None) -> FunnelMachine:
        """Load a session, firing any auto-advance that has come due."""
        machine, _ = self._apply(session_id, None, now)
        return machine

    def answer(self, session_id, values, now=None):
        return self._apply(session_id, lambda m, now: m.answer(values), now)

    def select(self, session_id, value, now=None):
        return self._apply(session_id, lambda m, now: m.select(value, now=now), now)

    def toggle(self, session_id, value, now=None):
        return self._apply(session_id, lambda m, now: m.toggle(value), now)

    def next(self, session_id, now=None):
        return self._apply(session_id, lambda m, now: m.next(now), now)

    def back(self, session_id, now=None):
        return self._apply(session_id, lambda m, now: m.back(), now)

    def _apply(self, session_id, action, now):
        now = self.clock() if now is None else now
        machine = self.load(session_id)

        results = []
        fired = machine.tick(now)
        if fired is not None:
            results.append(fired)
        if action is not None:
            results.append(action(machine, now))

        result = results[-1] if action is not None else None
        if any(r.submitted_now for r in results) and not self._submit(machine):
            # Submission still in flight elsewhere; its save will land
            return self.load(session_id), result
        self._save(machine)
        return machine, result

    # ── Submission ───────────────────────────────────────────────────────────

    def _claimed_qualification(self, session_id) -> Optional[Dict[str, Any]]:
        """The qualification view a finished submission left on the marker, if any."""
        try:
            view = json.loads(self.redis.get(self._submitted_key(session_id)) or 'null')
        except ValueError:
            return None
        return view if isinstance(view, dict) else None

    def _submit(self, machine: FunnelMachine) -> bool:
        """
        Run the submission side effects once per session.

        Returns False only when another request holds the marker and has not
        finished; the caller must not save its copy of the state then.
        """
        state = machine.state
        marker = self._submitted_key(state.session_id)
        claimed = self.redis.set(marker, 'pending', nx=True, ex=SESSION_TTL_SECONDS)
        if not claimed:
            logger.warning("Funnel %s already submitted, skipping side effects", state.session_id)
            state.qualification = self._claimed_qualification(state.session_id)
            return state.qualification is not None

        payload = ghl.build_webhook_payload(
            state.form_data,
            user_type=state.user_type.value if state.user_type else None,
            preconfirmed_address=state.preconfirmed_address,
        )
        webhook_status = ghl.send_lead_webhook(payload)

        lead = lead_from_form(state.form_data, machine.address)
        outcome = calculator.calculate_offer(lead)
        offer = outcome.to_dict()
        score = (offer.get('qualificationScore') or {}).get('total') or 0

        state.qualification = {
            'qualified': score >= QUALIFIED_SCORE_THRESHOLD,
            'score': score,
            'webhookStatus': webhook_status,
            'offer': offer,
        }
        self.redis.setex(marker, SESSION_TTL_SECONDS, json.dumps(state.qualification, default=str))
        db.persist_submission('funnel', lead, webhook_status=webhook_status, offer=offer,
                              session_id=state.session_id)
        logger.info(
            "Funnel %s submitted (webhook=%s, score=%s, degraded=%s)",
            state.session_id, webhook_status, score, offer.get('degradedReason'),
        )
        return True
