"""
Funnel state machine.

State is a plain FunnelState (serializable to Redis); FunnelMachine wraps it
with the transitions:

    next(now)          validate current step → next visible step, or submit
                       when already on the last visible step
    back()             previous visible step, no validation
    select(value, now) choose an option; auto-advance steps schedule a
                       pending transition `auto_advance_delay` seconds out
    tick(now)          fire a due pending transition
    toggle(value)      add/remove a multi-select option
    answer(values)     merge free-form field values into the current step

Submission happens once: after it, the machine sits in the 'qualification'
phase and every navigation call is a no-op. Timed calls take `now` (default
time.time()), so the auto-advance is deterministic under test.
"""
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from homemaxx.config import AUTO_ADVANCE_DELAY_SECONDS
from homemaxx.funnel.steps import CHOICE_KINDS, CONTACT, INPUT, MULTI, STEPS
from homemaxx.models.lead_record import UserType

PHASE_STEPS = 'steps'
PHASE_QUALIFICATION = 'qualification'

# owner-type answer → user type
OWNER_TYPE_USERS = {
    'owner': UserType.OWNER,
    'agent': UserType.AGENT,
    'agent-owner': UserType.AGENT_OWNER,
    'other': UserType.OWNER,
}


class FunnelError(Exception):
    """An operation that does not apply to the current step."""


@dataclass
class PendingAdvance:
    step_id: str
    fires_at: float


@dataclass
class FunnelState:
    session_id: str
    current_step: int = 0
    form_data: Dict[str, Any] = field(default_factory=dict)
    user_type: Optional[UserType] = None
    preconfirmed_address: str = ''
    submitted: bool = False
    phase: str = PHASE_STEPS
    pending_advance: Optional[PendingAdvance] = None
    qualification: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['user_type'] = self.user_type.value if self.user_type else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FunnelState':
        data = dict(data)
        if data.get('user_type'):
            data['user_type'] = UserType(data['user_type'])
        if data.get('pending_advance'):
            data['pending_advance'] = PendingAdvance(**data['pending_advance'])
        return cls(**data)


@dataclass
class TransitionResult:
    ok: bool
    step_id: Optional[str]
    errors: Dict[str, str] = field(default_factory=dict)
    submitted_now: bool = False
    noop: bool = False


class FunnelMachine:

    def __init__(self, state: FunnelState, steps=STEPS, auto_advance_delay=AUTO_ADVANCE_DELAY_SECONDS):
        self.state = state
        self.steps = steps
        self.auto_advance_delay = auto_advance_delay

    @classmethod
    def start(cls, session_id: str, address: Optional[str] = None, **kwargs) -> 'FunnelMachine':
        """New funnel. A known address skips the address step (index 1)."""
        state = FunnelState(session_id=session_id)
        if address:
            state.preconfirmed_address = address
            state.form_data['address'] = address
        machine = cls(state, **kwargs)
        state.current_step = machine._first_visible()
        return machine

    # ── Navigation helpers ───────────────────────────────────────────────────

    def is_visible(self, index: int) -> bool:
        return self.steps[index].visible(self.state)

    def visible_indices(self) -> List[int]:
        return [i for i in range(len(self.steps)) if self.is_visible(i)]

    def _first_visible(self) -> int:
        visible = self.visible_indices()
        return visible[0] if visible else 0

    def _next_visible(self, index: int) -> Optional[int]:
        for i in range(index + 1, len(self.steps)):
            if self.is_visible(i):
                return i
        return None

    def _previous_visible(self, index: int) -> Optional[int]:
        for i in range(index - 1, -1, -1):
            if self.is_visible(i):
                return i
        return None

    @property
    def current(self):
        return self.steps[self.state.current_step]

    @property
    def done(self) -> bool:
        return self.state.submitted

    def _result(self, ok=True, **kwargs) -> TransitionResult:
        return TransitionResult(ok=ok, step_id=self.current.id, **kwargs)

    def _cancel_pending(self):
        self.state.pending_advance = None

    # ── Transitions ──────────────────────────────────────────────────────────

    def validate(self) -> Dict[str, str]:
        return self.current.validate(self.state.form_data)

    def next(self, now: Optional[float] = None) -> TransitionResult:
        if self.state.submitted:
            return self._result(noop=True)
        self._cancel_pending()

        errors = self.validate()
        if errors:
            return self._result(ok=False, errors=errors)

        following = self._next_visible(self.state.current_step)
        if following is not None:
            self.state.current_step = following
            return self._result()

        self.state.submitted = True
        self.state.phase = PHASE_QUALIFICATION
        return self._result(submitted_now=True)

    def back(self) -> TransitionResult:
        if self.state.submitted:
            return self._result(noop=True)
        self._cancel_pending()
        previous = self._previous_visible(self.state.current_step)
        if previous is None:
            return self._result(noop=True)
        self.state.current_step = previous
        return self._result()

    def select(self, value: str, now: Optional[float] = None) -> TransitionResult:
        """Choose an option on a single-choice step."""
        if self.state.submitted:
            return self._result(noop=True)
        step = self.current
        if step.kind not in CHOICE_KINDS:
            raise FunnelError(f"step '{step.id}' is not a single-choice step")
        if value not in step.options:
            return self._result(ok=False, errors={step.field: f"'{value}' is not a valid option"})

        self.state.form_data[step.field] = value
        if step.id == 'owner-type':
            self.state.user_type = OWNER_TYPE_USERS[value]

        if step.auto_advance:
            now = time.time() if now is None else now
            self.state.pending_advance = PendingAdvance(step.id, now + self.auto_advance_delay)
        return self._result()

    def tick(self, now: Optional[float] = None) -> Optional[TransitionResult]:
        """Fire the pending auto-advance if it is due. None when nothing fired."""
        pending = self.state.pending_advance
        if pending is None:
            return None
        now = time.time() if now is None else now
        if pending.step_id != self.current.id:
            self._cancel_pending()
            return None
        if now < pending.fires_at:
            return None
        return self.next(now)

    def toggle(self, value: str) -> TransitionResult:
        """Add or remove an option on a multi-select step."""
        if self.state.submitted:
            return self._result(noop=True)
        step = self.current
        if step.kind != MULTI:
            raise FunnelError(f"step '{step.id}' is not a multi-select step")
        if value not in step.options:
            return self._result(ok=False, errors={step.field: f"'{value}' is not a valid option"})

        selected = list(self.state.form_data.get(step.field) or [])
        if value in selected:
            selected.remove(value)
        elif step.exclusive_option and value == step.exclusive_option:
            selected = [value]
        else:
            if step.exclusive_option in selected:
                selected.remove(step.exclusive_option)
            selected.append(value)
        self.state.form_data[step.field] = selected
        return self._result()

    def answer(self, values: Dict[str, Any]) -> TransitionResult:
        """Store free-form field values for the current input/contact step."""
        if self.state.submitted:
            return self._result(noop=True)
        step = self.current
        if step.kind not in (INPUT, CONTACT):
            raise FunnelError(f"step '{step.id}' does not take free-form answers")
        allowed = {f.name for f in step.fields}
        for name, value in (values or {}).items():
            if name in allowed:
                self.state.form_data[name] = value.strip() if isinstance(value, str) else value
        return self._result()

    # ── Views ────────────────────────────────────────────────────────────────

    @property
    def address(self) -> str:
        return self.state.form_data.get('address') or self.state.preconfirmed_address

    def view(self) -> Dict[str, Any]:
        """JSON view of the current step for the browser to render."""
        step = self.current
        visible = self.visible_indices()
        pending = self.state.pending_advance
        index = self.state.current_step
        return {
            'sessionId': self.state.session_id,
            'phase': self.state.phase,
            'submitted': self.state.submitted,
            'stepIndex': index,
            'position': visible.index(index) + 1 if index in visible else None,
            'totalSteps': len(visible),
            'step': {
                'id': step.id,
                'title': step.title_for(self.state.user_type),
                'subtitle': step.subtitle,
                'kind': step.kind,
                'field': step.field,
                'options': list(step.options),
                'fields': [{'name': f.name, 'label': f.label, 'required': f.required, 'kind': f.kind}
                           for f in step.fields],
                'autoAdvance': step.auto_advance,
            },
            'userType': self.state.user_type.value if self.state.user_type else None,
            'formData': dict(self.state.form_data),
            'pendingAdvance': {'stepId': pending.step_id, 'firesAt': pending.fires_at} if pending else None,
            'qualification': self.state.qualification,
        }

    def progress_snapshot(self) -> Dict[str, Any]:
        """Record handed to the progress store after each transition."""
        data = self.state.form_data
        snapshot = {
            'address': self.address,
            'currentStep': self.state.current_step,
            'totalSteps': len(self.visible_indices()),
            'userType': self.state.user_type.value if self.state.user_type else None,
            'formData': dict(data),
        }
        details = {k: data[k] for k in ('beds', 'baths', 'sqft', 'yearBuilt') if data.get(k) not in (None, '')}
        if details:
            snapshot['propertyDetails'] = details
        contact = {k: data[k] for k in ('fullName', 'email', 'phone') if data.get(k)}
        if contact:
            snapshot['contactInfo'] = contact
        if data.get('timeline'):
            snapshot['timeline'] = data['timeline']
        if data.get('cashOfferClaimed'):
            snapshot['cashOfferClaimed'] = True
            snapshot['cashOfferAmount'] = data.get('cashOfferAmount')
        return snapshot
