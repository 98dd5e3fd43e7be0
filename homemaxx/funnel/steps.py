"""
Ordered step table for the get-offer funnel.

Each Step names the form field(s) it fills, its options (choice steps), whether
choosing an option auto-advances, and an optional visibility predicate over the
funnel state. Indices into STEPS are stable; invisible steps are skipped by
navigation, never removed.
"""
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple

INPUT = 'input'
SINGLE = 'single'
IMAGE = 'image'
MULTI = 'multi'
INFO = 'info'
CONTACT = 'contact'

CHOICE_KINDS = (SINGLE, IMAGE)

_EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


@dataclass(frozen=True)
class Field:
    name: str
    label: str = ''
    required: bool = True
    kind: str = 'text'  # text | email | phone | number | boolean

    def validate(self, value) -> Optional[str]:
        """Error message for `value`, or None when it is acceptable."""
        missing = value is None or (isinstance(value, str) and not value.strip())
        if missing:
            return f'{self.label or self.name} is required' if self.required else None
        if self.kind == 'email' and not _EMAIL_RE.match(str(value).strip()):
            return 'Please enter a valid email address'
        if self.kind == 'phone':
            digits = re.sub(r'\D', '', str(value))
            if not 10 <= len(digits) <= 15:
                return 'Please enter a valid phone number'
        if self.kind == 'number':
            try:
                float(str(value).replace(',', ''))
            except ValueError:
                return f'{self.label or self.name} must be a number'
        return None


def _always(state):
    return True


@dataclass(frozen=True)
class Step:
    id: str
    title: str
    kind: str
    subtitle: str = ''
    agent_title: Optional[str] = None
    field: Optional[str] = None
    options: Tuple[str, ...] = ()
    fields: Tuple[Field, ...] = ()
    auto_advance: bool = False
    min_selected: int = 0
    exclusive_option: Optional[str] = None
    visible: Callable = _always

    def title_for(self, user_type) -> str:
        if self.agent_title and user_type is not None and user_type.is_agent:
            return self.agent_title
        return self.title

    def validate(self, form_data: Dict) -> Dict[str, str]:
        """Field → error for everything blocking `next()` on this step."""
        errors = {}
        if self.kind in (INPUT, CONTACT):
            for f in self.fields:
                message = f.validate(form_data.get(f.name))
                if message:
                    errors[f.name] = message
        elif self.kind in CHOICE_KINDS:
            value = form_data.get(self.field)
            if value is None or value == '':
                errors[self.field] = 'Please choose an option'
            elif value not in self.options:
                errors[self.field] = f"'{value}' is not a valid option"
        elif self.kind == MULTI:
            selected = form_data.get(self.field) or []
            if len(selected) < self.min_selected:
                errors[self.field] = 'Please select at least one option'
        return errors


# ── Option vocabularies ──────────────────────────────────────────────────────

MOTIVATIONS = (
    'moving-to-new-home', 'job-relocation', 'retirement', 'divorce',
    'financial-hardship', 'downsizing', 'inheritance', 'unique-situation',
)
PRICE_RANGES = ('under-200k', '200k-300k', '300k-400k', '400k-500k', '500k-plus', 'unsure')
OWNER_TYPES = ('owner', 'agent', 'agent-owner', 'other')
TIMELINES = ('asap', '2-4-weeks', '4-6-weeks', '6-weeks-plus', 'just-browsing')
COUNTERTOPS = ('laminate', 'corian', 'quartz', 'granite-marble', 'granite-tile', 'other-tile', 'other')
ROOM_QUALITIES = ('fixer-upper', 'dated', 'standard', 'high-end', 'luxury')
YES_NO = ('yes', 'no')
PROPERTY_ISSUES = (
    'solar-panels', 'foundation-issues', 'fire-damage', 'well-water', 'septic-system',
    'asbestos-siding', 'horse-property', 'mobile-home', 'none',
)


# ── The funnel ───────────────────────────────────────────────────────────────

STEPS = (
    Step(
        id='address',
        title='Enter your home address',
        kind=INPUT,
        fields=(Field('address', 'Address'),),
        visible=lambda state: not state.preconfirmed_address,
    ),
    Step(
        id='property-details',
        title="Let's confirm your property details",
        subtitle='We found this information about your home. Please review and edit if needed.',
        kind=INPUT,
        fields=(
            Field('beds', 'Bedrooms', required=False, kind='number'),
            Field('baths', 'Bathrooms', required=False, kind='number'),
            Field('sqft', 'Square feet', required=False, kind='number'),
            Field('yearBuilt', 'Year built', required=False, kind='number'),
        ),
    ),
    Step(
        id='motivation',
        title="What's prompting you to think about selling your property at this time?",
        subtitle='Please choose all that apply.',
        kind=MULTI,
        field='motivations',
        options=MOTIVATIONS,
        min_selected=1,
    ),
    Step(
        id='price-expectations',
        title="Do you have an idea of what you'd like to receive for the property?",
        kind=SINGLE,
        field='priceExpectation',
        options=PRICE_RANGES,
        auto_advance=True,
    ),
    Step(
        id='owner-type',
        title='Are you the owner of this home?',
        subtitle="We have additional questions if you're an agent.",
        kind=SINGLE,
        field='ownerType',
        options=OWNER_TYPES,
        auto_advance=True,
    ),
    Step(
        id='agent-options',
        title='Great! There are two ways agents can work with us.',
        kind=INFO,
        visible=lambda state: state.user_type is not None and state.user_type.is_agent,
    ),
    Step(
        id='timeline',
        title='When do you need to sell your home?',
        agent_title="When do you need to sell your client's home?",
        subtitle="This won't affect your offer. We're here to help with any timeline.",
        kind=SINGLE,
        field='timeline',
        options=TIMELINES,
        auto_advance=True,
    ),
    Step(
        id='kitchen-countertops',
        title='What are your kitchen countertops made of?',
        agent_title="What are your client's kitchen countertops made of?",
        kind=SINGLE,
        field='kitchenCountertops',
        options=COUNTERTOPS,
        auto_advance=True,
    ),
    Step(
        id='kitchen-quality',
        title='How would you describe your kitchen?',
        agent_title="How would you describe your client's kitchen?",
        kind=IMAGE,
        field='kitchenQuality',
        options=ROOM_QUALITIES,
        auto_advance=True,
    ),
    Step(
        id='bathroom-quality',
        title='How would you describe your bathroom?',
        agent_title="How would you describe your client's bathroom?",
        kind=IMAGE,
        field='bathroomQuality',
        options=ROOM_QUALITIES,
        auto_advance=True,
    ),
    Step(
        id='living-room-quality',
        title='How would you describe your living room?',
        agent_title="How would you describe your client's living room?",
        kind=IMAGE,
        field='livingRoomQuality',
        options=ROOM_QUALITIES,
        auto_advance=True,
    ),
    Step(
        id='hoa-question',
        title='Is your home part of a homeowners association?',
        agent_title="Is your client's home part of a homeowners association?",
        kind=SINGLE,
        field='hasHOA',
        options=YES_NO,
        auto_advance=True,
    ),
    Step(
        id='hoa-fees',
        title='What are your monthly HOA fees?',
        agent_title="What are your client's monthly HOA fees?",
        subtitle="(Optional) This helps us better understand your property's monthly expenses.",
        kind=INPUT,
        fields=(Field('hoaFees', 'Monthly HOA fees', required=False, kind='number'),),
        visible=lambda state: state.form_data.get('hasHOA') == 'yes',
    ),
    Step(
        id='property-issues',
        title='Do any of these apply to your home?',
        agent_title="Do any of these apply to your client's home?",
        subtitle='Select all that apply.',
        kind=MULTI,
        field='propertyIssues',
        options=PROPERTY_ISSUES,
        min_selected=1,
        exclusive_option='none',
    ),
    Step(
        id='contact-info',
        title='Sign in to get your offer',
        subtitle="It's totally free and there's no commitment.",
        kind=CONTACT,
        fields=(
            Field('fullName', 'Full name'),
            Field('email', 'Email', kind='email'),
            Field('phone', 'Phone', kind='phone'),
            Field('smsConsent', 'SMS consent', required=False, kind='boolean'),
        ),
    ),
)

STEP_INDEX = {step.id: i for i, step in enumerate(STEPS)}
