"""
Typed view of a raw lead payload.

Browser payloads are loosely typed (strings for numbers, several vocabularies
for the same answer). from_dict() parses once at the boundary: numbers become
floats, categorical answers become enums, and anything unrecognized is set to
None with a note in `warnings` instead of leaking through as a raw string.
The original dict is kept in `raw` so it can be forwarded to the CRM verbatim.
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Timeline(str, Enum):
    ASAP = 'asap'
    WEEKS_2_4 = '2-4-weeks'
    WEEKS_4_6 = '4-6-weeks'
    WEEKS_6_PLUS = '6-weeks-plus'
    JUST_BROWSING = 'just-browsing'


class RoomQuality(str, Enum):
    LUXURY = 'luxury'
    HIGH_END = 'high-end'
    STANDARD = 'standard'
    DATED = 'dated'
    FIXER_UPPER = 'fixer-upper'


class UserType(str, Enum):
    OWNER = 'owner'
    AGENT = 'agent'
    AGENT_OWNER = 'agent-owner'
    HOA = 'hoa'

    @property
    def is_agent(self):
        return self in (UserType.AGENT, UserType.AGENT_OWNER)


class MarketCondition(str, Enum):
    HOT = 'hot'
    NORMAL = 'normal'
    SLOW = 'slow'


# Other pages and the scoring API use their own timeline words.
TIMELINE_ALIASES = {
    'within_30_days': Timeline.WEEKS_2_4,
    '30_days': Timeline.WEEKS_2_4,
    'within_60_days': Timeline.WEEKS_4_6,
    '60_days': Timeline.WEEKS_4_6,
    'within_90_days': Timeline.WEEKS_6_PLUS,
    'no_rush': Timeline.JUST_BROWSING,
    'flexible': Timeline.JUST_BROWSING,
}

ROOM_QUALITY_ALIASES = {
    'fixer': RoomQuality.FIXER_UPPER,
    'fixer_upper': RoomQuality.FIXER_UPPER,
    'high_end': RoomQuality.HIGH_END,
}

_STATE_ZIP_RE = re.compile(r',\s*([A-Z]{2})\s+\d{5}(?:-\d{4})?\s*$')
_STATE_TAIL_RE = re.compile(r',\s*([A-Z]{2})\s*$')


def _parse_enum(enum_cls, value, aliases, name, warnings):
    if value is None or value == '':
        return None
    if isinstance(value, enum_cls):
        return value
    key = str(value).strip().lower()
    try:
        return enum_cls(key)
    except ValueError:
        pass
    if key in aliases:
        return aliases[key]
    warnings.append(f"unrecognized {name} '{value}'")
    return None


def _parse_number(value, name, warnings):
    if value is None or value == '' or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = str(value).replace(',', '').replace('$', '').strip()
    try:
        return float(cleaned)
    except ValueError:
        warnings.append(f"non-numeric {name} '{value}'")
        return None


def _parse_bool(value):
    if isinstance(value, str):
        return value.strip().lower() in ('true', 'yes', '1', 'on')
    return bool(value)


def _as_list(value):
    if value is None or value == '':
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v is not None and v != '']
    return [str(value)]


def state_from_address(address: str) -> Optional[str]:
    """Pull a two-letter state out of '123 Main St, Las Vegas, NV 89101'."""
    if not address:
        return None
    for pattern in (_STATE_ZIP_RE, _STATE_TAIL_RE):
        match = pattern.search(address.strip())
        if match:
            return match.group(1)
    return None


@dataclass
class LeadRecord:
    address: str = ''
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None

    first_name: str = ''
    last_name: str = ''
    email: str = ''
    phone: str = ''
    sms_consent: bool = False

    beds: Optional[float] = None
    baths: Optional[float] = None
    sqft: Optional[float] = None
    year_built: Optional[float] = None

    kitchen_quality: Optional[RoomQuality] = None
    bathroom_quality: Optional[RoomQuality] = None
    living_room_quality: Optional[RoomQuality] = None
    property_condition: Optional[str] = None

    timeline: Optional[Timeline] = None
    user_type: Optional[UserType] = None
    market_condition: Optional[MarketCondition] = None
    has_hoa: Optional[bool] = None
    hoa_fees: Optional[float] = None
    property_issues: List[str] = field(default_factory=list)
    motivation: Optional[str] = None
    motivations: List[str] = field(default_factory=list)
    location: Optional[str] = None
    property_type: Optional[str] = None

    seller_price: Optional[float] = None
    novation_price: Optional[float] = None
    retail_value: Optional[float] = None
    estimated_value: Optional[float] = None
    cash_offer_claimed: bool = False

    warnings: List[str] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def has_complete_contact(self):
        return bool(self.email and self.phone and self.first_name and self.last_name)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'LeadRecord':
        data = dict(data or {})
        warnings: List[str] = []
        record = cls(raw=data, warnings=warnings)

        address = data.get('address') or data.get('preconfirmedAddress') or data.get('propertyAddress') or ''
        if isinstance(address, dict):
            record.address = str(address.get('full') or '').strip()
            record.city = address.get('city')
            record.state = address.get('state')
            record.zip_code = address.get('zipCode')
        else:
            record.address = str(address).strip()
        record.state = (data.get('state') or record.state or None)
        if record.state:
            record.state = str(record.state).strip().upper()

        record.first_name = str(data.get('firstName') or '').strip()
        record.last_name = str(data.get('lastName') or '').strip()
        if not record.first_name and data.get('fullName'):
            parts = str(data['fullName']).split()
            record.first_name = parts[0] if parts else ''
            record.last_name = ' '.join(parts[1:])
        record.email = str(data.get('email') or '').strip()
        record.phone = str(data.get('phone') or '').strip()
        record.sms_consent = _parse_bool(data.get('smsConsent', False))

        record.beds = _parse_number(data.get('beds'), 'beds', warnings)
        record.baths = _parse_number(data.get('baths'), 'baths', warnings)
        record.sqft = _parse_number(data.get('sqft'), 'sqft', warnings)
        record.year_built = _parse_number(data.get('yearBuilt'), 'yearBuilt', warnings)

        record.kitchen_quality = _parse_enum(
            RoomQuality, data.get('kitchenQuality') or data.get('kitchen-quality'),
            ROOM_QUALITY_ALIASES, 'kitchenQuality', warnings)
        record.bathroom_quality = _parse_enum(
            RoomQuality, data.get('bathroomQuality') or data.get('bathroom-quality'),
            ROOM_QUALITY_ALIASES, 'bathroomQuality', warnings)
        record.living_room_quality = _parse_enum(
            RoomQuality, data.get('livingRoomQuality') or data.get('living-room-quality'),
            ROOM_QUALITY_ALIASES, 'livingRoomQuality', warnings)
        condition = data.get('propertyCondition') or data.get('condition')
        if condition:
            record.property_condition = str(condition).strip().lower()

        record.timeline = _parse_enum(Timeline, data.get('timeline'), TIMELINE_ALIASES, 'timeline', warnings)
        record.user_type = _parse_enum(UserType, data.get('userType'), {}, 'userType', warnings)
        record.market_condition = _parse_enum(
            MarketCondition, data.get('marketCondition'), {}, 'marketCondition', warnings)

        if data.get('hasHOA') not in (None, ''):
            record.has_hoa = _parse_bool(data['hasHOA'])
        record.hoa_fees = _parse_number(data.get('hoaFees') or data.get('hoa-fees'), 'hoaFees', warnings)
        record.property_issues = [
            issue for issue in _as_list(data.get('propertyIssues') or data.get('property-issues'))
            if issue != 'none'
        ]
        if data.get('motivation'):
            record.motivation = str(data['motivation']).strip().lower()
        record.motivations = _as_list(data.get('motivations'))
        if data.get('location'):
            record.location = str(data['location']).strip().lower()
        record.property_type = data.get('propertyType')

        record.seller_price = _parse_number(data.get('sellerPrice'), 'sellerPrice', warnings)
        record.novation_price = _parse_number(data.get('novationPrice'), 'novationPrice', warnings)
        record.retail_value = _parse_number(data.get('retailValue'), 'retailValue', warnings)
        details = data.get('propertyDetails') if isinstance(data.get('propertyDetails'), dict) else {}
        record.estimated_value = _parse_number(
            data.get('estimatedValue', details.get('estimatedValue')), 'estimatedValue', warnings)
        record.cash_offer_claimed = _parse_bool(data.get('cashOfferClaimed', False))

        return record

    def resolved_state(self, known_states) -> Optional[str]:
        """
        Structured state first, then the ', NV 89101' tail of the address,
        then a plain substring match against the known states.
        """
        if self.state:
            return self.state
        parsed = state_from_address(self.address)
        if parsed:
            return parsed
        for abbreviation in known_states:
            if abbreviation in self.address:
                return abbreviation
        return None
