"""
Offer calculator: market value → cash-offer range → priority + qualification.

    market value  = (lead estimate or state baseline) × market-condition multiplier
    cash offer    = market value × condition multiplier × timeline multiplier
    offer range   = cash offer ± 5%

Lead capture must never fail on a bad calculation, so calculate_offer() always
returns an OfferOutcome:

  - primary path succeeds        → degraded_reason is None
  - primary path fails           → fallback calculator (state baseline, 75% cash
                                   ratio) with a DegradedReason
  - fallback also fails          → fixed static body, success=False

Pricing tables come from pricing_config.yaml, cached, with a hardcoded fallback.
"""
import copy
import dataclasses
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import yaml

from homemaxx.models.lead_record import LeadRecord, MarketCondition, RoomQuality
from homemaxx.offers.priority import calculate_lead_priority
from homemaxx.offers.qualification import qualify_lead

logger = logging.getLogger('offers.calculator')


class DegradedReason(str, Enum):
    MISSING_ADDRESS = 'missing_address'
    INVALID_INPUT = 'invalid_input'
    CALCULATION_ERROR = 'calculation_error'


class OfferCalculationError(Exception):
    """Primary calculation could not run; carries the reason to report."""
    def __init__(self, message, reason=DegradedReason.CALCULATION_ERROR):
        self.reason = reason
        super().__init__(message)


@dataclass
class OfferOutcome:
    """An offer result plus whether (and why) it is degraded data."""
    result: Dict[str, Any]
    degraded_reason: Optional[DegradedReason] = None
    error: Optional[str] = None
    static: bool = False

    @property
    def fallback_used(self) -> bool:
        return self.degraded_reason is not None

    @property
    def qualified(self) -> bool:
        return bool((self.result.get('qualificationScore') or {}).get('qualified'))

    def to_dict(self) -> Dict[str, Any]:
        body = {'success': not self.static}
        body.update(self.result)
        body['fallbackUsed'] = self.fallback_used
        body['degradedReason'] = self.degraded_reason.value if self.degraded_reason else None
        return body


# ── Pricing config (YAML with hardcoded fallback) ────────────────────────────

_pricing_config = None


def _default_config():
    """Hardcoded fallback if YAML is missing."""
    return {
        'version': 'default',
        'market_multipliers': {
            'NV': {'hot': 1.15, 'normal': 1.0, 'slow': 0.85, 'assignmentBase': 15000},
            'TX': {'hot': 1.12, 'normal': 1.0, 'slow': 0.88, 'assignmentBase': 12000},
            'GA': {'hot': 1.10, 'normal': 1.0, 'slow': 0.90, 'assignmentBase': 10000},
            'FL': {'hot': 1.18, 'normal': 1.0, 'slow': 0.82, 'assignmentBase': 18000},
            'CA': {'hot': 1.25, 'normal': 1.0, 'slow': 0.75, 'assignmentBase': 25000},
            'AZ': {'hot': 1.14, 'normal': 1.0, 'slow': 0.86, 'assignmentBase': 13000},
        },
        'default_market': {'hot': 1.0, 'normal': 1.0, 'slow': 1.0, 'assignmentBase': 12000},
        'condition_multipliers': {
            'luxury': 0.95,
            'high-end': 0.95,
            'standard': 0.90,
            'dated': 0.80,
            'fixer-upper': 0.65,
        },
        'default_condition': 'standard',
        'timeline_urgency': {
            'asap': {'multiplier': 0.85, 'urgency': 100},
            '2-4-weeks': {'multiplier': 0.88, 'urgency': 90},
            '4-6-weeks': {'multiplier': 0.92, 'urgency': 70},
            '6-weeks-plus': {'multiplier': 0.95, 'urgency': 50},
            'just-browsing': {'multiplier': 0.98, 'urgency': 20},
        },
        'default_timeline': '4-6-weeks',
        'base_values': {'CA': 500000, 'FL': 350000, 'NV': 350000, 'TX': 300000, 'AZ': 300000},
        'default_base_value': 250000,
        'market_value_spread': 0.15,
        'cash_offer_spread': 0.05,
        'fallback_cash_ratio': 0.75,
        'qualification_thresholds': {'auto_approval': 15000, 'manual_approval': 10000},
        'bonus_amounts': {'bonus': 15000, 'standard': 7500},
        'time_to_close': {
            'asap': '7-14 days',
            '2-4-weeks': '14-28 days',
            '4-6-weeks': '28-42 days',
            '6-weeks-plus': '42-60 days',
            'just-browsing': 'Flexible',
        },
    }


def load_pricing_config():
    """Load pricing tables from YAML, with in-memory cache and hardcoded fallback."""
    global _pricing_config
    if _pricing_config is not None:
        return _pricing_config

    config_path = os.path.join(os.path.dirname(__file__), 'pricing_config.yaml')
    try:
        with open(config_path, 'r') as f:
            _pricing_config = yaml.safe_load(f)
        logger.info("Pricing config loaded from YAML (version=%s)", _pricing_config.get('version', '?'))
    except Exception as e:
        logger.warning("Pricing YAML not found (%s), using defaults", e)
        _pricing_config = _default_config()

    return _pricing_config


# ── Shared helpers ───────────────────────────────────────────────────────────

def _spread(value, fraction):
    return {'low': round(value * (1 - fraction)), 'high': round(value * (1 + fraction))}


def _approval_status(assignment_fee, config):
    """(status, level, color, priority, contact timing) for an assignment fee."""
    thresholds = config['qualification_thresholds']
    if assignment_fee >= thresholds['auto_approval']:
        return ('AUTO_APPROVED', 'URGENT', '#dc2626', 'HIGHEST',
                'Call within 10 minutes - Auto approved for instant cash bonus')
    if assignment_fee >= thresholds['manual_approval']:
        return ('MANUAL_REVIEW', 'IMPORTANT', '#ea580c', 'HIGH',
                'Contact within 24 hours - Subject to approval')
    return ('NOT_ELIGIBLE', 'STANDARD', '#6b7280', 'STANDARD',
            'Not eligible for instant cash bonus')


def _room_qualities(lead: LeadRecord):
    return [q for q in (lead.kitchen_quality, lead.bathroom_quality, lead.living_room_quality) if q]


# ── Primary calculation ──────────────────────────────────────────────────────

def estimate_market_value(lead: LeadRecord, state: Optional[str], config) -> Dict[str, Any]:
    market = config['market_multipliers'].get(state, config['default_market'])
    condition = (lead.market_condition or MarketCondition.NORMAL).value
    multiplier = market[condition]

    if lead.estimated_value:
        base = lead.estimated_value
        confidence = 75
        methodology = 'Provided estimate adjusted for market conditions'
    else:
        base = config['base_values'].get(state, config['default_base_value'])
        confidence = 65
        methodology = 'State baseline adjusted for market conditions'

    estimated = round(base * multiplier)
    return {
        'estimated': estimated,
        'range': _spread(estimated, config['market_value_spread']),
        'confidence': confidence,
        'methodology': methodology,
        'marketCondition': condition,
        'state': state,
    }


def condition_multiplier(lead: LeadRecord, config):
    """Average multiplier over the rated rooms; (multiplier, assumed?)."""
    table = config['condition_multipliers']
    qualities = _room_qualities(lead)
    if not qualities:
        return table[config['default_condition']], True
    values = [table[q.value] for q in qualities]
    return round(sum(values) / len(values), 4), False


def timeline_multiplier(lead: LeadRecord, config):
    """(multiplier, urgency, timeline key, assumed?)"""
    table = config['timeline_urgency']
    key = lead.timeline.value if lead.timeline else config['default_timeline']
    entry = table[key]
    return entry['multiplier'], entry['urgency'], key, lead.timeline is None


def calculate_cash_offer(market_value: Dict[str, Any], lead: LeadRecord, config) -> Dict[str, Any]:
    cond, cond_assumed = condition_multiplier(lead, config)
    tl, urgency, timeline_key, tl_assumed = timeline_multiplier(lead, config)

    primary = round(market_value['estimated'] * cond * tl)
    assumed = []
    if cond_assumed:
        assumed.append('condition')
    if tl_assumed:
        assumed.append('timeline')

    return {
        'primary': primary,
        'range': _spread(primary, config['cash_offer_spread']),
        'breakdown': {
            'marketValue': market_value['estimated'],
            'conditionMultiplier': cond,
            'timelineMultiplier': tl,
            'urgencyScore': urgency,
            'timeline': timeline_key,
            'discountApplied': market_value['estimated'] - primary,
            'assumedDefaults': assumed,
            'methodology': 'Market value adjusted for condition and timeline',
        },
    }


def _priority_lead(lead: LeadRecord, market_value, cash_offer) -> LeadRecord:
    # Score the spread between our offer and market value unless the lead
    # brought its own prices.
    if lead.seller_price and lead.novation_price:
        return lead
    return dataclasses.replace(
        lead,
        seller_price=float(cash_offer['primary']),
        novation_price=float(market_value['estimated']),
    )


def bonus_eligibility(qualification, assignment_fee, config) -> Dict[str, Any]:
    status = _approval_status(assignment_fee, config)[0]
    if not qualification.qualified:
        return {
            'qualifies': False,
            'tier': None,
            'amount': 0,
            'assignmentFee': assignment_fee,
            'status': status,
            'reasoning': '; '.join(qualification.reasons) or 'Score below qualification threshold',
        }
    tier = 'bonus' if assignment_fee >= config['qualification_thresholds']['auto_approval'] else 'standard'
    return {
        'qualifies': True,
        'tier': tier,
        'amount': config['bonus_amounts'][tier],
        'assignmentFee': assignment_fee,
        'status': status,
        'reasoning': f"Qualification score {qualification.score}/100",
    }


def property_insights(lead, market_value, priority, timeline_key, config):
    condition = market_value['marketCondition']
    if condition == MarketCondition.HOT.value:
        position = "Strong seller's market"
    elif condition == MarketCondition.SLOW.value:
        position = "Buyer's market"
    else:
        position = 'Balanced market'

    if priority.margin_percentage >= 25:
        potential = 'High'
    elif priority.margin_percentage >= 15:
        potential = 'Moderate'
    else:
        potential = 'Limited'

    return {
        'marketPosition': position,
        'investmentPotential': potential,
        'timeToClose': config['time_to_close'].get(timeline_key, '14-30 days'),
    }


def next_steps(qualified: bool) -> Dict[str, str]:
    if qualified:
        return {
            'immediate': 'Schedule your cash offer consultation',
            'preparation': 'Gather property documents',
            'timeline': 'Offer review within 24 hours',
        }
    return {
        'immediate': 'A specialist will review your property',
        'preparation': 'Gather property documents',
        'timeline': 'Follow up within 48 hours',
    }


def calculate_offer_analysis(lead: LeadRecord, config=None) -> Dict[str, Any]:
    """
    Full offer analysis. Raises OfferCalculationError when the lead cannot be
    priced (no address, non-numeric figures).
    """
    config = config or load_pricing_config()

    if not lead.address:
        raise OfferCalculationError('address is required', DegradedReason.MISSING_ADDRESS)
    bad_numbers = [w for w in lead.warnings if w.startswith('non-numeric')]
    if bad_numbers:
        raise OfferCalculationError('; '.join(bad_numbers), DegradedReason.INVALID_INPUT)

    state = lead.resolved_state(config['market_multipliers'].keys())
    market_value = estimate_market_value(lead, state, config)
    cash_offer = calculate_cash_offer(market_value, lead, config)

    priority = calculate_lead_priority(_priority_lead(lead, market_value, cash_offer))
    qualification = qualify_lead(lead, estimated_value=market_value['estimated'])
    assignment_fee = config['market_multipliers'].get(state, config['default_market'])['assignmentBase']

    return {
        'marketValue': market_value,
        'cashOfferRange': cash_offer,
        'qualificationScore': qualification.to_dict(),
        'bonusEligibility': bonus_eligibility(qualification, assignment_fee, config),
        'leadPriorityScore': priority.to_dict(),
        'propertyInsights': property_insights(
            lead, market_value, priority, cash_offer['breakdown']['timeline'], config),
        'nextSteps': next_steps(qualification.qualified),
    }


# ── Fallback calculation ─────────────────────────────────────────────────────

ROOM_POINTS = {
    RoomQuality.LUXURY: 10,
    RoomQuality.HIGH_END: 8,
    RoomQuality.STANDARD: 6,
    RoomQuality.DATED: 4,
    RoomQuality.FIXER_UPPER: 2,
}
DEFAULT_ROOM_POINTS = 6


def _substring_state(address, states, default=None):
    for abbreviation in states:
        if abbreviation in address:
            return abbreviation
    return default


def estimate_basic_market_value(lead: LeadRecord, config) -> Dict[str, Any]:
    state = _substring_state(lead.address, config['base_values'].keys())
    base = config['base_values'].get(state, config['default_base_value'])
    return {
        'estimated': base,
        'range': _spread(base, config['market_value_spread']),
        'confidence': 60,
        'methodology': 'Basic fallback estimation',
    }


def calculate_basic_cash_offer(market_value, config) -> Dict[str, Any]:
    ratio = config['fallback_cash_ratio']
    primary = round(market_value['estimated'] * ratio)
    return {
        'primary': primary,
        'range': _spread(primary, config['cash_offer_spread']),
        'breakdown': {
            'marketValue': market_value['estimated'],
            'discountApplied': round(market_value['estimated'] * (1 - ratio)),
            'methodology': 'Basic cash offer calculation',
        },
    }


def calculate_basic_priority(lead: LeadRecord, market_value, config) -> Dict[str, Any]:
    """Priority from the market's assignment fee and room condition."""
    state = _substring_state(lead.address, ('NV', 'CA', 'FL', 'GA', 'AZ'), default='TX')
    assignment_fee = config['market_multipliers'].get(state, config['default_market'])['assignmentBase']

    condition_score = sum(
        ROOM_POINTS.get(quality, DEFAULT_ROOM_POINTS)
        for quality in (lead.kitchen_quality, lead.bathroom_quality, lead.living_room_quality)
    )

    score = 40
    if lead.timeline is not None and lead.timeline.value == 'asap':
        score += 15
    elif lead.timeline is not None and lead.timeline.value == '2-4-weeks':
        score += 10
    if lead.cash_offer_claimed:
        score += 10
    score += condition_score

    status, level, color, priority, contact_timing = _approval_status(assignment_fee, config)
    return {
        'score': score,
        'level': level,
        'color': color,
        'priority': priority,
        'contactTiming': contact_timing,
        'qualificationStatus': status,
        'assignmentFee': assignment_fee,
        'recommendations': [f"Assignment fee: ${assignment_fee:,}", f"Status: {status}"],
        'wholesaleMargin': assignment_fee,
        'marginPercentage': f"{assignment_fee / market_value['estimated'] * 100:.1f}%",
        'fallbackCalculation': True,
    }


def calculate_fallback_offer(lead: LeadRecord, config=None) -> Dict[str, Any]:
    config = config or load_pricing_config()
    market_value = estimate_basic_market_value(lead, config)
    cash_offer = calculate_basic_cash_offer(market_value, config)
    return {
        'marketValue': market_value,
        'cashOfferRange': cash_offer,
        'qualificationScore': {'total': 50, 'qualified': False},
        'bonusEligibility': {'qualifies': False, 'reasoning': 'Manual review required'},
        'leadPriorityScore': calculate_basic_priority(lead, market_value, config),
        'propertyInsights': {
            'marketPosition': 'Requires manual assessment',
            'investmentPotential': 'Under review',
            'timeToClose': '14-30 days',
        },
        'nextSteps': {
            'immediate': 'Manual property evaluation scheduled',
            'preparation': 'Gather property documents',
            'timeline': 'Review within 24 hours',
        },
    }


_STATIC_FALLBACK = {
    'error': 'Calculation temporarily unavailable',
    'fallbackResponse': True,
    'marketValue': {
        'estimated': 250000,
        'methodology': 'Fallback estimate - manual review required',
    },
    'cashOfferRange': {
        'primary': 200000,
        'range': {'low': 190000, 'high': 210000},
    },
    'qualificationScore': {'total': 50, 'qualified': False},
    'bonusEligibility': {'qualifies': False},
    'leadPriorityScore': {
        'score': 50,
        'level': 'MANUAL REVIEW',
        'color': '#6c757d',
        'recommendations': ['System error - manual review required'],
        'wholesaleMargin': 'TBD',
        'marginPercentage': 'TBD',
    },
    'propertyInsights': {
        'marketPosition': 'Requires manual assessment',
        'investmentPotential': 'Under review',
    },
    'nextSteps': {
        'immediate': 'Contact our team for manual evaluation',
        'timeline': 'Manual review within 24 hours',
    },
}


def static_fallback() -> OfferOutcome:
    """The fixed body returned when even the fallback calculator fails."""
    return OfferOutcome(
        result=copy.deepcopy(_STATIC_FALLBACK),
        degraded_reason=DegradedReason.CALCULATION_ERROR,
        error='Calculation temporarily unavailable',
        static=True,
    )


def calculate_offer(lead) -> OfferOutcome:
    """
    Calculate an offer for a raw lead dict or LeadRecord. Never raises.
    """
    try:
        if not isinstance(lead, LeadRecord):
            lead = LeadRecord.from_dict(lead)
        return OfferOutcome(result=calculate_offer_analysis(lead))
    except OfferCalculationError as e:
        reason, error = e.reason, str(e)
        logger.warning("Primary offer calculation degraded (%s): %s", reason.value, e)
    except Exception as e:
        reason, error = DegradedReason.CALCULATION_ERROR, str(e)
        logger.error("Primary offer calculation failed, using fallback", exc_info=True)

    try:
        if not isinstance(lead, LeadRecord):
            lead = LeadRecord.from_dict(lead)
        return OfferOutcome(result=calculate_fallback_offer(lead), degraded_reason=reason, error=error)
    except Exception:
        logger.error("Fallback offer calculation failed, returning static body", exc_info=True)
        return static_fallback()
