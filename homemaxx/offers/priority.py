"""
Lead priority scoring: weighted-sum heuristics over a lead record.

Seven categories each look up a discrete score from a table; the total picks
a tier band (ULTRA HOT … COLD) whose call-to-action is put at the head of the
recommendations.

    margin %    = (novationPrice - sellerPrice) / sellerPrice * 100
    deal size   = novationPrice - sellerPrice

A lead with no usable sellerPrice is rejected with InvalidLeadError rather
than scored with an infinite margin.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from homemaxx.models.lead_record import LeadRecord, Timeline

logger = logging.getLogger('offers.priority')


class InvalidLeadError(ValueError):
    """Lead cannot be scored (missing or zero prices)."""


# ── Scoring tables ───────────────────────────────────────────────────────────

# (minimum margin %, points, recommendation)
MARGIN_BANDS = [
    (100, 40, '🔥 ULTRA HIGH MARGIN - Priority 1 lead!'),
    (50, 35, '🚀 Excellent margin - High priority'),
    (25, 25, '💰 Good margin - Medium priority'),
    (15, 15, '✅ Acceptable margin - Standard priority'),
]
LOW_MARGIN = (5, '⚠️ Low margin - Consider passing')

# (minimum absolute margin, points)
DEAL_SIZE_BANDS = [
    (100000, 15),
    (50000, 12),
    (25000, 8),
    (10000, 5),
]
SMALL_DEAL_POINTS = 2

MOTIVATION_POINTS = {
    'foreclosure': 15,
    'divorce': 12,
    'inheritance': 10,
    'job_relocation': 8,
    'financial_hardship': 12,
    'tired_landlord': 8,
    'downsizing': 6,
    'upgrade': 4,
    'other': 5,
}
DEFAULT_MOTIVATION_POINTS = 5

TIMELINE_POINTS = {
    Timeline.ASAP: 10,
    Timeline.WEEKS_2_4: 8,
    Timeline.WEEKS_4_6: 6,
    Timeline.WEEKS_6_PLUS: 4,
    Timeline.JUST_BROWSING: 2,
}
DEFAULT_TIMELINE_POINTS = 4

CONDITION_POINTS = {
    'needs_major_work': 10,
    'needs_minor_work': 8,
    'move_in_ready': 6,
    'recently_renovated': 4,
}
DEFAULT_CONDITION_POINTS = 6

CASH_OFFER_POINTS = 5
HOT_MARKETS = ('las_vegas', 'phoenix', 'austin', 'denver', 'seattle')
HOT_MARKET_POINTS = 5
OTHER_MARKET_POINTS = 3

# (minimum score, level, color, call-to-action)
PRIORITY_LEVELS = [
    (80, 'ULTRA HOT 🔥🔥🔥', '#ff0000', '🚨 CALL IMMEDIATELY - Exceptional deal!'),
    (65, 'HOT 🔥🔥', '#ff6600', '📞 Call within 1 hour - High priority'),
    (50, 'WARM 🔥', '#ff9900', '📱 Call within 4 hours - Good opportunity'),
    (35, 'LUKEWARM', '#ffcc00', '📧 Follow up within 24 hours'),
]
COLD_LEVEL = ('COLD', '#cccccc', '🗂️ Add to nurture sequence')


@dataclass
class LeadPriority:
    score: int
    level: str
    color: str
    breakdown: Dict[str, Dict[str, Any]]
    recommendations: List[str] = field(default_factory=list)
    wholesale_margin: float = 0.0
    margin_percentage: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'score': self.score,
            'level': self.level,
            'color': self.color,
            'breakdown': self.breakdown,
            'recommendations': list(self.recommendations),
            'wholesaleMargin': f"${self.wholesale_margin:,.0f}",
            'marginPercentage': f"{self.margin_percentage:.1f}%",
        }


def _novation_price(lead: LeadRecord) -> Optional[float]:
    for candidate in (lead.novation_price, lead.retail_value, lead.estimated_value):
        if candidate:
            return candidate
    return None


def margin_points(margin_pct: float):
    for minimum, points, recommendation in MARGIN_BANDS:
        if margin_pct >= minimum:
            return points, recommendation
    return LOW_MARGIN


def deal_size_points(margin: float) -> int:
    for minimum, points in DEAL_SIZE_BANDS:
        if margin >= minimum:
            return points
    return SMALL_DEAL_POINTS


def priority_level(score: int):
    """Return (level, color, call-to-action) for a total score."""
    for minimum, level, color, action in PRIORITY_LEVELS:
        if score >= minimum:
            return level, color, action
    return COLD_LEVEL


def _table_lookup(table, key, default, category, breakdown_extra):
    """Look a categorical answer up, marking unmatched answers in the breakdown."""
    if key is None:
        breakdown_extra['matched'] = False
        return default
    if key in table:
        breakdown_extra['matched'] = True
        return table[key]
    breakdown_extra['matched'] = False
    logger.debug("Unrecognized %s '%s', using default %d points", category, key, default)
    return default


def calculate_lead_priority(lead) -> LeadPriority:
    """
    Score a lead for follow-up priority.

    `lead` is a LeadRecord or a raw dict (parsed at the boundary).
    Raises InvalidLeadError if sellerPrice is missing/zero or no novation price
    can be derived.
    """
    if not isinstance(lead, LeadRecord):
        lead = LeadRecord.from_dict(lead)

    seller_price = lead.seller_price
    if not seller_price or seller_price <= 0:
        raise InvalidLeadError('sellerPrice must be a positive number')
    novation_price = _novation_price(lead)
    if novation_price is None:
        raise InvalidLeadError('novationPrice (or retailValue / estimatedValue) is required')

    breakdown: Dict[str, Dict[str, Any]] = {}
    recommendations: List[str] = []
    score = 0

    margin = novation_price - seller_price
    margin_pct = margin / seller_price * 100

    points, recommendation = margin_points(margin_pct)
    score += points
    recommendations.append(recommendation)
    breakdown['wholesaleMargin'] = {
        'points': points,
        'margin': margin,
        'percentage': round(margin_pct, 1),
    }

    points = deal_size_points(margin)
    score += points
    breakdown['dealSize'] = {'points': points, 'amount': margin}

    extra: Dict[str, Any] = {'value': lead.motivation}
    points = _table_lookup(MOTIVATION_POINTS, lead.motivation, DEFAULT_MOTIVATION_POINTS, 'motivation', extra)
    score += points
    breakdown['motivation'] = {'points': points, **extra}

    timeline_value = lead.timeline.value if lead.timeline else None
    extra = {'value': timeline_value}
    points = _table_lookup(TIMELINE_POINTS, lead.timeline, DEFAULT_TIMELINE_POINTS, 'timeline', extra)
    score += points
    breakdown['timeline'] = {'points': points, **extra}

    extra = {'value': lead.property_condition}
    points = _table_lookup(
        CONDITION_POINTS, lead.property_condition, DEFAULT_CONDITION_POINTS, 'condition', extra)
    score += points
    breakdown['condition'] = {'points': points, **extra}

    if lead.cash_offer_claimed:
        score += CASH_OFFER_POINTS
        recommendations.append('💸 Cash offer claimed - Highly motivated seller')
        breakdown['cashOffer'] = {'points': CASH_OFFER_POINTS, 'claimed': True}
    else:
        breakdown['cashOffer'] = {'points': 0, 'claimed': False}

    hot = lead.location in HOT_MARKETS
    points = HOT_MARKET_POINTS if hot else OTHER_MARKET_POINTS
    score += points
    breakdown['location'] = {'points': points, 'value': lead.location, 'hotMarket': hot}

    level, color, action = priority_level(score)
    recommendations.insert(0, action)

    return LeadPriority(
        score=score,
        level=level,
        color=color,
        breakdown=breakdown,
        recommendations=recommendations,
        wholesale_margin=margin,
        margin_percentage=margin_pct,
    )
