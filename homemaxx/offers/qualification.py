"""
100-point qualification rubric for the $7,500 / $15,000 instant cash offer.

    property value >= $200k             25
    timeline asap / 2-4 weeks           20   (4-6 weeks: 10)
    condition updated                   20   (livable-but-dated 15, needs-work 10)
    property in a target state          15
    no serious structural issues        10
    complete contact information        10

A lead is qualified at 70 points.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from homemaxx.config import QUALIFIED_SCORE_THRESHOLD, TARGET_STATES
from homemaxx.models.lead_record import LeadRecord, RoomQuality, Timeline

MIN_PROPERTY_VALUE = 200000

TIMELINE_POINTS = {
    Timeline.ASAP: 20,
    Timeline.WEEKS_2_4: 20,
    Timeline.WEEKS_4_6: 10,
}

CONDITION_POINTS = {
    'updated': 20,
    'livable-but-dated': 15,
    'needs-work': 10,
}

# Funnel leads rate rooms instead of the whole house; the kitchen stands in.
ROOM_QUALITY_CONDITION = {
    RoomQuality.LUXURY: 'updated',
    RoomQuality.HIGH_END: 'updated',
    RoomQuality.STANDARD: 'livable-but-dated',
    RoomQuality.DATED: 'livable-but-dated',
    RoomQuality.FIXER_UPPER: 'needs-work',
}

SERIOUS_ISSUES = ('foundation-issues', 'fire-damage', 'asbestos-siding')


@dataclass
class QualificationResult:
    score: int
    qualified: bool
    reasons: List[str] = field(default_factory=list)
    breakdown: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.score,
            'qualified': self.qualified,
            'breakdown': dict(self.breakdown),
            'reasons': list(self.reasons),
        }


def overall_condition(lead: LeadRecord) -> Optional[str]:
    if lead.property_condition in CONDITION_POINTS:
        return lead.property_condition
    quality = lead.kitchen_quality or lead.living_room_quality or lead.bathroom_quality
    return ROOM_QUALITY_CONDITION.get(quality)


def qualify_lead(lead, estimated_value: Optional[float] = None) -> QualificationResult:
    """
    Score a lead against the rubric.

    `estimated_value` overrides the lead's own estimate (the offer calculator
    passes its market value here).
    """
    if not isinstance(lead, LeadRecord):
        lead = LeadRecord.from_dict(lead)

    breakdown = {}
    reasons = []

    value = estimated_value if estimated_value is not None else lead.estimated_value
    if value and value >= MIN_PROPERTY_VALUE:
        breakdown['propertyValue'] = 25
    else:
        breakdown['propertyValue'] = 0
        reasons.append('Property value below minimum threshold')

    breakdown['timeline'] = TIMELINE_POINTS.get(lead.timeline, 0)
    breakdown['condition'] = CONDITION_POINTS.get(overall_condition(lead), 0)

    if lead.resolved_state(TARGET_STATES) in TARGET_STATES:
        breakdown['location'] = 15
    else:
        breakdown['location'] = 0
        reasons.append('Property not in target market')

    if any(issue in SERIOUS_ISSUES for issue in lead.property_issues):
        breakdown['propertyIssues'] = 0
        reasons.append('Property has serious structural issues')
    else:
        breakdown['propertyIssues'] = 10

    if lead.has_complete_contact:
        breakdown['contactInfo'] = 10
    else:
        breakdown['contactInfo'] = 0
        reasons.append('Incomplete contact information')

    score = sum(breakdown.values())
    qualified = score >= QUALIFIED_SCORE_THRESHOLD
    return QualificationResult(
        score=score,
        qualified=qualified,
        reasons=[] if qualified else reasons,
        breakdown=breakdown,
    )
