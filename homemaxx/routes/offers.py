"""
Offer routes: lead priority scoring and the instant cash offer calculator.
"""
import logging

from flask import Blueprint, jsonify

from homemaxx.offers.calculator import calculate_offer, static_fallback
from homemaxx.offers.priority import InvalidLeadError, calculate_lead_priority
from homemaxx.routes.common import BadRequest, json_body

logger = logging.getLogger('routes.offers')

bp = Blueprint('offers', __name__)


@bp.route('/lead-priority-scoring', methods=['POST'])
def lead_priority_scoring():
    try:
        lead = json_body()
    except BadRequest as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    try:
        priority = calculate_lead_priority(lead)
    except InvalidLeadError as e:
        return jsonify({'success': False, 'error': str(e)}), 422

    logger.info("Lead scored %d (%s)", priority.score, priority.level)
    body = priority.to_dict()
    return jsonify({
        'success': True,
        'priorityScore': body['score'],
        'priorityLevel': body['level'],
        'color': body['color'],
        'breakdown': body['breakdown'],
        'recommendations': body['recommendations'],
        'wholesaleMargin': body['wholesaleMargin'],
        'marginPercentage': body['marginPercentage'],
    })


@bp.route('/calculate-offer', methods=['POST'])
def calculate_offer_route():
    """Always 200 for a JSON body; degraded results say so in the payload."""
    try:
        lead = json_body()
    except BadRequest as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    try:
        outcome = calculate_offer(lead)
    except Exception:
        logger.error("Offer calculation crashed, returning static fallback", exc_info=True)
        outcome = static_fallback()
    return jsonify(outcome.to_dict()), 200
