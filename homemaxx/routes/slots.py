"""
Monthly offer-slot counter.
"""
import logging

from flask import Blueprint, jsonify

from homemaxx.routes.common import BadRequest, json_body, service
from homemaxx.services.slots import SlotCounterError

logger = logging.getLogger('routes.slots')

bp = Blueprint('slots', __name__)


@bp.route('/slots', methods=['GET'])
def read_slots():
    return jsonify(service('slots').read())


@bp.route('/slots', methods=['POST'])
def update_slots():
    try:
        data = json_body()
    except BadRequest as e:
        return jsonify({'error': str(e)}), 400
    if data.get('action') != 'decrement':
        return jsonify({'error': 'Unsupported action'}), 400

    counter = service('slots')
    try:
        return jsonify(counter.decrement())
    except SlotCounterError as e:
        # Scarcity indicator only: report the current count rather than fail
        logger.error("Slot decrement gave up: %s", e)
        return jsonify({'remaining': counter.read()['remaining']})
