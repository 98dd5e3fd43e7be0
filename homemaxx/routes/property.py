"""
Property lookup route for funnel autofill.
"""
import logging

from flask import Blueprint, jsonify, request

from homemaxx.services.property_data import empty_property, lookup_property

logger = logging.getLogger('routes.property')

bp = Blueprint('property', __name__)


@bp.route('/property-lookup')
def property_lookup():
    """Always 200 once an address is given; errors ride in the body."""
    address = (request.args.get('address') or '').strip()
    if not address:
        return jsonify({'error': 'Missing address parameter'}), 400

    try:
        return jsonify({'ok': True, 'data': lookup_property(address)})
    except Exception as e:
        logger.error("Property lookup failed for '%s'", address, exc_info=True)
        return jsonify({'ok': False, 'error': str(e), 'data': empty_property(address)})
