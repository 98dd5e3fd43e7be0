"""
Health routes: liveness, vendor circuit breakers, recent lead submissions.
"""
import logging

from flask import Blueprint, jsonify, request

from homemaxx.extensions import redis_status
from homemaxx.routes.common import service
from homemaxx.services.circuit_breaker import get_all_breakers
from homemaxx.services.db import recent_submissions

logger = logging.getLogger('routes.health')

bp = Blueprint('health', __name__)


@bp.route('/health')
def health_check():
    """Health check endpoint."""
    return jsonify({"status": "healthy"}), 200


@bp.route('/api/health')
def vendor_health():
    """Redis reachability plus circuit-breaker state for every vendor API."""
    breakers = get_all_breakers()
    services = {name: cb.get_health() for name, cb in sorted(breakers.items())}
    degraded = [name for name, health in services.items() if health['state'] != 'closed']
    redis_state = redis_status(service('redis'))
    return jsonify({
        'status': 'degraded' if degraded or redis_state != 'ok' else 'healthy',
        'degraded': degraded,
        'redis': redis_state,
        'services': services,
    })


@bp.route('/api/health/<name>/reset', methods=['POST'])
def reset_breaker(name):
    """Manually close a vendor's circuit."""
    cb = get_all_breakers().get(name)
    if cb is None:
        return jsonify({'error': f"Unknown service '{name}'"}), 404
    cb.reset()
    return jsonify({'status': 'success', 'service': cb.get_health()})


@bp.route('/api/submissions/recent')
def list_recent_submissions():
    """Latest lead submissions from the ledger."""
    limit = min(request.args.get('limit', 20, type=int), 100)
    try:
        return jsonify({'submissions': recent_submissions(limit=limit)})
    except Exception as e:
        logger.error("Error listing submissions: %s", e)
        return jsonify({'error': str(e)}), 500
