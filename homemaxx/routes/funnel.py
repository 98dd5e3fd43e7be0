"""
Funnel session API and the resume-progress banner.

Every funnel response is the session view plus `ok`, `errors` and `noop`
for the transition just applied. A failed step validation is 422, an
operation that does not fit the current step is 409.
"""
import logging

from flask import Blueprint, jsonify

from homemaxx.funnel.machine import FunnelError
from homemaxx.funnel.service import FunnelNotFound
from homemaxx.routes.common import BadRequest, json_body, service

logger = logging.getLogger('routes.funnel')

bp = Blueprint('funnel', __name__)


def _respond(machine, result=None, status=200):
    body = machine.view()
    body['ok'] = result.ok if result else True
    body['errors'] = result.errors if result else {}
    body['noop'] = result.noop if result else False
    if result is not None and not result.ok:
        status = 422
    return jsonify(body), status


def _body_or_empty():
    try:
        return json_body()
    except BadRequest:
        return {}


@bp.route('/api/funnel', methods=['POST'])
def start_funnel():
    data = _body_or_empty()
    address = (data.get('address') or '').strip() or None
    machine = service('funnel').start(address=address)
    return _respond(machine, status=201)


@bp.route('/api/funnel/<session_id>', methods=['GET'])
def get_funnel(session_id):
    try:
        machine = service('funnel').get(session_id)
    except FunnelNotFound:
        return jsonify({'error': 'Funnel session not found'}), 404
    return _respond(machine)


def _transition(session_id, operation, *args):
    try:
        machine, result = operation(session_id, *args)
    except FunnelNotFound:
        return jsonify({'error': 'Funnel session not found'}), 404
    except FunnelError as e:
        return jsonify({'error': str(e)}), 409
    return _respond(machine, result)


@bp.route('/api/funnel/<session_id>/answer', methods=['POST'])
def answer(session_id):
    try:
        values = json_body().get('values')
    except BadRequest as e:
        return jsonify({'error': str(e)}), 400
    if not isinstance(values, dict):
        return jsonify({'error': 'values must be an object'}), 400
    return _transition(session_id, service('funnel').answer, values)


@bp.route('/api/funnel/<session_id>/select', methods=['POST'])
def select(session_id):
    try:
        value = json_body().get('value')
    except BadRequest as e:
        return jsonify({'error': str(e)}), 400
    if not value:
        return jsonify({'error': 'value is required'}), 400
    return _transition(session_id, service('funnel').select, value)


@bp.route('/api/funnel/<session_id>/toggle', methods=['POST'])
def toggle(session_id):
    try:
        value = json_body().get('value')
    except BadRequest as e:
        return jsonify({'error': str(e)}), 400
    if not value:
        return jsonify({'error': 'value is required'}), 400
    return _transition(session_id, service('funnel').toggle, value)


@bp.route('/api/funnel/<session_id>/next', methods=['POST'])
def next_step(session_id):
    return _transition(session_id, service('funnel').next)


@bp.route('/api/funnel/<session_id>/back', methods=['POST'])
def back(session_id):
    return _transition(session_id, service('funnel').back)


# ── Resume banner ────────────────────────────────────────────────────────────

@bp.route('/api/progress/<session_id>', methods=['GET'])
def check_progress(session_id):
    banner = service('progress').check_for_saved_progress(session_id)
    return jsonify({'showBanner': banner is not None, 'banner': banner})


@bp.route('/api/progress/<session_id>', methods=['DELETE'])
def dismiss_progress(session_id):
    service('progress').dismiss(session_id)
    return jsonify({'status': 'success'})
