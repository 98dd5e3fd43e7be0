"""
Shared request helpers for the blueprints.
"""
from flask import current_app, request


class BadRequest(ValueError):
    """Request body is not a JSON object."""


def json_body():
    """The request's JSON object, or BadRequest for anything else."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest('Request body must be a JSON object')
    return data


def service(name):
    """A service built by create_app() (slots, progress, funnel, redis)."""
    return current_app.extensions['homemaxx'][name]
