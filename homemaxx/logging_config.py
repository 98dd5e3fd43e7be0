"""
Logging setup for the offers API.

configure_logging() is called once from create_app(). LOG_FORMAT picks a
human-readable line or one JSON object per line; LOG_LEVEL sets the level.
Records logged inside a request carry its method and path, and any
`session_id` / `vendor` passed via `extra=` is kept in the JSON output.
"""
import json
import logging
import sys
from datetime import datetime, timezone

from flask import has_request_context, request

from homemaxx import config

# Passed through from `extra=` when present
CONTEXT_FIELDS = ('session_id', 'vendor', 'method', 'path')

_NOISY_LOGGERS = ['urllib3', 'requests', 'werkzeug']


class RequestContextFilter(logging.Filter):
    """Stamp the current request's method and path onto the record."""

    def filter(self, record):
        if has_request_context():
            record.method = request.method
            record.path = request.path
        return True


class JSONFormatter(logging.Formatter):

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def build_handler(log_format, level):
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.addFilter(RequestContextFilter())
    if log_format == 'json':
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '[%(asctime)s] %(levelname)s %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        ))
    return handler


def configure_logging(app=None, level_name=None, log_format=None):
    """Replace the root handlers with one stderr handler."""
    level_name = (level_name or config.LOG_LEVEL).upper()
    level = getattr(logging, level_name, logging.INFO)
    log_format = (log_format or config.LOG_FORMAT).lower()

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(build_handler(log_format, level))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if app is not None:
        # Flask's own logger propagates to root
        app.logger.handlers.clear()
        app.logger.setLevel(level)
