"""
Shared Redis client.

redis.from_url() does not connect until the first command, so importing this
module is safe even when Redis is not running.
"""
import logging

import redis

from homemaxx.config import REDIS_URL

logger = logging.getLogger('homemaxx.extensions')

redis_client = redis.from_url(REDIS_URL, decode_responses=True)


def redis_status(client):
    """'ok' or 'unavailable', for the health endpoint."""
    try:
        client.ping()
    except Exception as e:
        logger.warning("Redis ping failed: %s", e)
        return 'unavailable'
    return 'ok'
