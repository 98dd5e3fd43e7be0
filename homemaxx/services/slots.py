"""
Monthly counter of remaining instant-offer slots.

    slots:{YYYY-MM}  → remaining (int, 0..TOTAL_SLOTS_PER_MONTH)

The key for a new month is created lazily with SET NX and expires a few weeks
after the month ends, so rollover needs no reset job. Decrements run as a
WATCH/MULTI transaction and retry when another request wrote the key between
our read and our write, so concurrent claims never lose an update.
"""
import logging
from datetime import datetime, timezone

from redis.exceptions import WatchError

from homemaxx.config import TOTAL_SLOTS_PER_MONTH

logger = logging.getLogger('services.slots')

KEY_PREFIX = 'slots'
KEY_TTL_SECONDS = 40 * 24 * 3600
MAX_RETRIES = 10


class SlotCounterError(Exception):
    """Decrement kept colliding with concurrent writers."""


def month_key(now=None):
    now = now or datetime.now(timezone.utc)
    return now.strftime('%Y-%m')


class SlotCounter:

    def __init__(self, redis_client, total=TOTAL_SLOTS_PER_MONTH, clock=None):
        self.redis = redis_client
        self.total = total
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _key(self, month):
        return f'{KEY_PREFIX}:{month}'

    def _clamp(self, raw):
        try:
            value = int(raw)
        except (TypeError, ValueError):
            logger.warning("Corrupt slot counter value %r, resetting to %d", raw, self.total)
            return self.total
        return max(0, min(value, self.total))

    def _ensure(self, key):
        self.redis.set(key, self.total, nx=True, ex=KEY_TTL_SECONDS)

    def read(self):
        """{'remaining': int, 'monthKey': 'YYYY-MM'} for the current UTC month."""
        month = month_key(self.clock())
        key = self._key(month)
        self._ensure(key)
        return {'remaining': self._clamp(self.redis.get(key)), 'monthKey': month}

    def decrement(self):
        """Claim one slot if any remain. Returns {'remaining': int}."""
        month = month_key(self.clock())
        key = self._key(month)
        self._ensure(key)

        for attempt in range(1, MAX_RETRIES + 1):
            pipe = self.redis.pipeline()
            try:
                pipe.watch(key)
                remaining = self._clamp(pipe.get(key))
                if remaining <= 0:
                    pipe.unwatch()
                    return {'remaining': 0}
                pipe.multi()
                pipe.set(key, remaining - 1, ex=KEY_TTL_SECONDS)
                pipe.execute()
                logger.info("Slot claimed for %s: %d remaining", month, remaining - 1)
                return {'remaining': remaining - 1}
            except WatchError:
                logger.debug("Slot counter %s changed during decrement (attempt %d), retrying", key, attempt)
                continue
            finally:
                pipe.reset()

        raise SlotCounterError(f'could not decrement {key} after {MAX_RETRIES} attempts')
