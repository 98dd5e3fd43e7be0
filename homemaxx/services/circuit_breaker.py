"""
Circuit breakers for the vendor APIs (GoHighLevel, ATTOM, RealtyMole, SendGrid).

State lives in one Redis hash per vendor so every worker process sees the same
view:

    cb:{name}  → state, failures, opened_at, success, failure,
                 last_success, last_failure, last_error

  - CLOSED    → calls pass through
  - OPEN      → `failure_threshold` consecutive failures; calls short-circuit
                with CircuitOpenError until `reset_timeout` has elapsed
  - HALF_OPEN → one probe call; success closes, failure re-opens

If Redis itself is unavailable the breaker fails open (calls pass through),
so a cache outage never blocks lead capture.
"""
import logging
import time
from functools import wraps

logger = logging.getLogger('services.circuit_breaker')

CLOSED = 'closed'
OPEN = 'open'
HALF_OPEN = 'half_open'

# name → (failure_threshold, reset_timeout seconds)
VENDOR_SETTINGS = {
    'ghl': (3, 180),
    'attom': (3, 300),
    'realtymole': (3, 300),
    'sendgrid': (5, 120),
}


class CircuitOpenError(Exception):
    """Raised when calling through an open circuit breaker."""
    def __init__(self, name, retry_after=None):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker '{name}' is OPEN, vendor unavailable")


class CircuitBreaker:
    """
    Usage:
        cb = CircuitBreaker('ghl', redis_client, failure_threshold=3, reset_timeout=180)
        resp = cb.call_http(requests.post, url, json=payload, timeout=10)

    Or as a decorator:
        @cb.protect
        def create_contact(...): ...
    """

    PREFIX = 'cb'

    def __init__(self, name, redis_client, failure_threshold=3, reset_timeout=300):
        self.name = name
        self.redis = redis_client
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout

    @property
    def key(self):
        return f'{self.PREFIX}:{self.name}'

    def _read(self):
        try:
            return self.redis.hgetall(self.key) or {}
        except Exception:
            logger.warning("Circuit '%s': Redis unavailable, failing open", self.name)
            return {}

    def _write(self, mapping):
        try:
            self.redis.hset(self.key, mapping=mapping)
        except Exception:
            logger.warning("Circuit '%s': could not persist state", self.name)

    @property
    def state(self):
        data = self._read()
        current = data.get('state', CLOSED)
        if current == OPEN and self._cooldown_elapsed(data):
            self._write({'state': HALF_OPEN})
            return HALF_OPEN
        return current

    @property
    def failure_count(self):
        return int(self._read().get('failures', 0) or 0)

    def _cooldown_elapsed(self, data):
        opened_at = data.get('opened_at')
        return bool(opened_at) and (time.time() - float(opened_at)) > self.reset_timeout

    def call(self, func, *args, **kwargs):
        """Execute func through the circuit breaker."""
        data = self._read()
        if data.get('state') == OPEN and not self._cooldown_elapsed(data):
            opened_at = float(data.get('opened_at') or time.time())
            retry_after = max(0.0, self.reset_timeout - (time.time() - opened_at))
            raise CircuitOpenError(self.name, retry_after=retry_after)

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self._on_failure(e)
            raise
        self._on_success()
        return result

    def call_http(self, func, *args, **kwargs):
        """call() for a requests function: an HTTP error status counts as a failure."""
        def request():
            response = func(*args, **kwargs)
            response.raise_for_status()
            return response
        return self.call(request)

    def _on_success(self):
        data = self._read()
        self._write({
            'state': CLOSED,
            'failures': 0,
            'success': int(data.get('success', 0) or 0) + 1,
            'last_success': str(time.time()),
        })

    def _on_failure(self, error):
        data = self._read()
        failures = int(data.get('failures', 0) or 0) + 1
        now = time.time()
        update = {
            'failures': failures,
            'failure': int(data.get('failure', 0) or 0) + 1,
            'last_failure': str(now),
            'last_error': str(error)[:200],
        }
        # A failed probe re-opens immediately
        if data.get('state') == HALF_OPEN or failures >= self.failure_threshold:
            update['state'] = OPEN
            update['opened_at'] = str(now)
            logger.warning(
                "Circuit '%s' OPENED after %d failures (threshold=%d): %s",
                self.name, failures, self.failure_threshold, error,
            )
        else:
            logger.info(
                "Circuit '%s' failure %d/%d: %s",
                self.name, failures, self.failure_threshold, error,
            )
        self._write(update)

    def reset(self):
        """Manually close the circuit and clear the failure streak."""
        try:
            self.redis.hset(self.key, mapping={'state': CLOSED, 'failures': 0})
            self.redis.hdel(self.key, 'opened_at')
            logger.info("Circuit '%s' manually reset to CLOSED", self.name)
        except Exception as e:
            logger.error("Failed to reset circuit '%s': %s", self.name, e)

    def get_health(self):
        """Health metrics dict for the /api/health endpoint."""
        data = self._read()
        return {
            'name': self.name,
            'state': self.state,
            'failure_count': int(data.get('failures', 0) or 0),
            'failure_threshold': self.failure_threshold,
            'reset_timeout': self.reset_timeout,
            'total_success': int(data.get('success', 0) or 0),
            'total_failure': int(data.get('failure', 0) or 0),
            'last_success': float(data['last_success']) if data.get('last_success') else None,
            'last_failure': float(data['last_failure']) if data.get('last_failure') else None,
            'last_error': data.get('last_error', ''),
        }

    def protect(self, func):
        """Decorator form of the circuit breaker."""
        @wraps(func)
        def wrapper(*args, **kwargs):
            return self.call(func, *args, **kwargs)
        return wrapper


# ── Registry ──────────────────────────────────────────────────────────────────

_registry = {}


def get_breaker(name, redis_client=None, **kwargs):
    """Get or create a named circuit breaker (one per vendor name)."""
    if name not in _registry:
        if redis_client is None:
            from homemaxx.extensions import redis_client as rc
            redis_client = rc
        threshold, timeout = VENDOR_SETTINGS.get(name, (3, 300))
        kwargs.setdefault('failure_threshold', threshold)
        kwargs.setdefault('reset_timeout', timeout)
        _registry[name] = CircuitBreaker(name, redis_client, **kwargs)
    return _registry[name]


def get_all_breakers():
    return dict(_registry)


def init_breakers(redis_client):
    """(Re)create the breakers for every vendor against the given Redis client."""
    breakers = {
        name: CircuitBreaker(name, redis_client, failure_threshold=threshold, reset_timeout=timeout)
        for name, (threshold, timeout) in VENDOR_SETTINGS.items()
    }
    _registry.update(breakers)
    return breakers
