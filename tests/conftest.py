"""Shared test fixtures."""
import logging

import pytest
from redis.exceptions import WatchError
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from unittest.mock import patch

from homemaxx.database import Base


class FakeRedis:
    """In-memory Redis fake: strings, hashes and WATCH/MULTI pipelines."""

    def __init__(self):
        self.store = {}
        self.hash_store = {}
        self.ttls = {}
        self.versions = {}
        # One-shot callables run just before a pipeline EXECUTE, to simulate
        # another client writing a watched key.
        self.concurrent_writes = []

    def _touch(self, key):
        self.versions[key] = self.versions.get(key, 0) + 1

    def ping(self):
        return True

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, nx=False, ex=None):
        if nx and key in self.store:
            return None
        self.store[key] = str(value)
        if ex:
            self.ttls[key] = ex
        self._touch(key)
        return True

    def setex(self, key, ttl, value):
        self.store[key] = str(value)
        self.ttls[key] = ttl
        self._touch(key)
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None or self.hash_store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
            self._touch(key)
        return removed

    def exists(self, key):
        return int(key in self.store or key in self.hash_store)

    def hgetall(self, key):
        return dict(self.hash_store.get(key, {}))

    def hset(self, key, field=None, value=None, mapping=None):
        h = self.hash_store.setdefault(key, {})
        if field is not None:
            h[field] = str(value)
        for k, v in (mapping or {}).items():
            h[k] = str(v)
        self._touch(key)

    def hdel(self, key, *fields):
        h = self.hash_store.get(key, {})
        for f in fields:
            h.pop(f, None)

    def pipeline(self):
        return FakePipeline(self)


class FakePipeline:
    """Immediate mode until multi(), then buffered until execute()."""

    def __init__(self, redis):
        self._redis = redis
        self._watched = {}
        self._ops = None

    def watch(self, *keys):
        for key in keys:
            self._watched[key] = self._redis.versions.get(key, 0)

    def unwatch(self):
        self._watched = {}

    def multi(self):
        self._ops = []

    def get(self, key):
        if self._ops is not None:
            self._ops.append(('get', (key,), {}))
            return self
        return self._redis.get(key)

    def set(self, key, value, **kwargs):
        if self._ops is not None:
            self._ops.append(('set', (key, value), kwargs))
            return self
        return self._redis.set(key, value, **kwargs)

    def execute(self):
        if self._redis.concurrent_writes:
            self._redis.concurrent_writes.pop(0)(self._redis)
        changed = any(self._redis.versions.get(k, 0) != v for k, v in self._watched.items())
        ops, self._ops = self._ops or [], None
        self._watched = {}
        if changed:
            raise WatchError('Watched variable changed.')
        return [getattr(self._redis, name)(*args, **kwargs) for name, args, kwargs in ops]

    def reset(self):
        self._watched = {}
        self._ops = None


@pytest.fixture
def fake_redis():
    """In-memory Redis fake with dict-backed storage."""
    return FakeRedis()


@pytest.fixture(autouse=True)
def breakers(fake_redis):
    """Point every vendor circuit breaker at the fake Redis."""
    from homemaxx.services.circuit_breaker import init_breakers
    return init_breakers(fake_redis)


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created."""
    engine = create_engine('sqlite:///:memory:')
    import homemaxx.models.submission  # noqa: F401
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """SQLAlchemy session bound to in-memory SQLite. Rolls back after each test."""
    Session = sessionmaker(bind=db_engine)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_get_session(db_session):
    """Route all get_session() calls to the test session.

    close() is disabled so helpers closing the session in their finally
    blocks don't invalidate the shared test session.
    """
    _real_close = db_session.close
    db_session.close = lambda: None
    with patch('homemaxx.database.get_session', return_value=db_session):
        yield db_session
    db_session.close = _real_close


@pytest.fixture
def app(fake_redis):
    """Flask test app wired to the fake Redis."""
    from homemaxx import create_app
    root = logging.getLogger()
    original_level, original_handlers = root.level, root.handlers[:]
    app = create_app(redis_client=fake_redis, init_database=False)
    app.config['TESTING'] = True
    yield app
    root.setLevel(original_level)
    root.handlers = original_handlers


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


@pytest.fixture
def qualified_lead():
    """Lead data that scores 100 on the booking rubric."""
    return {
        'address': '123 Main Street, Las Vegas, NV 89101',
        'firstName': 'Jordan',
        'lastName': 'Reyes',
        'email': 'jordan@example.com',
        'phone': '(702) 555-0142',
        'estimatedValue': 350000,
        'timeline': 'asap',
        'propertyCondition': 'updated',
        'propertyIssues': ['none'],
    }
