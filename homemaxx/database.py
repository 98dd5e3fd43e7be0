"""
SQLAlchemy engine and session factory for the lead-submission ledger.

DATABASE_URL defaults to a local SQLite file; production points it at
Postgres. Tables are created by init_db() at app start.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from homemaxx.config import DATABASE_URL


class Base(DeclarativeBase):
    pass


def normalize_url(url):
    """SQLAlchemy 2.x only accepts the postgresql:// scheme."""
    if url.startswith('postgres://'):
        return 'postgresql://' + url[len('postgres://'):]
    return url


def engine_options(url):
    if url.startswith('sqlite'):
        return {'connect_args': {'check_same_thread': False}}
    return {'pool_pre_ping': True, 'pool_size': 5, 'max_overflow': 10}


url = normalize_url(DATABASE_URL)
engine = create_engine(url, **engine_options(url))
SessionLocal = sessionmaker(bind=engine)


def get_session():
    """New session; callers close it."""
    return SessionLocal()


def init_db(bind=None):
    """Create the ledger tables if they don't exist."""
    import homemaxx.models.submission  # noqa: F401
    Base.metadata.create_all(bind or engine)
