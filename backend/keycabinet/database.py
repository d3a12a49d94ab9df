import os
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from keycabinet.config import settings

database_url = settings.database_url

# QueuePool settings are process-local; every service instance gets its own pool.
# Correctness of checkouts never depends on the pool, only on conditional writes.
POOL_DEFAULTS = {
    "pool_size": 5,
    "max_overflow": 5,
    "pool_timeout": 5,
    "pool_recycle": 3600,
}

POOL_LIMITS = {
    "pool_size": (1, 32),
    "max_overflow": (0, 32),
    "pool_timeout": (2, 30),
    "pool_recycle": (300, 7200),
}

# Seconds a SQLite connection waits on the database write lock.
SQLITE_BUSY_TIMEOUT = 30


def _get_env_int(name: str, default: int) -> int:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default

    try:
        return int(str(raw_value).strip())
    except (TypeError, ValueError):
        return default


def _bounded_env_int(name: str, default: int, minimum: int, maximum: int) -> int:
    value = _get_env_int(name, default)
    if value < minimum:
        return minimum
    if value > maximum:
        return maximum
    return value


def is_sqlite_url(url: str) -> bool:
    return str(url).strip().lower().startswith("sqlite")


def make_engine(url: str):
    """Create an engine for ``url`` with pool settings suited to its backend."""
    if is_sqlite_url(url):
        # SQLite does not take QueuePool arguments.
        return create_engine(
            url,
            pool_pre_ping=True,
            connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT},
        )

    pool_settings = {
        key: _bounded_env_int(
            f"DB_{key.upper()}",
            POOL_DEFAULTS[key],
            POOL_LIMITS[key][0],
            POOL_LIMITS[key][1],
        )
        for key in POOL_DEFAULTS
    }
    return create_engine(url, pool_pre_ping=True, **pool_settings)


engine = make_engine(database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


@contextmanager
def get_db():
    """Context manager for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_db_session():
    """Get a database session directly (caller responsible for closing)"""
    return SessionLocal()


def init_db(bind=None) -> None:
    """Create all tables on ``bind`` (defaults to the module engine)."""
    from keycabinet import models  # noqa: F401  # ensure models are registered

    Base.metadata.create_all(bind=bind or engine)
