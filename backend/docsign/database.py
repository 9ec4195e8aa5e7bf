import os
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from contextlib import contextmanager
from docsign.config import settings

database_url = settings.database_url

# QueuePool settings are process-local; keep defaults conservative so several
# workers can share one MySQL user.
MYSQL_POOL_DEFAULTS = {
    "pool_size": 2,
    "max_overflow": 1,
    "pool_timeout": 5,
    "pool_recycle": 3600,
}

MYSQL_POOL_LIMITS = {
    "pool_size": (1, 8),
    "max_overflow": (0, 8),
    "pool_timeout": (2, 30),
    "pool_recycle": (300, 7200),
}


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


def _is_sqlite(url: str) -> bool:
    return str(url).strip().lower().startswith("sqlite")


# SQLite does not accept the QueuePool arguments used in production.
if _is_sqlite(database_url):
    engine = create_engine(
        database_url,
        pool_pre_ping=True,
        connect_args={"check_same_thread": False},
    )
else:
    pool_size = _bounded_env_int(
        "DB_POOL_SIZE",
        MYSQL_POOL_DEFAULTS["pool_size"],
        MYSQL_POOL_LIMITS["pool_size"][0],
        MYSQL_POOL_LIMITS["pool_size"][1],
    )
    max_overflow = _bounded_env_int(
        "DB_MAX_OVERFLOW",
        MYSQL_POOL_DEFAULTS["max_overflow"],
        MYSQL_POOL_LIMITS["max_overflow"][0],
        MYSQL_POOL_LIMITS["max_overflow"][1],
    )
    pool_recycle = _bounded_env_int(
        "DB_POOL_RECYCLE",
        MYSQL_POOL_DEFAULTS["pool_recycle"],
        MYSQL_POOL_LIMITS["pool_recycle"][0],
        MYSQL_POOL_LIMITS["pool_recycle"][1],
    )
    pool_timeout = _bounded_env_int(
        "DB_POOL_TIMEOUT",
        MYSQL_POOL_DEFAULTS["pool_timeout"],
        MYSQL_POOL_LIMITS["pool_timeout"][0],
        MYSQL_POOL_LIMITS["pool_timeout"][1],
    )

    engine = create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_recycle=pool_recycle,
        pool_timeout=pool_timeout,
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency yielding a request-scoped database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def db_session():
    """Context manager for jobs and scripts that run outside a request"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create any missing tables (development and tests; production uses Alembic)"""
    from docsign import models  # noqa: F401  # ensure models are registered

    Base.metadata.create_all(bind=engine)