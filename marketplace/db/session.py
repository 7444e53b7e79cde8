import logging
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from marketplace.core.config import get_settings
from marketplace.db.schema import metadata

logger = logging.getLogger(__name__)

# Global engine/session factory, created on first use
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def configure_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """
    (Re)create the engine and session factory.
    Called lazily with settings values; tests call it with a SQLite URL.
    """
    global _engine, _SessionLocal
    settings = get_settings()
    url = url or settings.database_url
    echo = settings.db_echo if echo is None else echo

    if _engine is not None:
        _engine.dispose()

    if url.startswith("sqlite"):
        _engine = create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    else:
        # pool_size=5: maintain 5 connections ready
        # max_overflow=10: allow 10 extra connections under load
        _engine = create_engine(url, pool_size=5, max_overflow=10, pool_pre_ping=True, echo=echo)

    _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)
    return _engine


def get_engine() -> Engine:
    """Get or create the engine (singleton pattern)"""
    if _engine is None:
        configure_engine()
    return _engine


def init_db() -> None:
    """Create all tables that don't exist yet."""
    metadata.create_all(get_engine())
    logger.info("Database schema ready")


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.
    Usage:
        with get_db_session() as db:
            db.execute(text("SELECT * FROM accounts"))
    """
    get_engine()
    session = _SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def check_db_connection() -> bool:
    """
    Test if the database is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        with get_db_session() as db:
            result = db.execute(text("SELECT 1 as test"))
            row = result.fetchone()
            return row[0] == 1
    except Exception as e:
        logger.error("Database connection failed: %s", e)
        return False


def execute_raw_sql(sql: str, params: dict = None) -> list:
    """
    Execute raw SQL and return results as list of dicts.
    """
    with get_db_session() as db:
        result = db.execute(text(sql), params or {})
        return [dict(row) for row in result.mappings().all()]
