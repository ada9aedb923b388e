"""
Database Engine and Sessions

One engine per process, built from a SQLAlchemy URL (config.DATABASE_URL
unless one is passed in). SQLite, the default and what the tests use in
memory, shares a single connection across green threads and enforces
foreign keys. Other backends run with SQLAlchemy's own pooling.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


def is_sqlite(database_url: str) -> bool:
    return make_url(database_url).get_backend_name() == 'sqlite'


def engine_options(database_url: str) -> Dict[str, Any]:
    """Keyword arguments for create_engine() suited to the URL's backend"""
    if is_sqlite(database_url):
        return {
            'connect_args': {'check_same_thread': False},
            'poolclass': StaticPool,
        }
    return {'pool_pre_ping': True}


def _enforce_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str) -> Engine:
    engine = create_engine(database_url, **engine_options(database_url))
    if is_sqlite(database_url):
        event.listen(engine, 'connect', _enforce_foreign_keys)
    return engine


def init_db(database_url: Optional[str] = None) -> None:
    """
    Open the database and create missing tables.

    Args:
        database_url: SQLAlchemy URL; defaults to config.DATABASE_URL
    """
    global _engine, _SessionFactory

    if database_url is None:
        from config import config
        database_url = config.DATABASE_URL

    shown = make_url(database_url).render_as_string(hide_password=True)
    logger.info(f"🗄️ Opening database {shown}")

    _engine = build_engine(database_url)
    Base.metadata.create_all(_engine)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)


def get_session() -> Session:
    """New ORM session; opens the configured database on first use"""
    if _SessionFactory is None:
        init_db()
    return _SessionFactory()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Unit of work: commit on success, roll back and re-raise on error.

        with session_scope() as session:
            session.add(record)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Database error, rolled back: {e}")
        raise
    finally:
        session.close()


def close_db() -> None:
    """Dispose of the engine (tests and process exit)"""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        logger.info("Database closed")
    _engine = None
    _SessionFactory = None
