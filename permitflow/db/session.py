"""Engine, session factory and the unit-of-work helper.

The engine is built lazily from settings so that importing the API or the
models never opens a connection.
"""

import logging
from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from permitflow.core.config import get_settings

logger = logging.getLogger(__name__)


@lru_cache
def get_engine() -> Engine:
    settings = get_settings()
    return create_engine(
        settings.database_url,
        pool_pre_ping=True,
        echo=settings.sql_echo,
    )


@lru_cache
def get_session_factory() -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def SessionLocal() -> Session:
    """Open a new session bound to the configured engine."""
    return get_session_factory()()


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """
    Run one engine operation as a single transaction.

    Commits when the block exits cleanly and rolls back on any exception,
    which is then re-raised to the caller.
    """
    try:
        yield db
        db.commit()
    except Exception:
        logger.debug("Rolling back unit of work")
        db.rollback()
        raise
