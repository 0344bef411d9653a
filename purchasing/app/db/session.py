from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from purchasing.app.core.config import settings
from purchasing.app.core.errors import StorageError

logger = logging.getLogger(__name__)

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True, echo=settings.SQL_ECHO)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    One unit of work: commit on success, full rollback on any error.

    Database failures surface as StorageError; the caller retries the
    whole operation, never part of it.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Transaction rolled back")
        raise StorageError("Storage failure, operation rolled back") from exc
    except Exception:
        db.rollback()
        raise
