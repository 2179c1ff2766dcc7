# Overview: Commit helper shared by the write paths; one atomic commit per operation, then live query delivery.

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db, live_queries
from ..validation import ConflictError

logger = logging.getLogger(__name__)


def is_unique_violation(exc: IntegrityError) -> bool:
    return "UNIQUE constraint failed" in str(exc.orig)


def commit(*, conflict_message: str | None = None) -> None:
    """
    Commit the current session and notify live queries.

    A failed commit is rolled back so nothing partial survives. Unique index
    collisions become ConflictError when ``conflict_message`` is given; every
    other engine error propagates unchanged. No retries.
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if conflict_message is not None and is_unique_violation(exc):
            logger.info("Write rejected: %s", conflict_message)
            raise ConflictError(conflict_message) from exc
        logger.warning("Write rolled back: %s", exc.orig)
        raise
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Commit failed; session rolled back")
        raise

    live_queries.dispatch()
