"""
Unit-of-work helper for services.

Repositories only flush; services wrap each write operation in
``transaction`` so it either commits as a whole or is rolled back.
"""

from contextlib import contextmanager
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from exceptions import ConflictError, DatabaseError

logger = logging.getLogger(__name__)


@contextmanager
def transaction(db: Session, operation: str):
    """
    Commit on success, roll back on any error.

    SQLAlchemy errors are re-raised as DatabaseError (or ConflictError for
    unique constraint violations); domain errors propagate unchanged.

    Example:
        with transaction(self.db, "Create task"):
            task = self.task_repo.create(WorkspaceTask(...))
    """
    try:
        yield
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if "UNIQUE" in str(e.orig).upper() or "DUPLICATE" in str(e.orig).upper():
            logger.warning(f"{operation}: unique constraint violated: {e.orig}")
            raise ConflictError(operation, f"{operation}: record already exists") from e
        logger.error(f"{operation}: integrity error: {e.orig}", exc_info=True)
        raise DatabaseError(operation, str(e.orig)) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"{operation}: database error: {e}", exc_info=True)
        raise DatabaseError(operation, str(e)) from e
    except Exception:
        db.rollback()
        raise
