import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, OperationalError

from ..errors import ConcurrencyConflictError, DuplicateRecordError
from ..extensions import db

logger = logging.getLogger(__name__)


@contextmanager
def atomic():
    """Run the block as one unit of work: commit on success, roll back on any error.

    Unique-key violations and lock timeouts surface as typed 409 errors.
    """
    try:
        yield db.session
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        logger.warning("Integrity conflict, rolled back: %s", e.orig)
        raise DuplicateRecordError(reason=e.orig)
    except OperationalError as e:
        db.session.rollback()
        if "lock" in str(e.orig).lower():
            raise ConcurrencyConflictError("Row is locked by another transaction", reason=e.orig)
        raise
    except Exception:
        db.session.rollback()
        raise


def locked(query):
    """Re-read the rows of ``query`` from the database under a row lock."""
    return query.populate_existing().with_for_update()
