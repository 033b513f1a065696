"""Transaction utilities for explicit transaction boundaries."""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ridepool.core.exceptions import PersistenceError


@contextmanager
def transaction(session: Session) -> Generator[Session]:
    """Context manager for explicit transaction boundaries.

    Commits on successful completion, rolls back on any exception.
    Use this when a ride change, its pool siblings and its ledger events
    must succeed or fail together.

    Example:
        with transaction(session):
            ride_repo.save(ride)
            event_repo.append(RideCompletedEvent(...))

    Raises:
        PersistenceError: if the database is unavailable or locked
        Any other exception raised within the context (after rollback)
    """
    try:
        yield session
        session.commit()
    except OperationalError as e:
        session.rollback()
        raise PersistenceError("Database unavailable", {"reason": str(e.orig)}) from e
    except Exception:
        session.rollback()
        raise

