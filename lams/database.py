import logging
from typing import Callable, Optional, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.orm.exc import StaleDataError
from tenacity import retry, stop_after_attempt, retry_if_exception_type, before_sleep_log

from lams.core.config import settings
from lams.core.exceptions import InvalidStateError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONCURRENT_CHANGE_MESSAGE = "This request was changed concurrently, please retry"

# Support both PostgreSQL and SQLite via centralized settings
DATABASE_URL = settings.database_url

if DATABASE_URL.startswith("postgresql"):
    engine = create_engine(DATABASE_URL)
else:
    # SQLite configuration for local development/testing
    engine = create_engine(
        DATABASE_URL, connect_args={"check_same_thread": False}
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """
    Session Provider: Provides a database session per request.
    Transaction management is handled explicitly in the Service Layer.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """
    Registers all domain models and initializes the database schema.
    This should be called during the application startup lifespan.
    """
    # Import all models to ensure they are registered with Base.metadata before create_all
    from lams.models import (  # noqa: F401
        employee, leave_request, audit_log, attendance, reimbursement
    )
    Base.metadata.create_all(bind=bind or engine)


def run_in_transaction(db: Session, fn: Callable[[Session], T], max_attempts: Optional[int] = None) -> T:
    """
    Run ``fn(db)`` as one atomic unit and commit it.

    ``fn`` must (re)read every row it mutates: on a version conflict the
    session is rolled back, which expires all loaded state, and ``fn`` runs
    again against the latest committed rows. When every attempt conflicts the
    caller gets ``InvalidStateError``. Any other exception rolls back and
    propagates unchanged.
    """
    attempts = max_attempts or settings.transaction_max_attempts

    @retry(
        stop=stop_after_attempt(attempts),
        retry=retry_if_exception_type(StaleDataError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )
    def _attempt() -> T:
        try:
            result = fn(db)
            db.commit()
            return result
        except Exception:
            db.rollback()
            raise

    try:
        return _attempt()
    except StaleDataError as e:
        logger.warning(f"Giving up after {attempts} conflicting attempt(s): {e}")
        raise InvalidStateError(CONCURRENT_CHANGE_MESSAGE) from e
