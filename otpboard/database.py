import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from otpboard import config
from otpboard.errors import StorageError

logger = logging.getLogger(__name__)

Base = declarative_base()


def make_engine(url: str = config.DATABASE_URL):
    if url.startswith("sqlite"):
        # SQLite waits up to `timeout` seconds on a locked database file.
        connect_args = {"check_same_thread": False, "timeout": config.DB_TIMEOUT_SECONDS}
        return create_engine(url, connect_args=connect_args)
    return create_engine(url, pool_pre_ping=True, pool_timeout=config.DB_TIMEOUT_SECONDS)


engine = make_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    from otpboard import models  # noqa: F401  registers the tables

    Base.metadata.create_all(bind=bind or engine)


@contextmanager
def storage_guard(db: Session):
    """Roll back and surface backend failures as StorageError."""
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error: {e}")
        raise StorageError() from e
