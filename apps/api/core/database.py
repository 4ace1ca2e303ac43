"""
Engine, session factory and the per-request session dependency.

PostgreSQL in deployed environments; SQLite is accepted for local runs and tests.
"""
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool
from core.config import settings
import logging
import time

logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url
IS_SQLITE = DATABASE_URL.startswith("sqlite")

CONNECT_ATTEMPTS = 3
CONNECT_BACKOFF_S = 0.1


def _engine_kwargs() -> dict:
    if IS_SQLITE:
        kwargs = {"connect_args": {"check_same_thread": False}}
        # An in-memory database lives inside one connection; share it
        if DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {
        "poolclass": QueuePool,
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "pool_pre_ping": True,
    }


engine = create_engine(DATABASE_URL, echo=settings.DEBUG, **_engine_kwargs())

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,  # responses are built after commit
)

Base = declarative_base()


@event.listens_for(engine, "connect")
def _on_connect(dbapi_conn, connection_record):
    if IS_SQLITE:
        # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _open_session() -> Session:
    """A live session, retrying transient connection failures with backoff."""
    for attempt in range(1, CONNECT_ATTEMPTS + 1):
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
            return db
        except Exception as e:
            db.close()
            if attempt == CONNECT_ATTEMPTS:
                logger.error(f"Database unreachable after {CONNECT_ATTEMPTS} attempts: {e}")
                raise
            logger.warning(f"Database connection attempt {attempt} failed, retrying")
            time.sleep(CONNECT_BACKOFF_S * (2 ** (attempt - 1)))


def get_db() -> Session:
    """
    FastAPI dependency: one session per request.

    Committed after the handler returns, rolled back if anything raised.
    """
    db = _open_session()
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        # API errors are expected control flow; only log real failures
        from fastapi import HTTPException
        if not isinstance(e, HTTPException):
            logger.error(f"Database transaction error: {e}")
        raise
    finally:
        db.close()


def get_db_sync() -> Session:
    """
    Session for Celery tasks and scripts.

    No automatic commit or rollback: the caller owns the transaction.
    """
    return SessionLocal()


def check_db_connection() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
