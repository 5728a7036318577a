import logging
from typing import Generator, Optional

from sqlalchemy import create_engine, inspect, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session, declarative_base

from app.config import settings
from app.errors import ConfigurationError, StorageError

logger = logging.getLogger(__name__)


def _build_engine(database_url: str):
    if not database_url:
        logger.warning("DATABASE_URL is not set; storage is unavailable")
        return None
    connect_args = {}
    if database_url.startswith("sqlite"):
        # check_same_thread=False is required for SQLite to work with FastAPI's threadpool
        connect_args["check_same_thread"] = False
    # hide_parameters keeps client keys out of error messages
    return create_engine(database_url, connect_args=connect_args, echo=False, hide_parameters=True)


engine = _build_engine(settings.DATABASE_URL)

# Create SessionLocal class for creating database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine) if engine else None

# Base class for SQLAlchemy models
Base = declarative_base()

REQUIRED_TABLES = ("messages", "rate_limits")


def _describe(error: SQLAlchemyError) -> str:
    """Driver message without SQL text or bound parameters."""
    orig = getattr(error, "orig", None)
    return str(orig) if orig is not None else type(error).__name__


def init_db() -> None:
    """
    Initialize the database by creating all tables.
    Called during application startup.
    """
    if engine is None:
        logger.error("Skipping database initialization: DATABASE_URL is not set")
        return
    logger.debug("Initializing database")
    try:
        # Import models to register them with Base.metadata
        from app import models  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session.
    Yields a session and ensures it's closed after use.

    Raises:
        ConfigurationError: if no database is bound
    """
    if SessionLocal is None:
        raise ConfigurationError(detail="DATABASE_URL is not configured")
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_health() -> bool:
    """
    Check if the database is reachable and both tables exist.

    Returns:
        True if DB is healthy and schema exists, False otherwise.
    """
    if engine is None:
        return False
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            existing = set(inspect(conn).get_table_names())
        missing = [t for t in REQUIRED_TABLES if t not in existing]
        if missing:
            logger.error(f"Database schema not applied: missing tables {missing}")
            return False
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return False


# =============================================================================
# Message Repository Functions
# =============================================================================

def insert_message(db: Session, text_value: str, created_at: int) -> int:
    """
    Insert a message row.

    Returns:
        The generated message id

    Raises:
        StorageError: if the insert fails
    """
    from app.models import Message

    try:
        message = Message(text=text_value, created_at=created_at)
        db.add(message)
        db.commit()
        db.refresh(message)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to insert message: {_describe(e)}")
        raise StorageError(detail=_describe(e)) from e
    logger.info(f"Message stored: id={message.id}")
    return message.id


def select_recent_messages(db: Session, limit: int) -> list:
    """
    Select up to `limit` messages, newest first.

    Ordering: created_at DESC, id DESC (deterministic for equal timestamps)

    Raises:
        StorageError: if the query fails
    """
    from app.models import Message

    try:
        stmt = (
            select(Message)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
        )
        return list(db.scalars(stmt).all())
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to query messages: {_describe(e)}")
        raise StorageError(detail=_describe(e)) from e


# =============================================================================
# Rate Limit Repository Functions
# =============================================================================

def _upsert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite.insert
    if dialect == "postgresql":
        return postgresql.insert
    raise ConfigurationError(detail=f"Unsupported database dialect for rate limiting: {dialect}")


def claim_rate_limit_slot(db: Session, ip_hash: str, now: int, window_ms: int) -> bool:
    """
    Atomically record `now` for `ip_hash` if its window has elapsed.

    Inserts the row when absent; otherwise updates last_ts only when
    last_ts <= now - window_ms. A single statement, so concurrent requests
    for the same key cannot both succeed.

    Returns:
        True if the row was written (request allowed), False otherwise

    Raises:
        StorageError: if the statement fails
    """
    from app.models import RateLimitEntry

    insert = _upsert_for(db)
    table = RateLimitEntry.__table__
    stmt = insert(table).values(ip_hash=ip_hash, last_ts=now)
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.c.ip_hash],
        set_={"last_ts": stmt.excluded.last_ts},
        where=table.c.last_ts <= now - window_ms,
    )
    try:
        result = db.execute(stmt)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to upsert rate limit entry: {_describe(e)}")
        raise StorageError(detail=_describe(e)) from e
    return result.rowcount == 1


def get_last_timestamp(db: Session, ip_hash: str) -> Optional[int]:
    """
    Read the stored last_ts for `ip_hash`.

    Raises:
        StorageError: if the query fails
    """
    from app.models import RateLimitEntry

    try:
        return db.scalar(select(RateLimitEntry.last_ts).where(RateLimitEntry.ip_hash == ip_hash))
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to read rate limit entry: {_describe(e)}")
        raise StorageError(detail=_describe(e)) from e
