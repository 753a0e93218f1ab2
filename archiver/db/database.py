"""SQLAlchemy database setup."""

from collections.abc import Generator
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from archiver.config import get_settings

settings = get_settings()

# Ensure data directory exists
Path(settings.data_dir).mkdir(parents=True, exist_ok=True)

_is_sqlite = settings.database_url.startswith("sqlite")

engine = create_engine(
    settings.database_url,
    connect_args={
        "check_same_thread": False,  # Sessions are created on the event loop thread
        "timeout": settings.db_busy_timeout_seconds,
    }
    if _is_sqlite
    else {},
    echo=False,
    pool_pre_ping=True,  # Check connection health
)


if _is_sqlite:

    # WAL lets the API read while a sync run is writing. Sessions run on the
    # event loop thread, so a lock wait must stay short
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute(f"PRAGMA busy_timeout={int(settings.db_busy_timeout_seconds * 1000)}")
        cursor.close()


# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Dependency that provides a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Initialize database tables."""
    from archiver.db import models  # noqa: F401 - Import models to register them

    Base.metadata.create_all(bind=engine)
