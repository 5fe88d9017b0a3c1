"""
Base database model and session management
"""
import logging
import os
import sqlite3
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool
from sqlalchemy.orm import declarative_base, sessionmaker
from shipledger.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite ignores FOREIGN KEY / ON DELETE CASCADE unless asked per connection."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for the given URL with the pool settings we use everywhere."""
    # Resolve relative SQLite paths to absolute so cwd changes can't break it
    if database_url.startswith("sqlite:///") and not database_url.startswith("sqlite:////"):
        rel_path = database_url[len("sqlite:///"):]
        if rel_path and rel_path != ":memory:":
            database_url = "sqlite:///" + os.path.abspath(rel_path)

    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 60},
            poolclass=NullPool,
        )
    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        pool_recycle=300,
    )


# Create database engine
engine = build_engine(settings.database_url, echo=settings.sql_echo)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all models
Base = declarative_base()


def get_db():
    """Get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine = None):
    """Create all ledger tables that don't exist yet."""
    # Importing the package registers every model on Base.metadata
    import shipledger.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Ledger tables ensured on %s", (bind or engine).url)
