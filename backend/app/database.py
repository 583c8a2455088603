"""
LetterDesk - Database Configuration
SQLAlchemy engine and session factory for the letters/users backend
"""
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

# Bound by configure_database() during startup (or by tests)
engine: Optional[Engine] = None

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False)

# Base class for ORM models
Base = declarative_base()


def configure_database(database_url: str, **engine_kwargs) -> Engine:
    """Create the engine for `database_url` and bind the session factory to it."""
    global engine
    engine = create_engine(database_url, echo=False, **engine_kwargs)
    SessionLocal.configure(bind=engine)
    return engine


def get_db():
    """Dependency for FastAPI - yields database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Initialize database - create all tables."""
    # Register the ORM tables on Base.metadata
    from .models import db_models  # noqa: F401

    Base.metadata.create_all(bind=engine)
