"""Database connection management."""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Base class for declarative models
Base = declarative_base()


def create_database_engine(database_url: str):
    """Create SQLAlchemy engine from database URL.

    In-memory SQLite URLs share one connection so every session sees the
    same database.
    """
    if database_url == "sqlite://" or (database_url.startswith("sqlite") and ":memory:" in database_url):
        return create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, echo=False)


def create_session_factory(engine):
    """Create session factory from engine."""
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_session(engine):
    """Get a database session."""
    Session = create_session_factory(engine)
    return Session()
