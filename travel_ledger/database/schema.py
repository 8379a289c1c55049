"""Database schema creation and management."""

from travel_ledger.database.connection import Base, create_database_engine
from travel_ledger.database import models  # noqa: F401  registers tables on Base.metadata


def create_tables(engine, drop_existing=False):
    """Create all database tables.

    Args:
        engine: SQLAlchemy engine
        drop_existing: If True, drop existing tables before creating (destructive!)
    """
    if drop_existing:
        Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)


if __name__ == "__main__":
    import sys

    from travel_ledger.config import get_database_url

    database_url = sys.argv[1] if len(sys.argv) > 1 and not sys.argv[1].startswith("--") else get_database_url()
    drop_existing = "--drop" in sys.argv

    engine = create_database_engine(database_url)
    create_tables(engine, drop_existing=drop_existing)
    print(f"✓ Ledger tables created at {database_url}")
