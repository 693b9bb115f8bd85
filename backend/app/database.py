"""
database.py - SQLAlchemy database configuration for the Transfermarkt catalog.

Provides:
- Engine for the configured database URL (SQLite by default)
- Session factory for repositories and API endpoints
- Dependency injection for FastAPI endpoints
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from scraper.config_loader import get_config

SQLALCHEMY_DATABASE_URL = get_config().get_database_url()

# SQLite needs check_same_thread=False because the API serves from a thread pool
connect_args = {"check_same_thread": False} if SQLALCHEMY_DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """
    Dependency generator for FastAPI endpoint injection.

    Yields a database session and ensures cleanup after request completion.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
