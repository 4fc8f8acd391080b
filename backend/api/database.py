"""
Fort snapshot storage.
SQLite file by default; set DATABASE_URL (e.g. a hosted Postgres) to point elsewhere.
"""

import os

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.config import DATABASE_FILENAME, DATABASE_URL_ENV


def resolve_database_url(raw_url: str | None = None) -> str:
    """
    SQLAlchemy URL for the fort store.
    Hosted Postgres often hands out postgres://, which SQLAlchemy 2.x only accepts as postgresql://.
    """
    if raw_url is None:
        raw_url = os.environ.get(DATABASE_URL_ENV)
    if not raw_url:
        db_dir = os.path.dirname(os.path.abspath(__file__))
        return f"sqlite:///{os.path.join(db_dir, DATABASE_FILENAME)}"
    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql://", 1)
    return raw_url


DATABASE_URL = resolve_database_url()

# The API serves requests from a thread pool; SQLite connections must not be pinned to one thread
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """Request-scoped session for FastAPI's Depends."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create the forts table if it does not exist yet."""
    # Importing the models registers them on Base.metadata
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
