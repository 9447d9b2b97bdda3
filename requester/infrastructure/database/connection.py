"""
Database Connection Manager.

This module handles the low-level details of connecting to the database.
It exposes the SQLModel engine which will be used by the Repositories.
"""

from sqlmodel import create_engine, SQLModel
from ...config import settings

# SQLite needs this when the engine is shared with the event loop thread
_connect_args = (
    {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
)

# echo=False in production to avoid leaking response payloads in logs
engine = create_engine(settings.DATABASE_URL, echo=False, connect_args=_connect_args)


def init_db(bind=None):
    """
    Idempotent initialization.
    Creates tables if they do not exist.
    """
    # Register the table models on the metadata before creating them
    from . import tables  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)
