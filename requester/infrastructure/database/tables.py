"""
Database Table Definitions.

This module defines the SQL schema using SQLModel.
We use the 'DBModel' suffix to distinguish these persistence models
from the Pydantic state models (Outcome, LogEntry).
"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StoredResponseDBModel(SQLModel, table=True):
    """
    Persistence model for successful response payloads.
    Maps 1-to-1 with the 'stored_responses' table.
    """

    __tablename__ = "stored_responses"

    # Autoincrement key doubles as insertion order
    response_id: Optional[int] = Field(default=None, primary_key=True)

    # Whatever the transport returned (parsed JSON or raw text), stored as JSON.
    payload: Any = Field(default=None, sa_column=Column(JSON, nullable=True))

    created_at: datetime = Field(default_factory=_utc_now, index=True)
