from abc import ABC, abstractmethod
from typing import Any, List, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

# Domain & Infra Imports
from ..infrastructure.database.tables import StoredResponseDBModel
from ..infrastructure.database.connection import engine as default_engine


class ResponseStore(ABC):
    """
    Defines where successful response payloads end up.
    This allows us change how data is stored (Memory -> SQL -> API) later
    without changing the ExecutionController code.
    """

    @abstractmethod
    def save(self, payload: Any) -> None:
        """Persists one response payload, untruncated."""
        pass

    @abstractmethod
    def list_recent(self, limit: int = 20) -> List[Any]:
        """Returns up to `limit` payloads, most recent first."""
        pass


class InMemoryResponseStore(ResponseStore):
    """
    Keeps payloads in a list for testing/dev purposes.
    """

    def __init__(self):
        self._payloads: List[Any] = []

    def save(self, payload: Any) -> None:
        self._payloads.append(payload)

    def list_recent(self, limit: int = 20) -> List[Any]:
        return list(reversed(self._payloads))[:limit]

    @property
    def payloads(self) -> List[Any]:
        return list(self._payloads)


class SQLResponseStore(ResponseStore):
    """
    Stores payloads in the 'stored_responses' table (JSON column).
    """

    def __init__(self, engine: Optional[Engine] = None):
        self.engine = engine or default_engine

    def save(self, payload: Any) -> None:
        with Session(self.engine) as db:
            db.add(StoredResponseDBModel(payload=payload))
            db.commit()

    def list_recent(self, limit: int = 20) -> List[Any]:
        with Session(self.engine) as db:
            statement = (
                select(StoredResponseDBModel)
                .order_by(StoredResponseDBModel.response_id.desc())
                .limit(limit)
            )
            return [row.payload for row in db.exec(statement).all()]
