"""
Key -> JSON blob persistence for client state.

Two implementations:
- InMemoryPersistenceStore: process-local, used by tests and ad-hoc previews
- SqlPersistenceStore: SQLAlchemy-backed, survives restarts

Values must be JSON-serializable. Both stores raise PersistenceError on
failure; callers decide whether failure is fatal.
"""

import copy
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from replaydash.models.persisted_state import PersistedState
from replaydash.services.exceptions import PersistenceError

logger = logging.getLogger(__name__)


class PersistenceStore(ABC):
    """Abstract key -> JSON blob store."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored blob for key, or None if absent."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable blob under key."""


class InMemoryPersistenceStore(PersistenceStore):
    """Dict-backed store. Values are round-tripped through JSON on write."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Value for {key} is not JSON-serializable: {e}", key=key)


class SqlPersistenceStore(PersistenceStore):
    """
    SQLAlchemy-backed store using the persisted_state table.

    Each call opens its own session from the factory, so the store is safe
    to share between sessions of the same process.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        if session_factory is None:
            from replaydash.database.session import get_session_factory
            session_factory = get_session_factory()
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[Any]:
        session = self._session_factory()
        try:
            row = session.get(PersistedState, key)
            return copy.deepcopy(row.value) if row is not None else None
        except SQLAlchemyError as e:
            logger.error(
                "Failed to read persisted state",
                extra={"key": key, "error": str(e)},
            )
            raise PersistenceError(f"Failed to read {key}: {e}", key=key)
        finally:
            session.close()

    def set(self, key: str, value: Any) -> None:
        try:
            json.dumps(value)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Value for {key} is not JSON-serializable: {e}", key=key)

        session = self._session_factory()
        try:
            row = session.get(PersistedState, key)
            if row is None:
                session.add(PersistedState(key=key, value=value))
            else:
                row.value = value
            session.commit()

            logger.debug("Persisted state written", extra={"key": key})

        except SQLAlchemyError as e:
            session.rollback()
            logger.error(
                "Failed to write persisted state",
                extra={"key": key, "error": str(e)},
            )
            raise PersistenceError(f"Failed to write {key}: {e}", key=key)
        finally:
            session.close()
