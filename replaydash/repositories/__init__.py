"""Persistence stores for client state."""

from replaydash.repositories.persistence_store import (
    PersistenceStore,
    InMemoryPersistenceStore,
    SqlPersistenceStore,
)

__all__ = [
    "PersistenceStore",
    "InMemoryPersistenceStore",
    "SqlPersistenceStore",
]
