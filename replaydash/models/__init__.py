"""Database models."""

from replaydash.models.persisted_state import PersistedState

__all__ = ["PersistedState"]
