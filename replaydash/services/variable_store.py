"""
Variable bindings per dashboard (or ad-hoc preview) scope.

Bindings are persisted under "dashboard_vars_{scope_key}" so selections
survive reloads. Persistence is best-effort: a failing store is logged and
the in-memory bindings stay authoritative.
"""

import logging
from typing import Dict, Mapping, Optional

from replaydash.integrations.dashboard_api.models import VariableDef
from replaydash.repositories.persistence_store import (
    PersistenceStore,
    InMemoryPersistenceStore,
)

logger = logging.getLogger(__name__)

VariableBindings = Dict[str, str]

STORAGE_KEY_PREFIX = "dashboard_vars_"


def storage_key(scope_key: str) -> str:
    """Persistence key for a scope's bindings."""
    return f"{STORAGE_KEY_PREFIX}{scope_key}"


class VariableStore:
    """
    Holds the current variable bindings for each scope.

    A scope is a dashboard URL or an ad-hoc preview session id. One logical
    writer per scope is assumed; there is no locking.
    """

    def __init__(self, persistence: Optional[PersistenceStore] = None):
        self._persistence = persistence or InMemoryPersistenceStore()
        self._bindings: Dict[str, VariableBindings] = {}

    def get(self, scope_key: str) -> VariableBindings:
        """
        Return a copy of the bindings for a scope.

        Bindings written in this process win over the store. A stored blob
        that is not a JSON object of strings is ignored.
        """
        if scope_key in self._bindings:
            return dict(self._bindings[scope_key])

        stored = self._load(scope_key)
        self._bindings[scope_key] = stored
        return dict(stored)

    def set(self, scope_key: str, bindings: Mapping[str, str]) -> None:
        """Replace a scope's bindings and persist them. Never raises."""
        self._bindings[scope_key] = {str(k): str(v) for k, v in bindings.items()}
        self._persist(scope_key)

    def set_value(self, scope_key: str, name: str, value: str) -> VariableBindings:
        """Bind a single variable, keeping the rest of the scope."""
        bindings = self.get(scope_key)
        bindings[name] = value
        self.set(scope_key, bindings)
        return bindings

    def reconcile(
        self,
        scope_key: str,
        bindings: Mapping[str, str],
        declared_vars: Mapping[str, VariableDef],
    ) -> VariableBindings:
        """
        Align bindings with the declared variables and persist the result.

        Bindings for undeclared variables are dropped; declared variables
        without a binding get their first possible value, when there is one.
        Applying it twice yields the same bindings.
        """
        reconciled: VariableBindings = {}
        for name, var in declared_vars.items():
            if name in bindings:
                reconciled[name] = str(bindings[name])
            elif var.default_value is not None:
                reconciled[name] = var.default_value

        dropped = sorted(set(bindings) - set(declared_vars))
        if dropped:
            logger.debug(
                "variable_store.dropped_stale_bindings",
                extra={"scope_key": scope_key, "variables": dropped},
            )

        self.set(scope_key, reconciled)
        return dict(reconciled)

    def clear(self, scope_key: str) -> None:
        """Reset a scope to no bindings."""
        self.set(scope_key, {})

    def _load(self, scope_key: str) -> VariableBindings:
        key = storage_key(scope_key)
        try:
            stored = self._persistence.get(key)
        except Exception as e:
            logger.warning(
                "variable_store.load_failed",
                extra={"scope_key": scope_key, "error": str(e)},
            )
            return {}

        if not isinstance(stored, dict):
            if stored is not None:
                logger.warning(
                    "variable_store.ignored_malformed_state",
                    extra={"scope_key": scope_key, "stored_type": type(stored).__name__},
                )
            return {}

        return {
            str(name): str(value)
            for name, value in stored.items()
            if value is not None and not isinstance(value, (dict, list))
        }

    def _persist(self, scope_key: str) -> None:
        try:
            self._persistence.set(storage_key(scope_key), dict(self._bindings[scope_key]))
        except Exception as e:
            logger.warning(
                "variable_store.persist_failed",
                extra={"scope_key": scope_key, "error": str(e)},
            )
