"""
Persisted client state model.

Stores small JSON blobs keyed by string, e.g. the variable bindings of a
dashboard under "dashboard_vars_{dashboard_url}".
"""

from sqlalchemy import Column, String, DateTime, JSON, func

from replaydash.db_base import Base


class PersistedState(Base):
    """Key -> JSON blob row."""

    __tablename__ = "persisted_state"

    key = Column(
        String(512),
        primary_key=True,
        comment="State key (e.g. dashboard_vars_default)"
    )

    value = Column(
        JSON,
        nullable=True,
        comment="JSON-serializable state blob"
    )

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="Timestamp when record was created"
    )

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        comment="Timestamp when record was last updated"
    )

    def __repr__(self) -> str:
        return f"<PersistedState(key={self.key})>"
