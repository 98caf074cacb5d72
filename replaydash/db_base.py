"""
Declarative base for the client state database.

The state database holds persisted variable bindings (and any other
key -> JSON blobs the engine keeps between runs). Kept free of model
imports so models/ and database/ can both depend on it.
"""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
