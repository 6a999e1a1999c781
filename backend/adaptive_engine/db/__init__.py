"""Database utilities for the adaptive analytics engine."""

from .session import (
    SessionScope,
    dispose_engine,
    get_engine,
    get_session_factory,
    session_scope,
)

__all__ = [
    "SessionScope",
    "dispose_engine",
    "get_engine",
    "get_session_factory",
    "session_scope",
]
