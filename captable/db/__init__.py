"""Database engine and session helpers."""

from .session import build_engine, build_session_factory, serializable_transaction, session_scope

__all__ = ["build_engine", "build_session_factory", "serializable_transaction", "session_scope"]
