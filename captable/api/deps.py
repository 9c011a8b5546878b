"""Common dependencies for API routes."""
from __future__ import annotations

from collections.abc import Iterator

from fastapi import Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from captable.container import Container


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_db_session(request: Request) -> Iterator[Session]:
    """Yield a database session for FastAPI dependencies."""

    session: Session = get_container(request).session_factory()
    try:
        yield session
    finally:
        session.close()


def get_actor_id(x_user_id: str | None = Header(default=None)) -> str:
    """Return the acting user id supplied by the upstream gateway."""

    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-ID header")
    return x_user_id


__all__ = ["get_actor_id", "get_container", "get_db_session"]
