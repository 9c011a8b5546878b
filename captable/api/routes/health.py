"""Health and readiness endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from captable.api.deps import get_container, get_db_session
from captable.container import Container

router = APIRouter()


@router.get("/health", summary="Liveness check")
def health_check(container: Container = Depends(get_container)) -> dict[str, str]:
    return {"status": "ok", "service": container.settings.app_name}


@router.get("/readyz", summary="Readiness check")
def readiness_check(
    container: Container = Depends(get_container), session: Session = Depends(get_db_session)
) -> dict[str, str]:
    session.execute(text("SELECT 1"))
    return {"status": "ready", "service": container.settings.app_name}
