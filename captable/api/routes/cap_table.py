"""Cap table views, snapshots and export routes."""
from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from captable.api.deps import get_actor_id, get_container, get_db_session
from captable.container import Container
from captable.schemas.cap_table import SnapshotCreate, SnapshotHistoryPage, SnapshotRead, SnapshotSummaryRead
from captable.services.snapshots import summarize

router = APIRouter(prefix="/companies/{company_id}/cap-table", dependencies=[Depends(get_actor_id)])


@router.get("")
def get_cap_table(
    company_id: str,
    share_class_id: str | None = None,
    session: Session = Depends(get_db_session),
    container: Container = Depends(get_container),
) -> dict[str, Any]:
    return container.cap_table_service(session).get_current_cap_table(company_id, share_class_id).to_dict()


@router.get("/fully-diluted")
def get_fully_diluted_cap_table(
    company_id: str,
    session: Session = Depends(get_db_session),
    container: Container = Depends(get_container),
) -> dict[str, Any]:
    return container.cap_table_service(session).get_fully_diluted_cap_table(company_id).to_dict()


@router.get("/snapshot", response_model=SnapshotRead)
def get_snapshot(
    company_id: str,
    on: date = Query(..., alias="date"),
    session: Session = Depends(get_db_session),
    container: Container = Depends(get_container),
) -> SnapshotRead:
    snapshot = container.snapshot_service(session).get_snapshot(company_id, on)
    return SnapshotRead.from_model(snapshot)


@router.get("/history", response_model=SnapshotHistoryPage)
def get_snapshot_history(
    company_id: str,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    sort: str | None = None,
    session: Session = Depends(get_db_session),
    container: Container = Depends(get_container),
) -> SnapshotHistoryPage:
    settings = container.settings
    page_size = min(limit or settings.default_page_size, settings.max_page_size)
    result = container.snapshot_service(session).get_snapshot_history(
        company_id, page=page, limit=page_size, sort=sort
    )
    return SnapshotHistoryPage(
        items=[SnapshotSummaryRead.from_summary(item) for item in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
    )


@router.post("/snapshots", response_model=SnapshotSummaryRead, status_code=status.HTTP_201_CREATED)
def create_snapshot(
    company_id: str,
    payload: SnapshotCreate,
    session: Session = Depends(get_db_session),
    container: Container = Depends(get_container),
) -> SnapshotSummaryRead:
    snapshot = container.snapshot_service(session).create_snapshot(
        company_id, payload.snapshot_date, notes=payload.notes
    )
    return SnapshotSummaryRead.from_summary(summarize(snapshot))


@router.get("/export/oct")
def export_oct(
    company_id: str,
    session: Session = Depends(get_db_session),
    container: Container = Depends(get_container),
) -> dict[str, Any]:
    return container.cap_table_service(session).export_oct(company_id)


__all__ = ["router"]
