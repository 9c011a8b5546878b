"""Analytics report routes."""
from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from captable.api.deps import get_actor_id, get_container, get_db_session
from captable.container import Container
from captable.services.analytics import Granularity

router = APIRouter(prefix="/companies/{company_id}/reports", dependencies=[Depends(get_actor_id)])


@router.get("/dilution")
def get_dilution_report(
    company_id: str,
    date_from: date | None = None,
    date_to: date | None = None,
    granularity: Granularity = Granularity.MONTH,
    session: Session = Depends(get_db_session),
    container: Container = Depends(get_container),
) -> dict[str, Any]:
    report = container.analytics_service(session).get_dilution_report(
        company_id, date_from=date_from, date_to=date_to, granularity=granularity
    )
    return report.to_dict()


__all__ = ["router"]
