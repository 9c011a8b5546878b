"""Option grant vesting and exercise routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from captable.api.deps import get_actor_id, get_container, get_db_session
from captable.container import Container
from captable.schemas.option_grant import ExerciseRequest, OptionGrantRead, VestingRead

router = APIRouter(prefix="/companies/{company_id}/option-grants", dependencies=[Depends(get_actor_id)])


@router.get("/{grant_id}/vesting", response_model=VestingRead)
def get_vesting(
    company_id: str,
    grant_id: str,
    session: Session = Depends(get_db_session),
    container: Container = Depends(get_container),
) -> VestingRead:
    summary = container.option_grant_service(session).get_vesting(company_id, grant_id)
    return VestingRead.from_summary(grant_id, summary)


@router.post("/{grant_id}/exercise", response_model=OptionGrantRead)
def exercise_options(
    company_id: str,
    grant_id: str,
    payload: ExerciseRequest,
    session: Session = Depends(get_db_session),
    container: Container = Depends(get_container),
) -> OptionGrantRead:
    grant = container.option_grant_service(session).record_exercise(company_id, grant_id, payload.quantity)
    return OptionGrantRead.from_model(grant)


__all__ = ["router"]
