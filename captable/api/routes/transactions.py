"""Transaction routes scoped to a company."""
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from captable.api.deps import get_actor_id, get_container, get_db_session
from captable.container import Container
from captable.models import TransactionStatus, TransactionType
from captable.schemas.transaction import TransactionCreate, TransactionFailure, TransactionPage, TransactionRead
from captable.services.transactions import TransactionFilters

router = APIRouter(prefix="/companies/{company_id}/transactions")


@router.post("", response_model=TransactionRead, status_code=status.HTTP_201_CREATED)
def create_transaction(
    company_id: str,
    payload: TransactionCreate,
    session: Session = Depends(get_db_session),
    container: Container = Depends(get_container),
    actor_id: str = Depends(get_actor_id),
) -> TransactionRead:
    service = container.transaction_service(session)
    transaction = service.create(company_id, payload.to_request(), actor_id=actor_id)
    return TransactionRead.from_model(transaction)


@router.get("", response_model=TransactionPage, dependencies=[Depends(get_actor_id)])
def list_transactions(
    company_id: str,
    type: TransactionType | None = None,
    status_filter: TransactionStatus | None = Query(default=None, alias="status"),
    shareholder_id: str | None = None,
    share_class_id: str | None = None,
    created_after: datetime | None = None,
    created_before: datetime | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    sort: str | None = None,
    session: Session = Depends(get_db_session),
    container: Container = Depends(get_container),
) -> TransactionPage:
    settings = container.settings
    page_size = min(limit or settings.default_page_size, settings.max_page_size)
    filters = TransactionFilters(
        type=type,
        status=status_filter,
        shareholder_id=shareholder_id,
        share_class_id=share_class_id,
        created_after=created_after,
        created_before=created_before,
    )
    result = container.transaction_service(session).list(
        company_id, filters, page=page, limit=page_size, sort=sort
    )
    return TransactionPage(
        items=[TransactionRead.from_model(item) for item in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
    )


@router.get("/{transaction_id}", response_model=TransactionRead, dependencies=[Depends(get_actor_id)])
def get_transaction(
    company_id: str,
    transaction_id: str,
    session: Session = Depends(get_db_session),
    container: Container = Depends(get_container),
) -> TransactionRead:
    service = container.transaction_service(session)
    transaction = service.get(company_id, transaction_id)
    return TransactionRead.from_model(transaction, settlement_records=service.settlement_records(transaction.id))


@router.post("/{transaction_id}/submit", response_model=TransactionRead)
def submit_transaction(
    company_id: str,
    transaction_id: str,
    session: Session = Depends(get_db_session),
    container: Container = Depends(get_container),
    actor_id: str = Depends(get_actor_id),
) -> TransactionRead:
    transaction = container.transaction_service(session).submit(company_id, transaction_id, actor_id=actor_id)
    return TransactionRead.from_model(transaction)


@router.post("/{transaction_id}/approve", response_model=TransactionRead)
def approve_transaction(
    company_id: str,
    transaction_id: str,
    session: Session = Depends(get_db_session),
    container: Container = Depends(get_container),
    actor_id: str = Depends(get_actor_id),
) -> TransactionRead:
    transaction = container.transaction_service(session).approve(company_id, transaction_id, actor_id=actor_id)
    return TransactionRead.from_model(transaction)


@router.post("/{transaction_id}/confirm", response_model=TransactionRead)
def confirm_transaction(
    company_id: str,
    transaction_id: str,
    session: Session = Depends(get_db_session),
    container: Container = Depends(get_container),
    actor_id: str = Depends(get_actor_id),
) -> TransactionRead:
    transaction = container.transaction_service(session).confirm(company_id, transaction_id, actor_id=actor_id)
    return TransactionRead.from_model(transaction)


@router.post("/{transaction_id}/cancel", response_model=TransactionRead)
def cancel_transaction(
    company_id: str,
    transaction_id: str,
    session: Session = Depends(get_db_session),
    container: Container = Depends(get_container),
    actor_id: str = Depends(get_actor_id),
) -> TransactionRead:
    transaction = container.transaction_service(session).cancel(company_id, transaction_id, actor_id=actor_id)
    return TransactionRead.from_model(transaction)


@router.post("/{transaction_id}/fail", response_model=TransactionRead)
def fail_transaction(
    company_id: str,
    transaction_id: str,
    payload: TransactionFailure,
    session: Session = Depends(get_db_session),
    container: Container = Depends(get_container),
    actor_id: str = Depends(get_actor_id),
) -> TransactionRead:
    transaction = container.transaction_service(session).mark_failed(
        company_id, transaction_id, reason=payload.reason, actor_id=actor_id
    )
    return TransactionRead.from_model(transaction)


__all__ = ["router"]
