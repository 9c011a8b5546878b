from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from captable.container import Container
from captable.core.errors import BusinessRuleError, NotFoundError
from captable.models import AuditLog, CapTableSnapshot, Shareholding, TransactionStatus, TransactionType
from captable.services.notifications import InMemoryNotificationQueue
from captable.services.transactions import CONFIRMED_TRIGGER, TransactionFilters, TransactionRequest
from tests.conftest import FrozenClock, SeededCompany, add_holding


def _issuance(seeded: SeededCompany, quantity: str = "1000", **extra: object) -> TransactionRequest:
    return TransactionRequest(
        type=TransactionType.ISSUANCE,
        share_class_id=seeded.common.id,
        quantity=Decimal(quantity),
        to_shareholder_id=seeded.alice.id,
        **extra,
    )


def test_create_starts_in_draft_and_records_audit(
    container: Container, db_session: Session, seeded: SeededCompany
) -> None:
    service = container.transaction_service(db_session)

    transaction = service.create(
        seeded.company.id, _issuance(seeded, price_per_share=Decimal("2.50")), actor_id="user-1"
    )

    assert transaction.status is TransactionStatus.DRAFT
    assert transaction.created_by == "user-1"
    assert Decimal(transaction.total_value) == Decimal("2500")
    assert transaction.details == {"kind": "ISSUANCE"}
    audit = db_session.execute(select(AuditLog).where(AuditLog.resource_id == transaction.id)).scalar_one()
    assert audit.action == "TRANSACTION_CREATED"
    assert audit.actor_id == "user-1"


def test_rejected_proposal_persists_nothing(container: Container, db_session: Session, seeded: SeededCompany) -> None:
    service = container.transaction_service(db_session)

    with pytest.raises(BusinessRuleError):
        service.create(seeded.company.id, _issuance(seeded, "250000"))

    assert service.list(seeded.company.id).total == 0


def test_board_approval_flow(container: Container, db_session: Session, seeded: SeededCompany) -> None:
    service = container.transaction_service(db_session)
    transaction = service.create(seeded.company.id, _issuance(seeded, requires_board_approval=True))
    assert transaction.status is TransactionStatus.PENDING_APPROVAL

    with pytest.raises(BusinessRuleError) as exc_info:
        service.confirm(seeded.company.id, transaction.id)
    assert exc_info.value.details == {"current_status": "PENDING_APPROVAL", "target_status": "CONFIRMED"}

    approved = service.approve(seeded.company.id, transaction.id, actor_id="board-member")
    assert approved.status is TransactionStatus.SUBMITTED
    assert approved.approved_by == "board-member"
    assert approved.approved_at is not None


def test_cancel_is_terminal(container: Container, db_session: Session, seeded: SeededCompany) -> None:
    service = container.transaction_service(db_session)
    transaction = service.create(seeded.company.id, _issuance(seeded))

    cancelled = service.cancel(seeded.company.id, transaction.id, actor_id="user-2")
    assert cancelled.status is TransactionStatus.CANCELLED
    assert cancelled.cancelled_by == "user-2"

    with pytest.raises(BusinessRuleError) as exc_info:
        service.cancel(seeded.company.id, transaction.id)
    assert exc_info.value.code == "TXN_INVALID_STATUS_TRANSITION"


def test_failed_transaction_can_be_resubmitted(
    container: Container, db_session: Session, seeded: SeededCompany
) -> None:
    service = container.transaction_service(db_session)
    transaction = service.create(seeded.company.id, _issuance(seeded))
    service.submit(seeded.company.id, transaction.id)

    failed = service.mark_failed(seeded.company.id, transaction.id, reason="Settlement bank rejected wire")
    assert failed.status is TransactionStatus.FAILED
    assert failed.failure_reason == "Settlement bank rejected wire"

    retried = service.submit(seeded.company.id, transaction.id)
    assert retried.status is TransactionStatus.SUBMITTED
    assert retried.failure_reason is None


def test_transaction_from_another_company_is_not_found(
    container: Container, db_session: Session, seeded: SeededCompany
) -> None:
    service = container.transaction_service(db_session)
    transaction = service.create(seeded.company.id, _issuance(seeded))

    with pytest.raises(NotFoundError):
        service.get("some-other-company", transaction.id)


def test_confirm_runs_outbound_tasks(container: Container, db_session: Session, seeded: SeededCompany) -> None:
    service = container.transaction_service(db_session)
    transaction = service.create(seeded.company.id, _issuance(seeded, "4000"))
    service.submit(seeded.company.id, transaction.id)

    service.confirm(seeded.company.id, transaction.id, actor_id="user-ops")

    snapshot = db_session.execute(select(CapTableSnapshot)).scalar_one()
    assert snapshot.trigger == CONFIRMED_TRIGGER
    assert snapshot.data["summary"]["total_shares"] == "4000"

    actions = set(db_session.execute(select(AuditLog.action)).scalars())
    assert {"TRANSACTION_CREATED", "TRANSACTION_SUBMITTED", "SHARES_ISSUED"} <= actions

    assert isinstance(container.notifier, InMemoryNotificationQueue)
    [message] = container.notifier.list_messages()
    assert message.notification_type == "TRANSACTION_CONFIRMED"
    assert message.event.event_type == "SHARES_ISSUED"
    assert message.event.quantity == "4000"
    assert message.event.status == "CONFIRMED"


def test_confirm_recalculates_ownership(container: Container, db_session: Session, seeded: SeededCompany) -> None:
    add_holding(db_session, seeded.common, seeded.bob, 1000)
    service = container.transaction_service(db_session)
    transaction = service.create(seeded.company.id, _issuance(seeded, "3000"))
    service.submit(seeded.company.id, transaction.id)

    service.confirm(seeded.company.id, transaction.id)

    db_session.expire_all()
    holdings = {
        row.shareholder_id: row for row in db_session.execute(select(Shareholding)).scalars()
    }
    assert Decimal(holdings[seeded.alice.id].ownership_pct) == Decimal("75")
    assert Decimal(holdings[seeded.bob.id].ownership_pct) == Decimal("25")


def test_side_effect_failures_do_not_undo_confirmation(
    container: Container, db_session: Session, seeded: SeededCompany
) -> None:
    calls: list[str] = []

    class BrokenNotifier:
        def dispatch(self, message) -> None:  # type: ignore[no-untyped-def]
            calls.append(message.event.transaction_id)
            raise RuntimeError("broker unavailable")

    container.notifier = BrokenNotifier()
    service = container.transaction_service(db_session)
    transaction = service.create(seeded.company.id, _issuance(seeded))
    service.submit(seeded.company.id, transaction.id)

    confirmed = service.confirm(seeded.company.id, transaction.id)

    assert confirmed.status is TransactionStatus.CONFIRMED
    assert calls == [transaction.id, transaction.id]


def test_concurrent_confirmation_applies_ledger_once(
    container: Container, db_session: Session, seeded: SeededCompany
) -> None:
    service = container.transaction_service(db_session)
    transaction = service.create(seeded.company.id, _issuance(seeded, "500"))
    service.submit(seeded.company.id, transaction.id)

    other_session = container.session_factory()
    try:
        other_service = container.transaction_service(other_session)
        stale = other_service.get(seeded.company.id, transaction.id)
        assert stale.status is TransactionStatus.SUBMITTED

        service.confirm(seeded.company.id, transaction.id)

        with pytest.raises(BusinessRuleError) as exc_info:
            other_service.confirm(seeded.company.id, transaction.id)
        assert exc_info.value.code == "TXN_INVALID_STATUS_TRANSITION"
    finally:
        other_session.close()

    db_session.expire_all()
    holding = db_session.execute(select(Shareholding)).scalar_one()
    assert Decimal(holding.quantity) == Decimal("500")
    db_session.refresh(seeded.common)
    assert Decimal(seeded.common.total_issued) == Decimal("500")


def test_list_filters_sorts_and_paginates(
    container: Container, db_session: Session, seeded: SeededCompany, clock: FrozenClock
) -> None:
    add_holding(db_session, seeded.common, seeded.alice, 1000)
    service = container.transaction_service(db_session)
    issuance = service.create(seeded.company.id, _issuance(seeded, "100"))
    clock.advance(minutes=1)
    transfer = service.create(
        seeded.company.id,
        TransactionRequest(
            type=TransactionType.TRANSFER,
            share_class_id=seeded.common.id,
            quantity=Decimal("300"),
            from_shareholder_id=seeded.alice.id,
            to_shareholder_id=seeded.bob.id,
        ),
    )
    clock.advance(minutes=1)
    service.create(seeded.company.id, _issuance(seeded, "50"))

    newest_first = service.list(seeded.company.id, page=1, limit=2)
    assert newest_first.total == 3
    assert len(newest_first.items) == 2
    assert newest_first.items[1].id == transfer.id

    by_bob = service.list(seeded.company.id, TransactionFilters(shareholder_id=seeded.bob.id))
    assert [item.id for item in by_bob.items] == [transfer.id]

    by_quantity = service.list(seeded.company.id, sort="-quantity")
    assert [Decimal(item.quantity) for item in by_quantity.items] == [Decimal("300"), Decimal("100"), Decimal("50")]

    issuances = service.list(seeded.company.id, TransactionFilters(type=TransactionType.ISSUANCE), sort="created_at")
    assert issuances.items[0].id == issuance.id
