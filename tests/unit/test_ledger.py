from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from captable.container import Container
from captable.core.errors import BusinessRuleError
from captable.models import ShareClass, Shareholding, Transaction, TransactionStatus, TransactionType
from captable.services.transactions import TransactionRequest, TransactionService
from tests.conftest import SeededCompany, add_holding


def _service(container: Container, session: Session) -> TransactionService:
    return container.transaction_service(session)


def _submitted(service: TransactionService, seeded: SeededCompany, **fields: object) -> Transaction:
    fields.setdefault("share_class_id", seeded.common.id)
    transaction = service.create(seeded.company.id, TransactionRequest(**fields), actor_id="user-ops")
    return service.submit(seeded.company.id, transaction.id, actor_id="user-ops")


def _holdings(session: Session, share_class: ShareClass) -> dict[str, Decimal]:
    session.expire_all()
    rows = session.execute(select(Shareholding).where(Shareholding.share_class_id == share_class.id)).scalars()
    return {row.shareholder_id: Decimal(row.quantity) for row in rows}


def test_issuance_creates_holding_and_raises_issued_total(
    container: Container, db_session: Session, seeded: SeededCompany
) -> None:
    service = _service(container, db_session)
    transaction = _submitted(
        service, seeded, type=TransactionType.ISSUANCE, quantity=Decimal("10000"), to_shareholder_id=seeded.alice.id
    )

    confirmed = service.confirm(seeded.company.id, transaction.id, actor_id="user-ops")

    assert confirmed.status is TransactionStatus.CONFIRMED
    assert confirmed.confirmed_at is not None
    assert _holdings(db_session, seeded.common) == {seeded.alice.id: Decimal("10000")}
    db_session.refresh(seeded.common)
    assert Decimal(seeded.common.total_issued) == Decimal("10000")


def test_transfer_conserves_class_total_and_deletes_empty_holding(
    container: Container, db_session: Session, seeded: SeededCompany
) -> None:
    add_holding(db_session, seeded.common, seeded.alice, 3000)
    add_holding(db_session, seeded.common, seeded.bob, 1000)
    service = _service(container, db_session)

    transaction = _submitted(
        service,
        seeded,
        type=TransactionType.TRANSFER,
        quantity=Decimal("3000"),
        from_shareholder_id=seeded.alice.id,
        to_shareholder_id=seeded.bob.id,
    )
    service.confirm(seeded.company.id, transaction.id)

    holdings = _holdings(db_session, seeded.common)
    assert holdings == {seeded.bob.id: Decimal("4000")}
    assert sum(holdings.values()) == Decimal("4000")
    db_session.refresh(seeded.common)
    assert Decimal(seeded.common.total_issued) == Decimal("4000")


def test_cancellation_retires_shares(container: Container, db_session: Session, seeded: SeededCompany) -> None:
    add_holding(db_session, seeded.common, seeded.alice, 5000)
    service = _service(container, db_session)

    transaction = _submitted(
        service,
        seeded,
        type=TransactionType.CANCELLATION,
        quantity=Decimal("1500"),
        from_shareholder_id=seeded.alice.id,
    )
    service.confirm(seeded.company.id, transaction.id)

    assert _holdings(db_session, seeded.common) == {seeded.alice.id: Decimal("3500")}
    db_session.refresh(seeded.common)
    assert Decimal(seeded.common.total_issued) == Decimal("3500")


def test_conversion_moves_shares_between_classes(
    container: Container, db_session: Session, seeded: SeededCompany
) -> None:
    add_holding(db_session, seeded.preferred, seeded.fund, 2000)
    service = _service(container, db_session)

    transaction = _submitted(
        service,
        seeded,
        type=TransactionType.CONVERSION,
        share_class_id=seeded.preferred.id,
        quantity=Decimal("2000"),
        from_shareholder_id=seeded.fund.id,
        target_share_class_id=seeded.common.id,
    )
    service.confirm(seeded.company.id, transaction.id)

    assert _holdings(db_session, seeded.preferred) == {}
    assert _holdings(db_session, seeded.common) == {seeded.fund.id: Decimal("2000")}
    db_session.refresh(seeded.preferred)
    db_session.refresh(seeded.common)
    assert Decimal(seeded.preferred.total_issued) == Decimal("0")
    assert Decimal(seeded.common.total_issued) == Decimal("2000")


def test_split_scales_holdings_and_class_totals(
    container: Container, db_session: Session, seeded: SeededCompany
) -> None:
    add_holding(db_session, seeded.common, seeded.alice, 10)
    add_holding(db_session, seeded.common, seeded.bob, 20)
    service = _service(container, db_session)

    transaction = _submitted(service, seeded, type=TransactionType.SPLIT, quantity=Decimal("1"), split_ratio="2")
    service.confirm(seeded.company.id, transaction.id)

    assert _holdings(db_session, seeded.common) == {seeded.alice.id: Decimal("20"), seeded.bob.id: Decimal("40")}
    db_session.refresh(seeded.common)
    assert Decimal(seeded.common.total_issued) == Decimal("60")
    assert Decimal(seeded.common.total_authorized) == Decimal("200000")


def test_split_producing_fractional_shares_changes_nothing(
    container: Container, db_session: Session, seeded: SeededCompany
) -> None:
    add_holding(db_session, seeded.common, seeded.alice, 3)
    add_holding(db_session, seeded.common, seeded.bob, 4)
    service = _service(container, db_session)
    transaction = _submitted(service, seeded, type=TransactionType.SPLIT, quantity=Decimal("1"), split_ratio="1.5")

    with pytest.raises(BusinessRuleError) as exc_info:
        service.confirm(seeded.company.id, transaction.id)

    error = exc_info.value
    assert error.code == "TXN_INVALID_SPLIT_RATIO"
    assert error.details["current_quantity"] == "3"
    assert error.details["resulting_quantity"] == "4.5"
    assert _holdings(db_session, seeded.common) == {seeded.alice.id: Decimal("3"), seeded.bob.id: Decimal("4")}
    db_session.refresh(seeded.common)
    assert Decimal(seeded.common.total_issued) == Decimal("7")
    assert Decimal(seeded.common.total_authorized) == Decimal("100000")
    assert service.get(seeded.company.id, transaction.id).status is TransactionStatus.SUBMITTED


def test_confirm_rechecks_balance_after_stale_validation(
    container: Container, db_session: Session, seeded: SeededCompany
) -> None:
    add_holding(db_session, seeded.common, seeded.alice, 1000)
    service = _service(container, db_session)
    first = _submitted(
        service,
        seeded,
        type=TransactionType.TRANSFER,
        quantity=Decimal("800"),
        from_shareholder_id=seeded.alice.id,
        to_shareholder_id=seeded.bob.id,
    )
    second = _submitted(
        service,
        seeded,
        type=TransactionType.CANCELLATION,
        quantity=Decimal("800"),
        from_shareholder_id=seeded.alice.id,
    )

    service.confirm(seeded.company.id, first.id)
    with pytest.raises(BusinessRuleError) as exc_info:
        service.confirm(seeded.company.id, second.id)

    assert exc_info.value.code == "TXN_INSUFFICIENT_SHARES"
    assert exc_info.value.details["available"] == "200"
    assert _holdings(db_session, seeded.common) == {
        seeded.alice.id: Decimal("200"),
        seeded.bob.id: Decimal("800"),
    }
    assert service.get(seeded.company.id, second.id).status is TransactionStatus.SUBMITTED
