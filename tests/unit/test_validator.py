from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from captable.core.errors import BusinessRuleError, NotFoundError
from captable.models import (
    Company,
    CompanyEntityType,
    CompanyStatus,
    ShareClass,
    ShareClassType,
    Shareholder,
    ShareholderStatus,
    TransactionType,
)
from captable.services.transactions.details import build_details
from captable.services.transactions.validator import TransactionProposal, TransactionValidator
from tests.conftest import FROZEN_NOW, SeededCompany, add_holding


def _proposal(
    seeded: SeededCompany,
    transaction_type: TransactionType,
    quantity: str,
    *,
    share_class: ShareClass | None = None,
    from_holder: Shareholder | None = None,
    to_holder: Shareholder | None = None,
    **details: object,
) -> TransactionProposal:
    return TransactionProposal(
        company_id=seeded.company.id,
        type=transaction_type,
        share_class_id=(share_class or seeded.common).id,
        quantity=Decimal(quantity),
        details=build_details(transaction_type, **details),
        from_shareholder_id=from_holder.id if from_holder else None,
        to_shareholder_id=to_holder.id if to_holder else None,
    )


def _validate(session: Session, proposal: TransactionProposal):
    return TransactionValidator(session).validate(proposal, now=FROZEN_NOW)


def test_issuance_beyond_authorized_reports_exact_figures(db_session: Session, seeded: SeededCompany) -> None:
    add_holding(db_session, seeded.common, seeded.alice, 95000)

    with pytest.raises(BusinessRuleError) as exc_info:
        _validate(db_session, _proposal(seeded, TransactionType.ISSUANCE, "10000", to_holder=seeded.bob))

    error = exc_info.value
    assert error.code == "TXN_EXCEEDS_AUTHORIZED"
    assert error.details == {
        "authorized": "100000",
        "current_issued": "95000",
        "requested": "10000",
        "would_be": "105000",
        "share_class_name": "ON",
    }


def test_issuance_up_to_authorized_is_accepted(db_session: Session, seeded: SeededCompany) -> None:
    add_holding(db_session, seeded.common, seeded.alice, 95000)

    validated = _validate(db_session, _proposal(seeded, TransactionType.ISSUANCE, "5000", to_holder=seeded.bob))

    assert validated.to_shareholder.id == seeded.bob.id
    assert validated.from_shareholder is None


def test_transfer_with_insufficient_balance(db_session: Session, seeded: SeededCompany) -> None:
    add_holding(db_session, seeded.common, seeded.alice, 30000)

    proposal = _proposal(
        seeded, TransactionType.TRANSFER, "50000", from_holder=seeded.alice, to_holder=seeded.bob
    )
    with pytest.raises(BusinessRuleError) as exc_info:
        _validate(db_session, proposal)

    assert exc_info.value.code == "TXN_INSUFFICIENT_SHARES"
    assert exc_info.value.details == {
        "available": "30000",
        "requested": "50000",
        "shareholder_id": seeded.alice.id,
        "share_class_id": seeded.common.id,
    }


def test_transfer_to_same_shareholder_is_rejected(db_session: Session, seeded: SeededCompany) -> None:
    add_holding(db_session, seeded.common, seeded.alice, 100)

    proposal = _proposal(seeded, TransactionType.TRANSFER, "10", from_holder=seeded.alice, to_holder=seeded.alice)
    with pytest.raises(BusinessRuleError) as exc_info:
        _validate(db_session, proposal)

    assert exc_info.value.code == "TXN_SAME_SHAREHOLDER"


def test_transfer_inside_lock_up_window(db_session: Session, seeded: SeededCompany) -> None:
    seeded.common.lock_up_period_months = 12
    db_session.commit()
    add_holding(db_session, seeded.common, seeded.alice, 1000, created_at=FROZEN_NOW - timedelta(days=90))

    proposal = _proposal(seeded, TransactionType.TRANSFER, "10", from_holder=seeded.alice, to_holder=seeded.bob)
    with pytest.raises(BusinessRuleError) as exc_info:
        _validate(db_session, proposal)

    error = exc_info.value
    assert error.code == "TXN_LOCKUP_ACTIVE"
    assert error.details["lock_up_period_months"] == 12
    assert error.details["lockup_expires_at"].startswith("2025-03-17")


def test_transfer_after_lock_up_expiry(db_session: Session, seeded: SeededCompany) -> None:
    seeded.common.lock_up_period_months = 12
    db_session.commit()
    add_holding(db_session, seeded.common, seeded.alice, 1000)

    proposal = _proposal(seeded, TransactionType.TRANSFER, "10", from_holder=seeded.alice, to_holder=seeded.bob)

    assert _validate(db_session, proposal).from_shareholder.id == seeded.alice.id


@pytest.mark.parametrize("quantity", ["0", "-5"])
def test_non_positive_quantity(db_session: Session, seeded: SeededCompany, quantity: str) -> None:
    with pytest.raises(BusinessRuleError) as exc_info:
        _validate(db_session, _proposal(seeded, TransactionType.ISSUANCE, quantity, to_holder=seeded.bob))

    assert exc_info.value.code == "TXN_INVALID_QUANTITY"


def test_inactive_company_is_rejected(db_session: Session, seeded: SeededCompany) -> None:
    seeded.company.status = CompanyStatus.INACTIVE
    db_session.commit()

    with pytest.raises(BusinessRuleError) as exc_info:
        _validate(db_session, _proposal(seeded, TransactionType.ISSUANCE, "10", to_holder=seeded.bob))

    assert exc_info.value.code == "TXN_COMPANY_NOT_ACTIVE"


def test_inactive_shareholder_is_not_found(db_session: Session, seeded: SeededCompany) -> None:
    seeded.bob.status = ShareholderStatus.INACTIVE
    db_session.commit()

    with pytest.raises(NotFoundError) as exc_info:
        _validate(db_session, _proposal(seeded, TransactionType.ISSUANCE, "10", to_holder=seeded.bob))

    assert exc_info.value.code == "SHAREHOLDER_NOT_FOUND"
    assert exc_info.value.status_code == 404


def test_share_class_from_another_company_is_not_found(db_session: Session, seeded: SeededCompany) -> None:
    other = Company(name="Other Ltda", entity_type=CompanyEntityType.LTDA)
    db_session.add(other)
    db_session.flush()
    foreign_class = ShareClass(company_id=other.id, class_name="Quotas", type=ShareClassType.QUOTA)
    db_session.add(foreign_class)
    db_session.commit()

    proposal = _proposal(seeded, TransactionType.ISSUANCE, "10", share_class=foreign_class, to_holder=seeded.bob)
    with pytest.raises(NotFoundError) as exc_info:
        _validate(db_session, proposal)

    assert exc_info.value.code == "SHARE_CLASS_NOT_FOUND"


def test_corporation_without_common_class_cannot_issue(db_session: Session) -> None:
    company = Company(name="Sem Ordinarias S.A.", entity_type=CompanyEntityType.SA_CAPITAL_ABERTO)
    db_session.add(company)
    db_session.flush()
    preferred = ShareClass(
        company_id=company.id,
        class_name="PN",
        type=ShareClassType.PREFERRED_SHARES,
        total_authorized=Decimal("1000"),
    )
    holder = Shareholder(company_id=company.id, name="Investor")
    db_session.add_all([preferred, holder])
    db_session.commit()

    proposal = TransactionProposal(
        company_id=company.id,
        type=TransactionType.ISSUANCE,
        share_class_id=preferred.id,
        quantity=Decimal("10"),
        details=build_details(TransactionType.ISSUANCE),
        to_shareholder_id=holder.id,
    )
    with pytest.raises(BusinessRuleError) as exc_info:
        _validate(db_session, proposal)

    assert exc_info.value.code == "CAP_MISSING_COMMON_SHARES"


def test_conversion_requires_a_different_target_class(db_session: Session, seeded: SeededCompany) -> None:
    add_holding(db_session, seeded.preferred, seeded.fund, 1000)

    missing = _proposal(seeded, TransactionType.CONVERSION, "10", share_class=seeded.preferred, from_holder=seeded.fund)
    with pytest.raises(BusinessRuleError) as exc_info:
        _validate(db_session, missing)
    assert exc_info.value.code == "TXN_TO_SHARE_CLASS_REQUIRED"

    same = _proposal(
        seeded,
        TransactionType.CONVERSION,
        "10",
        share_class=seeded.preferred,
        from_holder=seeded.fund,
        target_share_class_id=seeded.preferred.id,
    )
    with pytest.raises(BusinessRuleError) as exc_info:
        _validate(db_session, same)
    assert exc_info.value.code == "TXN_SAME_SHARE_CLASS"


def test_split_requires_positive_ratio(db_session: Session, seeded: SeededCompany) -> None:
    with pytest.raises(BusinessRuleError) as exc_info:
        _validate(db_session, _proposal(seeded, TransactionType.SPLIT, "1"))
    assert exc_info.value.code == "TXN_SPLIT_RATIO_REQUIRED"

    with pytest.raises(BusinessRuleError) as exc_info:
        _validate(db_session, _proposal(seeded, TransactionType.SPLIT, "1", split_ratio="-2"))
    assert exc_info.value.code == "TXN_INVALID_SPLIT_RATIO"
