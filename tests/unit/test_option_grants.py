from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from captable.container import Container
from captable.core.errors import BusinessRuleError, NotFoundError
from captable.models import OptionGrantStatus
from captable.services.option_grants import OptionGrantService
from tests.conftest import FrozenClock, SeededCompany, add_option_grant


def test_vesting_summary_uses_service_clock(db_session: Session, seeded: SeededCompany, clock: FrozenClock) -> None:
    grant = add_option_grant(db_session, seeded)
    service = OptionGrantService(db_session, clock=clock)

    summary = service.get_vesting(seeded.company.id, grant.id)

    # Granted 2022-06, clock at 2024-06: 24 months elapsed.
    assert summary.months_elapsed == 24
    assert summary.vested == Decimal("24000")


def test_exercise_within_vested_amount(db_session: Session, seeded: SeededCompany, clock: FrozenClock) -> None:
    grant = add_option_grant(db_session, seeded)
    service = OptionGrantService(db_session, clock=clock)

    updated = service.record_exercise(seeded.company.id, grant.id, Decimal("4000"))

    assert Decimal(updated.exercised) == Decimal("4000")
    assert updated.status is OptionGrantStatus.ACTIVE
    assert service.get_vesting(seeded.company.id, grant.id).vested_unexercised == Decimal("20000")


def test_exercise_beyond_vested_is_rejected(db_session: Session, seeded: SeededCompany, clock: FrozenClock) -> None:
    grant = add_option_grant(db_session, seeded)
    service = OptionGrantService(db_session, clock=clock)

    with pytest.raises(BusinessRuleError) as exc_info:
        service.record_exercise(seeded.company.id, grant.id, Decimal("24001"))

    assert exc_info.value.code == "OPT_EXERCISE_EXCEEDS_VESTED"
    assert exc_info.value.details == {"requested": "24001", "vested_unexercised": "24000"}


def test_full_exercise_closes_grant(db_session: Session, seeded: SeededCompany, clock: FrozenClock) -> None:
    grant = add_option_grant(db_session, seeded, quantity=1200, cliff_months=0, vesting_duration_months=0)
    service = OptionGrantService(db_session, clock=clock)

    updated = service.record_exercise(seeded.company.id, grant.id, Decimal("1200"))
    assert updated.status is OptionGrantStatus.EXERCISED

    with pytest.raises(BusinessRuleError) as exc_info:
        service.record_exercise(seeded.company.id, grant.id, Decimal("1"))
    assert exc_info.value.code == "OPT_GRANT_NOT_ACTIVE"


def test_unknown_grant(db_session: Session, seeded: SeededCompany) -> None:
    with pytest.raises(NotFoundError) as exc_info:
        OptionGrantService(db_session).get_grant(seeded.company.id, "missing-grant")

    assert exc_info.value.code == "OPTION_GRANT_NOT_FOUND"


def test_exercise_rechecks_latest_exercised_amount(
    container: Container, db_session: Session, seeded: SeededCompany, clock: FrozenClock
) -> None:
    grant = add_option_grant(db_session, seeded)
    service = OptionGrantService(db_session, clock=clock)
    # Loaded while nothing is exercised yet.
    assert service.get_vesting(seeded.company.id, grant.id).vested_unexercised == Decimal("24000")

    other_session = container.session_factory()
    try:
        OptionGrantService(other_session, clock=clock).record_exercise(seeded.company.id, grant.id, Decimal("20000"))
    finally:
        other_session.close()

    with pytest.raises(BusinessRuleError) as exc_info:
        service.record_exercise(seeded.company.id, grant.id, Decimal("10000"))

    assert exc_info.value.details == {"requested": "10000", "vested_unexercised": "4000"}
    db_session.refresh(grant)
    assert Decimal(grant.exercised) == Decimal("20000")
