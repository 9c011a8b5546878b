from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from pathlib import Path
import sys

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from captable.container import Container, build_container
from captable.core.config import Settings
from captable.main import create_application
from captable.models import (
    Base,
    Company,
    CompanyEntityType,
    OptionGrant,
    ShareClass,
    ShareClassType,
    Shareholder,
    ShareholderType,
    Shareholding,
)

FROZEN_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=UTC)
COMPANY_CREATED_AT = datetime(2022, 1, 10, 9, 0, tzinfo=UTC)
ACTOR_HEADERS = {"X-User-ID": "user-admin"}


class FrozenClock:
    """Callable clock that only moves when a test advances it."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@dataclass
class SeededCompany:
    company: Company
    common: ShareClass
    preferred: ShareClass
    alice: Shareholder
    bob: Shareholder
    fund: Shareholder


def add_holding(
    session: Session,
    share_class: ShareClass,
    shareholder: Shareholder,
    quantity: str | int,
    *,
    created_at: datetime = COMPANY_CREATED_AT,
) -> Shareholding:
    """Insert a holding directly and keep the class total in step."""

    holding = Shareholding(
        company_id=share_class.company_id,
        shareholder_id=shareholder.id,
        share_class_id=share_class.id,
        quantity=Decimal(quantity),
        created_at=created_at,
        updated_at=created_at,
    )
    share_class.total_issued = Decimal(share_class.total_issued or 0) + Decimal(quantity)
    session.add(holding)
    session.commit()
    return holding


def add_option_grant(
    session: Session,
    seeded: SeededCompany,
    *,
    quantity: str | int = 48000,
    grant_date: date = date(2022, 6, 15),
    cliff_months: int = 12,
    vesting_duration_months: int = 48,
    cliff_percentage: str = "25",
    shareholder: Shareholder | None = None,
) -> OptionGrant:
    grant = OptionGrant(
        company_id=seeded.company.id,
        shareholder_id=(shareholder or seeded.alice).id,
        employee_name=(shareholder or seeded.alice).name,
        quantity=Decimal(quantity),
        exercised=Decimal("0"),
        grant_date=grant_date,
        cliff_months=cliff_months,
        vesting_duration_months=vesting_duration_months,
        cliff_percentage=Decimal(cliff_percentage),
    )
    session.add(grant)
    session.commit()
    return grant


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock(FROZEN_NOW)


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        database_url="sqlite+pysqlite:///:memory:",
        enable_tracing=False,
        enable_metrics=True,
        task_runner="inline",
        side_effect_max_attempts=2,
        audit_sink="database",
        notification_backend="memory",
    )


@pytest.fixture()
def container(settings: Settings, clock: FrozenClock) -> Iterator[Container]:
    container = build_container(settings, clock=clock)
    Base.metadata.create_all(bind=container.engine)
    yield container
    container.shutdown()


@pytest.fixture()
def db_session(container: Container) -> Iterator[Session]:
    session = container.session_factory()
    yield session
    session.close()


@pytest.fixture()
def seeded(db_session: Session) -> SeededCompany:
    company = Company(
        name="Acme Tecnologia S.A.",
        entity_type=CompanyEntityType.SA_CAPITAL_FECHADO,
        tax_id="12.345.678/0001-90",
        founded_date=COMPANY_CREATED_AT.date(),
        created_at=COMPANY_CREATED_AT,
        updated_at=COMPANY_CREATED_AT,
    )
    db_session.add(company)
    db_session.flush()

    common = ShareClass(
        company_id=company.id,
        class_name="ON",
        type=ShareClassType.COMMON_SHARES,
        votes_per_share=1,
        total_authorized=Decimal("100000"),
        total_issued=Decimal("0"),
    )
    preferred = ShareClass(
        company_id=company.id,
        class_name="PN-A",
        type=ShareClassType.PREFERRED_SHARES,
        votes_per_share=0,
        total_authorized=Decimal("50000"),
        total_issued=Decimal("0"),
        liquidation_preference_multiple=Decimal("1"),
        seniority=1,
    )
    alice = Shareholder(
        company_id=company.id,
        name="Alice Founder",
        type=ShareholderType.INDIVIDUAL,
        tax_id="123.456.789-09",
        nationality="BR",
    )
    bob = Shareholder(company_id=company.id, name="Bob Cofounder", type=ShareholderType.INDIVIDUAL, nationality="BR")
    fund = Shareholder(
        company_id=company.id,
        name="Northwind Ventures LP",
        type=ShareholderType.FUND,
        nationality="US",
        is_foreign=True,
    )
    db_session.add_all([common, preferred, alice, bob, fund])
    db_session.commit()
    return SeededCompany(company=company, common=common, preferred=preferred, alice=alice, bob=bob, fund=fund)


@pytest.fixture()
def app(container: Container) -> FastAPI:
    return create_application(container=container)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def actor_headers() -> dict[str, str]:
    return dict(ACTOR_HEADERS)
