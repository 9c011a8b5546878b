"""Seed script for a demo company with two share classes and founders."""
from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from captable.core.config import get_settings
from captable.db.session import build_engine, build_session_factory
from captable.models import (
    Base,
    Company,
    CompanyEntityType,
    ShareClass,
    ShareClassType,
    Shareholder,
    ShareholderType,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_COMPANY_NAME = "Demo Tecnologia S.A."


def seed(session: Session) -> None:
    """Seed the demo company, its share classes and founding shareholders."""

    company = session.scalars(select(Company).where(Company.name == DEMO_COMPANY_NAME)).one_or_none()
    if company is not None:
        logger.info("Company %s already exists", company.id)
        return

    company = Company(name=DEMO_COMPANY_NAME, entity_type=CompanyEntityType.SA_CAPITAL_FECHADO)
    session.add(company)
    session.flush()
    logger.info("Created company %s", company.id)

    session.add_all(
        [
            ShareClass(
                company_id=company.id,
                class_name="ON",
                type=ShareClassType.COMMON_SHARES,
                votes_per_share=1,
                total_authorized=Decimal("1000000"),
                total_issued=Decimal("0"),
            ),
            ShareClass(
                company_id=company.id,
                class_name="PN-A",
                type=ShareClassType.PREFERRED_SHARES,
                votes_per_share=0,
                total_authorized=Decimal("250000"),
                total_issued=Decimal("0"),
                liquidation_preference_multiple=Decimal("1"),
                seniority=1,
            ),
        ]
    )
    for name in ("Founder One", "Founder Two"):
        session.add(Shareholder(company_id=company.id, name=name, type=ShareholderType.INDIVIDUAL, nationality="BR"))
        logger.info("Added shareholder %s", name)


def main() -> None:
    engine = build_engine(get_settings())
    Base.metadata.create_all(bind=engine)
    session_factory = build_session_factory(engine)
    with session_factory() as session:
        seed(session)
        session.commit()


if __name__ == "__main__":
    main()
