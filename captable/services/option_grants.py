"""Option grant lookups, vesting summaries and exercise recording."""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from captable.core.clock import Clock, utcnow
from captable.core.decimals import ZERO, format_decimal
from captable.core.errors import BusinessRuleError, NotFoundError
from captable.db.session import serializable_transaction
from captable.models import OptionGrant, OptionGrantStatus
from captable.services.vesting import VestingSchedule, VestingSummary, calculate_vesting

logger = logging.getLogger(__name__)


def schedule_for(grant: OptionGrant) -> VestingSchedule:
    return VestingSchedule(
        quantity=Decimal(grant.quantity),
        grant_date=grant.grant_date,
        cliff_months=grant.cliff_months,
        vesting_duration_months=grant.vesting_duration_months,
        cliff_percentage=Decimal(grant.cliff_percentage or 0),
        exercised=Decimal(grant.exercised or 0),
    )


class OptionGrantService:
    def __init__(self, session: Session, *, clock: Clock = utcnow) -> None:
        self._session = session
        self._clock = clock

    def get_grant(self, company_id: str, grant_id: str) -> OptionGrant:
        grant = self._session.get(OptionGrant, grant_id)
        if grant is None or grant.company_id != company_id:
            raise NotFoundError("option_grant", grant_id)
        return grant

    def get_vesting(self, company_id: str, grant_id: str, now: datetime | None = None) -> VestingSummary:
        grant = self.get_grant(company_id, grant_id)
        return calculate_vesting(schedule_for(grant), now or self._clock())

    def record_exercise(self, company_id: str, grant_id: str, quantity: Decimal) -> OptionGrant:
        """Record an exercise of ``quantity`` vested options.

        The grant row is locked for the check and the update so concurrent
        exercises cannot push ``exercised`` past the vested amount.
        """

        with serializable_transaction(self._session):
            grant = self._session.execute(
                select(OptionGrant)
                .where(OptionGrant.id == grant_id, OptionGrant.company_id == company_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if grant is None:
                raise NotFoundError("option_grant", grant_id)
            if grant.status != OptionGrantStatus.ACTIVE:
                raise BusinessRuleError(
                    "OPT_GRANT_NOT_ACTIVE", "errors.opt.grantNotActive", {"status": grant.status.value}
                )
            if quantity is None or quantity <= ZERO:
                raise BusinessRuleError(
                    "TXN_INVALID_QUANTITY", "errors.txn.invalidQuantity", {"quantity": format_decimal(quantity)}
                )

            summary = calculate_vesting(schedule_for(grant), self._clock())
            if quantity > summary.vested_unexercised:
                raise BusinessRuleError(
                    "OPT_EXERCISE_EXCEEDS_VESTED",
                    "errors.opt.exerciseExceedsVested",
                    {
                        "requested": format_decimal(quantity),
                        "vested_unexercised": format_decimal(summary.vested_unexercised),
                    },
                )

            grant.exercised = Decimal(grant.exercised or 0) + quantity
            if grant.exercised >= Decimal(grant.quantity):
                grant.status = OptionGrantStatus.EXERCISED

        logger.info(
            "Option exercise recorded",
            extra={"company_id": company_id, "grant_id": grant.id, "quantity": format_decimal(quantity)},
        )
        return grant


__all__ = ["OptionGrantService", "schedule_for"]
