"""Ownership and voting percentage recalculation."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from captable.core.decimals import ONE_HUNDRED, ZERO, percentage_of, quantize_percentage
from captable.models import ShareClass, Shareholding
from captable.obs.metrics import OWNERSHIP_DISCREPANCY_COUNTER
from captable.obs.tracing import traced

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_PCT = Decimal("0.02")


@dataclass(slots=True, frozen=True)
class RecalculationResult:
    holdings_updated: int
    total_shares: Decimal
    total_ownership_pct: Decimal
    within_tolerance: bool


def compute_percentages(
    rows: list[tuple[str, Decimal, int]],
) -> tuple[Decimal, Decimal, list[dict[str, object]]]:
    """Compute ownership and voting percentages for ``(id, quantity, votes_per_share)`` rows.

    Returns total shares, total voting power and one parameter mapping per row,
    ready for a bulk update.
    """

    total_shares = sum((Decimal(quantity) for _, quantity, _ in rows), ZERO)
    total_voting_power = sum((Decimal(quantity) * votes for _, quantity, votes in rows), ZERO)

    params: list[dict[str, object]] = []
    for holding_id, quantity, votes in rows:
        quantity = Decimal(quantity)
        params.append(
            {
                "id": holding_id,
                "ownership_pct": quantize_percentage(percentage_of(quantity, total_shares)),
                "voting_power_pct": quantize_percentage(percentage_of(quantity * votes, total_voting_power)),
            }
        )
    return total_shares, total_voting_power, params


class OwnershipCalculator:
    """Rewrites every holding's ownership and voting percentage for a company."""

    def __init__(self, session: Session, *, tolerance_pct: Decimal = DEFAULT_TOLERANCE_PCT) -> None:
        self._session = session
        self._tolerance = tolerance_pct

    def recalculate(self, company_id: str) -> RecalculationResult:
        with traced("captable.ownership.recalculate", company_id=company_id):
            stmt = (
                select(Shareholding.id, Shareholding.quantity, ShareClass.votes_per_share)
                .join(ShareClass, ShareClass.id == Shareholding.share_class_id)
                .where(Shareholding.company_id == company_id)
                .order_by(Shareholding.id)
            )
            rows = [(row[0], Decimal(row[1]), int(row[2] or 0)) for row in self._session.execute(stmt)]
            total_shares, _, params = compute_percentages(rows)

            if params:
                self._session.execute(update(Shareholding), params)
            self._session.commit()
            self._session.expire_all()

            stored_total = self._session.execute(
                select(func.coalesce(func.sum(Shareholding.ownership_pct), 0)).where(
                    Shareholding.company_id == company_id
                )
            ).scalar_one()
            total_ownership = quantize_percentage(Decimal(str(stored_total)))

        within_tolerance = True
        if total_shares > ZERO and abs(total_ownership - ONE_HUNDRED) > self._tolerance:
            within_tolerance = False
            OWNERSHIP_DISCREPANCY_COUNTER.inc()
            logger.warning(
                "Ownership percentages deviate from 100%",
                extra={
                    "company_id": company_id,
                    "total_ownership_pct": str(total_ownership),
                    "tolerance_pct": str(self._tolerance),
                },
            )

        logger.info(
            "Ownership recalculated",
            extra={"company_id": company_id, "holdings_updated": len(params), "total_shares": str(total_shares)},
        )
        return RecalculationResult(
            holdings_updated=len(params),
            total_shares=total_shares,
            total_ownership_pct=total_ownership,
            within_tolerance=within_tolerance,
        )


__all__ = ["DEFAULT_TOLERANCE_PCT", "OwnershipCalculator", "RecalculationResult", "compute_percentages"]
