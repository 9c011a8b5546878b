"""Dilution history and ownership concentration metrics."""
from __future__ import annotations

import enum
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

from dateutil.relativedelta import relativedelta
from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from captable.core.clock import Clock, end_of_day, ensure_utc, utcnow
from captable.core.decimals import ZERO, format_decimal, percentage_of, quantize_display, to_decimal
from captable.core.errors import BusinessRuleError, NotFoundError
from captable.models import CapTableSnapshot, Company, Shareholding

DEFAULT_LOOKBACK_DAYS = 365


class Granularity(str, enum.Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


@dataclass(slots=True, frozen=True)
class ShareClassSlice:
    share_class_id: str
    share_class_name: str
    shares: Decimal
    percentage: Decimal


@dataclass(slots=True, frozen=True)
class DilutionPoint:
    date: date
    total_shares: Decimal
    fully_diluted_shares: Decimal
    share_classes: list[ShareClassSlice]


@dataclass(slots=True, frozen=True)
class DilutionReport:
    company_id: str
    generated_at: datetime
    date_from: date
    date_to: date
    granularity: Granularity
    data_points: list[DilutionPoint]
    gini_coefficient: Decimal
    foreign_ownership_pct: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "company_id": self.company_id,
            "generated_at": self.generated_at.isoformat(),
            "date_from": self.date_from.isoformat(),
            "date_to": self.date_to.isoformat(),
            "granularity": self.granularity.value,
            "data_points": [
                {
                    "date": point.date.isoformat(),
                    "total_shares": format_decimal(point.total_shares),
                    "fully_diluted_shares": format_decimal(point.fully_diluted_shares),
                    "share_classes": [
                        {
                            "share_class_id": item.share_class_id,
                            "share_class_name": item.share_class_name,
                            "shares": format_decimal(item.shares),
                            "percentage": f"{item.percentage:.2f}",
                        }
                        for item in point.share_classes
                    ],
                }
                for point in self.data_points
            ],
            "gini_coefficient": f"{self.gini_coefficient:.2f}",
            "foreign_ownership_pct": f"{self.foreign_ownership_pct:.2f}",
        }


def date_points(date_from: date, date_to: date, granularity: Granularity) -> list[date]:
    """Evenly spaced dates from ``date_from`` to ``date_to`` inclusive.

    Monthly steps are offsets from the start date, so the 31st stays anchored
    instead of drifting after a short month.
    """

    points: list[date] = []
    step = 0
    while True:
        if granularity is Granularity.DAY:
            point = date_from + timedelta(days=step)
        elif granularity is Granularity.WEEK:
            point = date_from + timedelta(days=7 * step)
        else:
            point = date_from + relativedelta(months=step)
        if point > date_to:
            return points
        points.append(point)
        step += 1


def gini_coefficient(quantities: Iterable[Decimal]) -> Decimal:
    """Gini coefficient of holding sizes; 0 for an empty or all-zero ledger."""

    ordered = sorted(Decimal(q) for q in quantities)
    n = len(ordered)
    if n == 0:
        return ZERO
    total = sum(ordered, ZERO)
    if total == ZERO:
        return ZERO
    numerator = sum((q * (2 * i - n - 1) for i, q in enumerate(ordered, start=1)), ZERO)
    return abs(numerator) / (Decimal(n) * total)


def foreign_ownership_pct(holdings: Sequence[tuple[Decimal, bool]]) -> Decimal:
    total = sum((Decimal(q) for q, _ in holdings), ZERO)
    foreign = sum((Decimal(q) for q, is_foreign in holdings if is_foreign), ZERO)
    return percentage_of(foreign, total)


def aggregate_by_share_class(data: dict[str, Any]) -> tuple[Decimal, list[ShareClassSlice]]:
    totals: dict[str, tuple[str, Decimal]] = {}
    for entry in data.get("entries") or []:
        class_id = entry["share_class_id"]
        name, shares = totals.get(class_id, (entry.get("share_class_name", ""), ZERO))
        totals[class_id] = (name, shares + to_decimal(entry["shares"]))
    summary = data.get("summary") or {}
    total_shares = to_decimal(summary.get("total_shares", "0"))
    slices = [
        ShareClassSlice(
            share_class_id=class_id,
            share_class_name=name,
            shares=shares,
            percentage=quantize_display(percentage_of(shares, total_shares)),
        )
        for class_id, (name, shares) in sorted(totals.items(), key=lambda item: item[1][0])
    ]
    return total_shares, slices


class AnalyticsService:
    def __init__(
        self,
        session: Session,
        *,
        clock: Clock = utcnow,
        default_lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    ) -> None:
        self._session = session
        self._clock = clock
        self._lookback = default_lookback_days

    def get_dilution_report(
        self,
        company_id: str,
        date_from: date | None = None,
        date_to: date | None = None,
        granularity: Granularity = Granularity.MONTH,
    ) -> DilutionReport:
        """Reconstruct share totals over time from snapshots plus current concentration metrics."""

        if self._session.get(Company, company_id) is None:
            raise NotFoundError("company", company_id)

        now = self._clock()
        date_to = date_to or now.date()
        date_from = date_from or (date_to - timedelta(days=self._lookback))
        if date_from > date_to:
            raise BusinessRuleError(
                "RPT_INVALID_DATE_RANGE",
                "errors.rpt.invalidDateRange",
                {"date_from": date_from.isoformat(), "date_to": date_to.isoformat()},
            )

        snapshots = list(
            self._session.execute(
                select(CapTableSnapshot)
                .where(
                    CapTableSnapshot.company_id == company_id,
                    CapTableSnapshot.snapshot_date <= end_of_day(date_to),
                )
                .order_by(CapTableSnapshot.snapshot_date.asc(), CapTableSnapshot.created_at.asc())
            ).scalars()
        )

        data_points: list[DilutionPoint] = []
        cursor = 0
        latest: CapTableSnapshot | None = None
        for point in date_points(date_from, date_to, granularity):
            cutoff = end_of_day(point)
            while cursor < len(snapshots) and ensure_utc(snapshots[cursor].snapshot_date) <= cutoff:
                latest = snapshots[cursor]
                cursor += 1
            if latest is None:
                continue
            total_shares, slices = aggregate_by_share_class(latest.data or {})
            data_points.append(
                DilutionPoint(
                    date=point,
                    total_shares=total_shares,
                    fully_diluted_shares=total_shares,
                    share_classes=slices,
                )
            )

        rows = self._session.execute(
            select(Shareholding).options(joinedload(Shareholding.shareholder)).where(
                Shareholding.company_id == company_id
            )
        ).scalars()
        holdings = [(Decimal(row.quantity), bool(row.shareholder.is_foreign)) for row in rows]

        return DilutionReport(
            company_id=company_id,
            generated_at=now,
            date_from=date_from,
            date_to=date_to,
            granularity=granularity,
            data_points=data_points,
            gini_coefficient=quantize_display(gini_coefficient(q for q, _ in holdings)),
            foreign_ownership_pct=quantize_display(foreign_ownership_pct(holdings)),
        )


__all__ = [
    "AnalyticsService",
    "DilutionPoint",
    "DilutionReport",
    "Granularity",
    "ShareClassSlice",
    "aggregate_by_share_class",
    "date_points",
    "foreign_ownership_pct",
    "gini_coefficient",
]
