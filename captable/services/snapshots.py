"""Point-in-time cap table snapshots and their integrity hash."""
from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from captable.core.clock import Clock, end_of_day, ensure_utc, start_of_day, utcnow
from captable.core.decimals import DecimalLike, format_decimal, to_decimal
from captable.core.errors import BusinessRuleError, NotFoundError
from captable.models import CapTableSnapshot, Company, CompanyStatus
from captable.services.cap_table import CapTableService, CapTableView
from captable.services.pagination import Page, SortField, apply_sort, paginate, parse_sort

logger = logging.getLogger(__name__)

MANUAL_TRIGGER = "manual"

_SORT_COLUMNS = {
    "snapshot_date": CapTableSnapshot.snapshot_date,
    "created_at": CapTableSnapshot.created_at,
}
_DEFAULT_SORT = SortField(field="snapshot_date", descending=True)


def compute_state_hash(entries: Iterable[tuple[str, DecimalLike, DecimalLike]], total_shares: DecimalLike) -> str:
    """SHA-256 over ``shareholder_id|shares|ownership_pct`` lines plus the total.

    Lines are ordered by shareholder id and then by the line itself, so the
    digest does not depend on the order the entries were read in.
    """

    keyed = [
        (shareholder_id, f"{shareholder_id}|{format_decimal(shares)}|{format_decimal(ownership_pct)}")
        for shareholder_id, shares, ownership_pct in entries
    ]
    keyed.sort()
    content = "\n".join(line for _, line in keyed) + "\n" + format_decimal(total_shares)
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def hash_view(view: CapTableView) -> str:
    return compute_state_hash(
        ((entry.shareholder_id, entry.shares, entry.ownership_pct) for entry in view.entries),
        view.total_shares,
    )


def hash_snapshot_data(data: Mapping[str, Any]) -> str:
    entries = data.get("entries") or []
    summary = data.get("summary") or {}
    return compute_state_hash(
        (
            (entry["shareholder_id"], to_decimal(entry["shares"]), to_decimal(entry["ownership_pct"]))
            for entry in entries
        ),
        to_decimal(summary.get("total_shares", "0")),
    )


def verify_snapshot(snapshot: CapTableSnapshot) -> bool:
    """Recompute the hash from stored data and compare it to the recorded one."""

    return hash_snapshot_data(snapshot.data) == snapshot.state_hash


@dataclass(slots=True, frozen=True)
class SnapshotSummary:
    id: str
    snapshot_date: datetime
    total_shares: Decimal
    total_shareholders: int
    trigger: str
    notes: str | None
    state_hash: str
    created_at: datetime | None


def summarize(snapshot: CapTableSnapshot) -> SnapshotSummary:
    data = snapshot.data or {}
    summary = data.get("summary") or {}
    return SnapshotSummary(
        id=snapshot.id,
        snapshot_date=ensure_utc(snapshot.snapshot_date),
        total_shares=to_decimal(summary.get("total_shares", "0")),
        total_shareholders=int(summary.get("total_shareholders", 0)),
        trigger=snapshot.trigger or data.get("trigger") or MANUAL_TRIGGER,
        notes=snapshot.notes,
        state_hash=snapshot.state_hash,
        created_at=ensure_utc(snapshot.created_at) if snapshot.created_at else None,
    )


class SnapshotService:
    def __init__(self, session: Session, *, clock: Clock = utcnow) -> None:
        self._session = session
        self._clock = clock

    def _company(self, company_id: str) -> Company:
        company = self._session.get(Company, company_id)
        if company is None:
            raise NotFoundError("company", company_id)
        return company

    def _write(self, company_id: str, *, snapshot_date: datetime, trigger: str, notes: str | None) -> CapTableSnapshot:
        view = CapTableService(self._session, clock=self._clock).get_current_cap_table(company_id)
        data = view.to_dict()
        data["trigger"] = trigger
        snapshot = CapTableSnapshot(
            company_id=company_id,
            snapshot_date=snapshot_date,
            data=data,
            notes=notes,
            trigger=trigger,
            state_hash=hash_view(view),
        )
        self._session.add(snapshot)
        self._session.commit()
        logger.info(
            "Cap table snapshot created",
            extra={"company_id": company_id, "snapshot_id": snapshot.id, "trigger": trigger},
        )
        return snapshot

    def create_snapshot(
        self, company_id: str, snapshot_date: date | datetime, notes: str | None = None
    ) -> CapTableSnapshot:
        """Capture the current cap table as a manual snapshot dated ``snapshot_date``."""

        company = self._company(company_id)
        if company.status != CompanyStatus.ACTIVE:
            raise BusinessRuleError(
                "CAP_COMPANY_NOT_ACTIVE", "errors.cap.companyNotActive", {"status": company.status.value}
            )
        when = start_of_day(snapshot_date)
        if when > self._clock():
            raise BusinessRuleError(
                "CAP_FUTURE_SNAPSHOT_DATE", "errors.cap.futureSnapshotDate", {"snapshot_date": when.isoformat()}
            )
        return self._write(company_id, snapshot_date=when, trigger=MANUAL_TRIGGER, notes=notes)

    def record_auto_snapshot(self, company_id: str, trigger: str, notes: str | None = None) -> CapTableSnapshot:
        """Snapshot the cap table after an event; company status is not re-checked."""

        return self._write(company_id, snapshot_date=self._clock(), trigger=trigger, notes=notes)

    def get_snapshot(self, company_id: str, on: date | datetime) -> CapTableSnapshot:
        """Return the latest snapshot taken on or before ``on``."""

        company = self._company(company_id)
        cutoff = end_of_day(on)
        if company.created_at is not None and cutoff < ensure_utc(company.created_at):
            raise BusinessRuleError(
                "CAP_NO_DATA_FOR_DATE",
                "errors.cap.noDataForDate",
                {"date": cutoff.date().isoformat(), "company_created_at": ensure_utc(company.created_at).isoformat()},
            )
        stmt = (
            select(CapTableSnapshot)
            .where(CapTableSnapshot.company_id == company_id, CapTableSnapshot.snapshot_date <= cutoff)
            .order_by(CapTableSnapshot.snapshot_date.desc(), CapTableSnapshot.created_at.desc())
            .limit(1)
        )
        snapshot = self._session.execute(stmt).scalar_one_or_none()
        if snapshot is None:
            raise NotFoundError("snapshot")
        return snapshot

    def get_snapshot_history(
        self, company_id: str, *, page: int = 1, limit: int = 20, sort: str | None = None
    ) -> Page[SnapshotSummary]:
        self._company(company_id)
        base = select(CapTableSnapshot).where(CapTableSnapshot.company_id == company_id)
        total = self._session.execute(
            select(func.count()).select_from(CapTableSnapshot).where(CapTableSnapshot.company_id == company_id)
        ).scalar_one()
        stmt = apply_sort(base, parse_sort(sort, set(_SORT_COLUMNS), _DEFAULT_SORT), _SORT_COLUMNS)
        stmt = apply_sort(stmt, [SortField(field="created_at", descending=True)], _SORT_COLUMNS)
        snapshots = self._session.execute(paginate(stmt, page=page, limit=limit)).scalars()
        return Page(items=[summarize(s) for s in snapshots], total=total, page=page, limit=limit)


__all__ = [
    "MANUAL_TRIGGER",
    "SnapshotService",
    "SnapshotSummary",
    "compute_state_hash",
    "hash_snapshot_data",
    "hash_view",
    "summarize",
    "verify_snapshot",
]
