"""Pydantic schemas for cap table snapshots and reports."""
from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

from captable.core.decimals import format_decimal
from captable.models import CapTableSnapshot
from captable.services.snapshots import SnapshotSummary, summarize, verify_snapshot


class SnapshotCreate(BaseModel):
    snapshot_date: date
    notes: str | None = Field(default=None, max_length=2000)


class SnapshotSummaryRead(BaseModel):
    id: str
    snapshot_date: datetime
    total_shares: str
    total_shareholders: int
    trigger: str
    notes: str | None
    state_hash: str
    created_at: datetime | None

    @classmethod
    def from_summary(cls, summary: SnapshotSummary) -> "SnapshotSummaryRead":
        return cls(
            id=summary.id,
            snapshot_date=summary.snapshot_date,
            total_shares=format_decimal(summary.total_shares) or "0",
            total_shareholders=summary.total_shareholders,
            trigger=summary.trigger,
            notes=summary.notes,
            state_hash=summary.state_hash,
            created_at=summary.created_at,
        )


class SnapshotRead(SnapshotSummaryRead):
    data: dict
    hash_verified: bool

    @classmethod
    def from_model(cls, snapshot: CapTableSnapshot) -> "SnapshotRead":
        base = SnapshotSummaryRead.from_summary(summarize(snapshot))
        return cls(**base.model_dump(), data=snapshot.data, hash_verified=verify_snapshot(snapshot))


class SnapshotHistoryPage(BaseModel):
    items: list[SnapshotSummaryRead]
    total: int
    page: int
    limit: int


__all__ = ["SnapshotCreate", "SnapshotHistoryPage", "SnapshotRead", "SnapshotSummaryRead"]
