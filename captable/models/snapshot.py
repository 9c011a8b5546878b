"""Cap table snapshot ORM model."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from captable.models.base import Base, TimestampMixin, new_id


class CapTableSnapshot(TimestampMixin, Base):
    """Immutable point-in-time copy of the cap table with its state hash."""

    __tablename__ = "cap_table_snapshots"
    __table_args__ = (Index("ix_cap_table_snapshots_company_date", "company_id", "snapshot_date"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    company_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    snapshot_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    data: Mapped[dict] = mapped_column(JSON, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    trigger: Mapped[str] = mapped_column(String(64), nullable=False, default="manual")
    state_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    company = relationship("Company", back_populates="snapshots")


__all__ = ["CapTableSnapshot"]
