"""Settlement record ORM model."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from captable.models.base import Base, TimestampMixin, new_id


class SettlementRecord(TimestampMixin, Base):
    """External settlement reference attached to a transaction."""

    __tablename__ = "settlement_records"
    __table_args__ = (Index("ix_settlement_records_transaction_id", "transaction_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    transaction_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False
    )
    external_reference: Mapped[str | None] = mapped_column(String(128))
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="PENDING")
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    transaction = relationship("Transaction", back_populates="settlement_records")


__all__ = ["SettlementRecord"]
