"""Transaction ORM model."""
from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from captable.models.base import Base, Quantity, TimestampMixin, new_id


class TransactionType(str, enum.Enum):
    ISSUANCE = "ISSUANCE"
    TRANSFER = "TRANSFER"
    CANCELLATION = "CANCELLATION"
    CONVERSION = "CONVERSION"
    SPLIT = "SPLIT"

    @property
    def event_name(self) -> str:
        return _EVENT_NAMES[self]


_EVENT_NAMES = {
    TransactionType.ISSUANCE: "SHARES_ISSUED",
    TransactionType.TRANSFER: "SHARES_TRANSFERRED",
    TransactionType.CANCELLATION: "SHARES_CANCELLED",
    TransactionType.CONVERSION: "SHARES_CONVERTED",
    TransactionType.SPLIT: "SHARES_SPLIT",
}


class TransactionStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    SUBMITTED = "SUBMITTED"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class Transaction(TimestampMixin, Base):
    """Ownership-changing event; mutates the ledger only when confirmed."""

    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_company_id", "company_id"),
        Index("ix_transactions_company_status", "company_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    company_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[TransactionType] = mapped_column(SAEnum(TransactionType, name="transaction_type"), nullable=False)
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(TransactionStatus, name="transaction_status"), nullable=False, default=TransactionStatus.DRAFT
    )
    from_shareholder_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("shareholders.id", ondelete="SET NULL"), nullable=True
    )
    to_shareholder_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("shareholders.id", ondelete="SET NULL"), nullable=True
    )
    share_class_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("share_classes.id", ondelete="CASCADE"), nullable=False
    )
    quantity: Mapped[Decimal] = mapped_column(Quantity, nullable=False)
    price_per_share: Mapped[Decimal | None] = mapped_column(Quantity)
    total_value: Mapped[Decimal | None] = mapped_column(Quantity)
    details: Mapped[dict | None] = mapped_column(JSON)
    notes: Mapped[str | None] = mapped_column(Text)
    requires_board_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_by: Mapped[str | None] = mapped_column(String(64))
    approved_by: Mapped[str | None] = mapped_column(String(64))
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_by: Mapped[str | None] = mapped_column(String(64))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    failure_reason: Mapped[str | None] = mapped_column(Text)
    lock_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    company = relationship("Company", back_populates="transactions")
    from_shareholder = relationship("Shareholder", foreign_keys=[from_shareholder_id])
    to_shareholder = relationship("Shareholder", foreign_keys=[to_shareholder_id])
    share_class = relationship("ShareClass")
    settlement_records = relationship(
        "SettlementRecord", back_populates="transaction", cascade="all, delete-orphan"
    )

    __mapper_args__ = {"version_id_col": lock_version}


__all__ = ["Transaction", "TransactionStatus", "TransactionType"]
