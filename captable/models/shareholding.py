"""Shareholding (ledger entry) ORM model."""
from __future__ import annotations

from decimal import Decimal

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from captable.models.base import Base, Percentage, Quantity, TimestampMixin, new_id


class Shareholding(TimestampMixin, Base):
    """Quantity of one share class held by one shareholder; deleted when it reaches zero."""

    __tablename__ = "shareholdings"
    __table_args__ = (
        UniqueConstraint(
            "company_id", "shareholder_id", "share_class_id", name="uq_shareholdings_company_holder_class"
        ),
        Index("ix_shareholdings_company_id", "company_id"),
        Index("ix_shareholdings_share_class_id", "share_class_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    company_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    shareholder_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("shareholders.id", ondelete="CASCADE"), nullable=False
    )
    share_class_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("share_classes.id", ondelete="CASCADE"), nullable=False
    )
    quantity: Mapped[Decimal] = mapped_column(Quantity, nullable=False)
    ownership_pct: Mapped[Decimal] = mapped_column(Percentage, nullable=False, default=Decimal("0"))
    voting_power_pct: Mapped[Decimal] = mapped_column(Percentage, nullable=False, default=Decimal("0"))

    company = relationship("Company", back_populates="shareholdings")
    shareholder = relationship("Shareholder", back_populates="shareholdings")
    share_class = relationship("ShareClass", back_populates="shareholdings")


__all__ = ["Shareholding"]
