"""Share class ORM model."""
from __future__ import annotations

import enum
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from captable.models.base import Base, Quantity, TimestampMixin, new_id


class ShareClassType(str, enum.Enum):
    COMMON_SHARES = "COMMON_SHARES"
    PREFERRED_SHARES = "PREFERRED_SHARES"
    QUOTA = "QUOTA"


class ShareClass(TimestampMixin, Base):
    """Category of equity with its own authorization limit and voting weight."""

    __tablename__ = "share_classes"
    __table_args__ = (
        UniqueConstraint("company_id", "class_name", name="uq_share_classes_company_name"),
        Index("ix_share_classes_company_id", "company_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    company_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    class_name: Mapped[str] = mapped_column(String(128), nullable=False)
    type: Mapped[ShareClassType] = mapped_column(
        SAEnum(ShareClassType, name="share_class_type"), nullable=False, default=ShareClassType.COMMON_SHARES
    )
    votes_per_share: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    total_authorized: Mapped[Decimal] = mapped_column(Quantity, nullable=False, default=Decimal("0"))
    total_issued: Mapped[Decimal] = mapped_column(Quantity, nullable=False, default=Decimal("0"))
    lock_up_period_months: Mapped[int | None] = mapped_column(Integer)
    liquidation_preference_multiple: Mapped[Decimal | None] = mapped_column(Quantity)
    participating_rights: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    seniority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    anti_dilution_type: Mapped[str | None] = mapped_column(String(32))
    conversion_ratio: Mapped[Decimal | None] = mapped_column(Quantity)

    company = relationship("Company", back_populates="share_classes")
    shareholdings = relationship("Shareholding", back_populates="share_class")


__all__ = ["ShareClass", "ShareClassType"]
