"""Option grant ORM model."""
from __future__ import annotations

import enum
from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, Integer, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from captable.models.base import Base, Percentage, Quantity, TimestampMixin, new_id


class OptionGrantStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    EXERCISED = "EXERCISED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class OptionGrant(TimestampMixin, Base):
    """Options granted to an employee, vesting after a cliff over a fixed duration."""

    __tablename__ = "option_grants"
    __table_args__ = (Index("ix_option_grants_company_id", "company_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    company_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    shareholder_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("shareholders.id", ondelete="SET NULL"), nullable=True
    )
    employee_name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Quantity, nullable=False)
    exercised: Mapped[Decimal] = mapped_column(Quantity, nullable=False, default=Decimal("0"))
    strike_price: Mapped[Decimal | None] = mapped_column(Quantity)
    grant_date: Mapped[date] = mapped_column(Date, nullable=False)
    cliff_months: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    vesting_duration_months: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cliff_percentage: Mapped[Decimal] = mapped_column(Percentage, nullable=False, default=Decimal("0"))
    status: Mapped[OptionGrantStatus] = mapped_column(
        SAEnum(OptionGrantStatus, name="option_grant_status"), nullable=False, default=OptionGrantStatus.ACTIVE
    )

    company = relationship("Company", back_populates="option_grants")
    shareholder = relationship("Shareholder", back_populates="option_grants")


__all__ = ["OptionGrant", "OptionGrantStatus"]
