"""Shareholder ORM model."""
from __future__ import annotations

import enum

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from captable.models.base import Base, TimestampMixin, new_id


class ShareholderType(str, enum.Enum):
    INDIVIDUAL = "INDIVIDUAL"
    CORPORATE = "CORPORATE"
    FUND = "FUND"
    EMPLOYEE = "EMPLOYEE"


class ShareholderStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class Shareholder(TimestampMixin, Base):
    """Represents a shareholder record scoped to a company."""

    __tablename__ = "shareholders"
    __table_args__ = (Index("ix_shareholders_company_id", "company_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    company_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[ShareholderType] = mapped_column(
        SAEnum(ShareholderType, name="shareholder_type"), nullable=False, default=ShareholderType.INDIVIDUAL
    )
    status: Mapped[ShareholderStatus] = mapped_column(
        SAEnum(ShareholderStatus, name="shareholder_status"), nullable=False, default=ShareholderStatus.ACTIVE
    )
    tax_id: Mapped[str | None] = mapped_column(String(32))
    nationality: Mapped[str | None] = mapped_column(String(2))
    is_foreign: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    company = relationship("Company", back_populates="shareholders")
    shareholdings = relationship("Shareholding", back_populates="shareholder")
    option_grants = relationship("OptionGrant", back_populates="shareholder")


__all__ = ["Shareholder", "ShareholderStatus", "ShareholderType"]
