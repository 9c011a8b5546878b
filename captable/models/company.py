"""Company ORM model."""
from __future__ import annotations

import enum
from datetime import date

from sqlalchemy import Date, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from captable.models.base import Base, TimestampMixin, new_id


class CompanyEntityType(str, enum.Enum):
    LTDA = "LTDA"
    SA_CAPITAL_FECHADO = "SA_CAPITAL_FECHADO"
    SA_CAPITAL_ABERTO = "SA_CAPITAL_ABERTO"

    @property
    def is_corporation(self) -> bool:
        return self in {CompanyEntityType.SA_CAPITAL_FECHADO, CompanyEntityType.SA_CAPITAL_ABERTO}


class CompanyStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    DISSOLVED = "DISSOLVED"


class Company(TimestampMixin, Base):
    """Issuer whose cap table is maintained by the engine."""

    __tablename__ = "companies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_type: Mapped[CompanyEntityType] = mapped_column(
        SAEnum(CompanyEntityType, name="company_entity_type"), nullable=False, default=CompanyEntityType.LTDA
    )
    status: Mapped[CompanyStatus] = mapped_column(
        SAEnum(CompanyStatus, name="company_status"), nullable=False, default=CompanyStatus.ACTIVE
    )
    tax_id: Mapped[str | None] = mapped_column(String(32))
    founded_date: Mapped[date | None] = mapped_column(Date)

    share_classes = relationship("ShareClass", back_populates="company", cascade="all, delete-orphan")
    shareholders = relationship("Shareholder", back_populates="company", cascade="all, delete-orphan")
    shareholdings = relationship("Shareholding", back_populates="company", cascade="all, delete-orphan")
    option_grants = relationship("OptionGrant", back_populates="company", cascade="all, delete-orphan")
    transactions = relationship("Transaction", back_populates="company", cascade="all, delete-orphan")
    snapshots = relationship("CapTableSnapshot", back_populates="company", cascade="all, delete-orphan")
    audit_logs = relationship("AuditLog", back_populates="company", cascade="all, delete-orphan")


__all__ = ["Company", "CompanyEntityType", "CompanyStatus"]
