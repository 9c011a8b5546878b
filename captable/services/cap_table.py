"""Current and fully-diluted cap table views plus the Open Cap Table export."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from captable.core.clock import Clock, ensure_utc, utcnow
from captable.core.decimals import ZERO, format_decimal, percentage_of, quantize_percentage
from captable.core.errors import NotFoundError
from captable.models import (
    Company,
    OptionGrant,
    OptionGrantStatus,
    ShareClass,
    ShareClassType,
    Shareholder,
    ShareholderStatus,
    Shareholding,
)
from captable.services.option_grants import schedule_for
from captable.services.vesting import calculate_vesting

logger = logging.getLogger(__name__)

OCF_VERSION = "1.0.0"

_OCT_CLASS_TYPES = {
    ShareClassType.COMMON_SHARES: "COMMON",
    ShareClassType.QUOTA: "COMMON",
    ShareClassType.PREFERRED_SHARES: "PREFERRED",
}


@dataclass(slots=True, frozen=True)
class CapTableEntry:
    shareholder_id: str
    shareholder_name: str
    shareholder_type: str
    share_class_id: str
    share_class_name: str
    share_class_type: str
    shares: Decimal
    ownership_pct: Decimal
    voting_power: Decimal
    voting_pct: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "shareholder_id": self.shareholder_id,
            "shareholder_name": self.shareholder_name,
            "shareholder_type": self.shareholder_type,
            "share_class_id": self.share_class_id,
            "share_class_name": self.share_class_name,
            "share_class_type": self.share_class_type,
            "shares": format_decimal(self.shares),
            "ownership_pct": format_decimal(self.ownership_pct),
            "voting_power": format_decimal(self.voting_power),
            "voting_pct": format_decimal(self.voting_pct),
        }


@dataclass(slots=True, frozen=True)
class CapTableView:
    company_id: str
    company_name: str
    entity_type: str
    total_shares: Decimal
    total_shareholders: int
    total_share_classes: int
    last_updated: datetime
    entries: list[CapTableEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "company": {"id": self.company_id, "name": self.company_name, "entity_type": self.entity_type},
            "summary": {
                "total_shares": format_decimal(self.total_shares),
                "total_shareholders": self.total_shareholders,
                "total_share_classes": self.total_share_classes,
                "last_updated": self.last_updated.isoformat(),
            },
            "entries": [entry.to_dict() for entry in self.entries],
        }


@dataclass(slots=True, frozen=True)
class FullyDilutedEntry:
    shareholder_id: str
    shareholder_name: str
    shareholder_type: str
    current_shares: Decimal
    current_pct: Decimal
    options_vested: Decimal
    options_unvested: Decimal
    fully_diluted_shares: Decimal
    fully_diluted_pct: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "shareholder_id": self.shareholder_id,
            "shareholder_name": self.shareholder_name,
            "shareholder_type": self.shareholder_type,
            "current_shares": format_decimal(self.current_shares),
            "current_pct": format_decimal(self.current_pct),
            "options_vested": format_decimal(self.options_vested),
            "options_unvested": format_decimal(self.options_unvested),
            "fully_diluted_shares": format_decimal(self.fully_diluted_shares),
            "fully_diluted_pct": format_decimal(self.fully_diluted_pct),
        }


@dataclass(slots=True, frozen=True)
class FullyDilutedView:
    company_id: str
    company_name: str
    total_shares_outstanding: Decimal
    total_options_outstanding: Decimal
    fully_diluted_shares: Decimal
    entries: list[FullyDilutedEntry]

    def to_dict(self) -> dict[str, Any]:
        return {
            "company": {"id": self.company_id, "name": self.company_name},
            "summary": {
                "total_shares_outstanding": format_decimal(self.total_shares_outstanding),
                "total_options_outstanding": format_decimal(self.total_options_outstanding),
                "fully_diluted_shares": format_decimal(self.fully_diluted_shares),
            },
            "entries": [entry.to_dict() for entry in self.entries],
        }


def mask_tax_id(tax_id: str) -> str:
    """Mask a CPF (11 digits) or CNPJ (14 digits); other values pass through."""

    digits = re.sub(r"\D", "", tax_id)
    if len(digits) == 11:
        return f"***.***.*{digits[8]}*-{digits[9:]}"
    if len(digits) == 14:
        return f"**.***.***/{digits[8:12]}-{digits[12:]}"
    return tax_id


@dataclass(slots=True)
class _Accumulator:
    shareholder: Shareholder
    current_shares: Decimal = ZERO
    options_vested: Decimal = ZERO
    options_unvested: Decimal = ZERO


class CapTableService:
    """Read-only views over the ledger."""

    def __init__(self, session: Session, *, clock: Clock = utcnow) -> None:
        self._session = session
        self._clock = clock

    def _company(self, company_id: str) -> Company:
        company = self._session.get(Company, company_id)
        if company is None:
            raise NotFoundError("company", company_id)
        return company

    def get_current_cap_table(self, company_id: str, share_class_id: str | None = None) -> CapTableView:
        company = self._company(company_id)
        stmt = (
            select(Shareholding)
            .join(ShareClass, ShareClass.id == Shareholding.share_class_id)
            .options(joinedload(Shareholding.shareholder), joinedload(Shareholding.share_class))
            .where(Shareholding.company_id == company_id)
            .order_by(ShareClass.class_name.asc(), Shareholding.shareholder_id.asc())
        )
        if share_class_id is not None:
            stmt = stmt.where(Shareholding.share_class_id == share_class_id)
        holdings = list(self._session.execute(stmt).scalars())

        total_shares = sum((Decimal(h.quantity) for h in holdings), ZERO)
        total_voting_power = sum(
            (Decimal(h.quantity) * h.share_class.votes_per_share for h in holdings), ZERO
        )

        entries = []
        for holding in holdings:
            quantity = Decimal(holding.quantity)
            voting_power = quantity * holding.share_class.votes_per_share
            entries.append(
                CapTableEntry(
                    shareholder_id=holding.shareholder_id,
                    shareholder_name=holding.shareholder.name,
                    shareholder_type=holding.shareholder.type.value,
                    share_class_id=holding.share_class_id,
                    share_class_name=holding.share_class.class_name,
                    share_class_type=holding.share_class.type.value,
                    shares=quantity,
                    ownership_pct=quantize_percentage(percentage_of(quantity, total_shares)),
                    voting_power=voting_power,
                    voting_pct=quantize_percentage(percentage_of(voting_power, total_voting_power)),
                )
            )

        if holdings:
            last_updated = max(ensure_utc(h.updated_at or h.created_at) for h in holdings)
        else:
            last_updated = ensure_utc(company.created_at)

        return CapTableView(
            company_id=company.id,
            company_name=company.name,
            entity_type=company.entity_type.value,
            total_shares=total_shares,
            total_shareholders=len({h.shareholder_id for h in holdings}),
            total_share_classes=len({h.share_class_id for h in holdings}),
            last_updated=last_updated,
            entries=entries,
        )

    def get_fully_diluted_cap_table(self, company_id: str, now: datetime | None = None) -> FullyDilutedView:
        company = self._company(company_id)
        now = now or self._clock()

        holdings = self._session.execute(
            select(Shareholding)
            .options(joinedload(Shareholding.shareholder))
            .where(Shareholding.company_id == company_id)
        ).scalars()
        grants = self._session.execute(
            select(OptionGrant)
            .options(joinedload(OptionGrant.shareholder))
            .where(
                OptionGrant.company_id == company_id,
                OptionGrant.status == OptionGrantStatus.ACTIVE,
                OptionGrant.shareholder_id.is_not(None),
            )
        ).scalars()

        per_holder: dict[str, _Accumulator] = {}
        total_shares = ZERO
        for holding in holdings:
            acc = per_holder.setdefault(holding.shareholder_id, _Accumulator(holding.shareholder))
            acc.current_shares += Decimal(holding.quantity)
            total_shares += Decimal(holding.quantity)

        total_options = ZERO
        for grant in grants:
            summary = calculate_vesting(schedule_for(grant), now)
            total_options += max(summary.quantity - summary.exercised, ZERO)
            acc = per_holder.setdefault(grant.shareholder_id, _Accumulator(grant.shareholder))
            acc.options_vested += summary.vested_unexercised
            acc.options_unvested += max(summary.unvested, ZERO)

        fully_diluted_total = total_shares + total_options
        entries = []
        for shareholder_id, acc in per_holder.items():
            fd_shares = acc.current_shares + acc.options_vested + acc.options_unvested
            entries.append(
                FullyDilutedEntry(
                    shareholder_id=shareholder_id,
                    shareholder_name=acc.shareholder.name,
                    shareholder_type=acc.shareholder.type.value,
                    current_shares=acc.current_shares,
                    current_pct=quantize_percentage(percentage_of(acc.current_shares, total_shares)),
                    options_vested=acc.options_vested,
                    options_unvested=acc.options_unvested,
                    fully_diluted_shares=fd_shares,
                    fully_diluted_pct=quantize_percentage(percentage_of(fd_shares, fully_diluted_total)),
                )
            )
        entries.sort(key=lambda entry: entry.fully_diluted_pct, reverse=True)

        return FullyDilutedView(
            company_id=company.id,
            company_name=company.name,
            total_shares_outstanding=total_shares,
            total_options_outstanding=total_options,
            fully_diluted_shares=fully_diluted_total,
            entries=entries,
        )

    def export_oct(self, company_id: str) -> dict[str, Any]:
        """Render the cap table in Open Cap Table (OCF) JSON form."""

        company = self._company(company_id)
        share_classes = self._session.execute(
            select(ShareClass).where(ShareClass.company_id == company_id).order_by(ShareClass.class_name.asc())
        ).scalars()
        shareholders = list(
            self._session.execute(
                select(Shareholder)
                .options(joinedload(Shareholder.shareholdings).joinedload(Shareholding.share_class))
                .where(Shareholder.company_id == company_id, Shareholder.status == ShareholderStatus.ACTIVE)
                .order_by(Shareholder.name.asc())
            )
            .unique()
            .scalars()
        )

        stock_classes = [
            {
                "id": share_class.id,
                "name": share_class.class_name,
                "class_type": _OCT_CLASS_TYPES.get(share_class.type, "COMMON"),
                "authorized_shares": format_decimal(share_class.total_authorized),
                "issued_shares": format_decimal(share_class.total_issued),
                "votes_per_share": share_class.votes_per_share,
                "liquidation_preference_multiple": format_decimal(share_class.liquidation_preference_multiple),
                "participating_preferred": share_class.participating_rights,
                "seniority": share_class.seniority,
            }
            for share_class in share_classes
        ]
        stockholders = [
            {
                "id": shareholder.id,
                "name": shareholder.name,
                "stakeholder_type": shareholder.type.value,
                "tax_id": mask_tax_id(shareholder.tax_id) if shareholder.tax_id else None,
                "nationality": shareholder.nationality,
                "is_foreign": shareholder.is_foreign,
            }
            for shareholder in shareholders
        ]
        stock_issuances = [
            {
                "id": holding.id,
                "stockholder_id": shareholder.id,
                "stock_class_id": holding.share_class_id,
                "stock_class_name": holding.share_class.class_name,
                "quantity": format_decimal(holding.quantity),
                "issued_at": ensure_utc(holding.created_at).isoformat(),
            }
            for shareholder in shareholders
            for holding in shareholder.shareholdings
        ]

        logger.info(
            "OCT export generated",
            extra={
                "company_id": company_id,
                "stockholders": len(stockholders),
                "stock_issuances": len(stock_issuances),
            },
        )
        return {
            "ocf_version": OCF_VERSION,
            "generated_at": self._clock().isoformat(),
            "issuer": {
                "id": company.id,
                "legal_name": company.name,
                "entity_type": company.entity_type.value,
                "jurisdiction": "BR",
                "tax_id": company.tax_id,
                "founded_date": company.founded_date.isoformat() if company.founded_date else None,
            },
            "stock_classes": stock_classes,
            "stockholders": stockholders,
            "stock_issuances": stock_issuances,
        }


__all__ = [
    "CapTableEntry",
    "CapTableService",
    "CapTableView",
    "FullyDilutedEntry",
    "FullyDilutedView",
    "OCF_VERSION",
    "mask_tax_id",
]
