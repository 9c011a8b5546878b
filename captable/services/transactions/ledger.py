"""Ledger mutation engine applied when a transaction is confirmed.

``LedgerEngine.apply`` must run inside the caller's SERIALIZABLE unit of work.
Balances are re-read under that unit before any decrement.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from captable.core.clock import Clock, utcnow
from captable.core.decimals import ZERO, format_decimal, is_integral
from captable.core.errors import BusinessRuleError, NotFoundError
from captable.models import ShareClass, Shareholding, Transaction
from captable.services.transactions.details import (
    CancellationDetails,
    ConversionDetails,
    IssuanceDetails,
    SplitDetails,
    TransferDetails,
    details_from_json,
)
from captable.services.transactions.validator import exceeds_authorized, insufficient_shares

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LedgerEffect:
    """Summary of the rows touched by one mutation."""

    share_class_ids: set[str] = field(default_factory=set)
    holdings_created: int = 0
    holdings_updated: int = 0
    holdings_deleted: int = 0


class LedgerEngine:
    """Applies a confirmed transaction to shareholdings and class totals."""

    def __init__(self, session: Session, *, clock: Clock = utcnow) -> None:
        self._session = session
        self._clock = clock

    def apply(self, transaction: Transaction) -> LedgerEffect:
        details = details_from_json(transaction.type, transaction.details)
        effect = LedgerEffect()
        company_id = transaction.company_id
        share_class_id = transaction.share_class_id
        quantity = Decimal(transaction.quantity)

        if isinstance(details, IssuanceDetails):
            self._issue(company_id, share_class_id, transaction.to_shareholder_id, quantity, effect)
        elif isinstance(details, TransferDetails):
            self._decrement(company_id, share_class_id, transaction.from_shareholder_id, quantity, effect)
            self._credit(company_id, share_class_id, transaction.to_shareholder_id, quantity, effect)
        elif isinstance(details, CancellationDetails):
            self._retire(company_id, share_class_id, transaction.from_shareholder_id, quantity, effect)
        elif isinstance(details, ConversionDetails):
            self._retire(company_id, share_class_id, transaction.from_shareholder_id, quantity, effect)
            self._issue(company_id, details.target_share_class_id, transaction.from_shareholder_id, quantity, effect)
        elif isinstance(details, SplitDetails):
            self._split(company_id, share_class_id, details.ratio, effect)
        else:
            raise TypeError(f"Unsupported transaction details: {details!r}")

        self._session.flush()
        logger.info(
            "Ledger mutation applied",
            extra={
                "transaction_id": transaction.id,
                "company_id": transaction.company_id,
                "transaction_type": transaction.type.value,
                "holdings_created": effect.holdings_created,
                "holdings_updated": effect.holdings_updated,
                "holdings_deleted": effect.holdings_deleted,
            },
        )
        return effect

    def _share_class(self, company_id: str, share_class_id: str | None) -> ShareClass:
        stmt = (
            select(ShareClass)
            .where(ShareClass.id == share_class_id, ShareClass.company_id == company_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        share_class = self._session.execute(stmt).scalar_one_or_none()
        if share_class is None:
            raise NotFoundError("share_class", share_class_id)
        return share_class

    def _holding(self, company_id: str, share_class_id: str, shareholder_id: str | None) -> Shareholding | None:
        stmt = (
            select(Shareholding)
            .where(
                Shareholding.company_id == company_id,
                Shareholding.share_class_id == share_class_id,
                Shareholding.shareholder_id == shareholder_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def _credit(
        self, company_id: str, share_class_id: str, shareholder_id: str | None, quantity: Decimal, effect: LedgerEffect
    ) -> None:
        holding = self._holding(company_id, share_class_id, shareholder_id)
        if holding is None:
            now: datetime = self._clock()
            holding = Shareholding(
                company_id=company_id,
                shareholder_id=shareholder_id,
                share_class_id=share_class_id,
                quantity=quantity,
                ownership_pct=ZERO,
                voting_power_pct=ZERO,
                created_at=now,
                updated_at=now,
            )
            self._session.add(holding)
            effect.holdings_created += 1
        else:
            holding.quantity = Decimal(holding.quantity) + quantity
            effect.holdings_updated += 1
        effect.share_class_ids.add(share_class_id)

    def _decrement(
        self, company_id: str, share_class_id: str, shareholder_id: str | None, quantity: Decimal, effect: LedgerEffect
    ) -> None:
        holding = self._holding(company_id, share_class_id, shareholder_id)
        available = Decimal(holding.quantity) if holding is not None else ZERO
        if holding is None or available < quantity:
            raise insufficient_shares(available, quantity, shareholder_id, share_class_id)

        remaining = available - quantity
        if remaining == ZERO:
            self._session.delete(holding)
            effect.holdings_deleted += 1
        else:
            holding.quantity = remaining
            effect.holdings_updated += 1
        effect.share_class_ids.add(share_class_id)

    def _issue(
        self,
        company_id: str,
        share_class_id: str | None,
        shareholder_id: str | None,
        quantity: Decimal,
        effect: LedgerEffect,
    ) -> None:
        share_class = self._share_class(company_id, share_class_id)
        current_issued = Decimal(share_class.total_issued or 0)
        if current_issued + quantity > Decimal(share_class.total_authorized or 0):
            raise exceeds_authorized(share_class, current_issued, quantity)
        self._credit(company_id, share_class.id, shareholder_id, quantity, effect)
        share_class.total_issued = current_issued + quantity

    def _retire(
        self, company_id: str, share_class_id: str, shareholder_id: str | None, quantity: Decimal, effect: LedgerEffect
    ) -> None:
        share_class = self._share_class(company_id, share_class_id)
        self._decrement(company_id, share_class.id, shareholder_id, quantity, effect)
        current_issued = Decimal(share_class.total_issued or 0)
        if current_issued < quantity:
            raise BusinessRuleError(
                "TXN_INSUFFICIENT_SHARES",
                "errors.txn.insufficientShares",
                {
                    "available": format_decimal(current_issued),
                    "requested": format_decimal(quantity),
                    "share_class_id": share_class.id,
                },
            )
        share_class.total_issued = current_issued - quantity

    def _split(self, company_id: str, share_class_id: str, ratio: Decimal | None, effect: LedgerEffect) -> None:
        if ratio is None or ratio <= ZERO:
            raise BusinessRuleError(
                "TXN_INVALID_SPLIT_RATIO", "errors.txn.invalidSplitRatio", {"ratio": format_decimal(ratio)}
            )
        share_class = self._share_class(company_id, share_class_id)
        stmt = (
            select(Shareholding)
            .where(Shareholding.company_id == company_id, Shareholding.share_class_id == share_class.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        holdings = list(self._session.execute(stmt).scalars())

        scaled: list[tuple[Shareholding, Decimal]] = []
        for holding in holdings:
            current = Decimal(holding.quantity)
            result = current * ratio
            if not is_integral(result):
                raise BusinessRuleError(
                    "TXN_INVALID_SPLIT_RATIO",
                    "errors.txn.invalidSplitRatio",
                    {
                        "shareholding_id": holding.id,
                        "current_quantity": format_decimal(current),
                        "resulting_quantity": format_decimal(result),
                        "ratio": format_decimal(ratio),
                    },
                )
            scaled.append((holding, result))

        for holding, result in scaled:
            holding.quantity = result
            effect.holdings_updated += 1

        share_class.total_issued = Decimal(share_class.total_issued or 0) * ratio
        share_class.total_authorized = Decimal(share_class.total_authorized or 0) * ratio
        effect.share_class_ids.add(share_class.id)


__all__ = ["LedgerEffect", "LedgerEngine"]
