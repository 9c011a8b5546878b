"""Pre-mutation checks for proposed transactions.

Every rule here runs before anything is written. A failing check raises a
``NotFoundError`` or ``BusinessRuleError`` and leaves the database untouched.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from dateutil.relativedelta import relativedelta
from sqlalchemy import select
from sqlalchemy.orm import Session

from captable.core.clock import ensure_utc
from captable.core.decimals import ZERO, format_decimal
from captable.core.errors import BusinessRuleError, NotFoundError
from captable.models import (
    Company,
    CompanyStatus,
    ShareClass,
    ShareClassType,
    Shareholder,
    ShareholderStatus,
    Shareholding,
    TransactionType,
)
from captable.services.transactions.details import (
    CancellationDetails,
    ConversionDetails,
    IssuanceDetails,
    SplitDetails,
    TransactionDetails,
    TransferDetails,
)


@dataclass(slots=True, frozen=True)
class TransactionProposal:
    """Transaction as requested by a caller, before anything is persisted."""

    company_id: str
    type: TransactionType
    share_class_id: str
    quantity: Decimal
    details: TransactionDetails
    from_shareholder_id: str | None = None
    to_shareholder_id: str | None = None


@dataclass(slots=True, frozen=True)
class ValidatedProposal:
    proposal: TransactionProposal
    company: Company
    share_class: ShareClass
    from_shareholder: Shareholder | None
    to_shareholder: Shareholder | None
    target_share_class: ShareClass | None


def _require_company(session: Session, company_id: str) -> Company:
    company = session.get(Company, company_id)
    if company is None:
        raise NotFoundError("company", company_id)
    if company.status != CompanyStatus.ACTIVE:
        raise BusinessRuleError(
            "TXN_COMPANY_NOT_ACTIVE", "errors.txn.companyNotActive", {"status": company.status.value}
        )
    return company


def _require_share_class(session: Session, company_id: str, share_class_id: str) -> ShareClass:
    share_class = session.get(ShareClass, share_class_id)
    if share_class is None or share_class.company_id != company_id:
        raise NotFoundError("share_class", share_class_id)
    return share_class


def _require_active_shareholder(session: Session, company_id: str, shareholder_id: str) -> Shareholder:
    shareholder = session.get(Shareholder, shareholder_id)
    if (
        shareholder is None
        or shareholder.company_id != company_id
        or shareholder.status != ShareholderStatus.ACTIVE
    ):
        raise NotFoundError("shareholder", shareholder_id)
    return shareholder


def find_holding(session: Session, company_id: str, shareholder_id: str, share_class_id: str) -> Shareholding | None:
    stmt = select(Shareholding).where(
        Shareholding.company_id == company_id,
        Shareholding.shareholder_id == shareholder_id,
        Shareholding.share_class_id == share_class_id,
    )
    return session.execute(stmt).scalar_one_or_none()


def insufficient_shares(
    available: Decimal, requested: Decimal, shareholder_id: str, share_class_id: str
) -> BusinessRuleError:
    return BusinessRuleError(
        "TXN_INSUFFICIENT_SHARES",
        "errors.txn.insufficientShares",
        {
            "available": format_decimal(available),
            "requested": format_decimal(requested),
            "shareholder_id": shareholder_id,
            "share_class_id": share_class_id,
        },
    )


def exceeds_authorized(share_class: ShareClass, current_issued: Decimal, requested: Decimal) -> BusinessRuleError:
    return BusinessRuleError(
        "TXN_EXCEEDS_AUTHORIZED",
        "errors.txn.exceedsAuthorized",
        {
            "authorized": format_decimal(share_class.total_authorized),
            "current_issued": format_decimal(current_issued),
            "requested": format_decimal(requested),
            "would_be": format_decimal(current_issued + requested),
            "share_class_name": share_class.class_name,
        },
    )


class TransactionValidator:
    """Resolves the parties of a proposal and checks its preconditions."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def validate(self, proposal: TransactionProposal, *, now: datetime) -> ValidatedProposal:
        session = self._session
        company = _require_company(session, proposal.company_id)
        share_class = _require_share_class(session, company.id, proposal.share_class_id)

        if proposal.quantity is None or proposal.quantity <= ZERO:
            raise BusinessRuleError(
                "TXN_INVALID_QUANTITY",
                "errors.txn.invalidQuantity",
                {"quantity": format_decimal(proposal.quantity)},
            )

        if proposal.type is TransactionType.ISSUANCE and company.entity_type.is_corporation:
            self._ensure_common_shares_exist(company)

        details = proposal.details
        from_shareholder: Shareholder | None = None
        to_shareholder: Shareholder | None = None
        target_share_class: ShareClass | None = None

        if isinstance(details, IssuanceDetails):
            to_shareholder = self._destination(proposal)
            self._check_authorized(share_class, proposal.quantity)
        elif isinstance(details, TransferDetails):
            from_shareholder = self._source(proposal)
            to_shareholder = self._destination(proposal)
            if from_shareholder.id == to_shareholder.id:
                raise BusinessRuleError(
                    "TXN_SAME_SHAREHOLDER", "errors.txn.sameShareholder", {"shareholder_id": from_shareholder.id}
                )
            holding = self._check_balance(proposal, from_shareholder)
            self._check_lock_up(share_class, holding, now)
        elif isinstance(details, CancellationDetails):
            from_shareholder = self._source(proposal)
            self._check_balance(proposal, from_shareholder)
        elif isinstance(details, ConversionDetails):
            from_shareholder = self._source(proposal)
            if not details.target_share_class_id:
                raise BusinessRuleError("TXN_TO_SHARE_CLASS_REQUIRED", "errors.txn.toShareClassRequired")
            target_share_class = _require_share_class(session, company.id, details.target_share_class_id)
            if target_share_class.id == share_class.id:
                raise BusinessRuleError(
                    "TXN_SAME_SHARE_CLASS", "errors.txn.sameShareClass", {"share_class_id": share_class.id}
                )
            self._check_balance(proposal, from_shareholder)
        elif isinstance(details, SplitDetails):
            if details.ratio is None:
                raise BusinessRuleError("TXN_SPLIT_RATIO_REQUIRED", "errors.txn.splitRatioRequired")
            if details.ratio <= ZERO:
                raise BusinessRuleError(
                    "TXN_INVALID_SPLIT_RATIO", "errors.txn.invalidSplitRatio", {"ratio": format_decimal(details.ratio)}
                )
        else:
            raise TypeError(f"Unsupported transaction details: {details!r}")

        return ValidatedProposal(
            proposal=proposal,
            company=company,
            share_class=share_class,
            from_shareholder=from_shareholder,
            to_shareholder=to_shareholder,
            target_share_class=target_share_class,
        )

    def _ensure_common_shares_exist(self, company: Company) -> None:
        stmt = select(ShareClass.id).where(
            ShareClass.company_id == company.id, ShareClass.type == ShareClassType.COMMON_SHARES
        )
        if self._session.execute(stmt.limit(1)).first() is None:
            raise BusinessRuleError(
                "CAP_MISSING_COMMON_SHARES",
                "errors.cap.missingCommonShares",
                {"entity_type": company.entity_type.value},
            )

    def _source(self, proposal: TransactionProposal) -> Shareholder:
        if not proposal.from_shareholder_id:
            raise BusinessRuleError("TXN_FROM_SHAREHOLDER_REQUIRED", "errors.txn.fromShareholderRequired")
        return _require_active_shareholder(self._session, proposal.company_id, proposal.from_shareholder_id)

    def _destination(self, proposal: TransactionProposal) -> Shareholder:
        if not proposal.to_shareholder_id:
            raise BusinessRuleError("TXN_TO_SHAREHOLDER_REQUIRED", "errors.txn.toShareholderRequired")
        return _require_active_shareholder(self._session, proposal.company_id, proposal.to_shareholder_id)

    def _check_authorized(self, share_class: ShareClass, quantity: Decimal) -> None:
        current_issued = Decimal(share_class.total_issued or 0)
        if current_issued + quantity > Decimal(share_class.total_authorized or 0):
            raise exceeds_authorized(share_class, current_issued, quantity)

    def _check_balance(self, proposal: TransactionProposal, shareholder: Shareholder) -> Shareholding | None:
        holding = find_holding(self._session, proposal.company_id, shareholder.id, proposal.share_class_id)
        available = Decimal(holding.quantity) if holding is not None else ZERO
        if available < proposal.quantity:
            raise insufficient_shares(available, proposal.quantity, shareholder.id, proposal.share_class_id)
        return holding

    def _check_lock_up(self, share_class: ShareClass, holding: Shareholding | None, now: datetime) -> None:
        months = share_class.lock_up_period_months
        if not months or holding is None or holding.created_at is None:
            return
        expires_at = ensure_utc(holding.created_at) + relativedelta(months=months)
        if ensure_utc(now) < expires_at:
            raise BusinessRuleError(
                "TXN_LOCKUP_ACTIVE",
                "errors.txn.lockupActive",
                {
                    "lockup_expires_at": expires_at.isoformat(),
                    "lock_up_period_months": months,
                    "share_class_id": share_class.id,
                    "shareholder_id": holding.shareholder_id,
                },
            )


__all__ = [
    "TransactionProposal",
    "TransactionValidator",
    "ValidatedProposal",
    "exceeds_authorized",
    "find_holding",
    "insufficient_shares",
]
