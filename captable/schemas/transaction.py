"""Pydantic schemas for transaction resources."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from captable.core.decimals import format_decimal
from captable.models import (
    SettlementRecord,
    ShareClassType,
    ShareholderType,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from captable.services.transactions import TransactionRequest


class TransactionCreate(BaseModel):
    type: TransactionType
    share_class_id: str = Field(..., min_length=1, max_length=36)
    quantity: Decimal
    from_shareholder_id: str | None = Field(default=None, max_length=36)
    to_shareholder_id: str | None = Field(default=None, max_length=36)
    price_per_share: Decimal | None = Field(default=None, ge=0)
    notes: str | None = Field(default=None, max_length=2000)
    requires_board_approval: bool = False
    target_share_class_id: str | None = Field(default=None, max_length=36)
    split_ratio: Decimal | None = None

    def to_request(self) -> TransactionRequest:
        return TransactionRequest(
            type=self.type,
            share_class_id=self.share_class_id,
            quantity=self.quantity,
            from_shareholder_id=self.from_shareholder_id,
            to_shareholder_id=self.to_shareholder_id,
            price_per_share=self.price_per_share,
            notes=self.notes,
            requires_board_approval=self.requires_board_approval,
            target_share_class_id=self.target_share_class_id,
            split_ratio=self.split_ratio,
        )


class TransactionFailure(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class ShareholderSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    type: ShareholderType


class ShareClassSummary(BaseModel):
    id: str
    name: str
    type: ShareClassType


class SettlementRecordRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    external_reference: str | None
    status: str
    settled_at: datetime | None
    created_at: datetime | None


class TransactionRead(BaseModel):
    id: str
    company_id: str
    type: TransactionType
    status: TransactionStatus
    from_shareholder: ShareholderSummary | None
    to_shareholder: ShareholderSummary | None
    share_class: ShareClassSummary
    quantity: str
    price_per_share: str | None
    total_value: str | None
    details: dict | None
    notes: str | None
    requires_board_approval: bool
    created_by: str | None
    approved_by: str | None
    approved_at: datetime | None
    cancelled_by: str | None
    cancelled_at: datetime | None
    confirmed_at: datetime | None
    failure_reason: str | None
    created_at: datetime | None
    updated_at: datetime | None
    settlement_records: list[SettlementRecordRead] | None = None

    @classmethod
    def from_model(
        cls, transaction: Transaction, *, settlement_records: list[SettlementRecord] | None = None
    ) -> "TransactionRead":
        share_class = transaction.share_class
        return cls(
            id=transaction.id,
            company_id=transaction.company_id,
            type=transaction.type,
            status=transaction.status,
            from_shareholder=(
                ShareholderSummary.model_validate(transaction.from_shareholder)
                if transaction.from_shareholder is not None
                else None
            ),
            to_shareholder=(
                ShareholderSummary.model_validate(transaction.to_shareholder)
                if transaction.to_shareholder is not None
                else None
            ),
            share_class=ShareClassSummary(id=share_class.id, name=share_class.class_name, type=share_class.type),
            quantity=format_decimal(transaction.quantity) or "0",
            price_per_share=format_decimal(transaction.price_per_share),
            total_value=format_decimal(transaction.total_value),
            details=transaction.details,
            notes=transaction.notes,
            requires_board_approval=transaction.requires_board_approval,
            created_by=transaction.created_by,
            approved_by=transaction.approved_by,
            approved_at=transaction.approved_at,
            cancelled_by=transaction.cancelled_by,
            cancelled_at=transaction.cancelled_at,
            confirmed_at=transaction.confirmed_at,
            failure_reason=transaction.failure_reason,
            created_at=transaction.created_at,
            updated_at=transaction.updated_at,
            settlement_records=(
                [SettlementRecordRead.model_validate(record) for record in settlement_records]
                if settlement_records is not None
                else None
            ),
        )


class TransactionPage(BaseModel):
    items: list[TransactionRead]
    total: int
    page: int
    limit: int


__all__ = [
    "SettlementRecordRead",
    "ShareClassSummary",
    "ShareholderSummary",
    "TransactionCreate",
    "TransactionFailure",
    "TransactionPage",
    "TransactionRead",
]
