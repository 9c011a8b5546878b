"""Typed payloads carried by each transaction type.

A transaction row stores its payload in the ``details`` JSON column as a
tagged mapping (``{"kind": "SPLIT", "ratio": "2"}``). The ledger and the
validator only ever see the typed variants below.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from captable.core.decimals import format_decimal
from captable.core.errors import BusinessRuleError
from captable.models import TransactionType


@dataclass(slots=True, frozen=True)
class IssuanceDetails:
    pass


@dataclass(slots=True, frozen=True)
class TransferDetails:
    pass


@dataclass(slots=True, frozen=True)
class CancellationDetails:
    pass


@dataclass(slots=True, frozen=True)
class ConversionDetails:
    target_share_class_id: str | None


@dataclass(slots=True, frozen=True)
class SplitDetails:
    ratio: Decimal | None


TransactionDetails = IssuanceDetails | TransferDetails | CancellationDetails | ConversionDetails | SplitDetails


def _parse_ratio(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise BusinessRuleError(
            "TXN_INVALID_SPLIT_RATIO", "errors.txn.invalidSplitRatio", {"ratio": str(value)}
        ) from exc


def build_details(
    transaction_type: TransactionType,
    *,
    target_share_class_id: str | None = None,
    split_ratio: Any = None,
) -> TransactionDetails:
    """Build the payload variant for ``transaction_type`` from request fields."""

    if transaction_type is TransactionType.ISSUANCE:
        return IssuanceDetails()
    if transaction_type is TransactionType.TRANSFER:
        return TransferDetails()
    if transaction_type is TransactionType.CANCELLATION:
        return CancellationDetails()
    if transaction_type is TransactionType.CONVERSION:
        return ConversionDetails(target_share_class_id=target_share_class_id or None)
    if transaction_type is TransactionType.SPLIT:
        return SplitDetails(ratio=_parse_ratio(split_ratio))
    raise TypeError(f"Unsupported transaction type: {transaction_type!r}")


def details_to_json(details: TransactionDetails) -> dict[str, Any]:
    if isinstance(details, IssuanceDetails):
        return {"kind": TransactionType.ISSUANCE.value}
    if isinstance(details, TransferDetails):
        return {"kind": TransactionType.TRANSFER.value}
    if isinstance(details, CancellationDetails):
        return {"kind": TransactionType.CANCELLATION.value}
    if isinstance(details, ConversionDetails):
        return {"kind": TransactionType.CONVERSION.value, "target_share_class_id": details.target_share_class_id}
    if isinstance(details, SplitDetails):
        return {"kind": TransactionType.SPLIT.value, "ratio": format_decimal(details.ratio)}
    raise TypeError(f"Unsupported transaction details: {details!r}")


def details_from_json(transaction_type: TransactionType, payload: dict[str, Any] | None) -> TransactionDetails:
    """Rebuild the payload variant stored on a transaction row."""

    payload = payload or {}
    kind = payload.get("kind", transaction_type.value)
    if kind != transaction_type.value:
        raise TypeError(f"Stored details kind {kind!r} does not match transaction type {transaction_type.value!r}")
    return build_details(
        transaction_type,
        target_share_class_id=payload.get("target_share_class_id"),
        split_ratio=payload.get("ratio"),
    )


__all__ = [
    "CancellationDetails",
    "ConversionDetails",
    "IssuanceDetails",
    "SplitDetails",
    "TransactionDetails",
    "TransferDetails",
    "build_details",
    "details_from_json",
    "details_to_json",
]
