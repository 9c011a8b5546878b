"""Transaction validation, lifecycle and ledger mutation."""

from .details import (
    CancellationDetails,
    ConversionDetails,
    IssuanceDetails,
    SplitDetails,
    TransactionDetails,
    TransferDetails,
)
from .ledger import LedgerEffect, LedgerEngine
from .service import CONFIRMED_TRIGGER, TransactionFilters, TransactionRequest, TransactionService
from .validator import TransactionProposal, TransactionValidator

__all__ = [
    "CONFIRMED_TRIGGER",
    "CancellationDetails",
    "ConversionDetails",
    "IssuanceDetails",
    "LedgerEffect",
    "LedgerEngine",
    "SplitDetails",
    "TransactionDetails",
    "TransactionFilters",
    "TransactionProposal",
    "TransactionRequest",
    "TransactionService",
    "TransactionValidator",
    "TransferDetails",
]
