"""ORM models package."""
from .audit_log import AuditLog
from .base import Base, TimestampMixin
from .company import Company, CompanyEntityType, CompanyStatus
from .option_grant import OptionGrant, OptionGrantStatus
from .settlement_record import SettlementRecord
from .share_class import ShareClass, ShareClassType
from .shareholder import Shareholder, ShareholderStatus, ShareholderType
from .shareholding import Shareholding
from .snapshot import CapTableSnapshot
from .transaction import Transaction, TransactionStatus, TransactionType

__all__ = [
    "AuditLog",
    "Base",
    "CapTableSnapshot",
    "Company",
    "CompanyEntityType",
    "CompanyStatus",
    "OptionGrant",
    "OptionGrantStatus",
    "SettlementRecord",
    "ShareClass",
    "ShareClassType",
    "Shareholder",
    "ShareholderStatus",
    "ShareholderType",
    "Shareholding",
    "TimestampMixin",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
]
