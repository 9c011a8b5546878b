"""Domain exceptions raised by the cap table services."""
from __future__ import annotations

from typing import Any


class CapTableError(RuntimeError):
    """Base exception carrying a machine-readable code and a message key."""

    status_code: int = 422

    def __init__(self, code: str, message_key: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message_key)
        self.code = code
        self.message_key = message_key
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message_key": self.message_key, "details": self.details}


class NotFoundError(CapTableError):
    """Raised when a referenced company, shareholder, class, transaction or snapshot is missing."""

    status_code = 404

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        details = {"id": resource_id} if resource_id is not None else None
        super().__init__(f"{resource.upper()}_NOT_FOUND", f"errors.{resource}.notFound", details)
        self.resource = resource


class BusinessRuleError(CapTableError):
    """Raised when a request violates a cap table business rule."""


def invalid_transition(current: Any, target: Any) -> BusinessRuleError:
    return BusinessRuleError(
        "TXN_INVALID_STATUS_TRANSITION",
        "errors.txn.invalidStatusTransition",
        {"current_status": getattr(current, "value", current), "target_status": getattr(target, "value", target)},
    )


__all__ = ["BusinessRuleError", "CapTableError", "NotFoundError", "invalid_transition"]
