"""Status graph for the transaction lifecycle."""
from __future__ import annotations

from captable.core.errors import invalid_transition
from captable.models import TransactionStatus

ALLOWED_TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    TransactionStatus.DRAFT: frozenset(
        {TransactionStatus.PENDING_APPROVAL, TransactionStatus.SUBMITTED, TransactionStatus.CANCELLED}
    ),
    TransactionStatus.PENDING_APPROVAL: frozenset({TransactionStatus.SUBMITTED, TransactionStatus.CANCELLED}),
    TransactionStatus.SUBMITTED: frozenset(
        {TransactionStatus.CONFIRMED, TransactionStatus.FAILED, TransactionStatus.CANCELLED}
    ),
    TransactionStatus.FAILED: frozenset({TransactionStatus.SUBMITTED, TransactionStatus.CANCELLED}),
    TransactionStatus.CONFIRMED: frozenset(),
    TransactionStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in ALLOWED_TRANSITIONS.items() if not targets)


def initial_status(requires_board_approval: bool) -> TransactionStatus:
    return TransactionStatus.PENDING_APPROVAL if requires_board_approval else TransactionStatus.DRAFT


def submit_target(current: TransactionStatus, requires_board_approval: bool) -> TransactionStatus:
    """Where ``submit`` leads from ``current``."""

    if current is TransactionStatus.DRAFT and requires_board_approval:
        return TransactionStatus.PENDING_APPROVAL
    return TransactionStatus.SUBMITTED


def ensure_transition(current: TransactionStatus, target: TransactionStatus) -> None:
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise invalid_transition(current, target)


def ensure_approvable(current: TransactionStatus) -> None:
    if current not in {TransactionStatus.DRAFT, TransactionStatus.PENDING_APPROVAL}:
        raise invalid_transition(current, TransactionStatus.SUBMITTED)


def ensure_submittable(current: TransactionStatus) -> None:
    if current not in {TransactionStatus.DRAFT, TransactionStatus.FAILED}:
        raise invalid_transition(current, TransactionStatus.SUBMITTED)


__all__ = [
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATUSES",
    "ensure_approvable",
    "ensure_submittable",
    "ensure_transition",
    "initial_status",
    "submit_target",
]
