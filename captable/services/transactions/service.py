"""Public transaction operations: create, lifecycle transitions, confirm, queries."""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from functools import partial

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from captable.core.clock import Clock, utcnow
from captable.core.config import Settings, get_settings
from captable.core.decimals import format_decimal
from captable.core.errors import CapTableError, NotFoundError, invalid_transition
from captable.db.session import build_session_factory, serializable_transaction, session_scope
from captable.models import SettlementRecord, Transaction, TransactionStatus, TransactionType
from captable.obs.metrics import LEDGER_MUTATION_FAILURES_COUNTER, TRANSACTIONS_CONFIRMED_COUNTER
from captable.obs.tracing import traced
from captable.services.audit import AuditEvent, AuditSink, LoggingAuditSink
from captable.services.notifications import (
    InMemoryNotificationQueue,
    NotificationDispatcher,
    NotificationMessage,
    TransactionEvent,
)
from captable.services.ownership import OwnershipCalculator, RecalculationResult
from captable.services.pagination import Page, SortField, apply_sort, paginate, parse_sort
from captable.services.side_effects import InlineTaskRunner, OutboundTask, TaskRunner
from captable.services.snapshots import SnapshotService
from captable.services.transactions.details import build_details, details_to_json
from captable.services.transactions.ledger import LedgerEngine
from captable.services.transactions.state_machine import (
    ensure_approvable,
    ensure_submittable,
    ensure_transition,
    initial_status,
    submit_target,
)
from captable.services.transactions.validator import TransactionProposal, TransactionValidator

logger = logging.getLogger(__name__)

CONFIRMED_TRIGGER = "transaction_confirmed"
SETTLEMENT_RECORDS_LIMIT = 5

_SORT_COLUMNS = {
    "created_at": Transaction.created_at,
    "type": Transaction.type,
    "status": Transaction.status,
    "quantity": Transaction.quantity,
}
_DEFAULT_SORT = SortField(field="created_at", descending=True)


@dataclass(slots=True, frozen=True)
class TransactionRequest:
    """Caller input for a new transaction."""

    type: TransactionType
    share_class_id: str
    quantity: Decimal
    from_shareholder_id: str | None = None
    to_shareholder_id: str | None = None
    price_per_share: Decimal | None = None
    notes: str | None = None
    requires_board_approval: bool = False
    target_share_class_id: str | None = None
    split_ratio: Decimal | str | None = None


@dataclass(slots=True, frozen=True)
class TransactionFilters:
    type: TransactionType | None = None
    status: TransactionStatus | None = None
    shareholder_id: str | None = None
    share_class_id: str | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None


class TransactionService:
    """Drives transactions through validation, the status graph and the ledger."""

    def __init__(
        self,
        session: Session,
        *,
        settings: Settings | None = None,
        clock: Clock = utcnow,
        task_runner: TaskRunner | None = None,
        audit_sink: AuditSink | None = None,
        notifier: NotificationDispatcher | None = None,
        session_factory: Callable[[], Session] | sessionmaker[Session] | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._clock = clock
        self._task_runner = task_runner or InlineTaskRunner(max_attempts=self._settings.side_effect_max_attempts)
        self._audit_sink = audit_sink or LoggingAuditSink()
        self._notifier = notifier or InMemoryNotificationQueue()
        self._session_factory = session_factory or build_session_factory(session.get_bind())

    # Queries

    def get(self, company_id: str, transaction_id: str) -> Transaction:
        transaction = self._session.get(Transaction, transaction_id)
        if transaction is None or transaction.company_id != company_id:
            raise NotFoundError("transaction", transaction_id)
        return transaction

    def settlement_records(self, transaction_id: str, limit: int = SETTLEMENT_RECORDS_LIMIT) -> list[SettlementRecord]:
        stmt = (
            select(SettlementRecord)
            .where(SettlementRecord.transaction_id == transaction_id)
            .order_by(SettlementRecord.created_at.desc(), SettlementRecord.id.desc())
            .limit(limit)
        )
        return list(self._session.execute(stmt).scalars())

    def list(
        self,
        company_id: str,
        filters: TransactionFilters | None = None,
        *,
        page: int = 1,
        limit: int = 20,
        sort: str | None = None,
    ) -> Page[Transaction]:
        filters = filters or TransactionFilters()
        conditions = [Transaction.company_id == company_id]
        if filters.type is not None:
            conditions.append(Transaction.type == filters.type)
        if filters.status is not None:
            conditions.append(Transaction.status == filters.status)
        if filters.shareholder_id is not None:
            conditions.append(
                or_(
                    Transaction.from_shareholder_id == filters.shareholder_id,
                    Transaction.to_shareholder_id == filters.shareholder_id,
                )
            )
        if filters.share_class_id is not None:
            conditions.append(Transaction.share_class_id == filters.share_class_id)
        if filters.created_after is not None:
            conditions.append(Transaction.created_at >= filters.created_after)
        if filters.created_before is not None:
            conditions.append(Transaction.created_at <= filters.created_before)

        total = self._session.execute(
            select(func.count()).select_from(Transaction).where(*conditions)
        ).scalar_one()
        sort_fields = parse_sort(sort, set(_SORT_COLUMNS), _DEFAULT_SORT)
        stmt = apply_sort(select(Transaction).where(*conditions), sort_fields, _SORT_COLUMNS)
        stmt = stmt.order_by(Transaction.id.asc())
        items = list(self._session.execute(paginate(stmt, page=page, limit=limit)).scalars())
        return Page(items=items, total=total, page=page, limit=limit)

    # Commands

    def create(self, company_id: str, request: TransactionRequest, *, actor_id: str | None = None) -> Transaction:
        now = self._clock()
        details = build_details(
            request.type,
            target_share_class_id=request.target_share_class_id,
            split_ratio=request.split_ratio,
        )
        proposal = TransactionProposal(
            company_id=company_id,
            type=request.type,
            share_class_id=request.share_class_id,
            quantity=request.quantity,
            details=details,
            from_shareholder_id=request.from_shareholder_id,
            to_shareholder_id=request.to_shareholder_id,
        )
        validated = TransactionValidator(self._session).validate(proposal, now=now)

        total_value = None
        if request.price_per_share is not None:
            total_value = request.quantity * request.price_per_share

        transaction = Transaction(
            company_id=company_id,
            type=request.type,
            status=initial_status(request.requires_board_approval),
            from_shareholder_id=validated.from_shareholder.id if validated.from_shareholder else None,
            to_shareholder_id=validated.to_shareholder.id if validated.to_shareholder else None,
            share_class_id=validated.share_class.id,
            quantity=request.quantity,
            price_per_share=request.price_per_share,
            total_value=total_value,
            details=details_to_json(details),
            notes=request.notes,
            requires_board_approval=request.requires_board_approval,
            created_by=actor_id,
            created_at=now,
            updated_at=now,
        )
        self._session.add(transaction)
        self._session.commit()

        logger.info(
            "Transaction created",
            extra={
                "company_id": company_id,
                "transaction_id": transaction.id,
                "transaction_type": transaction.type.value,
                "status": transaction.status.value,
            },
        )
        self._audit(transaction, "TRANSACTION_CREATED", actor_id, {"status": transaction.status.value})
        return transaction

    def submit(self, company_id: str, transaction_id: str, *, actor_id: str | None = None) -> Transaction:
        transaction = self.get(company_id, transaction_id)
        current = transaction.status
        ensure_submittable(current)
        target = submit_target(current, transaction.requires_board_approval)
        ensure_transition(current, target)

        transaction.status = target
        transaction.failure_reason = None
        self._commit_transition(current, target)
        self._audit(transaction, "TRANSACTION_SUBMITTED", actor_id, {"from": current.value, "to": target.value})
        return transaction

    def approve(self, company_id: str, transaction_id: str, *, actor_id: str | None = None) -> Transaction:
        transaction = self.get(company_id, transaction_id)
        current = transaction.status
        ensure_approvable(current)
        ensure_transition(current, TransactionStatus.SUBMITTED)

        transaction.status = TransactionStatus.SUBMITTED
        transaction.approved_by = actor_id
        transaction.approved_at = self._clock()
        self._commit_transition(current, TransactionStatus.SUBMITTED)
        self._audit(transaction, "TRANSACTION_APPROVED", actor_id, {"from": current.value})
        return transaction

    def cancel(self, company_id: str, transaction_id: str, *, actor_id: str | None = None) -> Transaction:
        transaction = self.get(company_id, transaction_id)
        current = transaction.status
        ensure_transition(current, TransactionStatus.CANCELLED)

        transaction.status = TransactionStatus.CANCELLED
        transaction.cancelled_by = actor_id
        transaction.cancelled_at = self._clock()
        self._commit_transition(current, TransactionStatus.CANCELLED)
        self._audit(transaction, "TRANSACTION_CANCELLED", actor_id, {"from": current.value})
        return transaction

    def mark_failed(
        self, company_id: str, transaction_id: str, *, reason: str, actor_id: str | None = None
    ) -> Transaction:
        transaction = self.get(company_id, transaction_id)
        current = transaction.status
        ensure_transition(current, TransactionStatus.FAILED)

        transaction.status = TransactionStatus.FAILED
        transaction.failure_reason = reason
        self._commit_transition(current, TransactionStatus.FAILED)
        self._audit(transaction, "TRANSACTION_FAILED", actor_id, {"from": current.value, "reason": reason})
        return transaction

    def confirm(self, company_id: str, transaction_id: str, *, actor_id: str | None = None) -> Transaction:
        """Apply a SUBMITTED transaction to the ledger and mark it CONFIRMED.

        The ledger mutation and the status change commit together or not at
        all. Ownership recalculation and the outbound tasks run afterwards and
        cannot undo the confirmation.
        """

        transaction = self.get(company_id, transaction_id)

        with traced(
            "captable.transaction.confirm",
            company_id=company_id,
            transaction_id=transaction_id,
            transaction_type=transaction.type.value,
        ):
            try:
                with serializable_transaction(self._session):
                    locked = self._session.execute(
                        select(Transaction)
                        .where(Transaction.id == transaction_id)
                        .with_for_update()
                        .execution_options(populate_existing=True)
                    ).scalar_one()
                    ensure_transition(locked.status, TransactionStatus.CONFIRMED)

                    LedgerEngine(self._session, clock=self._clock).apply(locked)

                    locked.status = TransactionStatus.CONFIRMED
                    locked.confirmed_at = self._clock()
                    try:
                        self._session.flush()
                    except StaleDataError as exc:
                        raise invalid_transition(TransactionStatus.SUBMITTED, TransactionStatus.CONFIRMED) from exc
            except CapTableError as exc:
                LEDGER_MUTATION_FAILURES_COUNTER.labels(type=transaction.type.value, code=exc.code).inc()
                logger.warning(
                    "Transaction confirmation rejected",
                    extra={"company_id": company_id, "transaction_id": transaction_id, "code": exc.code},
                )
                raise

        TRANSACTIONS_CONFIRMED_COUNTER.labels(type=locked.type.value).inc()
        logger.info(
            "Transaction confirmed",
            extra={"company_id": company_id, "transaction_id": transaction_id, "transaction_type": locked.type.value},
        )

        self.recalculate_ownership(company_id)
        self._after_confirm(locked, actor_id)
        return locked

    def recalculate_ownership(self, company_id: str) -> RecalculationResult | None:
        calculator = OwnershipCalculator(self._session, tolerance_pct=self._settings.ownership_tolerance_pct)
        try:
            return calculator.recalculate(company_id)
        except Exception:
            self._session.rollback()
            logger.exception("Ownership recalculation failed", extra={"company_id": company_id})
            return None

    # Internals

    def _commit_transition(self, current: TransactionStatus, target: TransactionStatus) -> None:
        try:
            self._session.commit()
        except StaleDataError as exc:
            self._session.rollback()
            raise invalid_transition(current, target) from exc

    def _audit(self, transaction: Transaction, action: str, actor_id: str | None, payload: dict) -> None:
        event = AuditEvent(
            company_id=transaction.company_id,
            action=action,
            resource_type="Transaction",
            resource_id=transaction.id,
            actor_id=actor_id,
            payload={"type": transaction.type.value, "status": transaction.status.value, **payload},
            occurred_at=self._clock(),
        )
        self._task_runner.submit(
            OutboundTask(
                name="audit",
                action=partial(self._audit_sink.record, event),
                context=_task_context(transaction),
            )
        )

    def _auto_snapshot(self, company_id: str, notes: str) -> None:
        with session_scope(self._session_factory) as session:
            SnapshotService(session, clock=self._clock).record_auto_snapshot(company_id, CONFIRMED_TRIGGER, notes)

    def _after_confirm(self, transaction: Transaction, actor_id: str | None) -> None:
        context = _task_context(transaction)
        notes = f"Auto-snapshot after {transaction.type.value} confirmation"
        self._task_runner.submit(
            OutboundTask(
                name="auto_snapshot",
                action=partial(self._auto_snapshot, transaction.company_id, notes),
                context=context,
            )
        )

        event_name = transaction.type.event_name
        audit_event = AuditEvent(
            company_id=transaction.company_id,
            action=event_name,
            resource_type="Transaction",
            resource_id=transaction.id,
            actor_id=actor_id,
            payload={
                "before": {"status": TransactionStatus.SUBMITTED.value, "type": transaction.type.value},
                "after": {"status": TransactionStatus.CONFIRMED.value, "type": transaction.type.value},
                "quantity": format_decimal(transaction.quantity),
            },
            occurred_at=self._clock(),
        )
        self._task_runner.submit(
            OutboundTask(name="audit", action=partial(self._audit_sink.record, audit_event), context=context)
        )

        message = NotificationMessage(
            company_id=transaction.company_id,
            notification_type="TRANSACTION_CONFIRMED",
            subject=f"{transaction.type.value} transaction confirmed",
            event=TransactionEvent.from_transaction(
                transaction=transaction, actor_id=actor_id, occurred_at=self._clock()
            ),
        )
        self._task_runner.submit(
            OutboundTask(name="notification", action=partial(self._notifier.dispatch, message), context=context)
        )


def _task_context(transaction: Transaction) -> dict[str, str]:
    return {"company_id": transaction.company_id, "transaction_id": transaction.id}


__all__ = [
    "CONFIRMED_TRIGGER",
    "TransactionFilters",
    "TransactionRequest",
    "TransactionService",
]
