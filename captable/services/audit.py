"""Audit sinks recording who changed what."""
from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.orm import Session

from captable.core.clock import utcnow
from captable.db.session import session_scope
from captable.models import AuditLog

audit_logger = logging.getLogger("audit")


@dataclass(slots=True, frozen=True)
class AuditEvent:
    company_id: str
    action: str
    resource_type: str
    resource_id: str | None
    actor_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=utcnow)


class AuditSink(Protocol):
    def record(self, event: AuditEvent) -> None:
        """Persist ``event``; raising signals the caller to retry."""


class DatabaseAuditSink:
    """Writes audit events as ``AuditLog`` rows in a dedicated session."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def record(self, event: AuditEvent) -> None:
        with session_scope(self._session_factory) as session:
            session.add(
                AuditLog(
                    company_id=event.company_id,
                    actor_id=event.actor_id,
                    action=event.action,
                    resource_type=event.resource_type,
                    resource_id=event.resource_id,
                    payload=event.payload,
                )
            )


class LoggingAuditSink:
    """Emits audit events as JSON lines on the ``audit`` logger."""

    def record(self, event: AuditEvent) -> None:
        payload = asdict(event)
        payload["occurred_at"] = event.occurred_at.isoformat()
        audit_logger.info(json.dumps(payload, separators=(",", ":"), sort_keys=True, default=str))


__all__ = ["AuditEvent", "AuditSink", "DatabaseAuditSink", "LoggingAuditSink"]
