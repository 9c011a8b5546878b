"""Notification dispatch for confirmed transactions."""
from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime
from threading import Lock
from typing import Protocol
from uuid import uuid4

import httpx
from kafka import KafkaProducer
from pydantic import BaseModel

from captable.core.clock import utcnow
from captable.core.config import Settings
from captable.core.decimals import format_decimal
from captable.models import Transaction

logger = logging.getLogger(__name__)


class NotificationDeliveryError(RuntimeError):
    """Raised when a notification backend rejects or fails a delivery."""


class TransactionEvent(BaseModel):
    """Serializable representation of a confirmed ledger change."""

    event_id: str
    event_type: str
    transaction_id: str
    company_id: str
    type: str
    status: str
    share_class_id: str
    from_shareholder_id: str | None
    to_shareholder_id: str | None
    quantity: str
    actor_id: str | None
    occurred_at: datetime

    @classmethod
    def from_transaction(
        cls,
        *,
        transaction: Transaction,
        actor_id: str | None = None,
        occurred_at: datetime | None = None,
    ) -> "TransactionEvent":
        return cls(
            event_id=uuid4().hex,
            event_type=transaction.type.event_name,
            transaction_id=transaction.id,
            company_id=transaction.company_id,
            type=transaction.type.value,
            status=transaction.status.value,
            share_class_id=transaction.share_class_id,
            from_shareholder_id=transaction.from_shareholder_id,
            to_shareholder_id=transaction.to_shareholder_id,
            quantity=format_decimal(transaction.quantity) or "0",
            actor_id=actor_id,
            occurred_at=occurred_at or utcnow(),
        )


class NotificationMessage(BaseModel):
    company_id: str
    notification_type: str
    subject: str
    event: TransactionEvent


class NotificationDispatcher(Protocol):
    def dispatch(self, message: NotificationMessage) -> None:
        """Deliver ``message``; raising signals the caller to retry."""


class InMemoryNotificationQueue:
    """Thread-safe in-memory queue used for tests and local development."""

    def __init__(self) -> None:
        self._messages: list[NotificationMessage] = []
        self._lock = Lock()

    def dispatch(self, message: NotificationMessage) -> None:
        with self._lock:
            self._messages.append(message)

    def list_messages(self) -> list[NotificationMessage]:
        with self._lock:
            return list(self._messages)

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()


class KafkaNotificationPublisher:
    """Publishes transaction events to Kafka."""

    def __init__(
        self,
        *,
        settings: Settings,
        producer_factory: Callable[[], KafkaProducer] | None = None,
    ) -> None:
        self._settings = settings
        self._producer_factory = producer_factory or self._default_factory
        self._producer: KafkaProducer | None = None
        self._lock = Lock()

    def _default_factory(self) -> KafkaProducer:
        return KafkaProducer(
            bootstrap_servers=self._settings.kafka_bootstrap_servers.split(","),
            value_serializer=lambda value: json.dumps(value).encode("utf-8"),
        )

    def _get_producer(self) -> KafkaProducer:
        with self._lock:
            if self._producer is None:
                self._producer = self._producer_factory()
            return self._producer

    def dispatch(self, message: NotificationMessage) -> None:
        payload = message.event.model_dump(mode="json")
        producer = self._get_producer()
        logger.debug(
            "publishing transaction event",
            extra={"transaction_id": message.event.transaction_id, "event_type": message.event.event_type},
        )
        producer.send(
            self._settings.transaction_events_topic,
            key=message.company_id.encode("utf-8"),
            value=payload,
        )
        producer.flush()


class WebhookNotificationDispatcher:
    """POSTs notifications to an HTTP endpoint."""

    def __init__(self, *, endpoint: str, timeout_seconds: float, client: httpx.Client | None = None) -> None:
        self._endpoint = endpoint
        self._timeout = timeout_seconds
        self._client = client

    def dispatch(self, message: NotificationMessage) -> None:
        body = message.model_dump(mode="json")
        try:
            if self._client is not None:
                response = self._client.post(self._endpoint, json=body, timeout=self._timeout)
            else:
                response = httpx.post(self._endpoint, json=body, timeout=self._timeout)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NotificationDeliveryError(f"Failed to deliver notification to {self._endpoint}") from exc


def build_dispatcher(settings: Settings) -> NotificationDispatcher:
    if settings.notification_backend == "kafka":
        return KafkaNotificationPublisher(settings=settings)
    if settings.notification_backend == "webhook":
        return WebhookNotificationDispatcher(
            endpoint=settings.notification_webhook_url,
            timeout_seconds=settings.notification_webhook_timeout_seconds,
        )
    return InMemoryNotificationQueue()


__all__ = [
    "InMemoryNotificationQueue",
    "KafkaNotificationPublisher",
    "NotificationDeliveryError",
    "NotificationDispatcher",
    "NotificationMessage",
    "TransactionEvent",
    "WebhookNotificationDispatcher",
    "build_dispatcher",
]
