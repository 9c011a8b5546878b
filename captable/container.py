"""Process-wide wiring of settings, database and outbound collaborators."""
from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from captable.core.clock import Clock, utcnow
from captable.core.config import Settings
from captable.db.session import build_engine, build_session_factory
from captable.services.analytics import AnalyticsService
from captable.services.audit import AuditSink, DatabaseAuditSink, LoggingAuditSink
from captable.services.cap_table import CapTableService
from captable.services.notifications import NotificationDispatcher, build_dispatcher
from captable.services.option_grants import OptionGrantService
from captable.services.side_effects import InlineTaskRunner, TaskRunner, ThreadPoolTaskRunner
from captable.services.snapshots import SnapshotService
from captable.services.transactions import TransactionService


@dataclass(slots=True)
class Container:
    """Holds the collaborators shared by every request.

    Built once per process by ``build_container``; services are created per
    unit of work from a session plus these shared pieces.
    """

    settings: Settings
    engine: Engine
    session_factory: sessionmaker[Session]
    task_runner: TaskRunner
    audit_sink: AuditSink
    notifier: NotificationDispatcher
    clock: Clock = field(default=utcnow)

    def transaction_service(self, session: Session) -> TransactionService:
        return TransactionService(
            session,
            settings=self.settings,
            clock=self.clock,
            task_runner=self.task_runner,
            audit_sink=self.audit_sink,
            notifier=self.notifier,
            session_factory=self.session_factory,
        )

    def cap_table_service(self, session: Session) -> CapTableService:
        return CapTableService(session, clock=self.clock)

    def snapshot_service(self, session: Session) -> SnapshotService:
        return SnapshotService(session, clock=self.clock)

    def analytics_service(self, session: Session) -> AnalyticsService:
        return AnalyticsService(
            session, clock=self.clock, default_lookback_days=self.settings.dilution_default_lookback_days
        )

    def option_grant_service(self, session: Session) -> OptionGrantService:
        return OptionGrantService(session, clock=self.clock)

    def shutdown(self) -> None:
        self.task_runner.shutdown()
        self.engine.dispose()


def build_task_runner(settings: Settings) -> TaskRunner:
    if settings.task_runner == "inline":
        return InlineTaskRunner(max_attempts=settings.side_effect_max_attempts)
    return ThreadPoolTaskRunner(
        max_workers=settings.side_effect_workers,
        max_attempts=settings.side_effect_max_attempts,
        retry_delay_seconds=settings.side_effect_retry_delay_seconds,
    )


def build_container(settings: Settings, *, engine: Engine | None = None, clock: Clock = utcnow) -> Container:
    engine = engine or build_engine(settings)
    session_factory = build_session_factory(engine)
    audit_sink: AuditSink
    if settings.audit_sink == "logging":
        audit_sink = LoggingAuditSink()
    else:
        audit_sink = DatabaseAuditSink(session_factory)
    return Container(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        task_runner=build_task_runner(settings),
        audit_sink=audit_sink,
        notifier=build_dispatcher(settings),
        clock=clock,
    )


__all__ = ["Container", "build_container", "build_task_runner"]
