"""
Audit Logger

DESIGN DECISION: Every significant action of the sync layer is logged.
This provides:
1. A record of every write and its invalidation side effects
2. Visibility into retried, failed and discarded reads
3. The "explicitly logged" path for failed mutations that the UI
   chooses not to show

The audit logger:
- Is synchronous; it only writes to the local structured log
- Never raises into the caller's flow
- Supports correlation IDs to tie a mutation to its invalidations
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from spendsync.models.audit import AuditEvent, AuditEventBuilder, AuditEventType, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Keeps the most recent events in memory (bounded) so that callers and
    tests can inspect what happened without parsing log output.
    """

    def __init__(self, history_size: int = 200):
        self._logger = structlog.get_logger("spendsync")
        self._history: list[AuditEvent] = []
        self._history_size = history_size

    @property
    def history(self) -> list[AuditEvent]:
        return list(self._history)

    def events_of(self, event_type: AuditEventType) -> list[AuditEvent]:
        return [e for e in self._history if e.event_type == event_type]

    def log(self, event: AuditEvent) -> None:
        """
        Log an audit event.
        """
        self._history.append(event)
        if len(self._history) > self._history_size:
            del self._history[0]

        log_dict = event.to_log_dict()
        if event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    def log_fetch_succeeded(self, key_label: str, domain: str, attempts: int) -> None:
        self.log(AuditEventBuilder.fetch_succeeded(key_label, domain, attempts))

    def log_fetch_retried(self, key_label: str, domain: str, attempt: int, error: BaseException) -> None:
        self.log(AuditEventBuilder.fetch_retried(key_label, domain, attempt, error))

    def log_fetch_failed(self, key_label: str, domain: str, error: BaseException, kept_data: bool) -> None:
        self.log(AuditEventBuilder.fetch_failed(key_label, domain, error, kept_data))

    def log_fetch_discarded(self, key_label: str, domain: str) -> None:
        self.log(AuditEventBuilder.fetch_discarded(key_label, domain))

    def log_read_unscoped(self, domain: str, operation: str) -> None:
        self.log(AuditEventBuilder.read_unscoped(domain, operation))

    def log_cache_changed(
        self,
        event_type: AuditEventType,
        keys: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        if keys:
            self.log(AuditEventBuilder.cache_changed(event_type, keys, correlation_id))

    def log_mutation_succeeded(
        self,
        domain: str,
        description: str,
        entity_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.mutation_succeeded(domain, description, entity_id, correlation_id))

    def log_mutation_failed(
        self,
        domain: str,
        description: str,
        entity_id: Optional[str],
        error: BaseException,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.mutation_failed(domain, description, entity_id, error, correlation_id))

    def log_mutation_rejected_locally(self, domain: str, description: str, fields: list[str]) -> None:
        self.log(AuditEventBuilder.mutation_rejected_locally(domain, description, fields))

    def log_scope_changed(self, previous: Optional[str], current: Optional[str]) -> None:
        self.log(AuditEventBuilder.scope_changed(previous, current))

    def log_state_load_failed(self, namespace: str, error: BaseException) -> None:
        self.log(AuditEventBuilder.state_load_failed(namespace, error))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a mutation. Pass it through the
    invalidation that follows.
    """
    return uuid4()
