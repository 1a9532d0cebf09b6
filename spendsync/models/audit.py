"""
Audit Models for SpendSync

Every significant action of the sync layer is logged for audit purposes.
This provides:
1. Traceability of every write sent to the server
2. Debugging information for stale or discarded cache data
3. A record of failed mutations that were not shown to the user

DESIGN DECISION: Audit events are append-only log records. They are never
read back by the sync layer itself.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Reads
    FETCH_SUCCEEDED = "fetch_succeeded"
    FETCH_RETRIED = "fetch_retried"
    FETCH_FAILED = "fetch_failed"
    FETCH_DISCARDED = "fetch_discarded"
    READ_UNSCOPED = "read_unscoped"

    # Cache maintenance
    CACHE_INVALIDATED = "cache_invalidated"
    CACHE_PATCHED = "cache_patched"
    CACHE_EVICTED = "cache_evicted"
    CACHE_COLLECTED = "cache_collected"

    # Writes
    MUTATION_SUCCEEDED = "mutation_succeeded"
    MUTATION_FAILED = "mutation_failed"
    MUTATION_REJECTED_LOCALLY = "mutation_rejected_locally"

    # Local state
    SCOPE_CHANGED = "scope_changed"
    STATE_LOAD_FAILED = "state_load_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what is this about?
    domain: Optional[str] = Field(
        default=None,
        description="Resource domain (accounts, transactions, ...)"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Entity or query key the event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g. one mutation and its invalidations)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "domain": self.domain,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.fetch_failed(key, error)
        event = AuditEventBuilder.mutation_succeeded(mutation, correlation_id)
    """

    @staticmethod
    def fetch_succeeded(key_label: str, domain: str, attempts: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FETCH_SUCCEEDED,
            severity=AuditSeverity.DEBUG,
            domain=domain,
            entity_id=key_label,
            description=f"Fetched {key_label}",
            details={"attempts": attempts},
        )

    @staticmethod
    def fetch_retried(key_label: str, domain: str, attempt: int, error: BaseException) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FETCH_RETRIED,
            severity=AuditSeverity.WARNING,
            domain=domain,
            entity_id=key_label,
            description=f"Read attempt {attempt} failed for {key_label}, retrying",
            error_code=getattr(error, "code", None),
            error_message=str(error),
        )

    @staticmethod
    def fetch_failed(key_label: str, domain: str, error: BaseException, kept_data: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FETCH_FAILED,
            severity=AuditSeverity.WARNING,
            domain=domain,
            entity_id=key_label,
            description=f"Read failed for {key_label}",
            details={"kept_last_good_data": kept_data},
            error_code=getattr(error, "code", None),
            error_message=str(error),
        )

    @staticmethod
    def fetch_discarded(key_label: str, domain: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FETCH_DISCARDED,
            severity=AuditSeverity.DEBUG,
            domain=domain,
            entity_id=key_label,
            description=f"Discarded response for superseded {key_label}",
        )

    @staticmethod
    def read_unscoped(domain: str, operation: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.READ_UNSCOPED,
            severity=AuditSeverity.DEBUG,
            domain=domain,
            description=f"Skipped {domain}/{operation}: no active account",
        )

    @staticmethod
    def cache_changed(
        event_type: AuditEventType,
        keys: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.DEBUG,
            correlation_id=correlation_id,
            description=f"{event_type.value.replace('_', ' ').capitalize()}: {len(keys)} entries",
            details={"keys": keys},
        )

    @staticmethod
    def mutation_succeeded(
        domain: str,
        description: str,
        entity_id: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_SUCCEEDED,
            domain=domain,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Mutation succeeded: {description}",
        )

    @staticmethod
    def mutation_failed(
        domain: str,
        description: str,
        entity_id: Optional[str],
        error: BaseException,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_FAILED,
            severity=AuditSeverity.ERROR,
            domain=domain,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Mutation failed: {description}",
            details=error.to_log_dict() if hasattr(error, "to_log_dict") else {},
            error_code=getattr(error, "code", type(error).__name__),
            error_message=str(error),
        )

    @staticmethod
    def mutation_rejected_locally(domain: str, description: str, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_REJECTED_LOCALLY,
            severity=AuditSeverity.WARNING,
            domain=domain,
            description=f"Mutation rejected before sending: {description}",
            details={"fields": fields},
        )

    @staticmethod
    def scope_changed(previous: Optional[str], current: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SCOPE_CHANGED,
            domain="accounts",
            entity_id=current,
            description="Active account changed",
            details={"previous": previous, "current": current},
        )

    @staticmethod
    def state_load_failed(namespace: str, error: BaseException) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATE_LOAD_FAILED,
            severity=AuditSeverity.WARNING,
            entity_id=namespace,
            description=f"Persisted state '{namespace}' unreadable, using defaults",
            error_message=str(error),
        )
