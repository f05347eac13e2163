"""
Audit Models for CeasFlow

Every ledger mutation and every import/export run is recorded as an
audit event. This provides:
1. Traceability of what changed and when
2. Debugging information when persistence or an import fails
3. A way to see which wallets a partially failed import left behind

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Categories
    CATEGORIES_SEEDED = "categories_seeded"
    CATEGORY_ADDED = "category_added"
    CATEGORY_DELETED = "category_deleted"
    CATEGORIES_REORDERED = "categories_reordered"
    CATEGORY_NOTE_ADDED = "category_note_added"
    CATEGORY_NOTE_REMOVED = "category_note_removed"

    # Wallets
    WALLET_CREATED = "wallet_created"

    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Spreadsheet round-trip
    IMPORT_STARTED = "import_started"
    IMPORT_COMPLETED = "import_completed"
    IMPORT_FAILED = "import_failed"
    EXPORT_COMPLETED = "export_completed"
    EXPORT_FAILED = "export_failed"

    # System events
    PERSISTENCE_FAILED = "persistence_failed"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the event occurred (local time)"
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

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'category', 'wallet', 'transaction')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one import)"
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

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.wallet_created(wallet_id, name)
        event = AuditEventBuilder.import_completed(2, 130, correlation_id)
    """

    @staticmethod
    def categories_seeded(count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORIES_SEEDED,
            entity_type="category",
            description=f"Seeded {count} default categories",
            details={"count": count},
        )

    @staticmethod
    def category_added(category_id: str, name: str, category_type: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_ADDED,
            entity_type="category",
            entity_id=category_id,
            description=f"Category added: {name}",
            details={"name": name, "type": category_type},
            is_user_action=True,
        )

    @staticmethod
    def category_deleted(category_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETED,
            entity_type="category",
            entity_id=category_id,
            description=f"Category deleted: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def categories_reordered(category_type: str, order: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORIES_REORDERED,
            entity_type="category",
            description=f"Reordered {len(order)} {category_type} categories",
            details={"type": category_type, "order": order},
            is_user_action=True,
        )

    @staticmethod
    def category_note_changed(category_id: str, note: str, added: bool) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.CATEGORY_NOTE_ADDED
                if added
                else AuditEventType.CATEGORY_NOTE_REMOVED
            ),
            severity=AuditSeverity.DEBUG,
            entity_type="category",
            entity_id=category_id,
            description="Category note added" if added else "Category note removed",
            details={"note": note},
        )

    @staticmethod
    def wallet_created(
        wallet_id: UUID,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WALLET_CREATED,
            entity_type="wallet",
            entity_id=str(wallet_id),
            correlation_id=correlation_id,
            description=f"Wallet created: {name}",
            details={"name": name},
            is_user_action=correlation_id is None,
        )

    @staticmethod
    def transaction_changed(
        event_type: AuditEventType,
        transaction_id: UUID,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        verb = event_type.value.split("_", 1)[1]
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.DEBUG,
            entity_type="transaction",
            entity_id=str(transaction_id),
            description=f"Transaction {verb}",
            details=details or {},
        )

    @staticmethod
    def import_started(correlation_id: UUID, source: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_STARTED,
            entity_type="workbook",
            correlation_id=correlation_id,
            description=f"Workbook import started: {source}",
            details={"source": source},
            is_user_action=True,
        )

    @staticmethod
    def import_completed(
        wallets_created: int,
        transactions_imported: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMPLETED,
            entity_type="workbook",
            correlation_id=correlation_id,
            description=(
                f"Workbook imported: {wallets_created} wallets, "
                f"{transactions_imported} transactions"
            ),
            details={
                "wallets_created": wallets_created,
                "transactions_imported": transactions_imported,
            },
        )

    @staticmethod
    def operation_failed(
        event_type: AuditEventType,
        error_message: str,
        correlation_id: Optional[UUID] = None,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.ERROR,
            entity_type="workbook",
            correlation_id=correlation_id,
            description=f"{event_type.value.replace('_', ' ').capitalize()}",
            error_message=error_message,
            details=details or {},
        )

    @staticmethod
    def export_completed(filename: str, sheet_count: int, transaction_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_COMPLETED,
            entity_type="workbook",
            description=f"Workbook exported: {filename}",
            details={
                "filename": filename,
                "sheet_count": sheet_count,
                "transaction_count": transaction_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def persistence_failed(
        entity_type: str,
        entity_id: Optional[str],
        operation: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"Failed to persist {operation} of {entity_type}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
