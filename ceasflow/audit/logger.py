"""
Audit Logger

DESIGN DECISION: Every ledger mutation and every import/export run is logged.
This provides:
1. Traceability of what changed
2. Debugging capability when a write or an import fails
3. A record of what a partially failed import left behind

The audit logger:
- Is async so it can share the storage backend's event loop
- Gracefully handles failures (a failed audit write never breaks a mutation)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from ceasflow.config import get_settings
from ceasflow.models.audit import AuditEvent, AuditEventBuilder
from ceasflow.services.storage import AuditStorageInterface


logging.basicConfig(
    format="%(message)s",
    level=getattr(logging, get_settings().app.log_level, logging.INFO),
)

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
        structlog.processors.JSONRenderer(ensure_ascii=False)
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_persistence_failed(
        self,
        entity_type: str,
        entity_id: Optional[str],
        operation: str,
        error_message: str,
    ) -> None:
        """Log a storage write that did not land."""
        event = AuditEventBuilder.persistence_failed(
            entity_type=entity_type,
            entity_id=entity_id,
            operation=operation,
            error_message=error_message,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Newest events from the audit store, or [] when there is none."""
        if not self._storage:
            return []
        return await self._storage.get_recent_events(limit=limit)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-step operation (e.g., an import)
    and pass it through all subsequent events.
    """
    return uuid4()
