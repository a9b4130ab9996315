"""
Audit Logger

Every mutation and every failed action is logged. The audit logger:
- Always writes a structured local log line (structlog, JSON)
- Persists to an AuditStorageInterface when one is configured
- Never lets a failing audit sink break the action being audited
- Supports correlation IDs to trace the events of one user action
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from fintrack.models.audit import AuditEvent, AuditEventBuilder, AuditEventType, AuditSeverity
from fintrack.services.backend.interface import AuditStorageInterface


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


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through the stdlib root logger at `level`."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))


_SEVERITY_METHODS = {
    AuditSeverity.DEBUG: "debug",
    AuditSeverity.INFO: "info",
    AuditSeverity.WARNING: "warning",
    AuditSeverity.ERROR: "error",
    AuditSeverity.CRITICAL: "critical",
}


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit storage, when configured
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
        self._logger = structlog.get_logger("fintrack.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        method = getattr(self._logger, _SEVERITY_METHODS[event.severity])
        method("audit_event", **event.to_log_dict())

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Audit persistence must not break the audited action
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_role_saved(
        self,
        created: bool,
        role_id: int,
        group_id: int,
        name: str,
        granted: list[str],
        actor_id: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log role creation or update."""
        build = AuditEventBuilder.role_created if created else AuditEventBuilder.role_updated
        await self.log(build(
            role_id=role_id,
            group_id=group_id,
            name=name,
            granted=granted,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_role_deleted(
        self,
        role_id: int,
        group_id: int,
        name: str,
        actor_id: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.role_deleted(
            role_id=role_id,
            group_id=group_id,
            name=name,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_member_changed(
        self,
        event_type: AuditEventType,
        member_id: int,
        group_id: int,
        user_id: int,
        role_id: Optional[int],
        actor_id: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a membership add, removal, reassignment or departure."""
        await self.log(AuditEventBuilder.member_changed(
            event_type=event_type,
            member_id=member_id,
            group_id=group_id,
            user_id=user_id,
            role_id=role_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_balance_appended(
        self,
        account_id: int,
        amount: str,
        effective_date: str,
        actor_id: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.balance_appended(
            account_id=account_id,
            amount=amount,
            effective_date=effective_date,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_deletion_pending(
        self,
        account_id: int,
        transaction_count: int,
        actor_id: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.deletion_pending(
            account_id=account_id,
            transaction_count=transaction_count,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_account_deleted(
        self,
        account_id: int,
        strategy: str,
        transaction_count: int,
        actor_id: Optional[int],
        target_account_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a completed account deletion (simple, force or move)."""
        await self.log(AuditEventBuilder.account_deleted(
            account_id=account_id,
            strategy=strategy,
            transaction_count=transaction_count,
            actor_id=actor_id,
            target_account_id=target_account_id,
            correlation_id=correlation_id,
        ))

    async def log_session_refreshed(self, user_id: int) -> None:
        await self.log(AuditEventBuilder.session_refreshed(user_id))

    async def log_action_rejected(
        self,
        action: str,
        error_type: str,
        error_message: str,
        actor_id: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a domain error that stopped an action."""
        await self.log(AuditEventBuilder.action_rejected(
            action=action,
            error_type=error_type,
            error_message=error_message,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))

    async def log_network_failure(
        self,
        action: str,
        error_message: str,
        actor_id: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed backend call."""
        await self.log(AuditEventBuilder.network_failure(
            action=action,
            error_message=error_message,
            actor_id=actor_id,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g., a delete request).
    Pass it through all subsequent operations.
    """
    return uuid4()
