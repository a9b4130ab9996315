"""
Audit Models for fintrack

Every mutation a user triggers, and every failure at the edge of an action,
produces one AuditEvent. Events related to one user action share a
correlation ID.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Roles
    ROLE_CREATED = "role_created"
    ROLE_UPDATED = "role_updated"
    ROLE_DELETED = "role_deleted"

    # Members
    MEMBER_ADDED = "member_added"
    MEMBER_REMOVED = "member_removed"
    MEMBER_ROLE_CHANGED = "member_role_changed"
    MEMBER_LEFT = "member_left"

    # Accounts
    BALANCE_APPENDED = "balance_appended"
    ACCOUNT_DELETED = "account_deleted"
    ACCOUNT_DELETION_PENDING = "account_deletion_pending"

    # Session
    SESSION_REFRESHED = "session_refreshed"

    # Failures at the edge of an action
    ACTION_REJECTED = "action_rejected"
    NETWORK_FAILURE = "network_failure"


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
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
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

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'role', 'member', 'account')"
    )
    entity_id: Optional[int] = Field(
        default=None,
        description="Backend ID of the entity this event relates to"
    )
    group_id: Optional[int] = None
    actor_id: Optional[int] = Field(
        default=None,
        description="User who triggered the action"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one delete request)"
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
    error_type: Optional[str] = None
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
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "group_id": self.group_id,
            "actor_id": self.actor_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_type": self.error_type,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.role_created(role_id, group_id, name, actor_id, correlation_id)
        event = AuditEventBuilder.network_failure("delete_account", message, actor_id, correlation_id)
    """

    @staticmethod
    def role_created(
        role_id: int,
        group_id: int,
        name: str,
        granted: list[str],
        actor_id: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROLE_CREATED,
            entity_type="role",
            entity_id=role_id,
            group_id=group_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Role created: {name}",
            details={"name": name, "granted": granted},
        )

    @staticmethod
    def role_updated(
        role_id: int,
        group_id: int,
        name: str,
        granted: list[str],
        actor_id: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROLE_UPDATED,
            entity_type="role",
            entity_id=role_id,
            group_id=group_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Role updated: {name}",
            details={"name": name, "granted": granted},
        )

    @staticmethod
    def role_deleted(
        role_id: int,
        group_id: int,
        name: str,
        actor_id: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROLE_DELETED,
            entity_type="role",
            entity_id=role_id,
            group_id=group_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Role deleted: {name}",
        )

    @staticmethod
    def member_changed(
        event_type: AuditEventType,
        member_id: int,
        group_id: int,
        user_id: int,
        role_id: Optional[int],
        actor_id: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        verb = {
            AuditEventType.MEMBER_ADDED: "added to",
            AuditEventType.MEMBER_REMOVED: "removed from",
            AuditEventType.MEMBER_ROLE_CHANGED: "reassigned in",
            AuditEventType.MEMBER_LEFT: "left",
        }[event_type]
        return AuditEvent(
            event_type=event_type,
            entity_type="member",
            entity_id=member_id,
            group_id=group_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"User {user_id} {verb} group {group_id}",
            details={"user_id": user_id, "role_id": role_id},
        )

    @staticmethod
    def balance_appended(
        account_id: int,
        amount: str,
        effective_date: str,
        actor_id: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCE_APPENDED,
            entity_type="account",
            entity_id=account_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Balance snapshot recorded: {amount} as of {effective_date}",
            details={"amount": amount, "effective_date": effective_date},
        )

    @staticmethod
    def deletion_pending(
        account_id: int,
        transaction_count: int,
        actor_id: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETION_PENDING,
            entity_type="account",
            entity_id=account_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Account has {transaction_count} transaction(s); awaiting resolution",
            details={"transaction_count": transaction_count},
        )

    @staticmethod
    def account_deleted(
        account_id: int,
        strategy: str,
        transaction_count: int,
        actor_id: Optional[int],
        target_account_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCOUNT_DELETED,
            severity=AuditSeverity.WARNING if strategy == "force" else AuditSeverity.INFO,
            entity_type="account",
            entity_id=account_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Account deleted ({strategy})",
            details={
                "strategy": strategy,
                "transaction_count": transaction_count,
                "target_account_id": target_account_id,
            },
        )

    @staticmethod
    def session_refreshed(user_id: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_REFRESHED,
            severity=AuditSeverity.DEBUG,
            entity_type="user",
            entity_id=user_id,
            actor_id=user_id,
            description="Session user refreshed",
        )

    @staticmethod
    def action_rejected(
        action: str,
        error_type: str,
        error_message: str,
        actor_id: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Action rejected: {action}",
            details={"action": action},
            error_type=error_type,
            error_message=error_message,
        )

    @staticmethod
    def network_failure(
        action: str,
        error_message: str,
        actor_id: Optional[int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NETWORK_FAILURE,
            severity=AuditSeverity.ERROR,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Backend call failed: {action}",
            details={"action": action},
            error_type="NetworkFailure",
            error_message=error_message,
        )
