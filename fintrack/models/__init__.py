"""
Data Models Package

This package contains all Pydantic models used in fintrack.
All data exchanged with the backend must conform to these schemas.
"""

from fintrack.models.permissions import (
    PERMISSION_MATRIX,
    Capability,
    CapabilityGroup,
    PermissionSet,
    capabilities_in,
)
from fintrack.models.group import (
    BuiltInRole,
    Group,
    GroupMember,
    GroupRole,
    MemberUser,
    RoleDraft,
    User,
    WireModel,
)
from fintrack.models.account import (
    Account,
    AccountBalance,
    AccountType,
    BudgetMonthBasis,
    DebitMethod,
    Transaction,
    TransactionType,
    latest_snapshot,
)
from fintrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from fintrack.models.notice import (
    ActionResult,
    Notice,
    NoticeLevel,
)

__all__ = [
    # Permission matrix
    "PERMISSION_MATRIX",
    "Capability",
    "CapabilityGroup",
    "PermissionSet",
    "capabilities_in",
    # Group models
    "BuiltInRole",
    "Group",
    "GroupMember",
    "GroupRole",
    "MemberUser",
    "RoleDraft",
    "User",
    "WireModel",
    # Account models
    "Account",
    "AccountBalance",
    "AccountType",
    "BudgetMonthBasis",
    "DebitMethod",
    "Transaction",
    "TransactionType",
    "latest_snapshot",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Notices
    "ActionResult",
    "Notice",
    "NoticeLevel",
]
