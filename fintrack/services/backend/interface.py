"""
Abstract Backend Interface

DESIGN DECISION: Every call the core makes to the finance backend goes
through these interfaces. Business logic only sees the interface, so the
REST client and the in-memory backend are interchangeable.

The interfaces mirror the backend's request/response contract one method
per endpoint. The one composite is move_and_delete, which implementations
must apply atomically or not at all.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fintrack.errors import FinTrackError
from fintrack.models.account import Account, AccountBalance
from fintrack.models.audit import AuditEvent
from fintrack.models.group import Group, GroupMember, GroupRole, RoleDraft, User


class UserBackendInterface(ABC):
    """Identity of the caller."""

    @abstractmethod
    async def get_current_user(self) -> User:
        """
        Fetch the authenticated user (GET /users/me).

        Raises:
            NetworkFailure: If the call fails
        """
        pass


class GroupBackendInterface(ABC):
    """
    Groups, their members and their roles.

    Any implementation (REST, in-memory) must implement these methods.
    """

    @abstractmethod
    async def get_group(self, group_id: int) -> Group:
        """
        Fetch a group.

        Raises:
            NotFoundError: If the group doesn't exist
        """
        pass

    @abstractmethod
    async def update_group(
        self,
        group_id: int,
        name: str,
        description: Optional[str] = None,
    ) -> Group:
        """Rename or re-describe a group."""
        pass

    @abstractmethod
    async def delete_group(self, group_id: int) -> None:
        """Delete a group together with its roles and members."""
        pass

    @abstractmethod
    async def leave_group(self, group_id: int) -> None:
        """Remove the calling user's membership."""
        pass

    @abstractmethod
    async def list_members(self, group_id: int) -> list[GroupMember]:
        """
        List the members of a group (GET /groups/{id}/members).

        Returns:
            Members, each with its embedded user summary and role when
            the backend provides them
        """
        pass

    @abstractmethod
    async def add_member(self, group_id: int, user_id: int, role_id: int) -> GroupMember:
        """
        Add a user to a group with a role (POST /groups/{id}/members).

        Raises:
            DuplicateMember: If the user already belongs to the group
        """
        pass

    @abstractmethod
    async def remove_member(self, group_id: int, member_id: int) -> None:
        """Remove a membership (DELETE /groups/{id}/members/{memberId})."""
        pass

    @abstractmethod
    async def update_member_role(
        self,
        group_id: int,
        member_id: int,
        role_id: int,
    ) -> GroupMember:
        """Reassign a member's role (PATCH /groups/{id}/members/{memberId})."""
        pass

    @abstractmethod
    async def list_roles(self, group_id: int) -> list[GroupRole]:
        """List the roles of a group (GET /groups/{id}/roles)."""
        pass

    @abstractmethod
    async def create_role(self, group_id: int, draft: RoleDraft) -> GroupRole:
        """Create a role (POST /groups/{id}/roles)."""
        pass

    @abstractmethod
    async def update_role(self, group_id: int, role_id: int, draft: RoleDraft) -> GroupRole:
        """Replace a role's name, description and flags (PATCH /groups/{id}/roles/{roleId})."""
        pass

    @abstractmethod
    async def delete_role(self, group_id: int, role_id: int) -> None:
        """
        Delete a role (DELETE /groups/{id}/roles/{roleId}).

        Raises:
            InUseByMembers: If members are still assigned to the role
        """
        pass


class AccountBackendInterface(ABC):
    """Accounts, their balance ledger, and transaction references."""

    @abstractmethod
    async def list_accounts(self, group_id: Optional[int] = None) -> list[Account]:
        """List accounts, optionally scoped to a group (GET /accounts?groupId=)."""
        pass

    @abstractmethod
    async def get_current_balance(self, account_id: int) -> Optional[AccountBalance]:
        """
        Fetch the current balance snapshot (GET /accounts/{id}/balance).

        Returns:
            The snapshot with the latest effective date, or None when the
            account has no snapshots
        """
        pass

    @abstractmethod
    async def add_balance(
        self,
        account_id: int,
        amount: Decimal,
        effective_date: datetime,
    ) -> AccountBalance:
        """Append a balance snapshot (POST /accounts/{id}/balances)."""
        pass

    @abstractmethod
    async def count_transactions(self, account_id: int) -> int:
        """Count transactions referencing the account (GET /accounts/{id}/transactions/count)."""
        pass

    @abstractmethod
    async def delete_account(self, account_id: int, force: bool = False) -> None:
        """
        Delete an account and its balance ledger (DELETE /accounts/{id}).

        With force=True, referencing transactions are deleted as well.
        """
        pass

    @abstractmethod
    async def move_transactions(self, source_account_id: int, target_account_id: int) -> int:
        """
        Reassign every transaction reference from source to target
        (POST /accounts/{id}/transactions/move).

        Returns:
            Number of transactions moved, when the backend reports it
        """
        pass

    async def move_and_delete(self, source_account_id: int, target_account_id: int) -> int:
        """
        Move all transactions to the target, then delete the source.

        The default runs the two backend calls in order. A failure of the
        delete leaves the source account in place with no transactions, so
        repeating the request is safe. Backends that can do better override
        this with a single atomic operation.
        """
        moved = await self.move_transactions(source_account_id, target_account_id)
        await self.delete_account(source_account_id, force=True)
        return moved


class BackendInterface(UserBackendInterface, GroupBackendInterface, AccountBackendInterface):
    """The whole backend contract, as the flows use it."""


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class BackendError(FinTrackError):
    """Base exception for backend operations."""

    user_message = "The server could not complete the request"


class NetworkFailure(BackendError):
    """Any failed call to the backend: connection, timeout, or error status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        server_message: Optional[str] = None,
    ):
        self.status_code = status_code
        self.server_message = server_message
        super().__init__(message)

    @property
    def notice_text(self) -> str:
        # The backend's own message is what the user should read, when present
        return self.server_message or self.user_message


class NotFoundError(BackendError):
    """Entity not found in the backend."""
    pass
