"""
Main Orchestrator for FinTrack

This module ties the services together and defines the user-facing flows:
1. Group settings (members, roles, group details)
2. Accounts (balances, credit cycles, deletion)

DESIGN DECISION: The flows are the edge of every user action:
- Services raise; flows catch FinTrackError and turn it into a Notice
- A second submission of an action still in flight is refused
- After a successful mutation the affected view is re-read
- Every mutation and every failure is audited
"""

from collections.abc import Awaitable, Callable
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from fintrack.access import (
    GroupAffordances,
    MemberStore,
    MembershipResolver,
    RoleStore,
    can_edit_account,
    effective_permissions,
)
from fintrack.accounts import (
    AccountBalanceLedger,
    AccountDeletion,
    AccountLifecycleCoordinator,
    CreditCycle,
    DeletionState,
    cycle_for_account,
    is_in_closing_period,
)
from fintrack.audit import AuditLogger, configure_logging, create_correlation_id
from fintrack.config import get_settings
from fintrack.errors import FinTrackError, NotAMember, PermissionDenied, ValidationError
from fintrack.models.account import Account, AccountBalance, AccountType
from fintrack.models.audit import AuditEventType
from fintrack.models.group import Group, GroupMember, GroupRole
from fintrack.models.notice import ActionResult, Notice
from fintrack.models.permissions import Capability, CapabilityGroup, PermissionSet, capabilities_in
from fintrack.services.backend import (
    BackendInterface,
    InMemoryAuditStorage,
    InMemoryBackend,
    NetworkFailure,
    RestBackendClient,
)
from fintrack.session import SessionContext


# =============================================================================
# VIEW MODELS
# =============================================================================

class GroupSettingsView(BaseModel):
    """Everything the group settings screen renders."""

    group: Group
    members: list[GroupMember]
    roles: list[GroupRole]
    permissions: PermissionSet
    affordances: GroupAffordances


class RoleForm(BaseModel):
    """
    The role editor's state.

    `editing` is None while creating a new role.
    """

    editing: Optional[GroupRole] = None
    name: str = ""
    description: str = ""
    permissions: PermissionSet = Field(default_factory=PermissionSet.none)

    @classmethod
    def for_role(cls, role: GroupRole) -> "RoleForm":
        return cls(
            editing=role,
            name=role.name,
            description=role.description or "",
            permissions=role.permissions,
        )

    def toggle(self, capability: Capability) -> "RoleForm":
        if self.permissions.allows(capability):
            permissions = self.permissions.without(capability)
        else:
            permissions = self.permissions.with_granted(capability)
        return self.model_copy(update={"permissions": permissions})

    def set_section(self, section: CapabilityGroup, granted: bool) -> "RoleForm":
        """Grant or revoke every capability of one section."""
        capabilities = capabilities_in(section)
        if granted:
            permissions = self.permissions.with_granted(*capabilities)
        else:
            permissions = self.permissions.without(*capabilities)
        return self.model_copy(update={"permissions": permissions})


class AccountRow(BaseModel):
    """One account as listed, with its balance and credit cycle."""

    account: Account
    balance: Optional[AccountBalance] = None
    cycle: Optional[CreditCycle] = None
    in_closing_period: bool = False
    can_edit: bool = False

    @property
    def amount(self) -> Decimal:
        return self.balance.amount if self.balance else Decimal("0")


class AccountsView(BaseModel):
    rows: list[AccountRow]
    totals: dict[AccountType, Decimal]


# =============================================================================
# FLOW BASE
# =============================================================================

class _ActionFlow:
    """
    Runs user actions: in-flight guard, error-to-notice conversion, audit.
    """

    def __init__(self, session: SessionContext, audit_logger: Optional[AuditLogger]):
        self._session = session
        self._audit_logger = audit_logger
        self._in_flight: set[str] = set()
        self._logger = structlog.get_logger(__name__)

    def is_busy(self, action_key: str) -> bool:
        return action_key in self._in_flight

    @property
    def _actor_id(self) -> Optional[int]:
        return self._session.user_id if self._session.is_authenticated else None

    async def _run(
        self,
        action_key: str,
        action: str,
        work: Callable[[UUID], Awaitable[Any]],
        success_message: Optional[str] = None,
    ) -> ActionResult:
        """
        Run `work` once for `action_key`.

        Returns a failed ActionResult with a warning if the same action is
        already running, or with an error notice if `work` raised.
        """
        if action_key in self._in_flight:
            self._logger.info("action_in_flight", action=action, action_key=action_key)
            return ActionResult.failed(
                Notice.warning("This action is already in progress"),
                error_type="ActionInFlight",
            )

        correlation_id = create_correlation_id()
        self._in_flight.add(action_key)
        try:
            data = await work(correlation_id)
        except NetworkFailure as e:
            self._logger.error(
                "action_failed",
                action=action,
                status_code=e.status_code,
                error=str(e),
                correlation_id=str(correlation_id),
            )
            if self._audit_logger:
                await self._audit_logger.log_network_failure(
                    action=action,
                    error_message=str(e),
                    actor_id=self._actor_id,
                    correlation_id=correlation_id,
                )
            return ActionResult.failed(Notice.error(e.notice_text), type(e).__name__)
        except FinTrackError as e:
            self._logger.warning(
                "action_rejected",
                action=action,
                error_type=type(e).__name__,
                error=str(e),
                correlation_id=str(correlation_id),
            )
            if self._audit_logger:
                await self._audit_logger.log_action_rejected(
                    action=action,
                    error_type=type(e).__name__,
                    error_message=str(e),
                    actor_id=self._actor_id,
                    correlation_id=correlation_id,
                )
            return ActionResult.failed(Notice.error(e.notice_text), type(e).__name__)
        finally:
            self._in_flight.discard(action_key)

        return ActionResult.succeeded(data, success_message)


# =============================================================================
# GROUP SETTINGS
# =============================================================================

class GroupSettingsFlow(_ActionFlow):
    """
    Orchestrates the group settings screen.

    The loaded view lives in `self.view` and is re-read after each
    successful mutation.
    """

    def __init__(
        self,
        backend: BackendInterface,
        session: SessionContext,
        audit_logger: Optional[AuditLogger] = None,
        resolver: Optional[MembershipResolver] = None,
        role_store: Optional[RoleStore] = None,
        member_store: Optional[MemberStore] = None,
    ):
        super().__init__(session, audit_logger)
        self._backend = backend
        self._resolver = resolver or MembershipResolver(backend)
        self._roles = role_store or RoleStore(backend, session, self._resolver)
        self._members = member_store or MemberStore(backend, session, self._resolver)
        self.view: Optional[GroupSettingsView] = None

    async def _read_view(self, group_id: int) -> GroupSettingsView:
        group = await self._backend.get_group(group_id)
        members = await self._backend.list_members(group_id)
        roles = await self._backend.list_roles(group_id)
        user_id = self._session.user_id
        permissions = effective_permissions(user_id, group, members, roles)
        self.view = GroupSettingsView(
            group=group,
            members=members,
            roles=roles,
            permissions=permissions,
            affordances=GroupAffordances.for_user(user_id, group, permissions),
        )
        return self.view

    async def load(self, group_id: int) -> ActionResult:
        """Load the group, its members and roles, and what the user may do."""
        async def work(correlation_id: UUID) -> GroupSettingsView:
            return await self._read_view(group_id)

        return await self._run(f"load:{group_id}", "load_group_settings", work)

    async def save_role(self, group: Group, form: RoleForm) -> ActionResult:
        """Create a role, or update `form.editing` when set."""
        created = form.editing is None

        async def work(correlation_id: UUID) -> GroupRole:
            if created:
                role = await self._roles.create(group, form.name, form.description, form.permissions)
            else:
                role = await self._roles.update(
                    group, form.editing, form.name, form.description, form.permissions
                )
            if self._audit_logger:
                await self._audit_logger.log_role_saved(
                    created=created,
                    role_id=role.id,
                    group_id=group.id,
                    name=role.name,
                    granted=[c.value for c in role.permissions.ordered()],
                    actor_id=self._actor_id,
                    correlation_id=correlation_id,
                )
            await self._read_view(group.id)
            return role

        message = "Role created" if created else "Role updated"
        return await self._run(f"role:{group.id}", "save_role", work, message)

    async def delete_role(self, group: Group, role: GroupRole) -> ActionResult:
        async def work(correlation_id: UUID) -> None:
            await self._roles.delete(group, role)
            if self._audit_logger:
                await self._audit_logger.log_role_deleted(
                    role_id=role.id,
                    group_id=group.id,
                    name=role.name,
                    actor_id=self._actor_id,
                    correlation_id=correlation_id,
                )
            await self._read_view(group.id)

        return await self._run(f"role:{group.id}", "delete_role", work, "Role deleted")

    async def _audit_member(
        self,
        event_type: AuditEventType,
        member: GroupMember,
        role_id: Optional[int],
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_member_changed(
                event_type=event_type,
                member_id=member.id,
                group_id=member.group_id,
                user_id=member.user_id,
                role_id=role_id,
                actor_id=self._actor_id,
                correlation_id=correlation_id,
            )

    async def invite_member(self, group: Group, user_id: int, role_id: int) -> ActionResult:
        async def work(correlation_id: UUID) -> GroupMember:
            member = await self._members.add(group, user_id, role_id)
            await self._audit_member(AuditEventType.MEMBER_ADDED, member, role_id, correlation_id)
            await self._read_view(group.id)
            return member

        return await self._run(f"member:{group.id}", "invite_member", work, "Member added")

    async def remove_member(self, group: Group, member: GroupMember) -> ActionResult:
        async def work(correlation_id: UUID) -> None:
            await self._members.remove(group, member)
            await self._audit_member(AuditEventType.MEMBER_REMOVED, member, None, correlation_id)
            await self._read_view(group.id)

        return await self._run(f"member:{group.id}", "remove_member", work, "Member removed")

    async def change_member_role(
        self,
        group: Group,
        member: GroupMember,
        role_id: int,
    ) -> ActionResult:
        async def work(correlation_id: UUID) -> GroupMember:
            updated = await self._members.change_role(group, member, role_id)
            await self._audit_member(
                AuditEventType.MEMBER_ROLE_CHANGED, updated, role_id, correlation_id
            )
            await self._read_view(group.id)
            return updated

        return await self._run(f"member:{group.id}", "change_member_role", work, "Role changed")

    async def leave_group(self, group: Group) -> ActionResult:
        """The session user leaves; the view is cleared since it is no longer visible."""
        async def work(correlation_id: UUID) -> None:
            members = await self._members.list_members(group)
            await self._members.leave(group)
            for member in members:
                if member.user_id == self._actor_id:
                    await self._audit_member(
                        AuditEventType.MEMBER_LEFT, member, None, correlation_id
                    )
            self.view = None

        return await self._run(f"group:{group.id}", "leave_group", work, "You left the group")

    async def update_group(
        self,
        group: Group,
        name: str,
        description: Optional[str] = None,
    ) -> ActionResult:
        """Rename the group or change its description (canManageGroup)."""
        async def work(correlation_id: UUID) -> Group:
            clean_name = (name or "").strip()
            if not clean_name:
                raise ValidationError("name", "Group name is required")
            await self._resolver.require(self._session.user_id, group, Capability.MANAGE_GROUP)
            updated = await self._backend.update_group(
                group.id, clean_name, (description or "").strip() or None
            )
            self._logger.info("group_updated", group_id=group.id, name=updated.name)
            await self._read_view(group.id)
            return updated

        return await self._run(f"group:{group.id}", "update_group", work, "Group updated")

    async def delete_group(self, group: Group) -> ActionResult:
        """Delete the group with its roles and memberships. Owner only."""
        async def work(correlation_id: UUID) -> None:
            if not group.is_owner(self._session.user_id):
                raise PermissionDenied("owner")
            await self._backend.delete_group(group.id)
            self._logger.warning("group_deleted", group_id=group.id, name=group.name)
            self.view = None

        return await self._run(f"group:{group.id}", "delete_group", work, "Group deleted")


# =============================================================================
# ACCOUNTS
# =============================================================================

def parse_amount(amount: Union[Decimal, str, int, float]) -> Decimal:
    """
    Read a balance as typed in the pt-BR form ("1.234,56", "-80", "150,50").

    Dots are thousands separators and the comma is the decimal mark.
    Numbers pass through unchanged.

    Raises:
        ValidationError: If the value is not a finite amount
    """
    try:
        if isinstance(amount, (Decimal, int, float)):
            value = Decimal(str(amount))
        else:
            value = Decimal(str(amount).strip().replace(".", "").replace(",", "."))
    except InvalidOperation:
        raise ValidationError("amount", "Enter a valid amount")
    if not value.is_finite():
        raise ValidationError("amount", "Enter a valid amount")
    return value


class AccountsFlow(_ActionFlow):
    """
    Orchestrates the accounts screen.

    Deletion runs through AccountLifecycleCoordinator: a request either
    deletes immediately or returns a pending AccountDeletion that the user
    resolves with force_delete() or move_and_delete().

    Balance updates and deletions are refused with PermissionDenied unless
    can_edit_account() allows them for the session user.
    """

    def __init__(
        self,
        backend: BackendInterface,
        session: SessionContext,
        audit_logger: Optional[AuditLogger] = None,
        ledger: Optional[AccountBalanceLedger] = None,
        lifecycle: Optional[AccountLifecycleCoordinator] = None,
        resolver: Optional[MembershipResolver] = None,
        today: Callable[[], date] = date.today,
    ):
        super().__init__(session, audit_logger)
        self._backend = backend
        self._ledger = ledger or AccountBalanceLedger(backend)
        self._lifecycle = lifecycle or AccountLifecycleCoordinator(backend)
        self._resolver = resolver or MembershipResolver(backend)
        self._today = today
        self._group_id: Optional[int] = None
        self.view: Optional[AccountsView] = None

    async def _permissions_in(
        self,
        group_id: Optional[int],
        resolved: dict[int, Optional[PermissionSet]],
    ) -> Optional[PermissionSet]:
        """The session user's permissions in `group_id`, None outside any group."""
        if group_id is None:
            return None
        if group_id not in resolved:
            group = await self._backend.get_group(group_id)
            try:
                resolved[group_id] = await self._resolver.resolve_effective_permissions(
                    self._session.user_id, group
                )
            except NotAMember:
                resolved[group_id] = None
        return resolved[group_id]

    async def _require_edit(self, account: Account) -> None:
        """
        Raises:
            PermissionDenied: If the session user may not change `account`
        """
        user_id = self._session.user_id
        permissions = await self._permissions_in(account.group_id, {})
        if can_edit_account(permissions, user_id, account):
            return
        if account.group_id is None:
            raise PermissionDenied("owner")
        if account.user_id == user_id:
            raise PermissionDenied(Capability.MANAGE_OWN_ACCOUNTS.value)
        raise PermissionDenied(Capability.MANAGE_GROUP_ACCOUNTS.value)

    async def _read_view(self) -> AccountsView:
        accounts = await self._backend.list_accounts(self._group_id)
        balances = await self._ledger.balances_for(accounts)
        today = self._today()
        user_id = self._session.user_id
        resolved: dict[int, Optional[PermissionSet]] = {}

        rows = []
        for account in accounts:
            cycle = cycle_for_account(account, today)
            permissions = await self._permissions_in(account.group_id, resolved)
            rows.append(AccountRow(
                account=account,
                balance=balances.get(account.id),
                cycle=cycle,
                in_closing_period=cycle is not None and is_in_closing_period(today, cycle),
                can_edit=can_edit_account(permissions, user_id, account),
            ))

        totals = {account_type: Decimal("0") for account_type in AccountType}
        for row in rows:
            totals[row.account.type] += row.amount

        self.view = AccountsView(rows=rows, totals=totals)
        return self.view

    async def load(self, group_id: Optional[int] = None) -> ActionResult:
        """List accounts (of a group, or all visible) with balances and cycles."""
        async def work(correlation_id: UUID) -> AccountsView:
            self._group_id = group_id
            return await self._read_view()

        return await self._run("load", "load_accounts", work)

    async def update_balance(
        self,
        account: Account,
        amount: Union[Decimal, str, int],
        effective_date: Optional[datetime] = None,
    ) -> ActionResult:
        """Append a balance snapshot; the date defaults to now."""
        async def work(correlation_id: UUID) -> AccountBalance:
            value = parse_amount(amount)
            await self._require_edit(account)
            snapshot = await self._ledger.append_snapshot(
                account.id, value, effective_date or datetime.utcnow()
            )
            if self._audit_logger:
                await self._audit_logger.log_balance_appended(
                    account_id=account.id,
                    amount=str(snapshot.amount),
                    effective_date=snapshot.date.isoformat(),
                    actor_id=self._actor_id,
                    correlation_id=correlation_id,
                )
            await self._read_view()
            return snapshot

        return await self._run(f"balance:{account.id}", "update_balance", work, "Balance updated")

    async def delete_account(self, account: Account) -> ActionResult:
        """
        Request deletion.

        data is the AccountDeletion; when it is PENDING_RESOLUTION the notice
        asks the user to choose how to handle the transactions.
        """
        async def work(correlation_id: UUID) -> AccountDeletion:
            await self._require_edit(account)
            deletion = await self._lifecycle.request_delete(account)
            if deletion.state == DeletionState.SIMPLE_DELETED:
                await self._audit_deleted(deletion, "simple", correlation_id)
                await self._read_view()
            elif self._audit_logger:
                await self._audit_logger.log_deletion_pending(
                    account_id=account.id,
                    transaction_count=deletion.transaction_count,
                    actor_id=self._actor_id,
                    correlation_id=correlation_id,
                )
            return deletion

        result = await self._run(f"delete:{account.id}", "delete_account", work)
        if result.ok and result.data.needs_resolution:
            result.notice = Notice.warning(
                f"'{account.name}' has {result.data.transaction_count} transaction(s). "
                "Delete them with the account or move them to another account."
            )
        elif result.ok:
            result.notice = Notice.success("Account deleted")
        return result

    async def force_delete(self, deletion: AccountDeletion) -> ActionResult:
        """Delete the account together with its transactions."""
        async def work(correlation_id: UUID) -> AccountDeletion:
            await self._require_edit(deletion.account)
            done = await self._lifecycle.force_delete(deletion)
            await self._audit_deleted(done, "force", correlation_id)
            await self._read_view()
            return done

        return await self._run(
            f"delete:{deletion.account.id}",
            "force_delete_account",
            work,
            "Account and transactions deleted",
        )

    async def move_and_delete(
        self,
        deletion: AccountDeletion,
        target_account_id: Optional[int],
    ) -> ActionResult:
        """Move the transactions to `target_account_id`, then delete the account."""
        async def work(correlation_id: UUID) -> AccountDeletion:
            await self._require_edit(deletion.account)
            done = await self._lifecycle.move_and_delete(deletion, target_account_id)
            await self._audit_deleted(done, "move", correlation_id)
            await self._read_view()
            return done

        return await self._run(
            f"delete:{deletion.account.id}",
            "move_and_delete_account",
            work,
            "Transactions moved and account deleted",
        )

    async def _audit_deleted(
        self,
        deletion: AccountDeletion,
        strategy: str,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_account_deleted(
                account_id=deletion.account.id,
                strategy=strategy,
                transaction_count=deletion.transaction_count,
                actor_id=self._actor_id,
                target_account_id=deletion.target_account_id,
                correlation_id=correlation_id,
            )


# =============================================================================
# FACTORY
# =============================================================================

def create_app_components(
    use_memory: bool = False,
) -> tuple[GroupSettingsFlow, AccountsFlow, SessionContext]:
    """
    Factory function to create all application components.

    Args:
        use_memory: Use the in-memory backend and audit storage instead of
                    the REST backend. Set to True for tests and demos.

    Returns:
        (group_settings_flow, accounts_flow, session)

    The session is not loaded yet; call `await session.refresh()` first.
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    if use_memory:
        backend = InMemoryBackend()
        audit_logger = AuditLogger(InMemoryAuditStorage())
    else:
        backend = RestBackendClient(settings.backend)
        audit_logger = AuditLogger()  # Local-only logging

    session = SessionContext(backend, audit_logger=audit_logger)

    group_flow = GroupSettingsFlow(backend, session, audit_logger=audit_logger)
    accounts_flow = AccountsFlow(backend, session, audit_logger=audit_logger)

    return group_flow, accounts_flow, session
