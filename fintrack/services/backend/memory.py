"""
In-Memory Backend

A complete implementation of the backend interfaces held in dictionaries.
Used by the test suite and for running the flows without a server.

It enforces the referential integrity a real persistence engine must:
- one membership per user and group (DuplicateMember)
- built-in roles are immutable (ProtectedRole) and their names are reserved
- roles still assigned to members cannot be deleted (InUseByMembers)
- the owner's membership cannot be removed or reassigned (OwnerProtected)
- group deletion cascades to roles and members
- account deletion cascades to balance snapshots; move-and-delete is atomic
"""

from datetime import datetime
from decimal import Decimal
from itertools import count
from typing import Optional
from uuid import UUID

from fintrack.errors import (
    DuplicateMember,
    InUseByMembers,
    OwnerProtected,
    ProtectedRole,
    ValidationError,
)
from fintrack.models.account import (
    Account,
    AccountBalance,
    Transaction,
    latest_snapshot,
)
from fintrack.models.audit import AuditEvent
from fintrack.models.group import (
    BuiltInRole,
    Group,
    GroupMember,
    GroupRole,
    MemberUser,
    RoleDraft,
    User,
)
from fintrack.services.backend.interface import (
    AuditStorageInterface,
    BackendInterface,
    NetworkFailure,
    NotFoundError,
)


class InMemoryBackend(BackendInterface):
    """
    Dictionary-backed backend.

    The "calling user" is whoever was passed to sign_in(). inject_failure()
    makes the next call of an operation raise, to exercise failure paths.
    """

    def __init__(self):
        self._ids = count(1)
        self.users: dict[int, User] = {}
        self.groups: dict[int, Group] = {}
        self.roles: dict[int, GroupRole] = {}
        self.members: dict[int, GroupMember] = {}
        self.accounts: dict[int, Account] = {}
        self.balances: dict[int, AccountBalance] = {}
        self.transactions: dict[int, Transaction] = {}
        self._current_user_id: Optional[int] = None
        self._failures: dict[str, Exception] = {}
        self.calls: list[str] = []

    # ─── Seeding and test hooks ───

    def _next_id(self) -> int:
        return next(self._ids)

    def add_user(self, email: str, first_name: str = "", last_name: str = "") -> User:
        user = User(
            id=self._next_id(),
            email=email,
            first_name=first_name or None,
            last_name=last_name or None,
        )
        self.users[user.id] = user
        return user

    def sign_in(self, user_id: int) -> None:
        if user_id not in self.users:
            raise NotFoundError(f"User not found: {user_id}")
        self._current_user_id = user_id

    def create_group(self, owner_id: int, name: str, description: Optional[str] = None) -> Group:
        """Create a group with the three built-in roles; the owner joins as Dono."""
        now = datetime.utcnow()
        group = Group(
            id=self._next_id(),
            name=name,
            description=description,
            owner_id=owner_id,
            created_at=now,
            updated_at=now,
        )
        self.groups[group.id] = group
        for built_in in BuiltInRole:
            role = GroupRole(
                id=self._next_id(),
                group_id=group.id,
                name=built_in.value,
                permissions=built_in.default_permissions,
                is_built_in=True,
                created_at=now,
                updated_at=now,
            )
            self.roles[role.id] = role
        owner_role = self.role_named(group.id, BuiltInRole.OWNER.value)
        self._insert_member(group.id, owner_id, owner_role.id)
        return group

    def role_named(self, group_id: int, name: str) -> GroupRole:
        for role in self.roles.values():
            if role.group_id == group_id and role.name == name:
                return role
        raise NotFoundError(f"Role '{name}' not found in group {group_id}")

    def add_account(self, account: Account) -> Account:
        self.accounts[account.id] = account
        return account

    def add_transaction(self, transaction: Transaction) -> Transaction:
        self.transactions[transaction.id] = transaction
        return transaction

    def inject_failure(self, operation: str, error: Optional[Exception] = None) -> None:
        """Make the next call to `operation` raise (NetworkFailure by default)."""
        self._failures[operation] = error or NetworkFailure(f"{operation}: connection reset")

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        error = self._failures.pop(operation, None)
        if error is not None:
            raise error

    # ─── Lookups ───

    def _group(self, group_id: int) -> Group:
        try:
            return self.groups[group_id]
        except KeyError:
            raise NotFoundError(f"Group not found: {group_id}")

    def _role(self, group_id: int, role_id: int) -> GroupRole:
        role = self.roles.get(role_id)
        if role is None or role.group_id != group_id:
            raise NotFoundError(f"Role {role_id} not found in group {group_id}")
        return role

    def _member(self, group_id: int, member_id: int) -> GroupMember:
        member = self.members.get(member_id)
        if member is None or member.group_id != group_id:
            raise NotFoundError(f"Member {member_id} not found in group {group_id}")
        return member

    def _account(self, account_id: int) -> Account:
        try:
            return self.accounts[account_id]
        except KeyError:
            raise NotFoundError(f"Account not found: {account_id}")

    def _present(self, member: GroupMember) -> GroupMember:
        """Attach the embedded user summary and role, as the REST backend does."""
        user = self.users.get(member.user_id)
        summary = None
        if user is not None:
            summary = MemberUser(
                id=user.id,
                email=user.email,
                first_name=user.first_name,
                last_name=user.last_name,
            )
        return member.model_copy(update={"user": summary, "role": self.roles.get(member.role_id)})

    @staticmethod
    def _check_role_name(name: str) -> None:
        if not name:
            raise ValidationError("name", "Role name is required")
        if BuiltInRole.is_reserved(name):
            raise ValidationError("name", f"'{name}' is reserved for a built-in role")

    def _insert_member(self, group_id: int, user_id: int, role_id: int) -> GroupMember:
        for member in self.members.values():
            if member.group_id == group_id and member.user_id == user_id:
                raise DuplicateMember(user_id, group_id)
        member = GroupMember(
            id=self._next_id(),
            group_id=group_id,
            user_id=user_id,
            role_id=role_id,
            joined_at=datetime.utcnow(),
        )
        self.members[member.id] = member
        return member

    # ─── Users ───

    async def get_current_user(self) -> User:
        self._enter("get_current_user")
        if self._current_user_id is None:
            raise NetworkFailure("GET /users/me returned 401", status_code=401)
        return self.users[self._current_user_id]

    # ─── Groups ───

    async def get_group(self, group_id: int) -> Group:
        self._enter("get_group")
        return self._group(group_id)

    async def update_group(
        self,
        group_id: int,
        name: str,
        description: Optional[str] = None,
    ) -> Group:
        self._enter("update_group")
        group = self._group(group_id).model_copy(update={
            "name": name,
            "description": description,
            "updated_at": datetime.utcnow(),
        })
        self.groups[group_id] = group
        return group

    async def delete_group(self, group_id: int) -> None:
        self._enter("delete_group")
        self._group(group_id)
        self.members = {k: m for k, m in self.members.items() if m.group_id != group_id}
        self.roles = {k: r for k, r in self.roles.items() if r.group_id != group_id}
        del self.groups[group_id]

    async def leave_group(self, group_id: int) -> None:
        self._enter("leave_group")
        group = self._group(group_id)
        if group.owner_id == self._current_user_id:
            raise OwnerProtected("The owner cannot leave the group")
        for member_id, member in list(self.members.items()):
            if member.group_id == group_id and member.user_id == self._current_user_id:
                del self.members[member_id]
                return
        raise NotFoundError(f"Not a member of group {group_id}")

    async def list_members(self, group_id: int) -> list[GroupMember]:
        self._enter("list_members")
        self._group(group_id)
        rows = [m for m in self.members.values() if m.group_id == group_id]
        return [self._present(m) for m in sorted(rows, key=lambda m: m.id)]

    async def add_member(self, group_id: int, user_id: int, role_id: int) -> GroupMember:
        self._enter("add_member")
        self._group(group_id)
        self._role(group_id, role_id)
        if user_id not in self.users:
            raise NotFoundError(f"User not found: {user_id}")
        return self._present(self._insert_member(group_id, user_id, role_id))

    async def remove_member(self, group_id: int, member_id: int) -> None:
        self._enter("remove_member")
        group = self._group(group_id)
        member = self._member(group_id, member_id)
        if member.user_id == group.owner_id:
            raise OwnerProtected()
        del self.members[member_id]

    async def update_member_role(
        self,
        group_id: int,
        member_id: int,
        role_id: int,
    ) -> GroupMember:
        self._enter("update_member_role")
        group = self._group(group_id)
        member = self._member(group_id, member_id)
        self._role(group_id, role_id)
        if member.user_id == group.owner_id:
            raise OwnerProtected()
        member = member.model_copy(update={"role_id": role_id, "updated_at": datetime.utcnow()})
        self.members[member_id] = member
        return self._present(member)

    async def list_roles(self, group_id: int) -> list[GroupRole]:
        self._enter("list_roles")
        self._group(group_id)
        return sorted(
            (r for r in self.roles.values() if r.group_id == group_id),
            key=lambda r: r.id,
        )

    async def create_role(self, group_id: int, draft: RoleDraft) -> GroupRole:
        self._enter("create_role")
        self._group(group_id)
        self._check_role_name(draft.name)
        now = datetime.utcnow()
        role = GroupRole(
            id=self._next_id(),
            group_id=group_id,
            name=draft.name,
            description=draft.description,
            permissions=draft.permissions,
            is_built_in=False,
            created_at=now,
            updated_at=now,
        )
        self.roles[role.id] = role
        return role

    async def update_role(self, group_id: int, role_id: int, draft: RoleDraft) -> GroupRole:
        self._enter("update_role")
        role = self._role(group_id, role_id)
        if role.is_protected:
            raise ProtectedRole(role.name)
        self._check_role_name(draft.name)
        role = role.model_copy(update={
            "name": draft.name,
            "description": draft.description,
            "permissions": draft.permissions,
            "updated_at": datetime.utcnow(),
        })
        self.roles[role_id] = role
        return role

    async def delete_role(self, group_id: int, role_id: int) -> None:
        self._enter("delete_role")
        role = self._role(group_id, role_id)
        if role.is_protected:
            raise ProtectedRole(role.name)
        assigned = sum(1 for m in self.members.values() if m.role_id == role_id)
        if assigned:
            raise InUseByMembers(role.name, assigned)
        del self.roles[role_id]

    # ─── Accounts ───

    async def list_accounts(self, group_id: Optional[int] = None) -> list[Account]:
        self._enter("list_accounts")
        accounts = [
            a for a in self.accounts.values()
            if group_id is None or a.group_id == group_id
        ]
        return sorted(accounts, key=lambda a: a.id)

    async def get_current_balance(self, account_id: int) -> Optional[AccountBalance]:
        self._enter("get_current_balance")
        self._account(account_id)
        return latest_snapshot(b for b in self.balances.values() if b.account_id == account_id)

    async def add_balance(
        self,
        account_id: int,
        amount: Decimal,
        effective_date: datetime,
    ) -> AccountBalance:
        self._enter("add_balance")
        self._account(account_id)
        snapshot = AccountBalance(
            id=self._next_id(),
            account_id=account_id,
            amount=amount,
            date=effective_date,
        )
        self.balances[snapshot.id] = snapshot
        return snapshot

    async def count_transactions(self, account_id: int) -> int:
        self._enter("count_transactions")
        self._account(account_id)
        return sum(1 for t in self.transactions.values() if t.references(account_id))

    async def delete_account(self, account_id: int, force: bool = False) -> None:
        self._enter("delete_account")
        self._remove_account(account_id, force)

    async def move_transactions(self, source_account_id: int, target_account_id: int) -> int:
        self._enter("move_transactions")
        return self._reassign(source_account_id, target_account_id)

    async def move_and_delete(self, source_account_id: int, target_account_id: int) -> int:
        """Reassign and delete as one unit; any failure restores the prior state."""
        self._enter("move_and_delete")
        saved = self._snapshot()
        try:
            moved = self._reassign(source_account_id, target_account_id)
            self._enter("delete_account")
            self._remove_account(source_account_id, force=True)
        except Exception:
            self._restore(saved)
            raise
        return moved

    def _reassign(self, source_account_id: int, target_account_id: int) -> int:
        self._account(source_account_id)
        self._account(target_account_id)
        if source_account_id == target_account_id:
            raise ValidationError("targetAccountId", "Target account must differ from the source")
        moved = 0
        for tx_id, tx in list(self.transactions.items()):
            update = {}
            if tx.account_id == source_account_id:
                update["account_id"] = target_account_id
            if tx.to_account_id == source_account_id:
                update["to_account_id"] = target_account_id
            if update:
                self.transactions[tx_id] = tx.model_copy(update=update)
                moved += 1
        return moved

    def _remove_account(self, account_id: int, force: bool) -> None:
        self._account(account_id)
        referencing = [t.id for t in self.transactions.values() if t.references(account_id)]
        if referencing and not force:
            raise NetworkFailure(
                f"DELETE /accounts/{account_id} returned 409",
                status_code=409,
                server_message="Account has transactions; use force or move them first",
            )
        for tx_id in referencing:
            del self.transactions[tx_id]
        self.balances = {k: b for k, b in self.balances.items() if b.account_id != account_id}
        del self.accounts[account_id]

    def _snapshot(self) -> tuple:
        return (
            dict(self.accounts),
            dict(self.balances),
            dict(self.transactions),
        )

    def _restore(self, saved: tuple) -> None:
        self.accounts, self.balances, self.transactions = (dict(part) for part in saved)


class InMemoryAuditStorage(AuditStorageInterface):
    """
    In-memory audit log.

    Audit events are append-only.
    """

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
