"""
Membership Resolution

Works out what a user may do inside a group.

RULES:
1. The group owner holds every capability, whatever role rows say
2. Anyone else gets exactly the flags of their assigned role (no merging)
3. A user with no membership row gets NotAMember

Nothing is cached: callers re-resolve after any role or membership change.
"""

from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from fintrack.errors import NotAMember, PermissionDenied
from fintrack.models.account import Account
from fintrack.models.group import Group, GroupMember, GroupRole
from fintrack.models.permissions import Capability, PermissionSet
from fintrack.services.backend.interface import GroupBackendInterface, NotFoundError


def effective_permissions(
    user_id: int,
    group: Group,
    members: Iterable[GroupMember],
    roles: Iterable[GroupRole],
) -> PermissionSet:
    """
    Resolve a user's permissions from already-loaded member and role lists.

    Raises:
        NotAMember: If the user has no membership in the group
        NotFoundError: If the member's role is not among `roles`
    """
    if group.is_owner(user_id):
        return PermissionSet.full()

    member = find_member(user_id, group.id, members)
    if member is None:
        raise NotAMember(user_id, group.id)

    for role in roles:
        if role.id == member.role_id:
            return role.permissions
    # Embedded role on the member row, when the backend sent it
    if member.role is not None and member.role.id == member.role_id:
        return member.role.permissions
    raise NotFoundError(f"Role {member.role_id} of member {member.id} not found")


def find_member(
    user_id: int,
    group_id: int,
    members: Iterable[GroupMember],
) -> Optional[GroupMember]:
    for member in members:
        if member.user_id == user_id and member.group_id == group_id:
            return member
    return None


class MembershipResolver:
    """
    Resolves effective permissions against the backend.

    Each call reads the current members and roles; nothing is cached.
    """

    def __init__(self, backend: GroupBackendInterface):
        self._backend = backend

    async def resolve_effective_permissions(self, user_id: int, group: Group) -> PermissionSet:
        """
        The permission set `user_id` holds in `group`.

        The owner short-circuits without any backend read.
        """
        if group.is_owner(user_id):
            return PermissionSet.full()
        members = await self._backend.list_members(group.id)
        roles = await self._backend.list_roles(group.id)
        return effective_permissions(user_id, group, members, roles)

    async def require(self, user_id: int, group: Group, capability: Capability) -> PermissionSet:
        """
        Resolve and insist on one capability.

        Raises:
            PermissionDenied: If the capability is not granted
            NotAMember: If the user is not in the group
        """
        permissions = await self.resolve_effective_permissions(user_id, group)
        if not permissions.allows(capability):
            raise PermissionDenied(capability.value)
        return permissions


# =============================================================================
# AFFORDANCES
# =============================================================================

class GroupAffordances(BaseModel):
    """What the group settings surface should offer a given user."""
    model_config = ConfigDict(frozen=True)

    is_owner: bool
    permissions: PermissionSet
    visible_tabs: tuple[str, ...]
    can_invite: bool
    can_create_role: bool
    can_edit_group: bool
    can_delete_group: bool
    can_leave_group: bool

    @classmethod
    def for_user(cls, user_id: int, group: Group, permissions: PermissionSet) -> "GroupAffordances":
        manage = permissions.allows(Capability.MANAGE_GROUP)
        is_owner = group.is_owner(user_id)
        return cls(
            is_owner=is_owner,
            permissions=permissions,
            visible_tabs=("general", "members", "roles"),
            can_invite=manage,
            can_create_role=manage,
            can_edit_group=manage,
            can_delete_group=is_owner,
            can_leave_group=not is_owner,
        )

    def can_edit_member(self, group: Group, member: GroupMember) -> bool:
        return can_edit_member(self.permissions, group, member)

    def can_edit_role(self, role: GroupRole) -> bool:
        return can_edit_role(self.permissions, role)


def can_edit_member(permissions: PermissionSet, group: Group, member: GroupMember) -> bool:
    """Role change and removal: needs canManageGroup, never on the owner."""
    return permissions.allows(Capability.MANAGE_GROUP) and not group.is_owner(member.user_id)


def can_edit_role(permissions: PermissionSet, role: GroupRole) -> bool:
    """Edit and delete: needs canManageGroup, never on a built-in role."""
    return permissions.allows(Capability.MANAGE_GROUP) and not role.is_protected


def can_edit_account(
    permissions: Optional[PermissionSet],
    user_id: int,
    account: Account,
) -> bool:
    """
    Balance updates and deletion of one account.

    A personal account (no group) is editable by its holder only. In a group,
    canManageGroupAccounts covers every account and canManageOwnAccounts
    covers the user's own. `permissions` is the user's set in the account's
    group; None means none was resolved.
    """
    if account.group_id is None:
        return account.user_id == user_id
    if permissions is None:
        return False
    if permissions.allows(Capability.MANAGE_GROUP_ACCOUNTS):
        return True
    return permissions.allows(Capability.MANAGE_OWN_ACCOUNTS) and account.user_id == user_id
