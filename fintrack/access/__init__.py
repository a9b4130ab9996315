"""Group access control: permission resolution, roles and members."""

from fintrack.access.members import MemberStore
from fintrack.access.resolver import (
    GroupAffordances,
    MembershipResolver,
    can_edit_account,
    can_edit_member,
    can_edit_role,
    effective_permissions,
    find_member,
)
from fintrack.access.roles import RoleStore

__all__ = [
    "GroupAffordances",
    "MemberStore",
    "MembershipResolver",
    "RoleStore",
    "can_edit_account",
    "can_edit_member",
    "can_edit_role",
    "effective_permissions",
    "find_member",
]
