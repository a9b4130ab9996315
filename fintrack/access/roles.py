"""
Role Store

Create, edit and delete the roles of a group.

GUARANTEES:
- Only users holding canManageGroup in the group can mutate roles
- A role needs a non-blank name
- Built-in roles, and any role named Dono, Membro or Leitor, are never
  edited or deleted (ProtectedRole); no other role may take those names
- A role still assigned to members is never deleted (InUseByMembers)

Duplicate role names are allowed.
"""

from typing import Optional

import structlog

from fintrack.access.resolver import MembershipResolver
from fintrack.errors import InUseByMembers, ProtectedRole, ValidationError
from fintrack.models.group import BuiltInRole, Group, GroupRole, RoleDraft
from fintrack.models.permissions import Capability, PermissionSet
from fintrack.services.backend.interface import GroupBackendInterface
from fintrack.session import SessionContext


class RoleStore:
    """Role CRUD for the groups the session user manages."""

    def __init__(
        self,
        backend: GroupBackendInterface,
        session: SessionContext,
        resolver: Optional[MembershipResolver] = None,
    ):
        self._backend = backend
        self._session = session
        self._resolver = resolver or MembershipResolver(backend)
        self._logger = structlog.get_logger(__name__)

    @staticmethod
    def _draft(name: str, description: Optional[str], permissions: PermissionSet) -> RoleDraft:
        name = (name or "").strip()
        if not name:
            raise ValidationError("name", "Role name is required")
        if BuiltInRole.is_reserved(name):
            raise ValidationError("name", f"'{name}' is reserved for a built-in role")
        description = (description or "").strip() or None
        return RoleDraft(name=name, description=description, permissions=permissions)

    async def list_roles(self, group: Group) -> list[GroupRole]:
        return await self._backend.list_roles(group.id)

    async def create(
        self,
        group: Group,
        name: str,
        description: Optional[str] = None,
        permissions: Optional[PermissionSet] = None,
    ) -> GroupRole:
        """
        Create a custom role.

        Raises:
            ValidationError: If the name is empty or a built-in name
            PermissionDenied: If the session user cannot manage the group
        """
        draft = self._draft(name, description, permissions or PermissionSet.none())
        await self._resolver.require(self._session.user_id, group, Capability.MANAGE_GROUP)
        role = await self._backend.create_role(group.id, draft)
        self._logger.info("role_created", group_id=group.id, role_id=role.id, name=role.name)
        return role

    async def update(
        self,
        group: Group,
        role: GroupRole,
        name: str,
        description: Optional[str] = None,
        permissions: Optional[PermissionSet] = None,
    ) -> GroupRole:
        """
        Replace a custom role's name, description and flags.

        Raises:
            ProtectedRole: If the role is protected, whatever flags are supplied
            ValidationError: If the name is empty or a built-in name
            PermissionDenied: If the session user cannot manage the group
        """
        if role.is_protected:
            raise ProtectedRole(role.name)
        draft = self._draft(name, description, permissions or PermissionSet.none())
        await self._resolver.require(self._session.user_id, group, Capability.MANAGE_GROUP)
        updated = await self._backend.update_role(group.id, role.id, draft)
        self._logger.info("role_updated", group_id=group.id, role_id=role.id, name=updated.name)
        return updated

    async def delete(self, group: Group, role: GroupRole) -> None:
        """
        Delete a custom role that no member holds.

        Raises:
            ProtectedRole: If the role is protected
            InUseByMembers: If members are still assigned to it
            PermissionDenied: If the session user cannot manage the group
        """
        if role.is_protected:
            raise ProtectedRole(role.name)
        await self._resolver.require(self._session.user_id, group, Capability.MANAGE_GROUP)
        members = await self._backend.list_members(group.id)
        assigned = [m for m in members if m.role_id == role.id]
        if assigned:
            raise InUseByMembers(role.name, len(assigned))
        await self._backend.delete_role(group.id, role.id)
        self._logger.info("role_deleted", group_id=group.id, role_id=role.id, name=role.name)
