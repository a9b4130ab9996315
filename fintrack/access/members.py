"""
Member Store

Invite, remove and reassign the members of a group, and leave a group.

The owner's membership is never changed here: removing or reassigning the
owner raises OwnerProtected, and so does the owner trying to leave.
"""

from typing import Optional

import structlog

from fintrack.access.resolver import MembershipResolver, find_member
from fintrack.errors import DuplicateMember, OwnerProtected
from fintrack.models.group import Group, GroupMember
from fintrack.models.permissions import Capability
from fintrack.services.backend.interface import GroupBackendInterface, NotFoundError
from fintrack.session import SessionContext


class MemberStore:
    """Membership management for the session user."""

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

    async def list_members(self, group: Group) -> list[GroupMember]:
        return await self._backend.list_members(group.id)

    async def _require_manager(self, group: Group) -> None:
        await self._resolver.require(self._session.user_id, group, Capability.MANAGE_GROUP)

    async def _check_role(self, group: Group, role_id: int) -> None:
        roles = await self._backend.list_roles(group.id)
        if not any(role.id == role_id for role in roles):
            raise NotFoundError(f"Role {role_id} does not belong to group {group.id}")

    async def add(self, group: Group, user_id: int, role_id: int) -> GroupMember:
        """
        Add a user to the group with a role.

        Raises:
            DuplicateMember: If the user already belongs to the group
            NotFoundError: If the role is not one of the group's roles
        """
        await self._require_manager(group)
        members = await self._backend.list_members(group.id)
        if find_member(user_id, group.id, members) is not None:
            raise DuplicateMember(user_id, group.id)
        await self._check_role(group, role_id)
        member = await self._backend.add_member(group.id, user_id, role_id)
        self._logger.info("member_added", group_id=group.id, user_id=user_id, role_id=role_id)
        return member

    async def remove(self, group: Group, member: GroupMember) -> None:
        """
        Remove a member.

        Raises:
            OwnerProtected: If the member is the group owner
        """
        if group.is_owner(member.user_id):
            raise OwnerProtected()
        await self._require_manager(group)
        await self._backend.remove_member(group.id, member.id)
        self._logger.info("member_removed", group_id=group.id, user_id=member.user_id)

    async def change_role(self, group: Group, member: GroupMember, role_id: int) -> GroupMember:
        """
        Assign a different role to a member.

        Raises:
            OwnerProtected: If the member is the group owner
            NotFoundError: If the role is not one of the group's roles
        """
        if group.is_owner(member.user_id):
            raise OwnerProtected()
        await self._require_manager(group)
        await self._check_role(group, role_id)
        updated = await self._backend.update_member_role(group.id, member.id, role_id)
        self._logger.info(
            "member_role_changed",
            group_id=group.id,
            user_id=member.user_id,
            role_id=role_id,
        )
        return updated

    async def leave(self, group: Group) -> None:
        """The session user leaves the group. The owner cannot leave."""
        if group.is_owner(self._session.user_id):
            raise OwnerProtected("The group owner cannot leave the group")
        await self._backend.leave_group(group.id)
        self._logger.info("member_left", group_id=group.id, user_id=self._session.user_id)
