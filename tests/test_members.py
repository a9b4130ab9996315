"""Tests for MemberStore."""

import asyncio

import pytest

from fintrack.access import MemberStore
from fintrack.errors import DuplicateMember, OwnerProtected, PermissionDenied
from fintrack.services.backend import NotFoundError


def _row(backend, group, user):
    return next(
        m for m in backend.members.values()
        if m.group_id == group.id and m.user_id == user.id
    )


class TestAddMember:
    """Tests for inviting members."""

    def test_owner_adds_member(self, backend, group, owner, outsider, session_as):
        store = MemberStore(backend, session_as(owner))
        leitor = backend.role_named(group.id, "Leitor")

        member = asyncio.run(store.add(group, outsider.id, leitor.id))

        assert member.role_id == leitor.id
        assert member.user.email == "carla@example.com"
        members = asyncio.run(store.list_members(group))
        assert outsider.id in {m.user_id for m in members}

    def test_duplicate_membership_rejected(self, backend, group, owner, member_user, session_as):
        store = MemberStore(backend, session_as(owner))
        leitor = backend.role_named(group.id, "Leitor")

        with pytest.raises(DuplicateMember):
            asyncio.run(store.add(group, member_user.id, leitor.id))

    def test_backend_rejects_duplicate_too(self, backend, group, member_user):
        leitor = backend.role_named(group.id, "Leitor")
        with pytest.raises(DuplicateMember):
            asyncio.run(backend.add_member(group.id, member_user.id, leitor.id))

    def test_role_of_other_group_rejected(self, backend, group, owner, outsider, session_as):
        other = backend.create_group(owner.id, "Trabalho")
        foreign_role = backend.role_named(other.id, "Leitor")
        store = MemberStore(backend, session_as(owner))

        with pytest.raises(NotFoundError):
            asyncio.run(store.add(group, outsider.id, foreign_role.id))

    def test_member_cannot_invite(self, backend, group, member_user, outsider, session_as):
        store = MemberStore(backend, session_as(member_user))
        leitor = backend.role_named(group.id, "Leitor")

        with pytest.raises(PermissionDenied):
            asyncio.run(store.add(group, outsider.id, leitor.id))


class TestChangeAndRemove:
    """Tests for reassigning and removing members."""

    def test_change_member_role(self, backend, group, owner, member_user, session_as):
        store = MemberStore(backend, session_as(owner))
        leitor = backend.role_named(group.id, "Leitor")

        updated = asyncio.run(store.change_role(group, _row(backend, group, member_user), leitor.id))

        assert updated.role_id == leitor.id
        assert _row(backend, group, member_user).role_id == leitor.id

    def test_owner_cannot_be_reassigned(self, backend, group, owner, session_as):
        store = MemberStore(backend, session_as(owner))
        leitor = backend.role_named(group.id, "Leitor")

        with pytest.raises(OwnerProtected):
            asyncio.run(store.change_role(group, _row(backend, group, owner), leitor.id))

    def test_remove_member(self, backend, group, owner, member_user, session_as):
        store = MemberStore(backend, session_as(owner))
        member = _row(backend, group, member_user)

        asyncio.run(store.remove(group, member))

        assert member.id not in backend.members

    def test_owner_cannot_be_removed(self, backend, group, owner, session_as):
        store = MemberStore(backend, session_as(owner))
        with pytest.raises(OwnerProtected):
            asyncio.run(store.remove(group, _row(backend, group, owner)))


class TestLeaveGroup:
    """Tests for leaving a group."""

    def test_member_leaves(self, backend, group, member_user, session_as):
        store = MemberStore(backend, session_as(member_user))
        member = _row(backend, group, member_user)

        asyncio.run(store.leave(group))

        assert member.id not in backend.members

    def test_owner_cannot_leave(self, backend, group, owner, session_as):
        store = MemberStore(backend, session_as(owner))
        with pytest.raises(OwnerProtected):
            asyncio.run(store.leave(group))
