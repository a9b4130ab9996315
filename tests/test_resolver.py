"""Tests for permission resolution and UI affordances."""

import asyncio

import pytest

from fintrack.access.resolver import (
    GroupAffordances,
    MembershipResolver,
    can_edit_account,
    can_edit_member,
    can_edit_role,
    effective_permissions,
)
from fintrack.errors import NotAMember, PermissionDenied
from fintrack.models.account import Account, AccountType
from fintrack.models.group import Group, GroupMember, GroupRole
from fintrack.models.permissions import Capability, PermissionSet
from fintrack.services.backend import NotFoundError


@pytest.fixture
def reader_role():
    return GroupRole(
        id=20,
        group_id=1,
        name="Leitor",
        permissions=PermissionSet.of(Capability.VIEW_ACCOUNTS),
        is_built_in=True,
    )


@pytest.fixture
def plain_group():
    return Group(id=1, name="Casa", owner_id=100)


class TestEffectivePermissions:
    """Tests for the pure resolution function."""

    def test_owner_gets_everything_whatever_the_role(self, plain_group, reader_role):
        """Test that the owner override ignores the assigned role."""
        members = [GroupMember(id=1, group_id=1, user_id=100, role_id=reader_role.id)]
        perms = effective_permissions(100, plain_group, members, [reader_role])
        assert perms.is_full

    def test_owner_without_member_row(self, plain_group):
        assert effective_permissions(100, plain_group, [], []).is_full

    def test_member_gets_exactly_role_flags(self, plain_group, reader_role):
        members = [GroupMember(id=2, group_id=1, user_id=200, role_id=reader_role.id)]
        perms = effective_permissions(200, plain_group, members, [reader_role])
        assert perms == reader_role.permissions
        assert not perms.allows(Capability.MANAGE_GROUP)

    def test_non_member_raises(self, plain_group, reader_role):
        with pytest.raises(NotAMember):
            effective_permissions(300, plain_group, [], [reader_role])

    def test_member_row_of_other_group_does_not_count(self, plain_group, reader_role):
        members = [GroupMember(id=2, group_id=99, user_id=200, role_id=reader_role.id)]
        with pytest.raises(NotAMember):
            effective_permissions(200, plain_group, members, [reader_role])

    def test_embedded_role_is_used_when_list_lacks_it(self, plain_group, reader_role):
        member = GroupMember(id=2, group_id=1, user_id=200, role_id=reader_role.id, role=reader_role)
        assert effective_permissions(200, plain_group, [member], []) == reader_role.permissions

    def test_unknown_role_raises_not_found(self, plain_group):
        members = [GroupMember(id=2, group_id=1, user_id=200, role_id=55)]
        with pytest.raises(NotFoundError):
            effective_permissions(200, plain_group, members, [])


class TestMembershipResolver:
    """Tests for resolution against the backend."""

    def test_owner_short_circuits_backend(self, backend, group, owner):
        """Test that the owner is resolved without reading members or roles."""
        backend.calls.clear()
        perms = asyncio.run(MembershipResolver(backend).resolve_effective_permissions(owner.id, group))
        assert perms.is_full
        assert backend.calls == []

    def test_member_resolves_membro_flags(self, backend, group, member_user):
        perms = asyncio.run(
            MembershipResolver(backend).resolve_effective_permissions(member_user.id, group)
        )
        assert perms.allows(Capability.MANAGE_OWN_TRANSACTIONS)
        assert not perms.allows(Capability.MANAGE_GROUP)

    def test_outsider_is_not_a_member(self, backend, group, outsider):
        with pytest.raises(NotAMember):
            asyncio.run(MembershipResolver(backend).resolve_effective_permissions(outsider.id, group))

    def test_require_denies_missing_capability(self, backend, group, member_user):
        with pytest.raises(PermissionDenied) as exc_info:
            asyncio.run(
                MembershipResolver(backend).require(member_user.id, group, Capability.MANAGE_GROUP)
            )
        assert exc_info.value.capability == "canManageGroup"

    def test_role_change_is_seen_on_next_resolution(self, backend, group, owner, member_user):
        """Test that nothing is cached between resolutions."""
        resolver = MembershipResolver(backend)
        dono = backend.role_named(group.id, "Dono")
        member = next(m for m in backend.members.values() if m.user_id == member_user.id)

        asyncio.run(backend.update_member_role(group.id, member.id, dono.id))
        perms = asyncio.run(resolver.resolve_effective_permissions(member_user.id, group))
        assert perms.allows(Capability.MANAGE_GROUP)


class TestAffordances:
    """Tests for what the settings screen offers."""

    def test_owner_affordances(self, plain_group):
        affordances = GroupAffordances.for_user(100, plain_group, PermissionSet.full())
        assert affordances.is_owner
        assert affordances.can_invite and affordances.can_create_role
        assert affordances.can_delete_group
        assert not affordances.can_leave_group
        assert affordances.visible_tabs == ("general", "members", "roles")

    def test_reader_affordances(self, plain_group, reader_role):
        affordances = GroupAffordances.for_user(200, plain_group, reader_role.permissions)
        assert not affordances.can_invite
        assert not affordances.can_edit_group
        assert not affordances.can_delete_group
        assert affordances.can_leave_group

    def test_manager_cannot_edit_owner_row(self, plain_group):
        owner_row = GroupMember(id=1, group_id=1, user_id=100, role_id=1)
        other_row = GroupMember(id=2, group_id=1, user_id=200, role_id=2)
        manager = PermissionSet.of(Capability.MANAGE_GROUP)
        assert not can_edit_member(manager, plain_group, owner_row)
        assert can_edit_member(manager, plain_group, other_row)
        assert not can_edit_member(PermissionSet.none(), plain_group, other_row)

    def test_built_in_role_never_editable(self, reader_role):
        custom = GroupRole(id=30, group_id=1, name="Tesoureiro")
        assert not can_edit_role(PermissionSet.full(), reader_role)
        assert can_edit_role(PermissionSet.full(), custom)
        affordances = GroupAffordances.for_user(
            100, Group(id=1, name="Casa", owner_id=100), PermissionSet.full()
        )
        assert not affordances.can_edit_role(reader_role)


class TestCanEditAccount:
    """Tests for who may update or delete an account."""

    @pytest.fixture
    def group_account(self):
        return Account(id=7, user_id=100, group_id=1, name="Conjunta", type=AccountType.CASH)

    def test_reader_cannot_edit(self, group_account, reader_role):
        assert not can_edit_account(reader_role.permissions, 100, group_account)

    def test_own_accounts_only_cover_own(self, group_account):
        own_only = PermissionSet.of(Capability.MANAGE_OWN_ACCOUNTS)
        assert can_edit_account(own_only, 100, group_account)
        assert not can_edit_account(own_only, 200, group_account)

    def test_group_accounts_cover_everyone_s(self, group_account):
        manager = PermissionSet.of(Capability.MANAGE_GROUP_ACCOUNTS)
        assert can_edit_account(manager, 200, group_account)

    def test_unresolved_permissions_deny(self, group_account):
        assert not can_edit_account(None, 100, group_account)

    def test_personal_account_belongs_to_holder(self):
        personal = Account(id=8, user_id=100, name="Carteira", type=AccountType.CASH)
        assert can_edit_account(None, 100, personal)
        assert not can_edit_account(PermissionSet.full(), 200, personal)

    def test_role_named_after_built_in_not_editable(self):
        stray = GroupRole(id=31, group_id=1, name="Dono", is_built_in=False)
        assert not can_edit_role(PermissionSet.full(), stray)
