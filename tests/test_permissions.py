"""Tests for the permission matrix and PermissionSet."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from fintrack.models.permissions import (
    PERMISSION_MATRIX,
    Capability,
    CapabilityGroup,
    PermissionSet,
    capabilities_in,
)


class TestPermissionMatrix:
    """Tests for the capability layout."""

    def test_thirteen_capabilities(self):
        assert len(Capability) == 13

    def test_every_capability_in_exactly_one_section(self):
        """Test that sections partition the capabilities."""
        listed = [c for _, capabilities in PERMISSION_MATRIX for c in capabilities]
        assert len(listed) == len(set(listed)) == 13
        assert set(listed) == set(Capability)

    def test_section_order(self):
        assert [section for section, _ in PERMISSION_MATRIX] == [
            CapabilityGroup.TRANSACTIONS,
            CapabilityGroup.CATEGORIES,
            CapabilityGroup.SUBCATEGORIES,
            CapabilityGroup.BUDGETS,
            CapabilityGroup.ACCOUNTS,
            CapabilityGroup.GROUP,
        ]

    def test_capabilities_in_group_section(self):
        assert capabilities_in(CapabilityGroup.GROUP) == (Capability.MANAGE_GROUP,)
        assert len(capabilities_in(CapabilityGroup.ACCOUNTS)) == 3

    def test_wire_keys_and_labels(self):
        assert Capability.MANAGE_GROUP.value == "canManageGroup"
        assert Capability.VIEW_BUDGETS.label == "Ver Orçamentos"


class TestPermissionSet:
    """Tests for the PermissionSet value object."""

    def test_full_and_none(self):
        assert PermissionSet.full().is_full
        assert len(PermissionSet.full()) == 13
        assert len(PermissionSet.none()) == 0
        assert not PermissionSet.none().allows(Capability.VIEW_ACCOUNTS)

    def test_from_flags_missing_keys_are_false(self):
        perms = PermissionSet.from_flags({"canViewAccounts": True, "canManageGroup": False})
        assert perms.allows(Capability.VIEW_ACCOUNTS)
        assert not perms.allows(Capability.MANAGE_GROUP)
        assert len(perms) == 1

    def test_from_flags_rejects_unknown_key(self):
        with pytest.raises(ValueError, match="canFly"):
            PermissionSet.from_flags({"canFly": True})

    def test_from_payload_ignores_other_fields(self):
        perms = PermissionSet.from_payload({
            "id": 4,
            "name": "Tesoureiro",
            "canManageBudgets": True,
            "canViewBudgets": True,
        })
        assert perms.ordered() == [Capability.VIEW_BUDGETS, Capability.MANAGE_BUDGETS]

    def test_to_flags_has_all_thirteen_keys(self):
        flags = PermissionSet.of(Capability.MANAGE_GROUP).to_flags()
        assert list(flags) == [c.value for c in Capability]
        assert flags["canManageGroup"] is True
        assert sum(flags.values()) == 1

    def test_flags_round_trip(self):
        perms = PermissionSet.of(Capability.VIEW_TRANSACTIONS, Capability.MANAGE_OWN_ACCOUNTS)
        assert PermissionSet.from_flags(perms.to_flags()) == perms

    def test_with_granted_and_without_return_new_sets(self):
        base = PermissionSet.of(Capability.VIEW_ACCOUNTS)
        more = base.with_granted(Capability.MANAGE_GROUP)
        less = more.without(Capability.VIEW_ACCOUNTS)

        assert Capability.MANAGE_GROUP not in base
        assert Capability.MANAGE_GROUP in more
        assert less.ordered() == [Capability.MANAGE_GROUP]

    def test_is_frozen(self):
        perms = PermissionSet.none()
        with pytest.raises(PydanticValidationError):
            perms.granted = frozenset(Capability)

    def test_sections_for_rendering(self):
        sections = PermissionSet.of(Capability.MANAGE_GROUP).sections()
        assert len(sections) == 6
        group_section, rows = sections[-1]
        assert group_section == CapabilityGroup.GROUP
        assert rows == [(Capability.MANAGE_GROUP, True)]
        _, transaction_rows = sections[0]
        assert all(granted is False for _, granted in transaction_rows)
