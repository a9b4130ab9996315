"""
Tests for FinTrack

Test strategy:
1. Unit tests for individual components (models, calculators)
2. Integration tests for services and flows (with the in-memory backend)
3. No real API calls in tests (use mocks)
"""

import pytest
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from fintrack.models.account import (
    Account,
    AccountBalance,
    AccountType,
    Transaction,
    latest_snapshot,
)
from fintrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from fintrack.models.group import (
    BuiltInRole,
    GroupMember,
    GroupRole,
    MemberUser,
    RoleDraft,
    User,
)
from fintrack.models.notice import ActionResult, Notice, NoticeLevel
from fintrack.models.permissions import Capability, PermissionSet


class TestGroupModels:
    """Tests for user, role and member models."""

    def test_role_from_wire_lifts_flags(self):
        """Test that flattened flags become a PermissionSet."""
        role = GroupRole.model_validate({
            "id": 7,
            "groupId": 3,
            "name": "Tesoureiro",
            "canViewBudgets": True,
            "canManageBudgets": True,
            "canManageGroup": False,
        })
        assert role.group_id == 3
        assert role.permissions.ordered() == [Capability.VIEW_BUDGETS, Capability.MANAGE_BUDGETS]
        assert role.is_built_in is False

    def test_role_built_in_derived_from_name(self):
        """Test that built-in status is decided once when the payload lacks it."""
        role = GroupRole.model_validate({"id": 1, "groupId": 3, "name": "Leitor"})
        assert role.is_built_in is True

    def test_role_explicit_built_in_flag_wins(self):
        role = GroupRole.model_validate({
            "id": 1,
            "groupId": 3,
            "name": "Leitor",
            "isBuiltIn": False,
        })
        assert role.is_built_in is False

    def test_role_to_wire_flattens_flags(self):
        role = GroupRole(
            id=2,
            group_id=3,
            name="Dono",
            permissions=PermissionSet.full(),
            is_built_in=True,
        )
        payload = role.to_wire()
        assert payload["groupId"] == 3
        assert payload["isBuiltIn"] is True
        assert "permissions" not in payload
        assert all(payload[c.value] for c in Capability)

    def test_role_draft_wire_body(self):
        draft = RoleDraft(name="  Viewer  ", permissions=PermissionSet.of(Capability.VIEW_ACCOUNTS))
        body = draft.to_wire()
        assert body["name"] == "Viewer"
        assert "description" not in body
        assert body["canViewAccounts"] is True
        assert body["canManageGroup"] is False
        assert len(body) == 14

    def test_built_in_defaults(self):
        """Test the flags each built-in role starts with."""
        assert BuiltInRole.OWNER.default_permissions.is_full
        reader = BuiltInRole.READER.default_permissions
        assert len(reader) == 5
        assert not reader.allows(Capability.MANAGE_OWN_TRANSACTIONS)
        member = BuiltInRole.MEMBER.default_permissions
        assert member.allows(Capability.MANAGE_OWN_ACCOUNTS)
        assert not member.allows(Capability.MANAGE_GROUP)

    def test_reserved_role_names(self):
        assert BuiltInRole.is_reserved("Dono")
        assert BuiltInRole.is_reserved("  leitor ")
        assert not BuiltInRole.is_reserved("Donos")
        assert not BuiltInRole.is_reserved(None)

    def test_role_named_after_built_in_is_protected(self):
        """Test that a built-in name protects a row whose flag says otherwise."""
        role = GroupRole.model_validate({
            "id": 1,
            "groupId": 3,
            "name": "Membro",
            "isBuiltIn": False,
        })
        assert role.is_protected
        assert not GroupRole(id=2, group_id=3, name="Filhos").is_protected

    def test_user_display_name(self):
        assert User(id=1, email="a@x.com", first_name="Ana", last_name="Silva").display_name == "Ana Silva"
        assert User(id=1, email="a@x.com").display_name == "a@x.com"

    def test_member_display_name(self):
        member = GroupMember(
            id=1,
            group_id=2,
            user_id=3,
            role_id=4,
            user=MemberUser(id=3, email="b@x.com", first_name="Bruno"),
        )
        assert member.display_name == "Bruno"
        assert GroupMember(id=1, group_id=2, user_id=3, role_id=4).display_name == "User 3"


class TestAccountModels:
    """Tests for accounts and balance snapshots."""

    def test_credit_account_requires_days(self):
        with pytest.raises(PydanticValidationError):
            Account(id=1, user_id=1, name="Nubank", type=AccountType.CREDIT)

    def test_cash_account_rejects_days(self):
        with pytest.raises(PydanticValidationError):
            Account(id=1, user_id=1, name="Carteira", type=AccountType.CASH, credit_closing_day=5)

    def test_days_out_of_range(self):
        with pytest.raises(PydanticValidationError):
            Account(
                id=1,
                user_id=1,
                name="Nubank",
                type=AccountType.CREDIT,
                credit_closing_day=32,
                credit_due_day=5,
            )

    def test_account_from_wire(self):
        account = Account.model_validate({
            "id": 9,
            "userId": 1,
            "name": "Nubank",
            "type": "CREDIT",
            "creditClosingDay": 10,
            "creditDueDay": 15,
            "debitMethod": "INVOICE",
        })
        assert account.is_credit
        assert account.credit_due_day == 15

    def test_balance_float_amount_is_exact(self):
        """Test that JSON floats become exact decimals."""
        snapshot = AccountBalance(account_id=1, amount=10.1, date=datetime(2024, 1, 1))
        assert snapshot.amount == Decimal("10.1")

    def test_latest_snapshot_by_effective_date(self):
        old = AccountBalance(account_id=1, amount=Decimal("100"), date=datetime(2024, 1, 1))
        new = AccountBalance(account_id=1, amount=Decimal("50"), date=datetime(2024, 3, 1))
        assert latest_snapshot([old, new]) is new
        assert latest_snapshot([new, old]) is new
        assert latest_snapshot([]) is None

    def test_latest_snapshot_tie_goes_to_latest_created(self):
        day = datetime(2024, 3, 1)
        first = AccountBalance(
            account_id=1, amount=Decimal("1"), date=day, created_at=datetime(2024, 3, 2, 9)
        )
        second = AccountBalance(
            account_id=1, amount=Decimal("2"), date=day, created_at=datetime(2024, 3, 2, 10)
        )
        assert latest_snapshot([second, first]) is second

    def test_transaction_references(self):
        transfer = Transaction(id=1, account_id=5, to_account_id=6)
        assert transfer.references(5)
        assert transfer.references(6)
        assert not transfer.references(7)


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.ROLE_CREATED,
            description="Role created: Tesoureiro",
        )
        assert event.event_type == AuditEventType.ROLE_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.BALANCE_APPENDED,
            description="Balance snapshot recorded",
            details={"amount": "50", "effective_date": "2024-03-01"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "balance_appended"
        assert log_dict["details"]["amount"] == "50"
        assert log_dict["correlation_id"] is None

    def test_builder_role_created(self):
        correlation_id = uuid4()
        event = AuditEventBuilder.role_created(
            role_id=7,
            group_id=3,
            name="Tesoureiro",
            granted=["canViewBudgets"],
            actor_id=1,
            correlation_id=correlation_id,
        )
        assert event.entity_type == "role"
        assert event.entity_id == 7
        assert event.correlation_id == correlation_id
        assert event.details["granted"] == ["canViewBudgets"]

    def test_builder_force_delete_is_warning(self):
        """Test that deleting transactions along with an account stands out."""
        force = AuditEventBuilder.account_deleted(
            account_id=1, strategy="force", transaction_count=4, actor_id=1
        )
        move = AuditEventBuilder.account_deleted(
            account_id=1, strategy="move", transaction_count=4, actor_id=1, target_account_id=2
        )
        assert force.severity == AuditSeverity.WARNING
        assert move.severity == AuditSeverity.INFO
        assert move.details["target_account_id"] == 2

    def test_builder_member_changed(self):
        event = AuditEventBuilder.member_changed(
            event_type=AuditEventType.MEMBER_LEFT,
            member_id=8,
            group_id=3,
            user_id=2,
            role_id=None,
            actor_id=2,
        )
        assert event.description == "User 2 left group 3"

    def test_builder_network_failure(self):
        event = AuditEventBuilder.network_failure("delete_account", "timeout", actor_id=1)
        assert event.severity == AuditSeverity.ERROR
        assert event.error_type == "NetworkFailure"


class TestNotices:
    """Tests for action results."""

    def test_succeeded_with_message(self):
        result = ActionResult.succeeded(data=[1, 2], message="Saved")
        assert result.ok
        assert result.notice.level == NoticeLevel.SUCCESS
        assert result.data == [1, 2]

    def test_succeeded_without_message(self):
        assert ActionResult.succeeded().notice is None

    def test_failed(self):
        result = ActionResult.failed(Notice.error("Nope"), error_type="ProtectedRole")
        assert not result.ok
        assert result.notice.level == NoticeLevel.ERROR
        assert result.data is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
