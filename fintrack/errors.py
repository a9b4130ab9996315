"""
Domain error taxonomy.

Every error a user action can end in is one of these. Services raise them;
the flows in fintrack.orchestrator catch them at the edge of the action and
turn them into a transient notice. Backend failures (NetworkFailure,
NotFoundError) live in fintrack.services.backend.interface and share the
same base class.
"""

from typing import Optional


class FinTrackError(Exception):
    """Base exception for all fintrack errors."""

    # Short message safe to show to the user
    user_message: str = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.user_message)

    @property
    def notice_text(self) -> str:
        return str(self)


class ValidationError(FinTrackError):
    """A required field is empty or a value is out of range."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


class ProtectedRole(FinTrackError):
    """Mutation attempted on a built-in role."""

    def __init__(self, role_name: str):
        self.role_name = role_name
        super().__init__(f"The built-in role '{role_name}' cannot be changed or deleted")


class InUseByMembers(FinTrackError):
    """Role deletion attempted while members are still assigned to it."""

    def __init__(self, role_name: str, member_count: int):
        self.role_name = role_name
        self.member_count = member_count
        super().__init__(
            f"The role '{role_name}' is assigned to {member_count} member(s); "
            "reassign them before deleting it"
        )


class NotAMember(FinTrackError):
    """Permission resolution for a user who does not belong to the group."""

    def __init__(self, user_id: int, group_id: int):
        self.user_id = user_id
        self.group_id = group_id
        super().__init__(f"User {user_id} is not a member of group {group_id}")


class PermissionDenied(FinTrackError):
    """The acting user lacks the capability an operation requires."""

    def __init__(self, capability: str):
        self.capability = capability
        super().__init__(f"You do not have permission to do this ({capability})")


class DuplicateMember(FinTrackError):
    """The user already belongs to the group."""

    def __init__(self, user_id: int, group_id: int):
        self.user_id = user_id
        self.group_id = group_id
        super().__init__(f"User {user_id} is already a member of group {group_id}")


class OwnerProtected(FinTrackError):
    """The group owner cannot be removed, reassigned, or leave the group."""

    user_message = "The group owner cannot be changed through member management"


class NoTargetSelected(FinTrackError):
    """Move-and-delete requested without a destination account."""

    user_message = "Select a destination account to move the transactions to"


class InvalidDeletionState(FinTrackError):
    """An account deletion was resolved from a state that does not allow it."""

    def __init__(self, state: str, action: str):
        self.state = state
        self.action = action
        super().__init__(f"Cannot {action} an account deletion in state '{state}'")


class NotAuthenticated(FinTrackError):
    """No user is loaded into the session context."""

    user_message = "You are not signed in"
