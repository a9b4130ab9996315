"""
Group Access Models

Users, groups, roles and memberships as exchanged with the finance backend.

Wire payloads are camelCase JSON; attributes are snake_case. A role's 13
capability flags travel flattened in the payload and are held here as a
single PermissionSet.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)
from pydantic.alias_generators import to_camel

from fintrack.models.permissions import Capability, PermissionSet


class WireModel(BaseModel):
    """Base for models that are read from and written to the backend."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class BuiltInRole(str, Enum):
    """
    Roles the backend seeds for every group.

    They are protected: never edited or deleted through role management.
    """
    OWNER = "Dono"
    MEMBER = "Membro"
    READER = "Leitor"

    @classmethod
    def names(cls) -> frozenset[str]:
        return frozenset(role.value for role in cls)

    @classmethod
    def is_reserved(cls, name: Optional[str]) -> bool:
        """Whether `name` belongs to a built-in role, ignoring case and padding."""
        wanted = (name or "").strip().casefold()
        return any(wanted == role.value.casefold() for role in cls)

    @property
    def default_permissions(self) -> PermissionSet:
        """Flags a freshly created group gives this role."""
        if self is BuiltInRole.OWNER:
            return PermissionSet.full()
        views = (
            Capability.VIEW_TRANSACTIONS,
            Capability.VIEW_CATEGORIES,
            Capability.VIEW_SUBCATEGORIES,
            Capability.VIEW_BUDGETS,
            Capability.VIEW_ACCOUNTS,
        )
        if self is BuiltInRole.MEMBER:
            return PermissionSet.of(
                *views,
                Capability.MANAGE_OWN_TRANSACTIONS,
                Capability.MANAGE_OWN_ACCOUNTS,
            )
        return PermissionSet.of(*views)


# =============================================================================
# USERS AND GROUPS
# =============================================================================

class User(WireModel):
    """An authenticated user, as returned by /users/me."""

    id: int
    email: str
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    timezone: Optional[str] = None

    @property
    def display_name(self) -> str:
        full = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full or self.name or self.email


class Group(WireModel):
    """
    A shared workspace.

    The owner implicitly holds every capability, whatever role rows say.
    """

    id: int
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    owner_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_owner(self, user_id: int) -> bool:
        return self.owner_id == user_id


# =============================================================================
# ROLES
# =============================================================================

class GroupRole(WireModel):
    """
    A named set of capability flags scoped to one group.

    DESIGN DECISION: is_built_in is the explicit attribute. When a payload
    does not carry isBuiltIn, the flag is decided once here, from the
    built-in names. Protection (is_protected) also covers any row named
    after a built-in role, whatever the flag says.
    """

    id: int
    group_id: int
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    permissions: PermissionSet = Field(default_factory=PermissionSet.none)
    is_built_in: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def lift_flags(cls, data: Any) -> Any:
        """Collect flattened wire flags into `permissions`."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "permissions" not in data:
            data["permissions"] = PermissionSet.from_payload(data)
        for capability in Capability:
            data.pop(capability.value, None)
        if "isBuiltIn" not in data and "is_built_in" not in data:
            data["is_built_in"] = str(data.get("name", "")).strip() in BuiltInRole.names()
        return data

    @property
    def is_protected(self) -> bool:
        """Built-in roles and any role carrying a built-in name are immutable."""
        return self.is_built_in or BuiltInRole.is_reserved(self.name)

    def allows(self, capability: Capability) -> bool:
        return self.permissions.allows(capability)

    def to_wire(self) -> dict[str, Any]:
        payload = self.model_dump(
            mode="json",
            by_alias=True,
            exclude_none=True,
            exclude={"permissions"},
        )
        payload.update(self.permissions.to_flags())
        return payload


class RoleDraft(BaseModel):
    """
    Body of a role create/update request.

    Name emptiness is checked by RoleStore so it surfaces as a
    ValidationError rather than a pydantic error.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str
    description: Optional[str] = None
    permissions: PermissionSet = Field(default_factory=PermissionSet.none)

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name}
        if self.description:
            payload["description"] = self.description
        payload.update(self.permissions.to_flags())
        return payload


# =============================================================================
# MEMBERS
# =============================================================================

class MemberUser(WireModel):
    """User summary embedded in a member row."""

    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class GroupMember(WireModel):
    """A user's membership in a group. A user belongs to a group at most once."""

    id: int
    group_id: int
    user_id: int
    role_id: int
    joined_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user: Optional[MemberUser] = None
    role: Optional[GroupRole] = None

    @property
    def display_name(self) -> str:
        if self.user is None:
            return f"User {self.user_id}"
        full = " ".join(part for part in (self.user.first_name, self.user.last_name) if part)
        return full or self.user.email
