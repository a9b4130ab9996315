"""
Permission Matrix

The 13 capability flags a group role can grant, their grouping into the
sections shown on the role form, and the PermissionSet value object.

DESIGN DECISION: Capability is the single source of truth for the flag shape.
Declaring, copying, serializing (wire keys are the enum values) and rendering
flags all go through it; nothing else lists the flag names.
"""

from enum import Enum
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# CAPABILITIES
# =============================================================================

class Capability(str, Enum):
    """
    A single boolean permission a role can grant.

    The value is the key used on the wire and in role payloads.
    """
    VIEW_TRANSACTIONS = "canViewTransactions"
    MANAGE_OWN_TRANSACTIONS = "canManageOwnTransactions"
    MANAGE_GROUP_TRANSACTIONS = "canManageGroupTransactions"
    VIEW_CATEGORIES = "canViewCategories"
    MANAGE_CATEGORIES = "canManageCategories"
    VIEW_SUBCATEGORIES = "canViewSubcategories"
    MANAGE_SUBCATEGORIES = "canManageSubcategories"
    VIEW_BUDGETS = "canViewBudgets"
    MANAGE_BUDGETS = "canManageBudgets"
    VIEW_ACCOUNTS = "canViewAccounts"
    MANAGE_OWN_ACCOUNTS = "canManageOwnAccounts"
    MANAGE_GROUP_ACCOUNTS = "canManageGroupAccounts"
    MANAGE_GROUP = "canManageGroup"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS: dict[Capability, str] = {
    Capability.VIEW_TRANSACTIONS: "Ver Transações",
    Capability.MANAGE_OWN_TRANSACTIONS: "Gerenciar Próprias Transações",
    Capability.MANAGE_GROUP_TRANSACTIONS: "Gerenciar Transações do Grupo",
    Capability.VIEW_CATEGORIES: "Ver Categorias",
    Capability.MANAGE_CATEGORIES: "Gerenciar Categorias",
    Capability.VIEW_SUBCATEGORIES: "Ver Subcategorias",
    Capability.MANAGE_SUBCATEGORIES: "Gerenciar Subcategorias",
    Capability.VIEW_BUDGETS: "Ver Orçamentos",
    Capability.MANAGE_BUDGETS: "Gerenciar Orçamentos",
    Capability.VIEW_ACCOUNTS: "Ver Contas",
    Capability.MANAGE_OWN_ACCOUNTS: "Gerenciar Próprias Contas",
    Capability.MANAGE_GROUP_ACCOUNTS: "Gerenciar Contas do Grupo",
    Capability.MANAGE_GROUP: "Gerenciar Grupo",
}


class CapabilityGroup(str, Enum):
    """Sections of the role form."""
    TRANSACTIONS = "Transações"
    CATEGORIES = "Categorias"
    SUBCATEGORIES = "Subcategorias"
    BUDGETS = "Orçamentos"
    ACCOUNTS = "Contas"
    GROUP = "Grupo"


# Ordered section -> capabilities. Every capability appears exactly once.
PERMISSION_MATRIX: tuple[tuple[CapabilityGroup, tuple[Capability, ...]], ...] = (
    (CapabilityGroup.TRANSACTIONS, (
        Capability.VIEW_TRANSACTIONS,
        Capability.MANAGE_OWN_TRANSACTIONS,
        Capability.MANAGE_GROUP_TRANSACTIONS,
    )),
    (CapabilityGroup.CATEGORIES, (
        Capability.VIEW_CATEGORIES,
        Capability.MANAGE_CATEGORIES,
    )),
    (CapabilityGroup.SUBCATEGORIES, (
        Capability.VIEW_SUBCATEGORIES,
        Capability.MANAGE_SUBCATEGORIES,
    )),
    (CapabilityGroup.BUDGETS, (
        Capability.VIEW_BUDGETS,
        Capability.MANAGE_BUDGETS,
    )),
    (CapabilityGroup.ACCOUNTS, (
        Capability.VIEW_ACCOUNTS,
        Capability.MANAGE_OWN_ACCOUNTS,
        Capability.MANAGE_GROUP_ACCOUNTS,
    )),
    (CapabilityGroup.GROUP, (
        Capability.MANAGE_GROUP,
    )),
)


# =============================================================================
# PERMISSION SET
# =============================================================================

class PermissionSet(BaseModel):
    """
    An immutable set of granted capabilities.

    Usage:
        perms = PermissionSet.of(Capability.VIEW_ACCOUNTS)
        perms.allows(Capability.MANAGE_GROUP)   # False
        perms.to_flags()["canViewAccounts"]     # True
    """
    model_config = ConfigDict(frozen=True)

    granted: frozenset[Capability] = Field(
        default_factory=frozenset,
        description="Capabilities set to true"
    )

    @classmethod
    def full(cls) -> "PermissionSet":
        return cls(granted=frozenset(Capability))

    @classmethod
    def none(cls) -> "PermissionSet":
        return cls()

    @classmethod
    def of(cls, *capabilities: Capability) -> "PermissionSet":
        return cls(granted=frozenset(capabilities))

    @classmethod
    def from_flags(cls, flags: Mapping[str, object]) -> "PermissionSet":
        """
        Build from a flag mapping keyed by wire name.

        Missing keys count as False. Keys that are not capability names
        raise ValueError.
        """
        granted = set()
        for key, value in flags.items():
            try:
                capability = Capability(key)
            except ValueError:
                raise ValueError(f"Unknown capability flag: {key}")
            if bool(value):
                granted.add(capability)
        return cls(granted=frozenset(granted))

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> "PermissionSet":
        """Pick the capability flags out of a larger payload (e.g. a role)."""
        return cls(granted=frozenset(
            capability for capability in Capability if payload.get(capability.value)
        ))

    def to_flags(self) -> dict[str, bool]:
        """All 13 flags keyed by wire name, in matrix order."""
        return {capability.value: capability in self.granted for capability in Capability}

    def allows(self, capability: Capability) -> bool:
        return capability in self.granted

    def __contains__(self, capability: object) -> bool:
        return capability in self.granted

    def __len__(self) -> int:
        return len(self.granted)

    def ordered(self) -> list[Capability]:
        """Granted capabilities in matrix order."""
        return [capability for capability in Capability if capability in self.granted]

    def with_granted(self, *capabilities: Capability) -> "PermissionSet":
        return PermissionSet(granted=self.granted | frozenset(capabilities))

    def without(self, *capabilities: Capability) -> "PermissionSet":
        return PermissionSet(granted=self.granted - frozenset(capabilities))

    @property
    def is_full(self) -> bool:
        return len(self.granted) == len(Capability)

    def sections(self) -> list[tuple[CapabilityGroup, list[tuple[Capability, bool]]]]:
        """Rows for rendering the matrix: section -> [(capability, granted)]."""
        return [
            (group, [(capability, capability in self.granted) for capability in capabilities])
            for group, capabilities in PERMISSION_MATRIX
        ]


def capabilities_in(group: CapabilityGroup) -> tuple[Capability, ...]:
    """Capabilities listed under a form section."""
    for section, capabilities in PERMISSION_MATRIX:
        if section == group:
            return capabilities
    raise KeyError(group)
