"""Role-based permission checks.

All checks are pure lookups in ``PERMISSIONS`` and are meant to be
evaluated on every request; nothing here caches a decision.
"""

from mkoba_ledger.errors import PreconditionError
from mkoba_ledger.models.role import PERMISSIONS, Capability, Role


def has_capability(role: Role, capability: Capability) -> bool:
    """Check whether a role grants a capability.

    Args:
        role: Role of the acting official.
        capability: Capability being requested.

    Returns:
        True if the permission table grants it.
    """
    return capability in PERMISSIONS.get(role, frozenset())


def can_edit(role: Role, has_active_period: bool) -> bool:
    """Check whether ledger cells may be edited.

    Args:
        role: Role of the acting official.
        has_active_period: Whether a period is currently selected.

    Returns:
        True only with a selected period and a treasurer or chairperson role.
    """
    return has_active_period and has_capability(role, Capability.EDIT_CONTRIBUTIONS)


def require_edit(role: Role, has_active_period: bool) -> None:
    """Raise unless ``can_edit`` allows the edit.

    Raises:
        PreconditionError: With a message naming the missing precondition.
    """
    if not has_active_period:
        raise PreconditionError("No active contribution period selected")
    if not can_edit(role, has_active_period):
        raise PreconditionError(f"Role '{role.value}' may not edit contributions")


def require_capability(role: Role, capability: Capability) -> None:
    """Raise unless the role grants the capability.

    Raises:
        PreconditionError: If the role lacks the capability.
    """
    if not has_capability(role, capability):
        raise PreconditionError(f"Role '{role.value}' lacks permission: {capability.value}")
