"""Roles, capabilities and the permission table that joins them."""

from enum import Enum


class Role(Enum):
    """Office a person holds in the group.

    A flat set: roles are never compared by rank, only looked up in
    ``PERMISSIONS``.
    """

    MEMBER = "member"
    SECRETARY = "secretary"
    TREASURER = "treasurer"
    CHAIRPERSON = "chairperson"

    @classmethod
    def from_str(cls, raw_role: str | None) -> "Role":
        """Resolve a role name, accepting the group's Swahili titles.

        Unknown or empty names resolve to MEMBER, the least privileged role.

        Args:
            raw_role: Role name such as ``treasurer`` or ``mweka_hazina``.

        Returns:
            The matching Role.
        """
        if not raw_role:
            return cls.MEMBER

        key = raw_role.strip().lower().replace("-", "_").replace(" ", "_")
        if key in ROLE_ALIASES:
            return ROLE_ALIASES[key]
        try:
            return cls(key)
        except ValueError:
            return cls.MEMBER

    @property
    def title(self) -> str:
        """Display title, e.g. ``Treasurer``."""
        return self.value.capitalize()


# Titles used by the original group's records
ROLE_ALIASES = {
    "user": Role.MEMBER,
    "katibu": Role.SECRETARY,
    "mweka_hazina": Role.TREASURER,
    "mwenyekiti": Role.CHAIRPERSON,
}


class Capability(Enum):
    """Something a role may be allowed to do."""

    EDIT_CONTRIBUTIONS = "edit_contributions"
    INITIALIZE_LEDGER = "initialize_ledger"
    RECORD_PAYOUTS = "record_payouts"
    REGISTER_MEMBERS = "register_members"
    MANAGE_MEMBERS = "manage_members"


_OFFICER_CAPABILITIES = frozenset({
    Capability.EDIT_CONTRIBUTIONS,
    Capability.INITIALIZE_LEDGER,
    Capability.RECORD_PAYOUTS,
    Capability.REGISTER_MEMBERS,
})

PERMISSIONS: dict[Role, frozenset[Capability]] = {
    Role.MEMBER: frozenset(),
    Role.SECRETARY: frozenset(),
    Role.TREASURER: _OFFICER_CAPABILITIES,
    Role.CHAIRPERSON: _OFFICER_CAPABILITIES | {Capability.MANAGE_MEMBERS},
}
