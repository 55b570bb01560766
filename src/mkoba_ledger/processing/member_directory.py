"""Member registration and maintenance."""

from dataclasses import replace
from typing import Optional

from mkoba_ledger.errors import PreconditionError, ValidationError
from mkoba_ledger.models.audit import AuditEvent, AuditSink
from mkoba_ledger.models.member import Member
from mkoba_ledger.models.role import Capability, Role
from mkoba_ledger.processing.access_gate import require_capability
from mkoba_ledger.processing.ledger_service import LedgerContext, find_member, log_audit_event
from mkoba_ledger.store.adapter import LedgerStoreAdapter
from mkoba_ledger.utils.logging_config import get_logger

logger = get_logger(__name__)

# Sentinel distinguishing "leave unchanged" from "clear the phone number"
_UNCHANGED = object()


def _clean_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Member name is required", field="name")
    return cleaned


def _clean_phone(phone: Optional[str]) -> Optional[str]:
    cleaned = (phone or "").strip()
    return cleaned or None


class MemberDirectory:
    """Registers, edits, deactivates and deletes members.

    Treasurers and chairpersons register members; only the chairperson may
    change or remove an existing member.
    """

    def __init__(self, store: LedgerStoreAdapter, audit_sink: Optional[AuditSink] = None):
        self.store = store
        self.audit_sink = audit_sink or log_audit_event

    def list_members(self, include_inactive: bool = True) -> list[Member]:
        """Members in registration order."""
        members = self.store.list_members()
        if include_inactive:
            return members
        return [m for m in members if m.active]

    def get(self, member_id: str) -> Member:
        """Look a member up by id.

        Raises:
            ValidationError: If the member does not exist.
        """
        return find_member(self.store.list_members(), member_id)

    def register(
        self,
        context: LedgerContext,
        name: Optional[str],
        phone: Optional[str] = None,
        role: Role = Role.MEMBER,
    ) -> Member:
        """Add a member to the group.

        Args:
            context: Acting session.
            name: Display name (required).
            phone: Contact number.
            role: Office held in the group.

        Returns:
            The stored member.

        Raises:
            ValidationError: If the name is missing.
            PreconditionError: If the role may not register members.
        """
        cleaned = _clean_name(name)
        require_capability(context.role, Capability.REGISTER_MEMBERS)

        member = self.store.add_member(Member(name=cleaned, phone=_clean_phone(phone), role=role))
        self._emit(context, "INSERT", member.id, {"name": member.name, "role": member.role.value})
        logger.info(f"Registered member {member.name} ({member.id})")
        return member

    def update(
        self,
        context: LedgerContext,
        member_id: str,
        name: Optional[str] = None,
        phone: object = _UNCHANGED,
        role: Optional[Role] = None,
        active: Optional[bool] = None,
    ) -> Member:
        """Change a member's details. Arguments left as None are kept.

        Raises:
            ValidationError: If the new name is blank or the member is unknown.
            PreconditionError: If the role may not manage members.
        """
        changes: dict[str, object] = {}
        if name is not None:
            changes["name"] = _clean_name(name)
        if phone is not _UNCHANGED:
            changes["phone"] = _clean_phone(phone)  # type: ignore[arg-type]
        if role is not None:
            changes["role"] = role
        if active is not None:
            changes["active"] = active
        require_capability(context.role, Capability.MANAGE_MEMBERS)

        member = self.get(member_id)
        if not changes:
            return member

        updated = self.store.update_member(replace(member, **changes))
        self._emit(
            context, "UPDATE", member_id,
            {k: v.value if isinstance(v, Role) else v for k, v in changes.items()},
        )
        return updated

    def deactivate(self, context: LedgerContext, member_id: str) -> Member:
        """Mark a member inactive, keeping their contribution history."""
        return self.update(context, member_id, active=False)

    def delete(self, context: LedgerContext, member_id: str) -> None:
        """Remove a member permanently.

        Raises:
            PreconditionError: If the role may not manage members, or the
                member still has contribution records (deactivate instead).
        """
        require_capability(context.role, Capability.MANAGE_MEMBERS)

        member = self.get(member_id)
        if self.store.member_has_contributions(member_id):
            raise PreconditionError(
                f"{member.name} has recorded contributions; deactivate the member instead of deleting"
            )

        self.store.delete_member(member_id)
        self._emit(context, "DELETE", member_id, {"name": member.name})
        logger.info(f"Deleted member {member.name} ({member_id})")

    def _emit(
        self,
        context: LedgerContext,
        action: str,
        record_id: str,
        changes: Optional[dict[str, object]] = None,
    ) -> None:
        event = AuditEvent(
            actor_id=context.actor_id,
            action=action,
            table_name="members",
            record_id=record_id,
            changes=changes,
        )
        try:
            self.audit_sink(event)
        except Exception:
            logger.exception(f"Audit sink failed for {action} members/{record_id}")
