"""Member data model."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from mkoba_ledger.models.role import Role


@dataclass
class Member:
    """A person who contributes to the group.

    Attributes:
        name: Display name.
        id: Unique identifier.
        phone: Contact number.
        role: Office held in the group.
        active: Whether the member currently contributes.
        received_payout: Whether the member has received their payout.
        payout_amount: Amount disbursed to the member (outside the month matrix).
        created_at: Registration timestamp; members list in this order.
    """

    name: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    phone: Optional[str] = None
    role: Role = Role.MEMBER
    active: bool = True
    received_payout: bool = False
    payout_amount: Decimal = field(default_factory=lambda: Decimal("0"))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __repr__(self) -> str:
        return f"Member(id={self.id!r}, name={self.name!r}, role={self.role.value})"
