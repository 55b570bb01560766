"""Audit facts emitted after successful mutations."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional


@dataclass(frozen=True)
class AuditEvent:
    """Record of who did what to which row.

    The ledger only emits these; storing them is up to the sink.

    Attributes:
        actor_id: Official who performed the action.
        action: ``INSERT``, ``UPDATE``, ``DELETE``, ``INITIALIZE`` or ``EXTEND``.
        table_name: Affected collection (``contributions``, ``members``, ...).
        record_id: Identifier of the affected record.
        changes: Optional snapshot of the written fields.
    """

    actor_id: str
    action: str
    table_name: str
    record_id: str
    changes: Optional[dict[str, Any]] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


AuditSink = Callable[[AuditEvent], None]
