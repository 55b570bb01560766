"""Contribution period data model."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


@dataclass
class ContributionPeriod:
    """A fiscal-year ledger container.

    Attributes:
        year: Fiscal year.
        id: Unique identifier.
        start_month: First ledger month (``YYYY-MM``); None until initialized.
        horizon_month: Last month a manual extension reached, if any.
        created_by: Identifier of the official who created the period.
        created_at: Creation timestamp.
    """

    year: int
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    start_month: Optional[str] = None
    horizon_month: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_initialized(self) -> bool:
        """Whether the ledger start month has been set."""
        return self.start_month is not None

    @property
    def label(self) -> str:
        """Display label such as ``2025 Ledger``."""
        return f"{self.year} Ledger"
