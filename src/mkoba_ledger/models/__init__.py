"""Data models for members, periods, contributions, roles and ledger views."""

from mkoba_ledger.models.audit import AuditEvent, AuditSink
from mkoba_ledger.models.contribution import Contribution, ContributionKey
from mkoba_ledger.models.member import Member
from mkoba_ledger.models.period import ContributionPeriod
from mkoba_ledger.models.report import (
    GRAND_TOTAL_LABEL,
    DashboardTotals,
    ExportRow,
    ExportTable,
    LedgerSummary,
)
from mkoba_ledger.models.role import PERMISSIONS, Capability, Role

__all__ = [
    "AuditEvent",
    "AuditSink",
    "Capability",
    "Contribution",
    "ContributionKey",
    "ContributionPeriod",
    "DashboardTotals",
    "ExportRow",
    "ExportTable",
    "GRAND_TOTAL_LABEL",
    "LedgerSummary",
    "Member",
    "PERMISSIONS",
    "Role",
]
