"""Ledger processing: permissions and aggregation.

The orchestration services live in ``ledger_service`` and
``member_directory`` and are imported from there directly.
"""

from mkoba_ledger.processing.access_gate import can_edit, has_capability, require_capability, require_edit
from mkoba_ledger.processing.aggregator import (
    compute_dashboard_totals,
    filter_members,
    get_aggregation,
    index_contributions,
    liquidity_ratio,
)

__all__ = [
    "can_edit",
    "compute_dashboard_totals",
    "filter_members",
    "get_aggregation",
    "has_capability",
    "index_contributions",
    "liquidity_ratio",
    "require_capability",
    "require_edit",
]
