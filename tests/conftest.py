"""Shared fixtures for the ledger tests."""

from datetime import date

import pytest

from mkoba_ledger.models.audit import AuditEvent
from mkoba_ledger.models.member import Member
from mkoba_ledger.models.role import Role
from mkoba_ledger.processing.ledger_service import LedgerContext, LedgerService
from mkoba_ledger.processing.member_directory import MemberDirectory
from mkoba_ledger.store.adapter import LedgerStoreAdapter
from mkoba_ledger.store.memory import InMemoryBackend

TODAY = date(2025, 4, 15)


@pytest.fixture
def store() -> LedgerStoreAdapter:
    """In-memory store adapter."""
    adapter = LedgerStoreAdapter(InMemoryBackend(), timeout_seconds=5)
    yield adapter
    adapter.close()


@pytest.fixture
def audit_events() -> list[AuditEvent]:
    """Collects audit events emitted during a test."""
    return []


@pytest.fixture
def service(store: LedgerStoreAdapter, audit_events: list[AuditEvent]) -> LedgerService:
    """Ledger service with a fixed clock (2025-04-15)."""
    return LedgerService(store, audit_sink=audit_events.append, clock=lambda: TODAY)


@pytest.fixture
def directory(store: LedgerStoreAdapter, audit_events: list[AuditEvent]) -> MemberDirectory:
    """Member directory sharing the service's store."""
    return MemberDirectory(store, audit_sink=audit_events.append)


@pytest.fixture
def treasurer() -> LedgerContext:
    """Treasurer context with no period selected."""
    return LedgerContext(role=Role.TREASURER, actor_id="treasurer-1")


@pytest.fixture
def chairperson() -> LedgerContext:
    """Chairperson context with no period selected."""
    return LedgerContext(role=Role.CHAIRPERSON, actor_id="chair-1")


@pytest.fixture
def period_id(service: LedgerService, treasurer: LedgerContext) -> str:
    """A 2025 period, not yet initialized."""
    return service.create_period(treasurer, 2025).id


@pytest.fixture
def members(directory: MemberDirectory, treasurer: LedgerContext) -> list[Member]:
    """Two registered members: Asha then Baraka."""
    return [
        directory.register(treasurer, "Asha Juma", phone="0712000001"),
        directory.register(treasurer, "Baraka Mwita"),
    ]
