"""Persistence backends and the adapter the ledger engine talks to."""

from mkoba_ledger.store.adapter import LedgerStoreAdapter, open_store
from mkoba_ledger.store.base import LedgerBackend, RecordNotFound
from mkoba_ledger.store.memory import InMemoryBackend

__all__ = [
    "InMemoryBackend",
    "LedgerBackend",
    "LedgerStoreAdapter",
    "RecordNotFound",
    "open_store",
]
