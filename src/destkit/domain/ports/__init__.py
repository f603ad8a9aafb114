"""Domain port definitions for adapters."""

from __future__ import annotations

from .transaction import InMemoryTransactionContext, TransactionContext
from .upsert import BatchUpsertPort

__all__ = [
    "BatchUpsertPort",
    "InMemoryTransactionContext",
    "TransactionContext",
]
