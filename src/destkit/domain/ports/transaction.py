"""Key/value channel shared by actions handling the same event."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping


@runtime_checkable
class TransactionContext(Protocol):
    @property
    def transaction(self) -> Mapping[str, str]: ...

    def set_transaction(self, key: str, value: str) -> None: ...


@dataclass(slots=True)
class InMemoryTransactionContext:
    """Transaction context living for a single event-processing transaction."""

    transaction: dict[str, str] = field(default_factory=dict[str, str])

    def set_transaction(self, key: str, value: str) -> None:
        self.transaction[key] = value


__all__ = ["InMemoryTransactionContext", "TransactionContext"]
