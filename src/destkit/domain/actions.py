"""Destination and action descriptors plus the explicit action registry.

Destinations do not register themselves. The application builds one
``ActionRegistry`` at startup from an explicit list of descriptors and hands it
to the dispatch layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence

    from destkit.domain.mapping import FieldCatalog
    from destkit.domain.ports.transaction import TransactionContext
    from destkit.domain.reconciliation.contracts import BatchOutcome, RecordOutcome


class PerformAction(Protocol):
    def __call__(
        self,
        payload: Mapping[str, object],
        *,
        transaction: TransactionContext | None = None,
    ) -> RecordOutcome: ...


class PerformBatchAction(Protocol):
    def __call__(
        self,
        payloads: Sequence[Mapping[str, object]],
        *,
        transaction: TransactionContext | None = None,
    ) -> BatchOutcome: ...


type DynamicFieldChoices = Callable[[], list[tuple[str, str]]]


@dataclass(slots=True, frozen=True, kw_only=True)
class ActionDefinition:
    name: str
    title: str
    fields: FieldCatalog
    perform: PerformAction
    perform_batch: PerformBatchAction | None = None
    description: str = ""
    default_subscription: str | None = None
    dynamic_fields: Mapping[str, DynamicFieldChoices] = field(
        default_factory=dict[str, "DynamicFieldChoices"]
    )
    batching_field: str | None = None
    identifier_field: str | None = None

    def wants_batching(self, payloads: Sequence[Mapping[str, object]]) -> bool:
        """Whether ``payloads`` should go through ``perform_batch``."""

        if self.perform_batch is None or not payloads:
            return False
        if self.batching_field is None:
            return True
        return all(bool(payload.get(self.batching_field)) for payload in payloads)


@dataclass(slots=True, frozen=True, kw_only=True)
class DestinationDefinition:
    name: str
    title: str
    actions: tuple[ActionDefinition, ...]


class UnknownActionError(KeyError):
    """Raised when a destination/action pair is not registered."""

    def __init__(self, destination: str, action: str) -> None:
        super().__init__(f"{destination}.{action}")
        self.destination = destination
        self.action = action

    def __str__(self) -> str:
        return f"Unknown action {self.action!r} for destination {self.destination!r}"


@dataclass(slots=True)
class ActionRegistry:
    _actions: dict[tuple[str, str], ActionDefinition] = field(
        default_factory=dict[tuple[str, str], "ActionDefinition"]
    )
    _destinations: dict[str, DestinationDefinition] = field(
        default_factory=dict[str, "DestinationDefinition"]
    )

    @classmethod
    def from_destinations(cls, destinations: Iterable[DestinationDefinition]) -> ActionRegistry:
        registry = cls()
        for destination in destinations:
            registry.add(destination)
        return registry

    def add(self, destination: DestinationDefinition) -> None:
        if destination.name in self._destinations:
            raise ValueError(f"Destination {destination.name!r} is already registered")
        self._destinations[destination.name] = destination
        for action in destination.actions:
            key = (destination.name, action.name)
            if key in self._actions:
                raise ValueError(f"Action {action.name!r} declared twice by {destination.name!r}")
            self._actions[key] = action

    def get(self, destination: str, action: str) -> ActionDefinition:
        try:
            return self._actions[(destination, action)]
        except KeyError:
            raise UnknownActionError(destination, action) from None

    def destinations(self) -> tuple[DestinationDefinition, ...]:
        return tuple(self._destinations.values())
