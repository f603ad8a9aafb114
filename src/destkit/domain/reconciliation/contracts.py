"""Types exchanged between the mapper, reconciler and executor.

Record state is a tagged union: a record starts ``Undetermined`` and is resolved
exactly once to ``Create`` or ``Update``. ``Failed`` only appears on outcomes
produced after a write call.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

type PropertyValue = str | int | float | bool
type Properties = Mapping[str, PropertyValue]

NOT_FOUND_CATEGORY = "OBJECT_NOT_FOUND"
MISSING_FROM_RESPONSE_CATEGORY = "MISSING_FROM_RESPONSE"


class RecordAction(StrEnum):
    UNDETERMINED = "undetermined"
    CREATE = "create"
    UPDATE = "update"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class Undetermined:
    action: Literal[RecordAction.UNDETERMINED] = RecordAction.UNDETERMINED


@dataclass(slots=True, frozen=True)
class Create:
    action: Literal[RecordAction.CREATE] = RecordAction.CREATE


@dataclass(slots=True, frozen=True, kw_only=True)
class Update:
    remote_id: str
    action: Literal[RecordAction.UPDATE] = RecordAction.UPDATE


@dataclass(slots=True, frozen=True, kw_only=True)
class Failed:
    category: str
    message: str
    action: Literal[RecordAction.FAILED] = RecordAction.FAILED


type RecordState = Undetermined | Create | Update | Failed


@dataclass(slots=True, frozen=True, kw_only=True)
class UpsertPayload:
    """Resolved input for one event, before normalization and flattening."""

    identifier: str
    properties: Mapping[str, object | None] = field(default_factory=dict[str, "object | None"])
    custom_properties: Mapping[str, object | None] | None = None


@dataclass(slots=True, frozen=True, kw_only=True)
class UpsertRecord:
    identifier: str
    properties: Properties
    constrained_fields: Mapping[str, PropertyValue] = field(
        default_factory=lambda: MappingProxyType({})
    )
    state: RecordState = field(default_factory=Undetermined)

    @property
    def is_resolved(self) -> bool:
        return not isinstance(self.state, Undetermined)

    @property
    def remote_id(self) -> str | None:
        if isinstance(self.state, Update):
            return self.state.remote_id
        return None

    def resolve(self, state: Create | Update) -> UpsertRecord:
        if self.is_resolved:
            msg = f"Record {self.identifier!r} is already resolved as {self.state.action}"
            raise ValueError(msg)
        return replace(self, state=state)


@dataclass(slots=True, frozen=True, kw_only=True)
class RemoteRecord:
    """One remote object as returned by a lookup, create or update call."""

    remote_id: str
    properties: Mapping[str, str | None] = field(default_factory=dict[str, "str | None"])


@dataclass(slots=True, frozen=True, kw_only=True)
class ErrorEntry:
    category: str
    message: str = ""
    affected_identifiers: tuple[str, ...] = ()
    status: str | None = None

    @property
    def is_not_found(self) -> bool:
        return self.category == NOT_FOUND_CATEGORY


@dataclass(slots=True, frozen=True, kw_only=True)
class BatchResponse:
    results: tuple[RemoteRecord, ...] = ()
    errors: tuple[ErrorEntry, ...] = ()


@dataclass(slots=True, frozen=True, kw_only=True)
class UpdateInput:
    remote_id: str
    properties: Properties


@dataclass(slots=True, frozen=True, kw_only=True)
class ReconciliationPlan:
    """Resolved records plus the create and update work queues, in input order."""

    records: Mapping[str, UpsertRecord]
    create_queue: tuple[UpsertRecord, ...] = ()
    update_queue: tuple[UpsertRecord, ...] = ()


@dataclass(slots=True, frozen=True, kw_only=True)
class UpsertSuccess:
    identifier: str
    action: Literal[RecordAction.CREATE, RecordAction.UPDATE]
    remote_id: str
    properties: Mapping[str, str | None] = field(default_factory=dict[str, "str | None"])
    ok: Literal[True] = True


@dataclass(slots=True, frozen=True, kw_only=True)
class UpsertFailure:
    identifier: str
    action: RecordAction
    category: str
    message: str
    ok: Literal[False] = False


type RecordOutcome = UpsertSuccess | UpsertFailure


@dataclass(slots=True, frozen=True)
class BatchOutcome:
    """Per-input outcomes, aligned with the order of the submitted payloads."""

    outcomes: tuple[RecordOutcome, ...] = ()

    def __len__(self) -> int:
        return len(self.outcomes)

    def __iter__(self) -> Iterator[RecordOutcome]:
        return iter(self.outcomes)

    def __getitem__(self, index: int) -> RecordOutcome:
        return self.outcomes[index]

    @property
    def succeeded(self) -> tuple[UpsertSuccess, ...]:
        return tuple(outcome for outcome in self.outcomes if isinstance(outcome, UpsertSuccess))

    @property
    def failed(self) -> tuple[UpsertFailure, ...]:
        return tuple(outcome for outcome in self.outcomes if isinstance(outcome, UpsertFailure))
