"""Scripted ``BatchUpsertPort`` double for engine and executor tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

from destkit.domain.errors import FatalRemoteError
from destkit.domain.reconciliation import BatchResponse, ErrorEntry, RemoteRecord, UpsertPayload
from destkit.domain.reconciliation.mapper import to_text

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from destkit.domain.reconciliation import UpdateInput
    from destkit.domain.reconciliation.contracts import Properties


class FakeUpsertPort:
    """Answers lookups from a fixed response and echoes writes back.

    ``update_echo`` overrides echoed properties on the first update call only,
    which is how a remote refusing a field change looks.
    """

    def __init__(
        self,
        lookup: BatchResponse | FatalRemoteError,
        *,
        update_echo: Mapping[str, Mapping[str, str]] | None = None,
        failing_update_calls: Iterable[int] = (),
        update_errors: Mapping[int, tuple[ErrorEntry, ...]] | None = None,
        create_errors: tuple[ErrorEntry, ...] = (),
        create_drops: Iterable[str] = (),
    ) -> None:
        self.lookup = lookup
        self.update_echo = dict(update_echo or {})
        self.failing_update_calls = set(failing_update_calls)
        self.update_errors = dict(update_errors or {})
        self.create_errors = create_errors
        self.create_drops = set(create_drops)
        self.calls: list[str] = []
        self.read_calls: list[dict[str, object]] = []
        self.create_calls: list[list[Properties]] = []
        self.update_calls: list[list[UpdateInput]] = []

    async def read_batch(
        self,
        *,
        id_property: str,
        identifiers: Sequence[str],
        properties: Sequence[str],
    ) -> BatchResponse:
        self.calls.append("read")
        self.read_calls.append(
            {
                "id_property": id_property,
                "identifiers": list(identifiers),
                "properties": list(properties),
            }
        )
        if isinstance(self.lookup, FatalRemoteError):
            raise self.lookup
        return self.lookup

    async def create_batch(self, inputs: Sequence[Properties]) -> BatchResponse:
        self.calls.append("create")
        self.create_calls.append(list(inputs))
        results = tuple(
            RemoteRecord(
                remote_id=str(900 + index),
                properties={key: to_text(value) for key, value in properties.items()},
            )
            for index, properties in enumerate(inputs)
            if properties.get("email") not in self.create_drops
        )
        return BatchResponse(results=results, errors=self.create_errors)

    async def update_batch(self, inputs: Sequence[UpdateInput]) -> BatchResponse:
        index = len(self.update_calls)
        self.calls.append("update")
        self.update_calls.append(list(inputs))
        if index in self.failing_update_calls:
            raise FatalRemoteError("Internal error", category="INTERNAL_ERROR", status_code=500)
        errors = self.update_errors.get(index, ())
        failed_ids = {identifier for error in errors for identifier in error.affected_identifiers}
        echo = self.update_echo if index == 0 else {}
        results = tuple(
            RemoteRecord(
                remote_id=update.remote_id,
                properties={
                    **{key: to_text(value) for key, value in update.properties.items()},
                    **echo.get(update.remote_id, {}),
                },
            )
            for update in inputs
            if update.remote_id not in failed_ids
        )
        return BatchResponse(results=results, errors=errors)


def not_found(*identifiers: str) -> ErrorEntry:
    return ErrorEntry(
        category="OBJECT_NOT_FOUND",
        message="Could not get some CONTACT objects",
        affected_identifiers=identifiers,
        status="error",
    )


def found(remote_id: str, email: str, **properties: str) -> RemoteRecord:
    return RemoteRecord(remote_id=remote_id, properties={"email": email, **properties})


def payload(identifier: str, **properties: object) -> UpsertPayload:
    custom = properties.pop("custom", None)
    return UpsertPayload(
        identifier=identifier,
        properties=properties,
        custom_properties=custom if isinstance(custom, dict) else None,
    )
