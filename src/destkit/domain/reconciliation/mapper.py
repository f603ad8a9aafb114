"""Build the identifier-keyed map of pending upsert records."""

from __future__ import annotations

import json
from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING

from .contracts import UpsertRecord
from .normalize import normalize_identifier

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .contracts import PropertyValue, UpsertPayload

LIST_DELIMITER = ";"


def build_upsert_map(
    payloads: Iterable[UpsertPayload],
    *,
    id_property: str,
    constrained_fields: Sequence[str] = (),
) -> dict[str, UpsertRecord]:
    """Map each payload to an ``Undetermined`` record keyed by normalized identifier.

    Later payloads replace earlier ones sharing the same key. Only the key is
    normalized: the identifier property keeps the value as given. Inputs are
    not validated here.
    """

    records: dict[str, UpsertRecord] = {}
    for payload in payloads:
        key = normalize_identifier(payload.identifier)
        properties = flatten_properties(payload.properties)
        if payload.custom_properties:
            properties.update(flatten_properties(payload.custom_properties))
        properties[id_property] = payload.identifier
        constrained = {
            name: properties[name] for name in constrained_fields if properties.get(name)
        }
        # re-inserting moves a duplicate key to its last position
        records.pop(key, None)
        records[key] = UpsertRecord(
            identifier=key,
            properties=MappingProxyType(properties),
            constrained_fields=MappingProxyType(constrained),
        )
    return records


def flatten_properties(values: Mapping[str, object | None]) -> dict[str, PropertyValue]:
    """Flatten custom property values to scalars or delimited strings."""

    return {name: flatten_value(value) for name, value in values.items() if value is not None}


def flatten_value(value: object) -> PropertyValue:
    if isinstance(value, Mapping):
        return _compact_json(value)
    if isinstance(value, list | tuple):
        return LIST_DELIMITER.join(to_text(item) for item in value)
    if isinstance(value, str | int | float | bool):
        return value
    return str(value)


def to_text(item: object) -> str:
    """Render a value the way the remote API echoes it back."""

    if isinstance(item, bool):
        return "true" if item else "false"
    if item is None or isinstance(item, Mapping | list | tuple):
        return _compact_json(item)
    return str(item)


def _compact_json(value: object) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
