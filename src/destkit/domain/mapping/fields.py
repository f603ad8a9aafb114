"""Typed field definitions declared by destination actions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping


class FieldType(StrEnum):
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    OBJECT = "object"
    DATETIME = "datetime"


@dataclass(slots=True, frozen=True, kw_only=True)
class FieldDefinition:
    """One mappable field of an action.

    ``default`` is either a literal or a mapping expression (``@path``/``@if``)
    evaluated against the incoming event.
    """

    label: str
    type: FieldType
    description: str = ""
    required: bool = False
    default: object | None = None
    hidden: bool = False
    dynamic: bool = False


type FieldCatalog = Mapping[str, FieldDefinition]
