"""Evaluate mapping expressions against an event and build payloads.

Supported expressions:

- ``{"@path": "$.traits.email"}`` walks the event by dotted path
- ``{"@if": {"exists": expr, "then": expr, "else": expr}}`` picks a branch on
  whether ``exists`` resolves to a non-null value
- any other mapping is resolved value by value (object fields)
- anything else is a literal
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from logging import getLogger
from typing import TYPE_CHECKING, Final

from destkit.domain.errors import PayloadValidationError

if TYPE_CHECKING:
    from .fields import FieldCatalog

log = getLogger(__name__)

PATH_DIRECTIVE: Final = "@path"
IF_DIRECTIVE: Final = "@if"


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Final = _Missing()


def resolve_path(path: str, event: Mapping[str, object]) -> object:
    """Return the value at ``path`` or ``MISSING``."""

    segments = path.removeprefix("$").strip(".")
    current: object = event
    if not segments:
        return current
    for segment in segments.split("."):
        if isinstance(current, Mapping):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, Sequence) and not isinstance(current, str) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def resolve_expression(expression: object, event: Mapping[str, object]) -> object:
    if not isinstance(expression, Mapping):
        return expression
    if PATH_DIRECTIVE in expression:
        return resolve_path(str(expression[PATH_DIRECTIVE]), event)
    if IF_DIRECTIVE in expression:
        return _resolve_conditional(expression[IF_DIRECTIVE], event)

    resolved: dict[str, object] = {}
    for key, value in expression.items():
        item = resolve_expression(value, event)
        if item is not MISSING and item is not None:
            resolved[str(key)] = item
    return resolved


def _resolve_conditional(directive: object, event: Mapping[str, object]) -> object:
    if not isinstance(directive, Mapping) or "exists" not in directive:
        raise ValueError(f"Invalid {IF_DIRECTIVE} expression: {directive!r}")
    condition = resolve_expression(directive["exists"], event)
    branch = "then" if condition is not MISSING and condition is not None else "else"
    if branch not in directive:
        return MISSING
    return resolve_expression(directive[branch], event)


def build_payload(
    fields: FieldCatalog,
    event: Mapping[str, object],
    mapping: Mapping[str, object] | None = None,
    *,
    use_default_mappings: bool = True,
) -> dict[str, object]:
    """Resolve an action's fields for one event.

    ``mapping`` overrides field defaults name by name. Required fields that
    resolve to nothing raise ``PayloadValidationError``.
    """

    expressions: dict[str, object] = {}
    if use_default_mappings:
        expressions.update(
            {name: field.default for name, field in fields.items() if field.default is not None}
        )
    for name, expression in (mapping or {}).items():
        if name not in fields:
            log.debug("Ignoring mapping for unknown field %s", name)
            continue
        expressions[name] = expression

    payload: dict[str, object] = {}
    for name, expression in expressions.items():
        value = resolve_expression(expression, event)
        if value is MISSING or value is None:
            continue
        payload[name] = value

    for name, field in fields.items():
        if field.required and payload.get(name) in (None, ""):
            raise PayloadValidationError.missing_field(name)
    return payload
