"""Mapping configuration: field catalogs and expression resolution."""

from __future__ import annotations

from .fields import FieldCatalog, FieldDefinition, FieldType
from .resolve import MISSING, build_payload, resolve_expression, resolve_path

__all__ = [
    "MISSING",
    "FieldCatalog",
    "FieldDefinition",
    "FieldType",
    "build_payload",
    "resolve_expression",
    "resolve_path",
]
