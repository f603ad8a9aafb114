"""Identifier normalization."""

from __future__ import annotations


def normalize_identifier(raw: str) -> str:
    """Return the batch key for ``raw``.

    Lower-casing is the only transform. Every map keyed by identifier in the
    upsert pipeline must go through this function first.
    """

    return raw.lower()
