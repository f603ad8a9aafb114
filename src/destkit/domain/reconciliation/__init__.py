"""Batched upsert reconciliation core.

Flow for one batch:
1) map payloads to identifier-keyed pending records
2) look the identifiers up in one batched read
3) classify every record as create or update
4) issue one batched create and one batched update
5) clear and re-apply constrained fields the remote refused to change
"""

from __future__ import annotations

from .contracts import (
    NOT_FOUND_CATEGORY,
    BatchOutcome,
    BatchResponse,
    Create,
    ErrorEntry,
    Failed,
    ReconciliationPlan,
    RecordAction,
    RecordOutcome,
    RemoteRecord,
    Undetermined,
    Update,
    UpdateInput,
    UpsertFailure,
    UpsertPayload,
    UpsertRecord,
    UpsertSuccess,
)
from .engine import BatchUpsertEngine
from .execute import BatchExecutor
from .mapper import build_upsert_map, flatten_properties, flatten_value
from .normalize import normalize_identifier
from .reconcile import LookupMatching, reconcile

__all__ = [
    "NOT_FOUND_CATEGORY",
    "BatchExecutor",
    "BatchOutcome",
    "BatchResponse",
    "BatchUpsertEngine",
    "Create",
    "ErrorEntry",
    "Failed",
    "LookupMatching",
    "ReconciliationPlan",
    "RecordAction",
    "RecordOutcome",
    "RemoteRecord",
    "Undetermined",
    "Update",
    "UpdateInput",
    "UpsertFailure",
    "UpsertPayload",
    "UpsertRecord",
    "UpsertSuccess",
    "build_upsert_map",
    "flatten_properties",
    "flatten_value",
    "normalize_identifier",
    "reconcile",
]
