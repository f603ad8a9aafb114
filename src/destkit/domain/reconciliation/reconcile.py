"""Classify pending upsert records from a batched lookup response.

Rules, applied once per response:

1. a fatal (non not-found) error aborts the batch before any write
2. a result matching a pending key, directly or through an alias, is an update
3. identifiers listed by a not-found error are creates
4. anything left undetermined is an integrity error

The function is pure: it returns resolved copies and never mutates its input,
so reconciling the same response twice gives the same plan.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from destkit.domain.errors import FatalRemoteError, ReconciliationIntegrityError

from .contracts import Create, ReconciliationPlan, RecordAction, Update
from .normalize import normalize_identifier

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .contracts import BatchResponse, ErrorEntry, RemoteRecord, UpsertRecord

log = getLogger(__name__)

ALIAS_DELIMITER = ";"


@dataclass(slots=True, frozen=True, kw_only=True)
class LookupMatching:
    """How lookup results are tied back to pending identifiers."""

    id_property: str
    alias_property: str | None = None
    alias_delimiter: str = ALIAS_DELIMITER


def reconcile(
    records: Mapping[str, UpsertRecord],
    response: BatchResponse,
    *,
    matching: LookupMatching,
) -> ReconciliationPlan:
    _raise_for_fatal_errors(response.errors)

    resolved: dict[str, UpsertRecord] = dict(records)

    for result in response.results:
        key = _match_result(result, resolved, matching=matching)
        if key is None:
            log.warning(
                "Lookup returned remote record %s matching no pending identifier",
                result.remote_id,
            )
            continue
        record = resolved[key]
        if record.is_resolved:
            log.warning(
                "Identifier %s matched several remote records, keeping %s",
                key,
                record.remote_id,
            )
            continue
        resolved[key] = record.resolve(Update(remote_id=result.remote_id))

    for error in response.errors:
        for identifier in map(normalize_identifier, error.affected_identifiers):
            record = resolved.get(identifier)
            if record is None:
                log.warning("Not-found entry for unknown identifier %s", identifier)
                continue
            if record.is_resolved:
                # an alias match already located this record
                log.debug("Ignoring not-found entry for resolved identifier %s", identifier)
                continue
            resolved[identifier] = record.resolve(Create())

    unresolved = [key for key, record in resolved.items() if not record.is_resolved]
    if unresolved:
        raise ReconciliationIntegrityError(unresolved)

    plan = ReconciliationPlan(
        records=resolved,
        create_queue=tuple(
            record for record in resolved.values() if record.state.action is RecordAction.CREATE
        ),
        update_queue=tuple(
            record for record in resolved.values() if record.state.action is RecordAction.UPDATE
        ),
    )
    log.info(
        "Reconciled %s records: create=%s, update=%s",
        len(resolved),
        len(plan.create_queue),
        len(plan.update_queue),
    )
    return plan


def _raise_for_fatal_errors(errors: tuple[ErrorEntry, ...]) -> None:
    for error in errors:
        if error.is_not_found:
            continue
        log.error(f"Lookup failed with {error.category}: {error.message}")
        raise FatalRemoteError(
            error.message,
            category=error.category,
            affected_identifiers=error.affected_identifiers,
        )


def _match_result(
    result: RemoteRecord,
    pending: Mapping[str, UpsertRecord],
    *,
    matching: LookupMatching,
) -> str | None:
    primary = result.properties.get(matching.id_property)
    if primary is not None:
        key = normalize_identifier(primary)
        if key in pending:
            return key

    if matching.alias_property is None:
        return None
    aliases = result.properties.get(matching.alias_property)
    if not aliases:
        return None
    # aliases are compared as returned, without case folding
    alias_values = set(aliases.split(matching.alias_delimiter))
    return next((key for key in pending if key in alias_values), None)
