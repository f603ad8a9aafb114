"""Issue the batched writes for a reconciliation plan.

One create call and one update call at most. Records carrying constrained
fields whose echoed value differs from the desired one go through a
deterministic corrective sequence: a reset batch clearing those fields, then a
re-apply batch writing the desired values. Remote systems with one-directional
field transitions silently ignore a direct downgrade, but accept it after the
field was cleared.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from destkit.domain.errors import ConstrainedFieldResetError, FatalRemoteError

from .contracts import (
    MISSING_FROM_RESPONSE_CATEGORY,
    RecordAction,
    RemoteRecord,
    UpdateInput,
    UpsertFailure,
    UpsertSuccess,
)
from .mapper import to_text
from .normalize import normalize_identifier

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from destkit.domain.ports.upsert import BatchUpsertPort

    from .contracts import (
        BatchResponse,
        ErrorEntry,
        PropertyValue,
        ReconciliationPlan,
        RecordOutcome,
        UpsertRecord,
    )

log = getLogger(__name__)

RESET_VALUE = ""


@dataclass(slots=True, frozen=True, kw_only=True)
class _Correction:
    record: UpsertRecord
    remote_id: str
    desired: Mapping[str, PropertyValue]
    held: Mapping[str, str | None]


@dataclass(slots=True)
class BatchExecutor:
    port: BatchUpsertPort
    id_property: str

    async def execute(self, plan: ReconciliationPlan) -> dict[str, RecordOutcome]:
        """Return one outcome per record of ``plan``, keyed by identifier."""

        outcomes: dict[str, RecordOutcome] = {}
        if plan.create_queue:
            outcomes.update(await self._create(plan.create_queue))
        if plan.update_queue:
            outcomes.update(await self._update(plan.update_queue))
        return outcomes

    async def _create(self, queue: Sequence[UpsertRecord]) -> dict[str, RecordOutcome]:
        log.info("Creating %s records", len(queue))
        response = await self.port.create_batch([record.properties for record in queue])
        pending = {record.identifier for record in queue}

        echoes: dict[str, RemoteRecord] = {}
        for result in response.results:
            echoed = result.properties.get(self.id_property)
            key = normalize_identifier(echoed) if echoed is not None else None
            if key is None or key not in pending:
                log.warning("Create response holds unexpected record %s", result.remote_id)
                continue
            echoes[key] = result

        def key_for(identifier: str) -> str | None:
            key = normalize_identifier(identifier)
            return key if key in pending else None

        return _collect_outcomes(
            queue,
            echoes,
            response,
            key_for=key_for,
            action=RecordAction.CREATE,
        )

    async def _update(self, queue: Sequence[UpsertRecord]) -> dict[str, RecordOutcome]:
        log.info("Updating %s records", len(queue))
        by_remote_id = {record.remote_id: record for record in queue if record.remote_id}
        response = await self.port.update_batch(
            [
                UpdateInput(remote_id=remote_id, properties=record.properties)
                for remote_id, record in by_remote_id.items()
            ]
        )

        echoes: dict[str, RemoteRecord] = {}
        for result in response.results:
            record = by_remote_id.get(result.remote_id)
            if record is None:
                log.warning("Update response holds unexpected record %s", result.remote_id)
                continue
            echoes[record.identifier] = result

        def key_for(remote_id: str) -> str | None:
            record = by_remote_id.get(remote_id)
            return record.identifier if record is not None else None

        corrected, correction_failures = await self._correct_constrained_fields(queue, echoes)
        outcomes = _collect_outcomes(
            queue,
            corrected,
            response,
            key_for=key_for,
            action=RecordAction.UPDATE,
        )
        outcomes.update(correction_failures)
        return outcomes

    async def _correct_constrained_fields(
        self,
        records: Iterable[UpsertRecord],
        echoes: Mapping[str, RemoteRecord],
    ) -> tuple[dict[str, RemoteRecord], dict[str, RecordOutcome]]:
        corrected = dict(echoes)
        corrections = _find_corrections(records, echoes)
        if not corrections:
            return corrected, {}

        log.info("Re-applying constrained fields for %s records", len(corrections))
        reset_inputs = [
            UpdateInput(
                remote_id=correction.remote_id,
                properties=dict.fromkeys(correction.desired, RESET_VALUE),
            )
            for correction in corrections
        ]
        try:
            reset_response = await self.port.update_batch(reset_inputs)
        except FatalRemoteError as exc:
            restored = await self._restore(corrections)
            raise ConstrainedFieldResetError(
                f"Resetting constrained fields failed: {exc.message}",
                category=exc.category,
                status_code=exc.status_code,
                remote_ids=[correction.remote_id for correction in corrections],
                restored=restored,
            ) from exc
        for error in reset_response.errors:
            log.warning(
                f"Reset of constrained fields rejected for {error.affected_identifiers}: "
                f"{error.category} {error.message}"
            )

        reapply_response = await self.port.update_batch(
            [
                UpdateInput(remote_id=correction.remote_id, properties=correction.desired)
                for correction in corrections
            ]
        )
        reapplied = {result.remote_id: result for result in reapply_response.results}
        failures: dict[str, RecordOutcome] = {}
        for correction in corrections:
            identifier = correction.record.identifier
            result = reapplied.get(correction.remote_id)
            if result is None:
                error = _error_for(reapply_response.errors, correction.remote_id)
                failures[identifier] = UpsertFailure(
                    identifier=identifier,
                    action=RecordAction.UPDATE,
                    category=error.category if error else MISSING_FROM_RESPONSE_CATEGORY,
                    message=error.message if error else "Re-apply response omitted the record",
                )
                corrected.pop(identifier, None)
                continue
            previous = corrected[identifier]
            corrected[identifier] = RemoteRecord(
                remote_id=previous.remote_id,
                properties={**previous.properties, **result.properties},
            )
        return corrected, failures

    async def _restore(self, corrections: Sequence[_Correction]) -> bool:
        inputs = [
            UpdateInput(
                remote_id=correction.remote_id,
                properties={name: value for name, value in correction.held.items() if value},
            )
            for correction in corrections
        ]
        inputs = [update for update in inputs if update.properties]
        if not inputs:
            return True
        try:
            await self.port.update_batch(inputs)
        except FatalRemoteError:
            log.exception("Restoring constrained fields after a failed reset failed")
            return False
        log.info("Restored constrained fields for %s records after a failed reset", len(inputs))
        return True


def _find_corrections(
    records: Iterable[UpsertRecord],
    echoes: Mapping[str, RemoteRecord],
) -> list[_Correction]:
    corrections: list[_Correction] = []
    for record in records:
        echo = echoes.get(record.identifier)
        if echo is None or not record.constrained_fields:
            continue
        desired = {
            name: value
            for name, value in record.constrained_fields.items()
            if echo.properties.get(name) != to_text(value)
        }
        if not desired:
            continue
        corrections.append(
            _Correction(
                record=record,
                remote_id=echo.remote_id,
                desired=desired,
                held={name: echo.properties.get(name) for name in desired},
            )
        )
    return corrections


def _collect_outcomes(
    queue: Sequence[UpsertRecord],
    echoes: Mapping[str, RemoteRecord],
    response: BatchResponse,
    *,
    key_for: Callable[[str], str | None],
    action: RecordAction,
) -> dict[str, RecordOutcome]:
    attributed: dict[str, ErrorEntry] = {}
    unattributed: ErrorEntry | None = None
    for error in response.errors:
        keys = [key for key in map(key_for, error.affected_identifiers) if key is not None]
        if not keys and unattributed is None:
            unattributed = error
        for key in keys:
            attributed.setdefault(key, error)

    outcomes: dict[str, RecordOutcome] = {}
    for record in queue:
        identifier = record.identifier
        echo = echoes.get(identifier)
        if echo is not None:
            outcomes[identifier] = UpsertSuccess(
                identifier=identifier,
                action=RecordAction.CREATE if action is RecordAction.CREATE else RecordAction.UPDATE,
                remote_id=echo.remote_id,
                properties=echo.properties,
            )
            continue
        error = attributed.get(identifier) or unattributed
        if error is None:
            log.error(f"{action} response omitted record {identifier}")
        outcomes[identifier] = UpsertFailure(
            identifier=identifier,
            action=action,
            category=error.category if error else MISSING_FROM_RESPONSE_CATEGORY,
            message=error.message if error else f"{action} response omitted the record",
        )
    return outcomes


def _error_for(errors: Iterable[ErrorEntry], remote_id: str) -> ErrorEntry | None:
    return next((error for error in errors if remote_id in error.affected_identifiers), None)
