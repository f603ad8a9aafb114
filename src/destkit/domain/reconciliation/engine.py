"""Batched upsert-by-identifier orchestration.

The engine composes the mapper, the lookup port, the reconciler and the
executor. Each step consumes the previous step's output, so calls are awaited
strictly in sequence.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from destkit.domain.errors import PayloadValidationError

from .contracts import BatchOutcome
from .execute import BatchExecutor
from .mapper import build_upsert_map
from .normalize import normalize_identifier
from .reconcile import LookupMatching, reconcile

if TYPE_CHECKING:
    from collections.abc import Sequence

    from destkit.domain.ports.transaction import TransactionContext
    from destkit.domain.ports.upsert import BatchUpsertPort

    from .contracts import UpsertPayload

log = getLogger(__name__)


@dataclass(slots=True)
class BatchUpsertEngine:
    """Reconcile a batch of payloads against a remote system and write it."""

    port: BatchUpsertPort
    id_property: str
    alias_property: str | None = None
    constrained_fields: tuple[str, ...] = ()
    transaction_key: str = "remote_id"

    async def upsert(
        self,
        payloads: Sequence[UpsertPayload],
        *,
        transaction: TransactionContext | None = None,
    ) -> BatchOutcome:
        if not payloads:
            return BatchOutcome()
        for payload in payloads:
            if not payload.identifier:
                raise PayloadValidationError.missing_field(self.id_property)

        records = build_upsert_map(
            payloads,
            id_property=self.id_property,
            constrained_fields=self.constrained_fields,
        )
        log.info(
            "Upserting %s payloads as %s records by %s",
            len(payloads),
            len(records),
            self.id_property,
        )

        response = await self.port.read_batch(
            id_property=self.id_property,
            identifiers=[
                str(record.properties[self.id_property]) for record in records.values()
            ],
            properties=self._lookup_properties(),
        )
        plan = reconcile(
            records,
            response,
            matching=LookupMatching(
                id_property=self.id_property,
                alias_property=self.alias_property,
            ),
        )
        by_identifier = await BatchExecutor(self.port, self.id_property).execute(plan)

        outcome = BatchOutcome(
            tuple(by_identifier[normalize_identifier(payload.identifier)] for payload in payloads)
        )
        if transaction is not None:
            for success in outcome.succeeded:
                transaction.set_transaction(
                    f"{self.transaction_key}:{success.identifier}", success.remote_id
                )
        log.info(
            "Upsert finished: succeeded=%s, failed=%s",
            len(outcome.succeeded),
            len(outcome.failed),
        )
        return outcome

    def _lookup_properties(self) -> list[str]:
        names = [self.id_property, *self.constrained_fields]
        if self.alias_property is not None:
            names.append(self.alias_property)
        return list(dict.fromkeys(names))

