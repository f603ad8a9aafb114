"""Port for remote systems supporting batched read/create/update by identifier."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from destkit.domain.reconciliation.contracts import BatchResponse, Properties, UpdateInput


@runtime_checkable
class BatchUpsertPort(Protocol):
    """Batched object API of one destination.

    Implementations raise ``FatalRemoteError`` for call-level failures and
    report per-record failures through ``BatchResponse.errors``.
    """

    async def read_batch(
        self,
        *,
        id_property: str,
        identifiers: Sequence[str],
        properties: Sequence[str],
    ) -> BatchResponse: ...

    async def create_batch(self, inputs: Sequence[Properties]) -> BatchResponse: ...

    async def update_batch(self, inputs: Sequence[UpdateInput]) -> BatchResponse: ...


__all__ = ["BatchUpsertPort"]
