"""Application orchestration entry points."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from destkit.adapters.hubspot import build_hubspot_destination
from destkit.config.batching import get_batch_config
from destkit.config.hubspot import get_hubspot_config
from destkit.domain.actions import ActionRegistry
from destkit.domain.errors import FatalRemoteError, UpsertError
from destkit.domain.mapping import build_payload
from destkit.domain.reconciliation import BatchOutcome, RecordAction, UpsertFailure

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from destkit.adapters.http_resilience import ResilientClient
    from destkit.config.batching import BatchConfig
    from destkit.config.hubspot import HubSpotConfig
    from destkit.config.http_resilience import ResilienceConfig
    from destkit.domain.actions import ActionDefinition
    from destkit.domain.ports.transaction import TransactionContext
    from destkit.domain.reconciliation import RecordOutcome

log = getLogger(__name__)


def build_registry(
    *,
    hubspot_config: HubSpotConfig | None = None,
    client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    batch_config: BatchConfig | None = None,
) -> ActionRegistry:
    """Build the action registry from the explicit list of shipped destinations."""

    return ActionRegistry.from_destinations(
        [
            build_hubspot_destination(
                hubspot_config or get_hubspot_config(),
                client_factory=client_factory,
                batch_config=batch_config or get_batch_config(),
            ),
        ]
    )


def dispatch_events(
    registry: ActionRegistry,
    *,
    destination: str,
    action: str,
    events: Sequence[Mapping[str, object]],
    mapping: Mapping[str, object] | None = None,
    use_default_mappings: bool = True,
    transaction_factory: Callable[[], TransactionContext] | None = None,
) -> BatchOutcome:
    """Map ``events`` through an action's fields and perform it.

    Payloads go through the batch perform when the action supports it and every
    payload opts in; otherwise each payload is performed on its own, in order.
    A single perform gets a fresh context from ``transaction_factory`` per
    event, and its failure is reported in that event's position.
    """

    definition = registry.get(destination, action)
    payloads = [
        build_payload(
            definition.fields,
            event,
            mapping,
            use_default_mappings=use_default_mappings,
        )
        for event in events
    ]
    log.info(
        "Dispatching %s events to %s.%s",
        len(payloads),
        destination,
        action,
    )

    def new_transaction() -> TransactionContext | None:
        return transaction_factory() if transaction_factory is not None else None

    if definition.perform_batch is not None and definition.wants_batching(payloads):
        # the batch perform namespaces its keys per identifier
        return definition.perform_batch(payloads, transaction=new_transaction())

    return BatchOutcome(
        tuple(_perform_one(definition, payload, new_transaction()) for payload in payloads)
    )


def _perform_one(
    definition: ActionDefinition,
    payload: Mapping[str, object],
    transaction: TransactionContext | None,
) -> RecordOutcome:
    try:
        return definition.perform(payload, transaction=transaction)
    except UpsertError as exc:
        field = definition.identifier_field
        identifier = payload.get(field) if field is not None else None
        log.warning(f"{definition.name} failed for {identifier}: {exc}")
        return UpsertFailure(
            identifier="" if identifier is None else str(identifier),
            action=RecordAction.FAILED,
            category=exc.category if isinstance(exc, FatalRemoteError) else type(exc).__name__,
            message=exc.message if isinstance(exc, FatalRemoteError) else str(exc),
        )
