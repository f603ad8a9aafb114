"""HubSpot destination descriptor wired to a configured client."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from destkit.adapters.http_resilience import ResilientClient
from destkit.config.batching import BatchConfig
from destkit.domain.actions import ActionDefinition, DestinationDefinition

from .client import HubSpotClient
from .upsert_contact import (
    DEFAULT_IDENTIFIER_TYPE,
    UPSERT_CONTACT_FIELDS,
    ContactPayload,
    upsert_contact,
    upsert_contact_batch,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from destkit.config.hubspot import HubSpotConfig
    from destkit.config.http_resilience import ResilienceConfig
    from destkit.domain.ports.transaction import TransactionContext
    from destkit.domain.reconciliation import BatchOutcome, UpsertSuccess

DESTINATION_NAME = "hubspot"
UPSERT_CONTACT_ACTION = "upsertContact"


class HubSpotDestination:
    """Synchronous entry points for the HubSpot actions."""

    def __init__(
        self,
        *,
        config: HubSpotConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
        batch_config: BatchConfig | None = None,
    ) -> None:
        self._config = config
        self._client_factory = client_factory or ResilientClient
        self._batch_config = batch_config or BatchConfig()

    def _client(self) -> HubSpotClient:
        return HubSpotClient(config=self._config, client_factory=self._client_factory)

    def upsert_contact(
        self,
        payload: Mapping[str, object],
        *,
        transaction: TransactionContext | None = None,
    ) -> UpsertSuccess:
        return asyncio.run(self._upsert_contact_async(payload, transaction=transaction))

    def upsert_contact_batch(
        self,
        payloads: Sequence[Mapping[str, object]],
        *,
        transaction: TransactionContext | None = None,
    ) -> BatchOutcome:
        return asyncio.run(self._upsert_contact_batch_async(payloads, transaction=transaction))

    def identifier_type_choices(self) -> list[tuple[str, str]]:
        """Return ``(label, value)`` pairs of unique contact properties, email first."""

        return asyncio.run(self._identifier_type_choices_async())

    async def _upsert_contact_async(
        self,
        payload: Mapping[str, object],
        *,
        transaction: TransactionContext | None,
    ) -> UpsertSuccess:
        async with self._client() as client:
            return await upsert_contact(
                client,
                ContactPayload.from_mapping(payload),
                transaction=transaction,
            )

    async def _upsert_contact_batch_async(
        self,
        payloads: Sequence[Mapping[str, object]],
        *,
        transaction: TransactionContext | None,
    ) -> BatchOutcome:
        contacts = [ContactPayload.from_mapping(payload) for payload in payloads]
        async with self._client() as client:
            return await upsert_contact_batch(
                client,
                contacts,
                transaction=transaction,
                max_batch_size=self._batch_config.max_batch_size,
            )

    async def _identifier_type_choices_async(self) -> list[tuple[str, str]]:
        definitions = await self._client().list_contact_properties()
        choices = [("Email", DEFAULT_IDENTIFIER_TYPE)]
        choices.extend(
            (definition.label or definition.name, definition.name)
            for definition in definitions
            if definition.has_unique_value
            and not definition.hidden
            and definition.name != DEFAULT_IDENTIFIER_TYPE
        )
        return choices

    def definition(self) -> DestinationDefinition:
        return DestinationDefinition(
            name=DESTINATION_NAME,
            title="HubSpot Cloud Mode (Actions)",
            actions=(
                ActionDefinition(
                    name=UPSERT_CONTACT_ACTION,
                    title="Upsert Contact",
                    description="Create or update a contact in HubSpot.",
                    default_subscription='type = "identify"',
                    fields=UPSERT_CONTACT_FIELDS,
                    perform=self.upsert_contact,
                    perform_batch=self.upsert_contact_batch,
                    batching_field="enable_batching",
                    identifier_field="email",
                    dynamic_fields={"identifier_type": self.identifier_type_choices},
                ),
            ),
        )


def build_hubspot_destination(
    config: HubSpotConfig,
    *,
    client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    batch_config: BatchConfig | None = None,
) -> DestinationDefinition:
    return HubSpotDestination(
        config=config,
        client_factory=client_factory,
        batch_config=batch_config,
    ).definition()
