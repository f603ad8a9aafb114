"""HTTP client for the HubSpot CRM v3 contacts API."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from destkit.adapters.http_resilience import ResilientClient
from destkit.domain.errors import FatalRemoteError

from .schema import (
    BatchContactResponse,
    ContactResult,
    ErrorResponse,
    PropertiesResponse,
    PropertyDefinition,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import TracebackType

    from destkit.config.hubspot import HubSpotConfig
    from destkit.config.http_resilience import ResilienceConfig
    from destkit.domain.reconciliation.contracts import BatchResponse, Properties, UpdateInput

log = getLogger(__name__)

CONTACTS_PATH = "/crm/v3/objects/contacts"
CONTACT_PROPERTIES_PATH = "/crm/v3/properties/contacts"
UNEXPECTED_RESPONSE_CATEGORY = "UNEXPECTED_RESPONSE"


class HubSpotClient:
    """Async client for contact reads and writes.

    Use as an async context manager; one underlying connection pool serves all
    calls made inside the block.
    """

    def __init__(
        self,
        *,
        config: HubSpotConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._client_factory = client_factory or ResilientClient
        self._http: ResilientClient | None = None

    async def __aenter__(self) -> HubSpotClient:
        self._http = self._client_factory(self._config.resilience)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def read_batch(
        self,
        *,
        id_property: str,
        identifiers: Sequence[str],
        properties: Sequence[str],
    ) -> BatchResponse:
        body = {
            "idProperty": id_property,
            "properties": list(properties),
            "inputs": [{"id": identifier} for identifier in identifiers],
        }
        return await self._post_batch("batch/read", body)

    async def create_batch(self, inputs: Sequence[Properties]) -> BatchResponse:
        body = {"inputs": [{"properties": dict(properties)} for properties in inputs]}
        return await self._post_batch("batch/create", body)

    async def update_batch(self, inputs: Sequence[UpdateInput]) -> BatchResponse:
        body = {
            "inputs": [
                {"id": update.remote_id, "properties": dict(update.properties)}
                for update in inputs
            ]
        }
        return await self._post_batch("batch/update", body)

    async def update_contact(
        self,
        identifier_value: str,
        *,
        id_property: str,
        properties: Properties,
    ) -> ContactResult:
        response = await self._send(
            "PATCH",
            f"{CONTACTS_PATH}/{quote(identifier_value, safe='')}",
            json={"properties": dict(properties)},
            params={"idProperty": id_property},
        )
        return _parse(ContactResult, response)

    async def create_contact(self, properties: Properties) -> ContactResult:
        response = await self._send(
            "POST",
            CONTACTS_PATH,
            json={"properties": dict(properties)},
        )
        return _parse(ContactResult, response)

    async def list_contact_properties(self) -> list[PropertyDefinition]:
        """Fetch contact property definitions through the caching client."""

        async with self._client_factory(self._config.properties_resilience) as client:
            response = await client.get(CONTACT_PROPERTIES_PATH)
            _raise_for_status(response)
        return _parse(PropertiesResponse, response).results

    async def _post_batch(self, action: str, body: dict[str, object]) -> BatchResponse:
        response = await self._send("POST", f"{CONTACTS_PATH}/{action}", json=body)
        parsed = _parse(BatchContactResponse, response)
        if parsed.errors:
            log.info(f"HubSpot {action} returned {len(parsed.errors)} error entries")
        return parsed.to_batch_response()

    async def _send(
        self,
        method: str,
        path: str,
        *,
        json: object,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        if self._http is None:
            raise RuntimeError("HubSpotClient must be used as an async context manager")
        response = await self._http.request(method, path, json=json, params=params)
        _raise_for_status(response)
        return response


def _raise_for_status(response: httpx.Response) -> None:
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        error = _remote_error(exc.response)
        log.error(f"HubSpot API error {error.status_code} {error.category}: {error.message}")
        raise error from exc


def _remote_error(response: httpx.Response) -> FatalRemoteError:
    status_code = response.status_code
    message = response.reason_phrase or f"HTTP {status_code}"
    category = f"HTTP_{status_code}"
    try:
        body = ErrorResponse.model_validate(response.json())
    except (ValueError, ValidationError):
        body = None
    if body is not None:
        message = body.message or message
        category = body.category or category
    return FatalRemoteError(message, category=category, status_code=status_code)


def _parse[ModelT: (ContactResult, BatchContactResponse, PropertiesResponse)](
    model: type[ModelT],
    response: httpx.Response,
) -> ModelT:
    try:
        return model.model_validate(response.json())
    except (ValueError, ValidationError) as exc:
        raise FatalRemoteError(
            f"Unexpected HubSpot response payload: {exc}",
            category=UNEXPECTED_RESPONSE_CATEGORY,
            status_code=response.status_code,
        ) from exc

