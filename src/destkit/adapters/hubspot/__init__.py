"""Public interface for the HubSpot destination."""

from __future__ import annotations

from .client import HubSpotClient
from .destination import (
    DESTINATION_NAME,
    UPSERT_CONTACT_ACTION,
    HubSpotDestination,
    build_hubspot_destination,
)
from .schema import BatchContactResponse, ContactResult, PropertyDefinition
from .upsert_contact import (
    CONTACT_ID_KEY,
    UPSERT_CONTACT_FIELDS,
    ContactPayload,
    upsert_contact,
    upsert_contact_batch,
)

__all__ = [
    "CONTACT_ID_KEY",
    "DESTINATION_NAME",
    "UPSERT_CONTACT_ACTION",
    "UPSERT_CONTACT_FIELDS",
    "BatchContactResponse",
    "ContactPayload",
    "ContactResult",
    "HubSpotClient",
    "HubSpotDestination",
    "PropertyDefinition",
    "build_hubspot_destination",
    "upsert_contact",
    "upsert_contact_batch",
]
