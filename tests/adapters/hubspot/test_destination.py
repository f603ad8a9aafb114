from __future__ import annotations

import httpx

from destkit.adapters.hubspot import (
    DESTINATION_NAME,
    UPSERT_CONTACT_ACTION,
    UPSERT_CONTACT_FIELDS,
    HubSpotDestination,
)
from tests.helpers.hubspot import FakeHubSpot


def test_definition_declares_upsert_contact_action(
    hubspot_destination: HubSpotDestination,
) -> None:
    definition = hubspot_destination.definition()

    assert definition.name == DESTINATION_NAME
    (action,) = definition.actions
    assert action.name == UPSERT_CONTACT_ACTION
    assert action.fields is UPSERT_CONTACT_FIELDS
    assert action.batching_field == "enable_batching"
    assert set(action.dynamic_fields) == {"identifier_type"}
    assert action.perform_batch is not None


def test_upsert_contact_fields_require_identifier_value() -> None:
    assert UPSERT_CONTACT_FIELDS["email"].required
    assert UPSERT_CONTACT_FIELDS["canonical_id"].hidden
    assert UPSERT_CONTACT_FIELDS["identifier_type"].dynamic
    assert UPSERT_CONTACT_FIELDS["enable_batching"].default is False


def test_identifier_type_choices_list_unique_visible_properties(
    hubspot_destination: HubSpotDestination,
    fake_hubspot: FakeHubSpot,
) -> None:
    fake_hubspot.on(
        "GET",
        "/crm/v3/properties/contacts",
        httpx.Response(
            200,
            json={
                "results": [
                    {"name": "email", "label": "Email", "hasUniqueValue": True},
                    {"name": "external_id", "label": "External ID", "hasUniqueValue": True},
                    {"name": "hs_object_id", "label": "Record ID", "hasUniqueValue": True, "hidden": True},
                    {"name": "city", "label": "City", "hasUniqueValue": False},
                    {"name": "member_code", "label": "", "hasUniqueValue": True},
                ]
            },
        ),
    )

    choices = hubspot_destination.identifier_type_choices()

    assert choices == [
        ("Email", "email"),
        ("External ID", "external_id"),
        ("member_code", "member_code"),
    ]
