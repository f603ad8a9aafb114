from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from destkit.app import build_registry, dispatch_events
from destkit.domain.actions import UnknownActionError
from destkit.domain.errors import PayloadValidationError
from destkit.domain.ports import InMemoryTransactionContext
from destkit.domain.reconciliation import RecordAction, UpsertFailure, UpsertSuccess
from tests.helpers.hubspot import CONTACTS, FakeHubSpot, make_client_factory, read_response

if TYPE_CHECKING:
    from collections.abc import Callable

    from destkit.config.hubspot import HubSpotConfig
    from destkit.domain.actions import ActionRegistry

IDENTIFY = {
    "type": "identify",
    "traits": {
        "email": "Vep@Beri.dz",
        "first_name": "Vep",
        "address": {"city": "Oslo", "postal_code": "0150"},
    },
}


def _recording_factory(
    created: list[InMemoryTransactionContext],
) -> Callable[[], InMemoryTransactionContext]:
    def factory() -> InMemoryTransactionContext:
        context = InMemoryTransactionContext()
        created.append(context)
        return context

    return factory


@pytest.fixture
def registry(hubspot_config: HubSpotConfig, fake_hubspot: FakeHubSpot) -> ActionRegistry:
    return build_registry(
        hubspot_config=hubspot_config,
        client_factory=make_client_factory(fake_hubspot),
    )


def test_build_registry_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HUBSPOT_ACCESS_TOKEN", "token")

    registry = build_registry()

    assert registry.get("hubspot", "upsertContact").title == "Upsert Contact"


def test_dispatch_maps_event_and_performs_single_upsert(
    registry: ActionRegistry,
    fake_hubspot: FakeHubSpot,
) -> None:
    fake_hubspot.on(
        "PATCH",
        f"{CONTACTS}/vep@beri.dz",
        httpx.Response(200, json={"id": "801", "properties": {"email": "vep@beri.dz"}}),
    )
    transactions: list[InMemoryTransactionContext] = []

    outcome = dispatch_events(
        registry,
        destination="hubspot",
        action="upsertContact",
        events=[IDENTIFY],
        transaction_factory=_recording_factory(transactions),
    )

    (request,) = fake_hubspot.requests
    assert request.body == {
        "properties": {
            "firstname": "Vep",
            "city": "Oslo",
            "zip": "0150",
            "email": "vep@beri.dz",
        }
    }
    assert outcome[0].action is RecordAction.UPDATE
    assert [transaction.transaction for transaction in transactions] == [{"contact_id": "801"}]


def test_dispatch_uses_batch_perform_when_payloads_opt_in(
    registry: ActionRegistry,
    fake_hubspot: FakeHubSpot,
) -> None:
    fake_hubspot.on("POST", f"{CONTACTS}/batch/read", read_response(not_found=["vep@beri.dz"]))
    fake_hubspot.on(
        "POST",
        f"{CONTACTS}/batch/create",
        httpx.Response(
            201,
            json={"results": [{"id": "301", "properties": {"email": "vep@beri.dz"}}]},
        ),
    )

    outcome = dispatch_events(
        registry,
        destination="hubspot",
        action="upsertContact",
        events=[IDENTIFY],
        mapping={"enable_batching": True, "lifecyclestage": "lead"},
    )

    assert [request.path for request in fake_hubspot.requests] == [
        f"{CONTACTS}/batch/read",
        f"{CONTACTS}/batch/create",
    ]
    create = fake_hubspot.requests[1]
    assert create.body == {
        "inputs": [
            {
                "properties": {
                    "firstname": "Vep",
                    "city": "Oslo",
                    "zip": "0150",
                    "lifecyclestage": "lead",
                    "email": "vep@beri.dz",
                }
            }
        ]
    }
    assert outcome[0].action is RecordAction.CREATE


def test_dispatch_rejects_event_without_identifier_before_sending(
    registry: ActionRegistry,
    fake_hubspot: FakeHubSpot,
) -> None:
    with pytest.raises(PayloadValidationError):
        dispatch_events(
            registry,
            destination="hubspot",
            action="upsertContact",
            events=[IDENTIFY, {"type": "identify", "traits": {"first_name": "Anon"}}],
        )

    assert fake_hubspot.requests == []


def test_dispatch_unknown_action(registry: ActionRegistry) -> None:
    with pytest.raises(UnknownActionError):
        dispatch_events(registry, destination="hubspot", action="upsertCompany", events=[])


def _identify(email: str) -> dict[str, object]:
    return {"type": "identify", "traits": {"email": email}}


def _contact(contact_id: str, email: str) -> httpx.Response:
    return httpx.Response(200, json={"id": contact_id, "properties": {"email": email}})


def test_dispatch_gives_each_single_event_its_own_transaction(
    registry: ActionRegistry,
    fake_hubspot: FakeHubSpot,
) -> None:
    fake_hubspot.on("PATCH", f"{CONTACTS}/a@x.io", _contact("801", "a@x.io"))
    fake_hubspot.on("PATCH", f"{CONTACTS}/b@x.io", _contact("802", "b@x.io"))
    transactions: list[InMemoryTransactionContext] = []

    dispatch_events(
        registry,
        destination="hubspot",
        action="upsertContact",
        events=[_identify("a@x.io"), _identify("b@x.io")],
        transaction_factory=_recording_factory(transactions),
    )

    assert [transaction.transaction for transaction in transactions] == [
        {"contact_id": "801"},
        {"contact_id": "802"},
    ]


def test_dispatch_reports_single_event_failures_in_position(
    registry: ActionRegistry,
    fake_hubspot: FakeHubSpot,
) -> None:
    fake_hubspot.on("PATCH", f"{CONTACTS}/a@x.io", _contact("801", "a@x.io"))
    fake_hubspot.on("PATCH", f"{CONTACTS}/b@x.io", _contact("802", "b@x.io"))
    fake_hubspot.on(
        "PATCH",
        f"{CONTACTS}/c@x.io",
        httpx.Response(
            400,
            json={
                "status": "error",
                "message": "Property values were not valid",
                "category": "VALIDATION_ERROR",
            },
        ),
    )
    fake_hubspot.on("PATCH", f"{CONTACTS}/d@x.io", _contact("804", "d@x.io"))

    outcome = dispatch_events(
        registry,
        destination="hubspot",
        action="upsertContact",
        events=[_identify(email) for email in ("a@x.io", "b@x.io", "c@x.io", "d@x.io")],
    )

    assert [request.path for request in fake_hubspot.requests] == [
        f"{CONTACTS}/a@x.io",
        f"{CONTACTS}/b@x.io",
        f"{CONTACTS}/c@x.io",
        f"{CONTACTS}/d@x.io",
    ]
    assert len(outcome) == 4
    assert [result.identifier for result in outcome] == ["a@x.io", "b@x.io", "c@x.io", "d@x.io"]
    failure = outcome[2]
    assert isinstance(failure, UpsertFailure)
    assert failure.action is RecordAction.FAILED
    assert failure.category == "VALIDATION_ERROR"
    assert failure.message == "Property values were not valid"
    assert [result.remote_id for result in outcome.succeeded] == ["801", "802", "804"]
    assert all(isinstance(result, UpsertSuccess) for result in outcome.succeeded)
