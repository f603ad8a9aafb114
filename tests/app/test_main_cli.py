from __future__ import annotations

import json
from typing import TYPE_CHECKING

import httpx
import pytest

from destkit import main as main_module
from destkit.app import build_registry
from tests.helpers.hubspot import CONTACTS, FakeHubSpot, make_client_factory

if TYPE_CHECKING:
    from pathlib import Path

    from destkit.config.hubspot import HubSpotConfig


@pytest.fixture
def fake_registry(
    monkeypatch: pytest.MonkeyPatch,
    hubspot_config: HubSpotConfig,
    fake_hubspot: FakeHubSpot,
) -> FakeHubSpot:
    registry = build_registry(
        hubspot_config=hubspot_config,
        client_factory=make_client_factory(fake_hubspot),
    )
    monkeypatch.setattr(main_module, "build_registry", lambda: registry)
    return fake_hubspot


def _events_file(tmp_path: Path, *events: object) -> Path:
    path = tmp_path / "events.jsonl"
    path.write_text("\n".join(json.dumps(event) for event in events) + "\n", encoding="utf-8")
    return path


def test_main_cli_send_prints_outcomes(
    fake_registry: FakeHubSpot,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    fake_registry.on(
        "PATCH",
        f"{CONTACTS}/vep@beri.dz",
        httpx.Response(200, json={"id": "801", "properties": {}}),
    )
    events = _events_file(tmp_path, {"traits": {"email": "vep@beri.dz"}})

    main_module.main(["send", str(events)])

    assert capsys.readouterr().out == "update\tvep@beri.dz\t801\n"


def test_main_cli_send_with_mapping_file(
    fake_registry: FakeHubSpot,
    tmp_path: Path,
) -> None:
    fake_registry.on(
        "PATCH",
        f"{CONTACTS}/u-1",
        httpx.Response(200, json={"id": "802", "properties": {}}),
    )
    events = _events_file(tmp_path, {"userId": "u-1"})
    mapping = tmp_path / "mapping.json"
    mapping.write_text(
        json.dumps({"email": {"@path": "$.userId"}, "identifier_type": "external_id"}),
        encoding="utf-8",
    )

    main_module.main(["send", str(events), "--mapping", str(mapping), "--no-default-mappings"])

    (request,) = fake_registry.requests
    assert request.params == {"idProperty": "external_id"}
    assert request.body == {"properties": {"external_id": "u-1"}}


def test_main_cli_invalid_event_line(tmp_path: Path) -> None:
    path = tmp_path / "events.jsonl"
    path.write_text('{"traits": {}}\nnot json\n', encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["send", str(path)])

    assert excinfo.value.code == 2


def test_main_cli_missing_events_file(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["send", str(tmp_path / "absent.jsonl")])

    assert excinfo.value.code == 2


def test_main_cli_missing_configuration(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.delenv("HUBSPOT_ACCESS_TOKEN", raising=False)
    events = _events_file(tmp_path, {"traits": {"email": "vep@beri.dz"}})

    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["send", str(events)])

    assert excinfo.value.code == 1
    assert "HUBSPOT_ACCESS_TOKEN" in capsys.readouterr().err


def test_main_cli_remote_error_exits_with_failure(
    fake_registry: FakeHubSpot,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    fake_registry.on(
        "PATCH",
        f"{CONTACTS}/vep@beri.dz",
        httpx.Response(
            401,
            json={"status": "error", "message": "Authentication failed", "category": "INVALID_AUTHENTICATION"},
        ),
    )
    events = _events_file(tmp_path, {"traits": {"email": "vep@beri.dz"}})

    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["send", str(events)])

    assert excinfo.value.code == 1
    assert capsys.readouterr().out == (
        "failed\tvep@beri.dz\tINVALID_AUTHENTICATION: Authentication failed\n"
    )


def test_main_cli_malformed_mapping_exits_with_failure(
    fake_registry: FakeHubSpot,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    events = _events_file(tmp_path, {"traits": {"email": "vep@beri.dz"}})
    mapping = tmp_path / "mapping.json"
    mapping.write_text(json.dumps({"firstname": {"@if": {"then": "x"}}}), encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["send", str(events), "--mapping", str(mapping)])

    assert excinfo.value.code == 1
    assert "Invalid @if expression" in capsys.readouterr().err
    assert fake_registry.requests == []


def test_main_cli_identifier_types(
    fake_registry: FakeHubSpot,
    capsys: pytest.CaptureFixture[str],
) -> None:
    fake_registry.on(
        "GET",
        "/crm/v3/properties/contacts",
        httpx.Response(
            200,
            json={"results": [{"name": "external_id", "label": "External ID", "hasUniqueValue": True}]},
        ),
    )

    main_module.main(["identifier-types"])

    assert capsys.readouterr().out == "email\tEmail\nexternal_id\tExternal ID\n"
