from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from destkit.adapters.hubspot import HubSpotDestination
from destkit.config.batching import BatchConfig
from destkit.config.hubspot import build_hubspot_config
from tests.helpers.hubspot import BASE_URL, FakeHubSpot, make_client_factory

if TYPE_CHECKING:
    from pathlib import Path

    from destkit.config.hubspot import HubSpotConfig


@pytest.fixture(autouse=True)
def isolated_data_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    data_dir = tmp_path / "data"
    monkeypatch.setenv("DESTKIT_DATA_DIR", str(data_dir))
    return data_dir


@pytest.fixture
def hubspot_config() -> HubSpotConfig:
    return build_hubspot_config("test-token", base_url=BASE_URL)


@pytest.fixture
def fake_hubspot() -> FakeHubSpot:
    return FakeHubSpot()


@pytest.fixture
def hubspot_destination(
    hubspot_config: HubSpotConfig,
    fake_hubspot: FakeHubSpot,
) -> HubSpotDestination:
    return HubSpotDestination(
        config=hubspot_config,
        client_factory=make_client_factory(fake_hubspot),
        batch_config=BatchConfig(),
    )
