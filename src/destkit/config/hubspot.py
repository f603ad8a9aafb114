"""HubSpot configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .http_resilience import (
    CacheConfig,
    RateLimit,
    ResilienceConfig,
    write_safe_retry_policy,
)

HUBSPOT_BASE_URL = "https://api.hubapi.com"
HUBSPOT_TIMEOUT_SECONDS = 20.0
PROPERTY_DEFINITIONS_TTL_SECONDS = 15 * 60.0


@dataclass(frozen=True)
class HubSpotConfig:
    """Holds HubSpot API configuration values."""

    access_token: str
    resilience: ResilienceConfig
    properties_resilience: ResilienceConfig

    @property
    def base_url(self) -> str:
        return self.resilience.base_url or HUBSPOT_BASE_URL


def _auth_headers(access_token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {access_token}",
        "Content-Type": "application/json",
    }


def _has_results(payload: object) -> bool:
    # error bodies and empty listings are not worth keeping
    return isinstance(payload, dict) and bool(payload.get("results"))


def build_hubspot_config(
    access_token: str,
    *,
    base_url: str = HUBSPOT_BASE_URL,
) -> HubSpotConfig:
    headers = _auth_headers(access_token)
    return HubSpotConfig(
        access_token=access_token,
        resilience=ResilienceConfig(
            name="hubspot",
            base_url=base_url,
            timeout_seconds=HUBSPOT_TIMEOUT_SECONDS,
            retry=write_safe_retry_policy(),
            ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
            default_headers=headers,
        ),
        # property definitions change rarely, reads are cached on disk
        properties_resilience=ResilienceConfig(
            name="hubspot-properties",
            base_url=base_url,
            timeout_seconds=HUBSPOT_TIMEOUT_SECONDS,
            ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
            cache=CacheConfig(
                ttl_seconds=PROPERTY_DEFINITIONS_TTL_SECONDS,
                should_cache=_has_results,
            ),
            default_headers=headers,
        ),
    )


def get_hubspot_config() -> HubSpotConfig:
    values = require_env_vars(("HUBSPOT_ACCESS_TOKEN",))
    base_url = optional_env_var("HUBSPOT_BASE_URL") or HUBSPOT_BASE_URL
    return build_hubspot_config(values["HUBSPOT_ACCESS_TOKEN"], base_url=base_url)
