"""Application configuration helpers."""

from __future__ import annotations

from .batching import DEFAULT_MAX_BATCH_SIZE, BatchConfig, get_batch_config
from .env import env_int, optional_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import (
    CacheConfig,
    RateLimit,
    ResilienceConfig,
    RetryPolicy,
    write_safe_retry_policy,
)
from .hubspot import HUBSPOT_BASE_URL, HubSpotConfig, build_hubspot_config, get_hubspot_config
from .logging import configure_logging
from .storage import StorageConfig, get_http_cache_path, get_storage_config

__all__ = [
    "DEFAULT_MAX_BATCH_SIZE",
    "HUBSPOT_BASE_URL",
    "BatchConfig",
    "CacheConfig",
    "ConfigurationError",
    "HubSpotConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "build_hubspot_config",
    "configure_logging",
    "get_batch_config",
    "get_http_cache_path",
    "get_hubspot_config",
    "env_int",
    "get_storage_config",
    "optional_env_var",
    "require_env_vars",
    "write_safe_retry_policy",
]
