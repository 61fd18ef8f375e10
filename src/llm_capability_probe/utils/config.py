"""Configuration utilities for environment-based setup."""

import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from llm_capability_probe.exceptions import ConfigurationException
from llm_capability_probe.probing.types import ProbeConfig
from llm_capability_probe.providers.adapters import (
    KNOWN_PROVIDERS,
    get_api_key_from_env,
    load_api_keys_from_file,
    provider_requires_api_key,
)

logger = logging.getLogger(__name__)

HOME_ENV_VAR = "LLM_PROBE_HOME"
CACHE_FILE_NAME = "model-capabilities.probed.json"
KEYS_FILE_NAME = "keys.json"
QUICK_LIST_FILE_NAME = "quick-list.json"

_INT_SETTINGS: dict[str, str] = {
    "timeout_ms": "LLM_PROBE_TIMEOUT_MS",
    "max_retries": "LLM_PROBE_MAX_RETRIES",
    "retry_delay_ms": "LLM_PROBE_RETRY_DELAY_MS",
    "concurrency": "LLM_PROBE_CONCURRENCY",
}
_BOOL_SETTINGS: dict[str, str] = {
    "skip_streaming_probe": "LLM_PROBE_SKIP_STREAMING",
}
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def load_environment() -> None:
    """Load environment variables from .env file if it exists."""
    load_dotenv()


def _parse_int(key: str, value: str) -> int:
    try:
        parsed = int(value.strip())
    except ValueError:
        raise ConfigurationException(
            f"{key} must be an integer, got {value!r}",
            config_key=key,
            config_value=value,
        ) from None
    if parsed < 0:
        raise ConfigurationException(
            f"{key} must not be negative, got {value!r}",
            config_key=key,
            config_value=value,
        )
    return parsed


def _parse_bool(key: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationException(
        f"{key} must be a boolean, got {value!r}",
        config_key=key,
        config_value=value,
    )


def get_probe_config(**overrides: Any) -> ProbeConfig:
    """Build a probe configuration from defaults, environment and overrides.

    Keyword arguments that are not None take precedence over the
    ``LLM_PROBE_*`` environment variables.

    Args:
        **overrides: ``ProbeConfig`` field values

    Returns:
        Configured ProbeConfig

    Raises:
        ConfigurationException: If an environment value cannot be parsed or
            the resulting configuration is invalid
    """
    load_environment()

    values: dict[str, Any] = {}
    for field, env_var in _INT_SETTINGS.items():
        raw = os.getenv(env_var)
        if raw:
            values[field] = _parse_int(env_var, raw)
    for field, env_var in _BOOL_SETTINGS.items():
        raw = os.getenv(env_var)
        if raw:
            values[field] = _parse_bool(env_var, raw)

    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return ProbeConfig(**values)
    except ValueError as e:
        raise ConfigurationException(f"Invalid probe configuration: {e}") from e


def get_config_home() -> Path:
    """Directory shared with the desktop application (``~/.llm-tabs``)."""
    override = os.getenv(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".llm-tabs"


def get_default_cache_path() -> Path:
    return get_config_home() / CACHE_FILE_NAME


def get_default_keys_path() -> Path:
    return get_config_home() / KEYS_FILE_NAME


def get_default_quick_list_path() -> Path:
    return get_config_home() / QUICK_LIST_FILE_NAME


def resolve_api_keys(keys_file: str | Path | None = None) -> dict[str, str]:
    """Collect API keys from the keys file, then the environment.

    Environment variables win over the file.

    Args:
        keys_file: JSON keys file (default: ``~/.llm-tabs/keys.json``)

    Returns:
        Dictionary mapping provider names to API keys
    """
    load_environment()

    keys = load_api_keys_from_file(keys_file or get_default_keys_path())
    for provider in KNOWN_PROVIDERS:
        env_key = get_api_key_from_env(provider)
        if env_key:
            keys[provider] = env_key
    return keys


def get_available_providers(keys_file: str | Path | None = None) -> dict[str, bool]:
    """Check which providers can be probed with the keys available.

    Returns:
        Dictionary mapping provider names to availability status
    """
    keys = resolve_api_keys(keys_file)
    return {
        provider: (not provider_requires_api_key(provider)) or provider in keys
        for provider in KNOWN_PROVIDERS
    }
