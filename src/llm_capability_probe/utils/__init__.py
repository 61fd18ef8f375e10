"""Utility functions for configuration, file locations and API keys."""

from .config import (
    get_available_providers,
    get_config_home,
    get_default_cache_path,
    get_default_keys_path,
    get_default_quick_list_path,
    get_probe_config,
    load_environment,
    resolve_api_keys,
)

__all__ = [
    "load_environment",
    "get_probe_config",
    "get_config_home",
    "get_default_cache_path",
    "get_default_keys_path",
    "get_default_quick_list_path",
    "resolve_api_keys",
    "get_available_providers",
]
