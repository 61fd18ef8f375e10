"""Layered capability cache: probed results, overrides and defaults."""

from .capability_cache import (
    CACHE_VERSION,
    CacheDocument,
    CachedModelCapabilities,
    CacheKey,
    CacheStats,
    CapabilityCache,
    make_cache_key,
    parse_cache_key,
)
from .persistence import (
    QuickListEntry,
    attach_file_persistence,
    load_cache_file,
    load_quick_list,
    quick_list_exists,
    read_cache_document,
    save_cache_file,
    save_quick_list,
)
from .static_overrides import (
    PROVIDER_DEFAULTS,
    STATIC_OVERRIDES,
    StaticCapabilityOverride,
    get_provider_defaults,
    get_static_override,
)

__all__ = [
    "CACHE_VERSION",
    "CacheDocument",
    "CacheKey",
    "CacheStats",
    "CachedModelCapabilities",
    "CapabilityCache",
    "PROVIDER_DEFAULTS",
    "QuickListEntry",
    "STATIC_OVERRIDES",
    "StaticCapabilityOverride",
    "attach_file_persistence",
    "get_provider_defaults",
    "get_static_override",
    "load_cache_file",
    "load_quick_list",
    "make_cache_key",
    "parse_cache_key",
    "quick_list_exists",
    "read_cache_document",
    "save_cache_file",
    "save_quick_list",
]
