"""In-memory capability cache with four-tier precedence resolution.

Resolution order, highest first:

1. Local overrides set by the user
2. Probed results committed from :func:`probe_model`
3. Static overrides for well known model families
4. Provider defaults

Tiers are overlaid from lowest to highest precedence, so a partial local
override only replaces the fields it sets.
"""

import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any, NamedTuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from llm_capability_probe.cache.static_overrides import (
    get_provider_defaults,
    get_static_override,
)
from llm_capability_probe.probing.types import (
    CapabilitySource,
    ModelProbeResult,
    PartialCapabilities,
    ProbedCapabilities,
)

logger = logging.getLogger(__name__)

CACHE_VERSION = "1.0.0"


class CacheKey(NamedTuple):
    provider: str
    model: str


def make_cache_key(provider: str, model: str) -> str:
    """Build the ``"<provider>:<model>"`` key used by every tier."""
    return f"{provider}:{model}"


def parse_cache_key(key: str) -> CacheKey | None:
    """Split a cache key at its first colon.

    Model ids may themselves contain colons (``llama3:8b``), so everything
    after the first colon belongs to the model.

    Returns:
        The key parts, or None when the key has no colon
    """
    provider, sep, model = key.partition(":")
    if not sep:
        return None
    return CacheKey(provider=provider, model=model)


def _now_ms() -> int:
    return int(time.time() * 1000)


class CachedModelCapabilities(BaseModel):
    """One probed-tier entry, as stored in the cache file."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    provider: str
    model: str
    capabilities: ProbedCapabilities
    probed_at: int = Field(
        validation_alias=AliasChoices("probedAt", "lastProbedAt", "probed_at"),
        serialization_alias="probedAt",
        description="Unix timestamp in milliseconds of the probe run",
    )
    probe_version: str
    source: CapabilitySource = "probed"


class CacheDocument(BaseModel):
    """Serializable form of the probed tier."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    version: str = CACHE_VERSION
    last_updated: int = Field(default_factory=_now_ms)
    models: dict[str, CachedModelCapabilities] = Field(default_factory=dict)


class CacheStats(BaseModel):
    """Statistics over the probed tier only."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, protected_namespaces=()
    )

    model_count: int = Field(description="Number of probed entries")
    last_updated: int = Field(description="Last write to the probed tier (ms)")
    oldest_entry: int | None = Field(default=None, description="Oldest probedAt")
    newest_entry: int | None = Field(default=None, description="Newest probedAt")
    provider_breakdown: dict[str, int] = Field(default_factory=dict)


def _entry_from_result(result: ModelProbeResult) -> CachedModelCapabilities:
    return CachedModelCapabilities(
        provider=result.provider,
        model=result.model,
        capabilities=result.capabilities,
        probed_at=result.probed_at,
        probe_version=result.probe_version,
    )


def _overlay(base: dict[str, Any], layer: Mapping[str, Any] | None) -> None:
    if layer:
        base.update({k: v for k, v in layer.items() if v is not None})


class CapabilityCache:
    """Probed results and local overrides, resolved against static knowledge.

    All state lives on the instance and is guarded by a single re-entrant
    lock, so probe workers may commit results while readers resolve
    capabilities.

    Args:
        document: Initial probed tier, for example loaded from disk
        on_change: Called with the cache after every probed-tier write
        clock: Millisecond clock used for ``last_updated``
    """

    def __init__(
        self,
        document: CacheDocument | None = None,
        on_change: Callable[["CapabilityCache"], None] | None = None,
        clock: Callable[[], int] = _now_ms,
    ):
        self._lock = threading.RLock()
        self._clock = clock
        self._entries: dict[str, CachedModelCapabilities] = {}
        self._local_overrides: dict[str, PartialCapabilities] = {}
        self._last_updated = clock()
        self.on_change = on_change
        if document is not None:
            self.load_document(document)

    # Resolution

    def get_capabilities(self, provider: str, model: str) -> ProbedCapabilities:
        """Resolve the effective capability vector for a pair."""
        key = make_cache_key(provider, model)
        resolved = get_provider_defaults(provider).model_dump()
        static = get_static_override(provider, model)
        _overlay(resolved, static.set_fields() if static else None)
        with self._lock:
            entry = self._entries.get(key)
            local = self._local_overrides.get(key)
        if entry is not None:
            _overlay(resolved, entry.capabilities.model_dump())
        if local is not None:
            _overlay(resolved, local.set_fields())
        return ProbedCapabilities(**resolved)

    def get_capability_source(self, provider: str, model: str) -> CapabilitySource:
        """Name the highest tier holding any entry for the pair."""
        key = make_cache_key(provider, model)
        with self._lock:
            if key in self._local_overrides:
                return "local-override"
            if key in self._entries:
                return "probed"
        if get_static_override(provider, model) is not None:
            return "static-override"
        return "provider-default"

    # Probed tier

    def update_cache_from_probe_result(self, result: ModelProbeResult) -> None:
        """Store a probe result, replacing any earlier entry for the pair."""
        with self._lock:
            self._entries[make_cache_key(result.provider, result.model)] = (
                _entry_from_result(result)
            )
            self._last_updated = self._clock()
            self._notify()
        logger.debug("Cached capabilities for %s:%s", result.provider, result.model)

    def update_cache_from_probe_results(
        self, results: Iterable[ModelProbeResult]
    ) -> None:
        with self._lock:
            for result in results:
                self._entries[make_cache_key(result.provider, result.model)] = (
                    _entry_from_result(result)
                )
            self._last_updated = self._clock()
            self._notify()

    def get_cached_entry(
        self, provider: str, model: str
    ) -> CachedModelCapabilities | None:
        with self._lock:
            return self._entries.get(make_cache_key(provider, model))

    def remove_cached_model(self, provider: str, model: str) -> bool:
        """Drop the probed entry for a pair.

        Returns:
            Whether an entry was removed
        """
        with self._lock:
            removed = self._entries.pop(make_cache_key(provider, model), None)
            if removed is None:
                return False
            self._last_updated = self._clock()
            self._notify()
            return True

    def clear_cache(self) -> None:
        """Empty the probed tier. Local overrides are kept."""
        with self._lock:
            self._entries.clear()
            self._last_updated = self._clock()
            self._notify()

    # Local overrides

    def set_local_override(
        self,
        provider: str,
        model: str,
        capabilities: PartialCapabilities | Mapping[str, Any],
    ) -> None:
        """Pin capabilities for a pair, above every other tier.

        Raises:
            pydantic.ValidationError: If a mapping carries an unknown key or a
                value of the wrong type
        """
        if not isinstance(capabilities, PartialCapabilities):
            capabilities = PartialCapabilities.model_validate(dict(capabilities))
        with self._lock:
            self._local_overrides[make_cache_key(provider, model)] = capabilities

    def remove_local_override(self, provider: str, model: str) -> bool:
        with self._lock:
            key = make_cache_key(provider, model)
            return self._local_overrides.pop(key, None) is not None

    def clear_local_overrides(self) -> None:
        with self._lock:
            self._local_overrides.clear()

    def get_local_override(
        self, provider: str, model: str
    ) -> PartialCapabilities | None:
        with self._lock:
            return self._local_overrides.get(make_cache_key(provider, model))

    # Stats and serialization

    def get_cache_stats(self) -> CacheStats:
        """Summarize the probed tier."""
        with self._lock:
            entries = list(self._entries.values())
            last_updated = self._last_updated

        breakdown: dict[str, int] = {}
        for entry in entries:
            breakdown[entry.provider] = breakdown.get(entry.provider, 0) + 1
        probed_at = [entry.probed_at for entry in entries]
        return CacheStats(
            model_count=len(entries),
            last_updated=last_updated,
            oldest_entry=min(probed_at) if probed_at else None,
            newest_entry=max(probed_at) if probed_at else None,
            provider_breakdown=breakdown,
        )

    def to_document(self) -> CacheDocument:
        """Snapshot the probed tier for persistence."""
        with self._lock:
            return CacheDocument(
                version=CACHE_VERSION,
                last_updated=self._last_updated,
                models=dict(self._entries),
            )

    def load_document(
        self, document: CacheDocument | Mapping[str, Any], merge: bool = False
    ) -> None:
        """Load a probed tier, replacing the current one unless ``merge``.

        When merging, entries from ``document`` win for keys present in both.
        Loading does not trigger ``on_change``.
        """
        if not isinstance(document, CacheDocument):
            document = CacheDocument.model_validate(dict(document))
        with self._lock:
            if merge:
                self._entries.update(document.models)
                self._last_updated = max(self._last_updated, document.last_updated)
            else:
                self._entries = dict(document.models)
                self._last_updated = document.last_updated
        logger.debug("Loaded %d cached model entries", len(document.models))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _notify(self) -> None:
        # Called with the lock held so writes reach disk in commit order
        if self.on_change is not None:
            self.on_change(self)
