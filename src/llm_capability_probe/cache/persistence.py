"""JSON file persistence for the probed tier and the quick list."""

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from llm_capability_probe.cache.capability_cache import (
    CACHE_VERSION,
    CacheDocument,
    CapabilityCache,
)
from llm_capability_probe.exceptions import CacheFormatException

logger = logging.getLogger(__name__)

QUICK_LIST_VERSION = "1.0.0"


class QuickListEntry(BaseModel):
    """A (provider, model) pair the user wants probed."""

    model_config = ConfigDict(frozen=True)

    provider: str
    model: str
    endpoint: str | None = None


class QuickListFile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: str = QUICK_LIST_VERSION
    last_updated: int = Field(
        default_factory=lambda: int(time.time() * 1000), alias="lastUpdated"
    )
    models: list[QuickListEntry]


def _write_json_atomic(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def read_cache_document(path: str | Path) -> CacheDocument:
    """Read and validate a cache file.

    Raises:
        FileNotFoundError: If the file does not exist
        CacheFormatException: If the file is not a current cache document
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise CacheFormatException(
            f"Cache file is not valid JSON: {e}", path=str(path)
        ) from e

    if not isinstance(data, dict):
        raise CacheFormatException("Cache file is not a JSON object", path=str(path))

    version = data.get("version")
    if version != CACHE_VERSION:
        raise CacheFormatException(
            f"Cache version mismatch: {version} vs {CACHE_VERSION}",
            path=str(path),
            found_version=version if isinstance(version, str) else None,
        )

    try:
        return CacheDocument.model_validate(data)
    except ValidationError as e:
        raise CacheFormatException(
            f"Invalid cache document: {e}", path=str(path), found_version=version
        ) from e


def load_cache_file(path: str | Path) -> CacheDocument | None:
    """Load a cache file, or None when it is missing or unusable.

    Unusable files are logged and ignored so a stale cache never blocks
    probing; the next save replaces them.
    """
    try:
        return read_cache_document(path)
    except FileNotFoundError:
        return None
    except CacheFormatException as e:
        logger.warning("Ignoring cache file %s: %s", path, e)
        return None
    except OSError as e:
        logger.warning("Could not read cache file %s: %s", path, e)
        return None


def save_cache_file(cache: CapabilityCache, path: str | Path) -> None:
    """Write the probed tier of ``cache`` to ``path``, replacing it atomically."""
    document = cache.to_document()
    _write_json_atomic(Path(path), document.model_dump(mode="json", by_alias=True))
    logger.debug("Saved %d cached models to %s", len(document.models), path)


def attach_file_persistence(
    cache: CapabilityCache, path: str | Path, merge: bool = True
) -> CapabilityCache:
    """Load ``path`` into ``cache`` and save back after every probed-tier write."""
    document = load_cache_file(path)
    if document is not None:
        cache.load_document(document, merge=merge)

    def save(changed: CapabilityCache) -> None:
        save_cache_file(changed, path)

    cache.on_change = save
    return cache


def load_quick_list(path: str | Path) -> list[QuickListEntry] | None:
    """Load the quick list, or None when the file is missing or malformed."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Failed to load quick list %s: %s", path, e)
        return None

    if not isinstance(data, dict) or not data.get("version") or "models" not in data:
        logger.warning("Invalid quick list file format: %s", path)
        return None

    try:
        return QuickListFile.model_validate(data).models
    except ValidationError as e:
        logger.warning("Invalid quick list file format: %s: %s", path, e)
        return None


def save_quick_list(models: list[QuickListEntry], path: str | Path) -> None:
    document = QuickListFile(models=models)
    _write_json_atomic(
        Path(path),
        document.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


def quick_list_exists(path: str | Path) -> bool:
    return Path(path).is_file()
