# src/marketsync/adapters/persistence/file_store.py
"""
File Store - Market Data Cache Persistence

This module persists the three cache kinds (price, rates, history) as
independent JSON files. Each file holds one CacheRecord:

    {"version": 1, "kind": "price", "timestamp": "<write time>", "payload": {...}}

The store is a best-effort durability layer: failures are logged and
reported through the return value, never raised to the synchronizers.
Each kind has exactly one writer, so no locking is done.

Files that USE this module:
- marketsync.application.price_sync (load/save of the price cache)
- marketsync.application.history_sync (load/save of the history cache)
- marketsync.app (constructs the store)

Files that this module USES:
- marketsync.config (settings for the cache directory)
- marketsync.domain.models (CacheKind, CacheRecord and payload types)
"""
from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from marketsync.config import settings
from marketsync.domain.errors import ValidationFailure
from marketsync.domain.models import (
    PAYLOAD_TYPES,
    CacheKind,
    CachePayload,
    CacheRecord,
    parse_timestamp,
    utc_now,
)

log = logging.getLogger(__name__)

# Bump when a payload's JSON layout changes; older files are then ignored
CACHE_SCHEMA_VERSION = 1


class CacheStore:
    """JSON-file cache with one file per cache kind."""

    def __init__(self, cache_dir: Optional[Union[str, Path]] = None):
        """
        Args:
            cache_dir: Directory for cache files (defaults to settings.cache_dir)
        """
        self.cache_dir = Path(cache_dir) if cache_dir is not None else settings.cache_dir

    def path_for(self, kind: CacheKind) -> Path:
        return self.cache_dir / f"{kind.value}_cache.json"

    def save(self, kind: CacheKind, payload: CachePayload, now: Optional[datetime] = None) -> bool:
        """
        Write a cache record for ``kind`` using an atomic replace.

        Args:
            kind: Cache kind being written
            payload: Snapshot matching the kind
            now: Write timestamp (defaults to current UTC time)

        Returns:
            True on success, False if the record could not be written

        Raises:
            TypeError: If payload does not match kind
        """
        expected = PAYLOAD_TYPES[kind]
        if not isinstance(payload, expected):
            raise TypeError(f"{kind.value} cache expects {expected.__name__}, got {type(payload).__name__}")

        record = {
            "version": CACHE_SCHEMA_VERSION,
            "kind": kind.value,
            "timestamp": (now or utc_now()).isoformat(),
            "payload": payload.to_json(),
        }

        path = self.path_for(kind)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp_fd, temp_path = tempfile.mkstemp(suffix=".json.tmp", dir=str(path.parent), text=True)
        except OSError as e:
            log.error("Failed to prepare %s cache file %s: %s", kind.value, path, e)
            return False

        try:
            with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                json.dump(record, f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, str(path))
        except (OSError, TypeError, ValueError) as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            log.error("Failed to save %s cache: %s", kind.value, e)
            return False

        log.debug("Saved %s cache to %s", kind.value, path)
        return True

    def load(self, kind: CacheKind) -> Optional[CacheRecord]:
        """
        Read the cache record for ``kind``.

        A corrupt file, or one whose payload does not parse, is backed up
        next to the original (``*.corrupt``) and removed. Records from another
        schema version or with a mismatched kind are ignored.

        Returns:
            CacheRecord if a valid record exists, None otherwise
        """
        path = self.path_for(kind)
        if not path.exists():
            return None

        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            self._quarantine(path, e)
            return None
        except OSError as e:
            log.error("Failed to read %s cache: %s", kind.value, e)
            return None

        if not isinstance(data, dict):
            self._quarantine(path, "top-level value is not an object")
            return None

        if data.get("version") != CACHE_SCHEMA_VERSION:
            log.warning("Ignoring %s cache with schema version %r (expected %d)",
                        kind.value, data.get("version"), CACHE_SCHEMA_VERSION)
            return None
        if data.get("kind") != kind.value:
            log.warning("Ignoring %s cache holding kind %r", kind.value, data.get("kind"))
            return None

        try:
            timestamp = parse_timestamp(data.get("timestamp"))
            if timestamp is None:
                raise ValueError("missing timestamp")
            payload = PAYLOAD_TYPES[kind].from_json(data["payload"])
        except (AttributeError, KeyError, ValueError, TypeError, ValidationFailure) as e:
            self._quarantine(path, e)
            return None

        return CacheRecord(kind=kind, payload=payload, timestamp=timestamp)

    @staticmethod
    def _quarantine(path: Path, reason) -> None:
        backup_path = path.with_suffix(".json.corrupt")
        try:
            shutil.copy2(path, backup_path)
            path.unlink()
            log.warning("Cache file %s corrupted, backed up to %s: %s", path, backup_path, reason)
        except OSError as backup_error:
            log.error("Failed to back up corrupt cache file %s: %s", path, backup_error)
