"""Two-tier result cache for ReelVault.

Values computed by the pipeline (mostly metadata records) are kept in a
bounded in-process LRU map and mirrored to one JSON file per key in the
cache directory, so a restarted batch can skip work it already did. Files
are serialized with orjson and written via a temporary file and an atomic
rename.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import threading
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import orjson
from pydantic import BaseModel, Field, ValidationError

from reelvault.shared.cancellation import CancellationToken
from reelvault.shared.constants import CacheDefaults
from reelvault.shared.errors import (
    CacheInitError,
    ErrorContext,
    InfrastructureError,
    OperationInterruptedError,
    create_config_error,
)
from reelvault.shared.logging import log_operation_error, log_operation_success

logger = logging.getLogger(__name__)


class CacheEntry(BaseModel):
    """Schema of a durable cache record.

    Attributes:
        key_hash: SHA-256 digest of the caller key (also the file stem)
        value: JSON-compatible cached value
        stored_at: Epoch seconds when the value was stored
        max_age: Entry-specific max age in seconds (None uses the default)
    """

    key_hash: str = Field(..., description="SHA-256 hash of the original key")
    value: Any = Field(default=None, description="The cached value")
    stored_at: float = Field(..., description="Epoch seconds when stored")
    max_age: float | None = Field(default=None, gt=0, description="Max age override")


@dataclass(frozen=True)
class CacheStats:
    memory_items: int
    hits: int
    misses: int
    writes: int
    evictions: int


class ResultCache:
    """Bounded in-memory LRU backed by a JSON file per key.

    Args:
        cache_dir: Directory for durable entries, created if missing
        max_memory_items: Bound of the in-process tier
        default_max_age: Max age in seconds when neither the entry nor the
            caller specifies one
        clock: Time source returning epoch seconds (injectable for tests)

    Raises:
        CacheInitError: If the cache directory cannot be created
        InvalidConfigError: If a bound is not positive
    """

    def __init__(
        self,
        cache_dir: Path | str,
        max_memory_items: int = CacheDefaults.MAX_MEMORY_ITEMS,
        default_max_age: float = CacheDefaults.MAX_AGE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_memory_items <= 0:
            raise create_config_error(
                f"max_memory_items must be positive, got {max_memory_items}",
                config_key="max_memory_items",
                operation="initialize_cache",
            )
        if default_max_age <= 0:
            raise create_config_error(
                f"max_age must be positive, got {default_max_age}",
                config_key="max_age",
                operation="initialize_cache",
            )

        self.cache_dir = Path(cache_dir)
        context = ErrorContext(
            operation="initialize_cache",
            additional_data={"cache_dir": str(self.cache_dir)},
        )
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            error = CacheInitError(
                f"Failed to create cache directory: {self.cache_dir}",
                context=context,
                original_error=e,
            )
            log_operation_error(logger=logger, error=error, operation="initialize_cache")
            raise error from e

        self.max_memory_items = max_memory_items
        self.default_max_age = default_max_age
        self._clock = clock
        self._memory: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

        self._hits = 0
        self._misses = 0
        self._writes = 0
        self._evictions = 0

        logger.debug("Initialized ResultCache in %s", self.cache_dir)

    @staticmethod
    def hash_key(key: str) -> str:
        return hashlib.sha256(key.encode("utf-8")).hexdigest()

    def _file_path(self, key_hash: str) -> Path:
        return self.cache_dir / f"{key_hash}{CacheDefaults.FILE_SUFFIX}"

    def _is_expired(self, entry: CacheEntry, max_age: float | None, now: float) -> bool:
        effective = entry.max_age or max_age or self.default_max_age
        return now - entry.stored_at > effective

    async def get(self, key: str, max_age: float | None = None) -> Any | None:
        """Look up a value.

        The in-process tier is consulted first; a durable hit is promoted
        into it with its original timestamp.

        Args:
            key: Caller key
            max_age: Max age override for entries that carry none

        Returns:
            The cached value, or None on a miss or an expired entry
        """
        key_hash = self.hash_key(key)
        now = self._clock()

        with self._lock:
            entry = self._memory.get(key_hash)
            if entry is not None:
                if not self._is_expired(entry, max_age, now):
                    self._memory.move_to_end(key_hash)
                    self._hits += 1
                    return entry.value
                del self._memory[key_hash]

        entry = await asyncio.to_thread(self._read_file, key_hash)

        with self._lock:
            current = self._memory.get(key_hash)
            if (
                current is not None
                and (entry is None or current.stored_at >= entry.stored_at)
                and not self._is_expired(current, max_age, now)
            ):
                # A set() landed while the file was being read
                self._memory.move_to_end(key_hash)
                self._hits += 1
                return current.value

        if entry is None:
            self._misses += 1
            return None

        if self._is_expired(entry, max_age, now):
            logger.debug("Cache entry expired for key '%s'", key)
            await asyncio.to_thread(self._delete_file, key_hash)
            self._misses += 1
            return None

        with self._lock:
            self._remember(key_hash, entry)
            self._hits += 1
        return entry.value

    async def set(self, key: str, value: Any, max_age: float | None = None) -> None:
        """Store a value in both tiers.

        A failed durable write is logged; the in-process value is kept.
        """
        key_hash = self.hash_key(key)
        entry = CacheEntry(
            key_hash=key_hash,
            value=value,
            stored_at=self._clock(),
            max_age=max_age,
        )

        with self._lock:
            self._remember(key_hash, entry)

        started = time.perf_counter()
        try:
            await asyncio.to_thread(self._write_file, entry)
        except (OSError, TypeError) as e:
            error = InfrastructureError(
                f"Failed to write cache file for key '{key}': {e!s}",
                context=ErrorContext(
                    operation="cache_set",
                    file_path=str(self._file_path(key_hash)),
                ),
                original_error=e,
            )
            log_operation_error(logger=logger, error=error, level=logging.WARNING)
            return

        self._writes += 1
        log_operation_success(
            logger=logger,
            operation="cache_set",
            duration_ms=(time.perf_counter() - started) * 1000,
            context={"key_hash": key_hash},
        )

    async def cleanup(self) -> int:
        """Remove expired entries from both tiers.

        Returns:
            Number of distinct entries removed
        """
        now = self._clock()
        with self._lock:
            expired_memory = {
                key_hash
                for key_hash, entry in self._memory.items()
                if self._is_expired(entry, None, now)
            }
            for key_hash in expired_memory:
                del self._memory[key_hash]

        removed_files = await asyncio.to_thread(self._sweep_files, now)
        removed = len(expired_memory | removed_files)
        if removed:
            logger.info("Cache cleanup removed %d expired entr(ies)", removed)
        return removed

    async def sweep_periodically(self, interval: float, token: CancellationToken) -> None:
        """Run :meth:`cleanup` every ``interval`` seconds until the token fires.

        A non-positive interval disables the sweeper.
        """
        if interval <= 0:
            return
        while True:
            try:
                await token.sleep(interval, operation="cache_sweep")
            except OperationInterruptedError:
                return
            try:
                await self.cleanup()
            except OSError:
                logger.warning("Periodic cache cleanup failed", exc_info=True)

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                memory_items=len(self._memory),
                hits=self._hits,
                misses=self._misses,
                writes=self._writes,
                evictions=self._evictions,
            )

    def _remember(self, key_hash: str, entry: CacheEntry) -> None:
        # Caller holds the lock
        if key_hash in self._memory:
            self._memory.move_to_end(key_hash)
        self._memory[key_hash] = entry
        while len(self._memory) > self.max_memory_items:
            evicted, _ = self._memory.popitem(last=False)
            self._evictions += 1
            logger.debug("Evicted cache entry %s", evicted)

    def _read_file(self, key_hash: str) -> CacheEntry | None:
        path = self._file_path(key_hash)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError:
            logger.warning("Failed to read cache file %s", path, exc_info=True)
            return None
        return self._parse(path, raw)

    def _parse(self, path: Path, raw: bytes) -> CacheEntry | None:
        try:
            return CacheEntry.model_validate(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValidationError):
            logger.warning("Removing corrupt cache file %s", path)
            try:
                path.unlink(missing_ok=True)
            except OSError:
                logger.warning("Failed to delete corrupt cache file %s", path, exc_info=True)
            return None

    def _write_file(self, entry: CacheEntry) -> None:
        path = self._file_path(entry.key_hash)
        tmp_path = path.with_name(f"{path.name}.{uuid.uuid4().hex}{CacheDefaults.TEMP_SUFFIX}")
        try:
            tmp_path.write_bytes(orjson.dumps(entry.model_dump()))
            os.replace(tmp_path, path)
        except (OSError, TypeError):
            tmp_path.unlink(missing_ok=True)
            raise

    def _delete_file(self, key_hash: str) -> None:
        try:
            self._file_path(key_hash).unlink(missing_ok=True)
        except OSError:
            logger.warning("Failed to delete cache file for %s", key_hash, exc_info=True)

    def _sweep_files(self, now: float) -> set[str]:
        removed: set[str] = set()
        for path in self.cache_dir.glob(f"*{CacheDefaults.FILE_SUFFIX}"):
            try:
                raw = path.read_bytes()
            except OSError:
                logger.warning("Failed to read cache file %s", path, exc_info=True)
                continue
            entry = self._parse(path, raw)
            if entry is None:
                removed.add(path.stem)
                continue
            if self._is_expired(entry, None, now):
                try:
                    path.unlink(missing_ok=True)
                except OSError:
                    logger.warning("Failed to delete cache file %s", path, exc_info=True)
                    continue
                removed.add(path.stem)
        return removed
