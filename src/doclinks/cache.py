"""Two-tier cache: a bounded in-memory LRU backed by optional JSON files.

Memory tier:
    Hashmap + doubly linked list. `get` moves the entry to the
    most-recently-used end; `set` on a full cache evicts the
    least-recently-used entry first. Entries whose `last_accessed` (or
    `created`, with `expire_from_creation`) is older than the TTL are
    dropped on read (ttl=0 never expires).

Filesystem tier (`persist_to_disk`):
    One JSON file per key: {value, created, lastAccessed, version}.
    Consulted only on a memory miss; stale-version or expired files count as
    absent; hits are promoted back into memory. Values must be JSON
    serializable. Failures are reported and degrade to a miss/no-op.

Cache location: {DOCLINKS_CACHE_DIR} (default ./.cache/doclinks)
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator, TypeVar

from .config import get_cache_dir
from .errors import CacheError, ErrorReporter
from .models import CacheConfig, CacheMetrics

log = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]

# Longest readable prefix kept in cache filenames
_MAX_FILENAME_STEM = 80
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


@dataclass
class _CacheEntry:
    value: Any
    created: float
    last_accessed: float
    version: str


class _Node:
    __slots__ = ("key", "entry", "prev", "next")

    def __init__(self, key: str | None, entry: _CacheEntry | None) -> None:
        self.key = key
        self.entry = entry
        self.prev: _Node | None = None
        self.next: _Node | None = None


class LRUCache:
    """Bounded LRU map with TTL measured from the last access (or creation)."""

    def __init__(
        self,
        max_size: int,
        ttl: float = 0,
        version: str = "1.0.0",
        clock: Clock = time.time,
        expire_from_creation: bool = False,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl = ttl
        self.version = version
        self.expire_from_creation = expire_from_creation
        self._clock = clock
        self._map: dict[str, _Node] = {}
        # Sentinels: head.next is the most recently used, tail.prev the least.
        self._head = _Node(None, None)
        self._tail = _Node(None, None)
        self._head.next = self._tail
        self._tail.prev = self._head

    def __len__(self) -> int:
        return len(self._map)

    def __contains__(self, key: object) -> bool:
        return key in self._map

    def _unlink(self, node: _Node) -> None:
        node.prev.next = node.next  # type: ignore[union-attr]
        node.next.prev = node.prev  # type: ignore[union-attr]
        node.prev = node.next = None

    def _push_front(self, node: _Node) -> None:
        first = self._head.next
        node.prev = self._head
        node.next = first
        self._head.next = node
        first.prev = node  # type: ignore[union-attr]

    def is_expired(self, entry: _CacheEntry) -> bool:
        start = entry.created if self.expire_from_creation else entry.last_accessed
        return self.ttl > 0 and self._clock() - start > self.ttl

    def get(self, key: str) -> Any:
        """Return the cached value or MISSING. Expired entries are removed."""
        node = self._map.get(key)
        if node is None:
            return MISSING

        entry = node.entry
        assert entry is not None
        if self.is_expired(entry):
            self.delete(key)
            return MISSING

        entry.last_accessed = self._clock()
        self._unlink(node)
        self._push_front(node)
        return entry.value

    def set(self, key: str, value: Any, created: float | None = None) -> str | None:
        """Insert or replace a value. Returns the evicted key, if any."""
        now = self._clock()
        entry = _CacheEntry(
            value=value,
            created=created if created is not None else now,
            last_accessed=now,
            version=self.version,
        )

        node = self._map.get(key)
        if node is not None:
            node.entry = entry
            self._unlink(node)
            self._push_front(node)
            return None

        evicted = None
        if len(self._map) >= self.max_size:
            lru = self._tail.prev
            assert lru is not None and lru.key is not None
            evicted = lru.key
            self.delete(evicted)

        node = _Node(key, entry)
        self._map[key] = node
        self._push_front(node)
        return evicted

    def delete(self, key: str) -> bool:
        node = self._map.pop(key, None)
        if node is None:
            return False
        self._unlink(node)
        return True

    def clear(self) -> None:
        self._map.clear()
        self._head.next = self._tail
        self._tail.prev = self._head

    def keys(self) -> Iterator[str]:
        """Keys from most to least recently used."""
        node = self._head.next
        while node is not None and node is not self._tail:
            assert node.key is not None
            yield node.key
            node = node.next

    def memory_usage(self) -> int:
        """Approximate bytes held by cached values (shallow)."""
        return sum(
            sys.getsizeof(node.key) + sys.getsizeof(node.entry.value)
            for node in self._map.values()
            if node.entry is not None
        )


class FileSystemCache:
    """JSON-file-per-key persistence for cache values."""

    def __init__(self, cache_dir: Path, config: CacheConfig, clock: Clock = time.time) -> None:
        self.cache_dir = cache_dir
        self._config = config
        self._clock = clock

    def path_for(self, key: str) -> Path:
        stem = _UNSAFE_FILENAME_CHARS.sub("_", key).strip("_")[:_MAX_FILENAME_STEM] or "key"
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:12]
        return self.cache_dir / f"{stem}-{digest}.json"

    def _is_expired(self, last_accessed: float) -> bool:
        return self._config.ttl > 0 and self._clock() - last_accessed > self._config.ttl

    def load(self, key: str) -> tuple[Any, float] | None:
        """Return (value, created) or None when absent, stale or expired.

        Raises:
            CacheError: If the file exists but cannot be read or decoded.
        """
        path = self.path_for(key)
        if not path.exists():
            return None

        try:
            payload: dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise CacheError(f"Failed to read cache file for {key}: {e}", {"key": key}) from e

        if not isinstance(payload, dict) or "value" not in payload:
            raise CacheError(f"Malformed cache file for {key}", {"key": key, "path": str(path)})

        if payload.get("version") != self._config.version:
            return None

        last_accessed = float(payload.get("lastAccessed", payload.get("created", 0.0)))
        created = float(payload.get("created", last_accessed))
        if self._is_expired(created if self._config.expire_from_creation else last_accessed):
            return None

        return payload["value"], created

    def save(self, key: str, value: Any) -> Path:
        """Write a value to disk.

        Raises:
            CacheError: If the directory or file cannot be written, or the value
                is not JSON serializable.
        """
        now = self._clock()
        payload = {
            "value": value,
            "created": now,
            "lastAccessed": now,
            "version": self._config.version,
        }
        path = self.path_for(key)
        try:
            data = json.dumps(payload)
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(data, encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            raise CacheError(f"Failed to save cache entry {key}: {e}", {"key": key}) from e
        return path

    def delete(self, key: str) -> None:
        try:
            self.path_for(key).unlink(missing_ok=True)
        except OSError as e:
            raise CacheError(f"Failed to delete cache entry {key}: {e}", {"key": key}) from e

    def clear(self) -> int:
        """Remove every cache file. Returns the number of files removed."""
        if not self.cache_dir.exists():
            return 0
        removed = 0
        for path in self.cache_dir.glob("*.json"):
            try:
                path.unlink()
                removed += 1
            except OSError as e:
                raise CacheError(f"Failed to remove cache file {path}: {e}") from e
        return removed


class CacheManager:
    """Memory + filesystem cache shared by the tree builder, indexer and resolver.

    Construct one per application and pass it where needed. Call start() to
    enable the periodic clear configured by `update_interval`, and close()
    on shutdown (or use it as a context manager).
    """

    def __init__(
        self,
        config: CacheConfig,
        cache_dir: Path | None = None,
        reporter: ErrorReporter | None = None,
        clock: Clock = time.time,
    ) -> None:
        self.config = config
        self.reporter = reporter if reporter is not None else ErrorReporter()
        self._clock = clock
        self._memory = LRUCache(
            max_size=config.max_size,
            ttl=config.ttl,
            version=config.version,
            clock=clock,
            expire_from_creation=config.expire_from_creation,
        )
        self._disk: FileSystemCache | None = None
        if config.persist_to_disk:
            self._disk = FileSystemCache(cache_dir or get_cache_dir(), config, clock)
        self._hits = 0
        self._misses = 0
        self._timer: threading.Timer | None = None
        self._running = False

    @property
    def cache_dir(self) -> Path | None:
        return self._disk.cache_dir if self._disk else None

    def get(self, key: str, default: Any = None) -> Any:
        value = self._memory.get(key)
        if value is not MISSING:
            self._hits += 1
            return value

        if self._disk is not None:
            try:
                stored = self._disk.load(key)
            except CacheError as e:
                self.reporter.report(e)
                stored = None
            if stored is not None:
                value, created = stored
                self._memory.set(key, value, created=created)
                self._hits += 1
                return value

        self._misses += 1
        return default

    def set(self, key: str, value: Any) -> None:
        evicted = self._memory.set(key, value)
        if evicted is not None:
            log.debug("Evicted cache entry %s", evicted)

        if self._disk is not None:
            try:
                self._disk.save(key, value)
            except CacheError as e:
                self.reporter.report(e)

    def get_or_set(self, key: str, factory: Callable[[], T]) -> T:
        """Return the cached value for `key`, computing and storing it on a miss."""
        value = self.get(key, MISSING)
        if value is not MISSING:
            return value
        value = factory()
        self.set(key, value)
        return value

    def delete(self, key: str) -> None:
        self._memory.delete(key)
        if self._disk is not None:
            try:
                self._disk.delete(key)
            except CacheError as e:
                self.reporter.report(e)

    def clear(self) -> None:
        """Drop every entry from both tiers and reset the metrics."""
        self._memory.clear()
        if self._disk is not None:
            try:
                self._disk.clear()
            except CacheError as e:
                self.reporter.report(e)
        self._hits = 0
        self._misses = 0

    def get_metrics(self) -> CacheMetrics:
        return CacheMetrics(
            hits=self._hits,
            misses=self._misses,
            size=len(self._memory),
            memory_usage=self._memory.memory_usage(),
        )

    def __contains__(self, key: object) -> bool:
        return key in self._memory

    def __len__(self) -> int:
        return len(self._memory)

    # -------------------------------------------------------------------------
    # Periodic clear
    # -------------------------------------------------------------------------

    def _schedule(self) -> None:
        self._timer = threading.Timer(self.config.update_interval, self._on_interval)
        self._timer.daemon = True
        self._timer.start()

    def _on_interval(self) -> None:
        if not self._running:
            return
        log.debug("Periodic cache clear")
        self.clear()
        self._schedule()

    def start(self) -> None:
        """Start the periodic clear if the config asks for one."""
        if self._running or self.config.update_interval <= 0:
            return
        self._running = True
        self._schedule()

    def close(self) -> None:
        """Stop the periodic clear timer."""
        self._running = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    @property
    def is_running(self) -> bool:
        return self._running

    def __enter__(self) -> CacheManager:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
