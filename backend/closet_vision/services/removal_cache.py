"""
Background removal result cache.

The one piece of shared mutable state in the pipeline. Keys are source
image identities (canonical URL or content hash); values are encoded result
images. Entries are write-once per key in practice.

Backends:
- InMemoryRemovalCache: lock-guarded LRU map, safe across threads
- RedisRemovalCache: shared across processes, entries expire after a TTL
"""
import logging
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Optional

import redis
from redis import Redis

from closet_vision.core.config import settings

logger = logging.getLogger(__name__)


class RemovalCache(ABC):
    """Key/value store for background removal results."""

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Return the cached image for key, or None."""

    @abstractmethod
    def set(self, key: str, image: bytes) -> None:
        """Store the result image for key."""

    @abstractmethod
    def clear(self) -> int:
        """Drop every entry; return how many were removed."""

    @abstractmethod
    def size(self) -> int:
        """Number of cached entries."""


class InMemoryRemovalCache(RemovalCache):
    """Mutex-guarded in-process cache with optional LRU bound."""

    def __init__(self, max_entries: Optional[int] = None):
        """
        Initialize in-memory cache.

        Args:
            max_entries: Evict least recently used entries beyond this size (None = unbounded)
        """
        if max_entries is not None and max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")

        self.max_entries = max_entries
        self._entries: "OrderedDict[str, bytes]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            image = self._entries.get(key)
            if image is not None:
                self._entries.move_to_end(key)
            return image

    def set(self, key: str, image: bytes) -> None:
        with self._lock:
            self._entries[key] = image
            self._entries.move_to_end(key)
            if self.max_entries is not None:
                while len(self._entries) > self.max_entries:
                    evicted, _ = self._entries.popitem(last=False)
                    logger.debug(f"Evicted removal cache entry {evicted[:8]}")

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info(f"🗑️  Removal cache cleared ({count} entries)")
        return count

    def size(self) -> int:
        with self._lock:
            return len(self._entries)


class RedisRemovalCache(RemovalCache):
    """
    Redis-backed cache shared by every worker.

    Redis errors are logged and treated as a miss (or a skipped write):
    the cache only saves provider calls, it is never required.
    """

    def __init__(
        self,
        redis_client: Redis,
        ttl_seconds: int = 86400,
        prefix: str = "bg-removal:",
    ):
        """
        Initialize Redis cache.

        Args:
            redis_client: Client created with decode_responses=False (values are bytes)
            ttl_seconds: Entry expiry
            prefix: Key namespace
        """
        self.redis_client = redis_client
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Optional[bytes]:
        try:
            return self.redis_client.get(self._key(key))
        except redis.RedisError as e:
            logger.warning(f"⚠️  Removal cache read failed, treating as miss: {e}")
            return None

    def set(self, key: str, image: bytes) -> None:
        try:
            self.redis_client.setex(self._key(key), self.ttl_seconds, image)
        except redis.RedisError as e:
            logger.warning(f"⚠️  Removal cache write skipped: {e}")

    def clear(self) -> int:
        deleted = 0
        try:
            for cache_key in self.redis_client.scan_iter(match=f"{self.prefix}*"):
                deleted += self.redis_client.delete(cache_key)
        except redis.RedisError as e:
            logger.warning(f"⚠️  Removal cache clear interrupted after {deleted} entries: {e}")
            return deleted
        logger.info(f"🗑️  Removal cache cleared ({deleted} entries)")
        return deleted

    def size(self) -> int:
        try:
            return sum(1 for _ in self.redis_client.scan_iter(match=f"{self.prefix}*"))
        except redis.RedisError as e:
            logger.warning(f"⚠️  Removal cache size unavailable, reporting 0: {e}")
            return 0

    def health_check(self) -> bool:
        """
        Check if Redis connection is healthy.

        Returns:
            True if Redis is responding, False otherwise
        """
        try:
            self.redis_client.ping()
            return True
        except redis.RedisError:
            return False


def create_removal_cache(backend: Optional[str] = None) -> RemovalCache:
    """
    Factory function to create the configured cache backend.

    Args:
        backend: "memory" or "redis" (defaults to REMOVAL_CACHE_BACKEND)

    Returns:
        RemovalCache instance

    Raises:
        ValueError: If the backend name is unknown
    """
    backend = (backend or settings.REMOVAL_CACHE_BACKEND).lower()

    if backend == "memory":
        return InMemoryRemovalCache(max_entries=settings.REMOVAL_CACHE_MAX_ENTRIES)

    if backend == "redis":
        client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=False,
            socket_connect_timeout=5,
            socket_keepalive=True,
            health_check_interval=30,
        )
        return RedisRemovalCache(
            client,
            ttl_seconds=settings.REMOVAL_CACHE_TTL_SECONDS,
            prefix=settings.REMOVAL_CACHE_PREFIX,
        )

    raise ValueError(f"Unknown removal cache backend '{backend}'. Use 'memory' or 'redis'.")
