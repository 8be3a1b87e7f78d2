"""Flat key/value stores the tiered cache writes through.

Both stores take already-serialized strings and enforce expiry themselves;
the tiered cache never tracks TTLs.
"""

from __future__ import annotations
import logging
import time as _pytime
from typing import Callable, MutableMapping, Optional, Protocol, Tuple

import redis

logger = logging.getLogger(__name__)


class CacheStore(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def put(self, key: str, value: str, ttl: int) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryCacheStore:
    """TTL dict living for as long as the process (or the mapping handed in).

    Pass a shared mapping (e.g. one kept by ``st.cache_resource``) to share
    entries between sessions; the default is a private dict.
    """

    def __init__(self, data: Optional[MutableMapping[str, Tuple[float, str]]] = None,
                 clock: Callable[[], float] = _pytime.time, sweep_every: int = 256):
        self._data = {} if data is None else data
        self._clock = clock
        self._sweep_every = sweep_every
        self._puts = 0

    def get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._data.pop(key, None)
            return None
        return value

    def put(self, key: str, value: str, ttl: int) -> None:
        self._data[key] = (self._clock() + ttl, value)
        # keys that are never read again only leave through a sweep
        self._puts += 1
        if self._sweep_every and self._puts % self._sweep_every == 0:
            self.purge_expired()

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def purge_expired(self) -> int:
        now = self._clock()
        dead = [k for k, (exp, _) in list(self._data.items()) if now >= exp]
        for k in dead:
            self._data.pop(k, None)
        if dead:
            logger.debug("Purged %d expired cache entries", len(dead))
        return len(dead)

    def __len__(self) -> int:
        return len(self._data)


class RedisCacheStore:
    """Redis-backed store shared by every process pointing at the same server."""

    def __init__(self, client: redis.Redis):
        self.redis = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheStore":
        client = redis.Redis.from_url(url, decode_responses=True, socket_connect_timeout=5)
        logger.info("Redis cache store configured")
        return cls(client)

    def get(self, key: str) -> Optional[str]:
        value = self.redis.get(key)
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def put(self, key: str, value: str, ttl: int) -> None:
        self.redis.setex(key, ttl, value)

    def remove(self, key: str) -> None:
        self.redis.delete(key)
