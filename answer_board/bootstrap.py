"""Wire the lookup stack together once per process.

The Streamlit page owns the objects built here (via ``st.cache_resource``) and
hands them to whatever needs a user lookup; nothing in the package reaches for
a module-level cache or client.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .backends import CacheStore, MemoryCacheStore, RedisCacheStore
from .cache import TieredCache
from .config import Settings
from .guard import TenantGuard
from .lookup import UserLookup
from .store import TabularStore
from .wrappers import UserDirectory

logger = logging.getLogger(__name__)


@dataclass
class Services:
    cache: TieredCache
    lookup: UserLookup
    directory: UserDirectory
    guard: TenantGuard


def build_cache_store(settings: Settings) -> CacheStore:
    if settings.redis_url:
        return RedisCacheStore.from_url(settings.redis_url)
    logger.info("REDIS_URL not set; using in-process cache store")
    return MemoryCacheStore()


def build_services(
    settings: Settings,
    store: TabularStore,
    identity: Callable[[], Optional[str]],
    cache_store: Optional[CacheStore] = None,
) -> Services:
    cache = TieredCache(cache_store if cache_store is not None else build_cache_store(settings))
    guard = TenantGuard(settings.admin_emails, allow_published_read=settings.allow_published_read)
    lookup = UserLookup(store, cache, guard, identity=identity)
    return Services(cache=cache, lookup=lookup, directory=UserDirectory(lookup), guard=guard)
