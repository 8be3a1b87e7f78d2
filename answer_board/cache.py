"""Tiered user cache.

Four named layers share one underlying store; each layer owns a key prefix and
a TTL. Physical keys are always ``<layer prefix><logical key>``. A store that
is down only ever costs a miss: reads degrade to None, writes and removes are
logged and dropped.
"""

from __future__ import annotations
import json
import logging
from typing import Any, Dict, Iterable, Optional

from .backends import CacheStore
from .config import CACHE_LAYERS, HEALTH_PROBE_KEY
from .errors import UnknownCacheLayerError

logger = logging.getLogger(__name__)


class TieredCache:
    def __init__(self, store: CacheStore, layers: Optional[Dict[str, dict]] = None):
        self.store = store
        self.layers = {name: dict(cfg) for name, cfg in (layers or CACHE_LAYERS).items()}

    def _layer(self, layer: str) -> dict:
        try:
            return self.layers[layer]
        except KeyError:
            raise UnknownCacheLayerError(layer) from None

    def physical_key(self, layer: str, key: str) -> str:
        return f"{self._layer(layer)['prefix']}{key}"

    def ttl(self, layer: str) -> int:
        return int(self._layer(layer)["ttl"])

    def get(self, layer: str, key: str) -> Any:
        pkey = self.physical_key(layer, key)
        try:
            raw = self.store.get(pkey)
        except Exception:
            logger.warning("Cache get failed for %s; treating as miss", pkey, exc_info=True)
            return None
        if raw is None:
            logger.debug("Cache MISS: %s", pkey)
            return None
        try:
            value = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Cache entry %s is not valid JSON; treating as miss", pkey)
            return None
        logger.debug("Cache HIT: %s", pkey)
        return value

    def set(self, layer: str, key: str, value: Any) -> bool:
        pkey = self.physical_key(layer, key)
        ttl = self.ttl(layer)
        try:
            payload = json.dumps(value, ensure_ascii=False)
            self.store.put(pkey, payload, ttl)
        except Exception:
            logger.error("Cache set failed for %s", pkey, exc_info=True)
            return False
        logger.debug("Cache SET: %s (TTL: %ss)", pkey, ttl)
        return True

    def delete(self, layer: str, key: str) -> bool:
        pkey = self.physical_key(layer, key)
        try:
            self.store.remove(pkey)
        except Exception:
            logger.error("Cache remove failed for %s", pkey, exc_info=True)
            return False
        return True

    def invalidate(self, id_key: Optional[str], secondary_key: Optional[str] = None) -> int:
        """Drop both keys from every layer. Returns the number of removes issued."""
        keys = [k for k in (id_key, secondary_key) if k]
        issued = 0
        for layer in self.layers:
            for key in keys:
                self.delete(layer, key)
                issued += 1
        logger.debug("Cache invalidated %s across %d layers", keys, len(self.layers))
        return issued

    def invalidate_keys(self, keys: Iterable[Optional[str]]) -> int:
        issued = 0
        for key in dict.fromkeys(k for k in keys if k):
            issued += self.invalidate(key)
        return issued

    def health_check(self) -> Dict[str, bool]:
        """Round-trip a probe through each layer."""
        out = {}
        for layer in self.layers:
            probe = {"layer": layer, "ok": True}
            ok = self.set(layer, HEALTH_PROBE_KEY, probe) and self.get(layer, HEALTH_PROBE_KEY) == probe
            self.delete(layer, HEALTH_PROBE_KEY)
            out[layer] = bool(ok)
        return out

    def describe(self) -> list[dict]:
        return [{"layer": name, "ttl": cfg["ttl"], "prefix": cfg["prefix"]} for name, cfg in self.layers.items()]
