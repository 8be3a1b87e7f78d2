"""Tests for TieredCache: layer table, prefixes, TTLs, fan-out invalidation, degradation."""

import json
import logging

import pytest

from answer_board.cache import TieredCache
from answer_board.config import CACHE_LAYERS
from answer_board.errors import UnknownCacheLayerError

LAYERS = ["fast", "standard", "extended", "secure"]


def test_layer_table_matches_expected_ttls_and_prefixes() -> None:
    assert CACHE_LAYERS == {
        "fast": {"ttl": 60, "prefix": "user_fast_"},
        "standard": {"ttl": 180, "prefix": "user_std_"},
        "extended": {"ttl": 300, "prefix": "user_ext_"},
        "secure": {"ttl": 120, "prefix": "user_sec_"},
    }


def test_get_uses_layer_prefix(cache, cache_store) -> None:
    cache.get("standard", "test123")
    cache_store.get.assert_called_once_with("user_std_test123")


def test_set_uses_layer_ttl_and_json(cache, cache_store) -> None:
    data = {"userId": "test123", "name": "Test User"}
    assert cache.set("extended", "test123", data) is True
    cache_store.put.assert_called_once_with("user_ext_test123", json.dumps(data), 300)


@pytest.mark.parametrize("layer", LAYERS)
def test_get_after_set_returns_equal_value(cache, layer) -> None:
    value = {"userId": "U1", "isActive": True, "nested": {"a": [1, 2]}}
    cache.set(layer, "U1", value)
    assert cache.get(layer, "U1") == value


@pytest.mark.parametrize("layer", LAYERS)
def test_entry_expires_after_layer_ttl(cache, clock, layer) -> None:
    cache.set(layer, "U1", {"userId": "U1"})
    clock.advance(CACHE_LAYERS[layer]["ttl"] - 1)
    assert cache.get(layer, "U1") == {"userId": "U1"}
    clock.advance(1)
    assert cache.get(layer, "U1") is None


def test_layers_hold_independent_entries(cache, clock) -> None:
    cache.set("fast", "U1", {"v": "fast"})
    cache.set("extended", "U1", {"v": "ext"})
    clock.advance(60)
    assert cache.get("fast", "U1") is None
    assert cache.get("extended", "U1") == {"v": "ext"}


def test_miss_returns_none(cache) -> None:
    assert cache.get("secure", "nobody") is None


def test_invalidate_removes_both_keys_from_all_layers(cache, cache_store) -> None:
    for layer in LAYERS:
        cache.set(layer, "U1", {"userId": "U1"})
        cache.set(layer, "a@x.com", {"userId": "U1"})

    issued = cache.invalidate("U1", "a@x.com")

    assert issued == 8
    assert cache_store.remove.call_count == 8
    cache_store.remove.assert_any_call("user_fast_U1")
    cache_store.remove.assert_any_call("user_std_a@x.com")
    for layer in LAYERS:
        assert cache.get(layer, "U1") is None
        assert cache.get(layer, "a@x.com") is None


def test_invalidate_with_only_id_touches_four_keys(cache, cache_store) -> None:
    assert cache.invalidate("U1") == 4
    assert cache_store.remove.call_count == 4


def test_get_store_error_is_a_miss(cache, cache_store, caplog) -> None:
    cache_store.get.side_effect = RuntimeError("cache service unavailable")
    with caplog.at_level(logging.WARNING):
        assert cache.get("standard", "U1") is None
    assert "treating as miss" in caplog.text


def test_set_store_error_is_logged_not_raised(cache, cache_store, caplog) -> None:
    cache_store.put.side_effect = RuntimeError("quota")
    with caplog.at_level(logging.ERROR):
        assert cache.set("standard", "U1", {"userId": "U1"}) is False
    assert "Cache set failed" in caplog.text


def test_invalidate_keeps_going_when_a_remove_fails(cache, cache_store) -> None:
    cache_store.remove.side_effect = [RuntimeError("boom")] + [None] * 7
    assert cache.invalidate("U1", "a@x.com") == 8
    assert cache_store.remove.call_count == 8


def test_corrupt_payload_is_a_miss(cache, cache_store) -> None:
    cache_store.put("user_std_U1", "{not json", 180)
    assert cache.get("standard", "U1") is None


def test_unknown_layer_raises(cache) -> None:
    with pytest.raises(UnknownCacheLayerError):
        cache.get("warm", "U1")
    with pytest.raises(UnknownCacheLayerError):
        cache.set("warm", "U1", {})


def test_health_check_reports_every_layer(cache) -> None:
    assert cache.health_check() == {layer: True for layer in LAYERS}


def test_health_check_flags_broken_store(cache, cache_store) -> None:
    cache_store.get.side_effect = RuntimeError("down")
    assert cache.health_check() == {layer: False for layer in LAYERS}


def test_describe_lists_layers(cache) -> None:
    assert cache.describe()[0] == {"layer": "fast", "ttl": 60, "prefix": "user_fast_"}
    assert [d["layer"] for d in cache.describe()] == LAYERS


def test_custom_layer_table() -> None:
    class Store(dict):
        def put(self, k, v, ttl):
            self[k] = v

        def remove(self, k):
            self.pop(k, None)

    c = TieredCache(Store(), layers={"only": {"ttl": 5, "prefix": "x_"}})
    c.set("only", "k", [1])
    assert c.get("only", "k") == [1]
    assert c.physical_key("only", "k") == "x_k"
