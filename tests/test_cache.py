import pytest

from catering.cache import cached_read, invalidate, registered_tags

calls = {"stock": 0, "orders": 0}


@cached_read("test_stock")
def _stock_view(key):
    calls["stock"] += 1
    return key * 2


@cached_read("test_orders", "test_stock")
def _orders_view(key):
    calls["orders"] += 1
    return key + 1


def test_reads_are_cached_until_their_tag_is_invalidated():
    invalidate("test_stock")
    before = calls["stock"]

    assert _stock_view(3) == 6
    assert _stock_view(3) == 6
    assert calls["stock"] == before + 1

    invalidate("test_stock")
    _stock_view(3)
    assert calls["stock"] == before + 2


def test_invalidation_only_clears_readers_of_the_tag():
    invalidate("test_stock")
    _stock_view(5)
    _orders_view(5)
    stock_before, orders_before = calls["stock"], calls["orders"]

    assert invalidate("test_orders") == 1
    _stock_view(5)
    _orders_view(5)

    assert calls["stock"] == stock_before
    assert calls["orders"] == orders_before + 1


def test_reader_under_several_tags_is_cleared_once():
    assert invalidate("test_stock", "test_orders") == 2


def test_unknown_tag_clears_nothing():
    assert invalidate("no_such_collection") == 0


def test_registry_and_tag_requirement():
    assert {"test_stock", "test_orders"} <= set(registered_tags())
    with pytest.raises(ValueError):
        cached_read()
