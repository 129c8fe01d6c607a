"""Tests for stock verification against the catalog port."""

import asyncio

import pytest
from factories import line_item, make_order
from storefront.catalog.fake_adapter import FakeCatalog
from storefront.errors import InsufficientStockError, TransportError
from storefront.fulfillment.stock import StockVerifier


def _verify(order, catalog):
    return asyncio.run(StockVerifier(catalog).verify(order.line_items))


class TestStockDecision:
    def test_all_items_in_stock(self):
        order = make_order(line_items=[line_item("prod-a", quantity=3), line_item("prod-b", quantity=1)])
        snapshot = _verify(order, FakeCatalog({"prod-a": 5, "prod-b": 1}))
        assert snapshot.fulfillable is True
        assert snapshot.offending == []

    def test_exact_stock_is_enough(self):
        order = make_order(line_items=[line_item("prod-a", quantity=5)])
        snapshot = _verify(order, FakeCatalog({"prod-a": 5}))
        assert snapshot.fulfillable is True

    def test_short_item_is_offending(self):
        order = make_order(
            line_items=[line_item("prod-a", "Chitenge", quantity=3), line_item("prod-b", "Copper bangle", quantity=1)]
        )
        snapshot = _verify(order, FakeCatalog({"prod-a": 5, "prod-b": 0}))
        assert snapshot.fulfillable is False
        assert [line.product_name for line in snapshot.offending] == ["Copper bangle"]

    def test_quantities_for_same_product_are_summed(self):
        order = make_order(line_items=[line_item("prod-a", quantity=3), line_item("prod-a", "Chitenge (blue)", quantity=3)])
        snapshot = _verify(order, FakeCatalog({"prod-a": 5}))
        assert snapshot.fulfillable is False
        assert len(snapshot.offending) == 2

    def test_deleted_product_fails_closed(self):
        order = make_order(line_items=[line_item("prod-gone", quantity=1)])
        snapshot = _verify(order, FakeCatalog({}))
        assert snapshot.fulfillable is False
        assert snapshot.offending[0].product_exists is False

    def test_missing_product_id_fails_closed(self):
        order = make_order(line_items=[line_item(product_id=None, quantity=1)])
        catalog = FakeCatalog({"prod-a": 10})
        snapshot = _verify(order, catalog)
        assert snapshot.fulfillable is False
        assert catalog.requests == []

    def test_raise_for_insufficiency(self):
        order = make_order(line_items=[line_item("prod-b", "Copper bangle", quantity=2)])
        snapshot = _verify(order, FakeCatalog({"prod-b": 1}))
        with pytest.raises(InsufficientStockError) as exc:
            snapshot.raise_for_insufficiency()
        assert "Copper bangle" in str(exc.value)


class TestStockLookup:
    def test_single_batched_call_with_unique_ids(self):
        order = make_order(
            line_items=[line_item("prod-a", quantity=1), line_item("prod-b", quantity=1), line_item("prod-a", quantity=1)]
        )
        catalog = FakeCatalog({"prod-a": 5, "prod-b": 5})
        _verify(order, catalog)
        assert catalog.requests == [["prod-a", "prod-b"]]

    def test_lookup_failure_is_not_out_of_stock(self):
        order = make_order()
        catalog = FakeCatalog({"prod-a": 5})
        catalog.configure(should_succeed=False, failure_reason="Catalog timed out")
        with pytest.raises(TransportError) as exc:
            _verify(order, catalog)
        assert exc.value.service == "catalog"

    def test_snapshot_to_dict(self):
        order = make_order(line_items=[line_item("prod-a", quantity=2)])
        data = _verify(order, FakeCatalog({"prod-a": 1})).to_dict()
        assert data["fulfillable"] is False
        assert data["lines"][0]["available"] == 1
        assert data["lines"][0]["sufficient"] is False
