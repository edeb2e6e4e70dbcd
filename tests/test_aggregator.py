"""Tests for derived order values over both stored order shapes."""

from datetime import date, datetime

import pytest

import aggregator
from aggregator import (
    LEGACY,
    MODERN,
    PLACEHOLDER_IMAGE,
    UNKNOWN,
    UNKNOWN_ITEM_NAME,
    display_image,
    display_name,
    filter_orders,
    order_shape,
    profit_of,
    summarize,
    top_items,
    total_of,
)


def line(name, price, quantity, profit=0, item_type="shoe", item_id="s1", image="/img/x.jpg"):
    return {
        "itemType": item_type,
        "item": {"_id": item_id, "name": name, "brand": "Nike", "image": image, "price": price, "profit": profit},
        "quantity": quantity,
        "unitPrice": price,
        "totalPrice": price * quantity,
        "profit": profit * quantity,
    }


def modern(*lines, **extra):
    order = {
        "shape": "modern",
        "orderId": "OG000001",
        "items": list(lines),
        "totalPrice": sum(l["totalPrice"] for l in lines),
        "totalProfit": sum(l["profit"] for l in lines),
        "customerName": "Kasun Silva",
        "status": "pending",
    }
    order.update(extra)
    return order


def legacy(**extra):
    order = {
        "orderId": "OG000002",
        "shoe": {"_id": "s2", "name": "Samba OG", "brand": "Adidas", "image": "/img/samba.jpg",
                 "price": 2000, "profit": 400},
        "size": "9",
        "quantity": 3,
        "customerName": "Amaya Fernando",
        "status": "shipped",
    }
    order.update(extra)
    return order


class TestOrderShape:
    def test_tagged_shapes(self):
        assert order_shape(modern(line("A", 10, 1))) == MODERN
        assert order_shape(legacy(shape="legacy")) == LEGACY

    def test_untagged_records_classified_by_structure(self):
        assert order_shape({"items": [line("A", 10, 1)]}) == MODERN
        assert order_shape(legacy()) == LEGACY
        assert order_shape({"apparel": {"name": "Hoodie"}}) == LEGACY

    def test_malformed_records_are_unknown(self):
        assert order_shape(None) == UNKNOWN
        assert order_shape("OG000001") == UNKNOWN
        assert order_shape({"items": []}) == UNKNOWN
        assert order_shape({"shape": "modern", "items": "oops"}) == UNKNOWN
        assert order_shape({"shape": "legacy", "quantity": 2}) == UNKNOWN


class TestTotals:
    def test_modern_total_is_sum_of_line_totals(self):
        order = modern(line("Air Max", 5000, 1, profit=1000), line("Hoodie", 3000, 2, profit=500, item_type="apparel"))
        assert total_of(order) == 11000
        assert total_of(order) == sum(l["totalPrice"] for l in order["items"])
        assert profit_of(order) == 2000

    def test_modern_without_order_totals_sums_lines(self):
        order = modern(line("Air Max", 5000, 2, profit=1000))
        del order["totalPrice"], order["totalProfit"]
        assert total_of(order) == 10000
        assert profit_of(order) == 2000

    def test_legacy_total_from_embedded_price(self):
        assert total_of(legacy()) == 6000

    def test_legacy_explicit_total_wins(self):
        assert total_of(legacy(totalPrice=5500)) == 5500

    def test_legacy_old_total_field(self):
        assert total_of(legacy(total=5800)) == 5800

    def test_legacy_profit(self):
        assert profit_of(legacy()) == 1200
        assert profit_of(legacy(profit=300)) == 1200

    def test_legacy_profit_falls_back_to_top_level(self):
        order = legacy(profit=300)
        del order["shoe"]["profit"]
        assert profit_of(order) == 900

    def test_legacy_without_quantity_counts_one(self):
        order = legacy()
        del order["quantity"]
        assert total_of(order) == 2000

    def test_no_profit_fields_is_zero(self):
        order = legacy()
        del order["shoe"]["profit"]
        assert profit_of(order) == 0
        assert profit_of({"orderId": "X"}) == 0

    @pytest.mark.parametrize("order", [None, {}, {"items": []}, {"totalPrice": 900}, {"shoe": None}, [1, 2]])
    def test_unknown_shapes_total_zero(self, order):
        assert total_of(order) == 0
        assert profit_of(order) == 0

    def test_string_amounts_are_tolerated(self):
        order = legacy(totalPrice="abc")
        assert total_of(order) == 6000


class TestDisplay:
    def test_single_line_modern_uses_item_name(self):
        assert display_name(modern(line("Air Max", 5000, 1))) == "Air Max"

    def test_multi_line_modern_counts_items(self):
        assert display_name(modern(line("A", 1, 1), line("B", 1, 1), line("C", 1, 1))) == "3 items"

    def test_legacy_uses_embedded_name(self):
        assert display_name(legacy()) == "Samba OG"

    def test_fallbacks(self):
        assert display_name({"items": []}) == UNKNOWN_ITEM_NAME
        assert display_name({"shoe": {"name": ""}}) == UNKNOWN_ITEM_NAME
        assert display_image({}) == PLACEHOLDER_IMAGE
        assert display_image(modern(line("A", 1, 1, image=""))) == PLACEHOLDER_IMAGE

    def test_images(self):
        assert display_image(legacy()) == "/img/samba.jpg"
        assert display_image(modern(line("A", 1, 1, image=""), line("B", 1, 1, image="/img/b.jpg"))) == "/img/b.jpg"

    def test_derived_values_do_not_mutate(self):
        order = modern(line("Air Max", 5000, 2, profit=1000))
        snapshot = repr(order)
        first = (total_of(order), profit_of(order), display_name(order), display_image(order))
        second = (total_of(order), profit_of(order), display_name(order), display_image(order))
        assert first == second
        assert repr(order) == snapshot

    def test_decorate_falls_back_to_database_id(self):
        decorated = aggregator.decorate({"_id": "65f1a2b3c4d5e6f7a8b9c0d1", "shoe": {"name": "X", "price": 10}})
        assert decorated["orderId"] == "A8B9C0D1"
        assert decorated["total"] == 10
        assert decorated["displayName"] == "X"


class TestTransition:
    def test_any_status_to_any_status(self):
        assert aggregator.transition("delivered", "pending") == "pending"
        assert aggregator.transition("cancelled", "shipped") == "shipped"
        assert aggregator.transition(None, "payment_received") == "payment_received"

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            aggregator.transition("pending", "lost")


class TestCollections:
    @pytest.fixture
    def orders(self):
        return [
            modern(line("Air Max 90", 5000, 1, profit=1000), orderId="OG000010", customerName="Kasun Silva",
                   customerPhone="0771112222", customerEmail="kasun@example.com",
                   createdAt=datetime(2026, 10, 1, 9, 30)),
            legacy(orderId="OG000011", customerName="Amaya Fernando", createdAt=datetime(2026, 10, 2, 14, 0)),
            modern(line("Tech Fleece", 3000, 2, profit=500, item_type="apparel", item_id="a1"),
                   orderId="OG000012", customerName="Kasun Silva", status="delivered",
                   createdAt="2026-10-02T18:00:00Z"),
            {"orderId": "BROKEN", "customerName": None},
        ]

    def test_search_is_case_insensitive_over_fields(self, orders):
        assert [o["orderId"] for o in filter_orders(orders, search="kasun")] == ["OG000010", "OG000012"]
        assert [o["orderId"] for o in filter_orders(orders, search="SAMBA")] == ["OG000011"]
        assert [o["orderId"] for o in filter_orders(orders, search="og000012")] == ["OG000012"]
        assert [o["orderId"] for o in filter_orders(orders, search="0771112")] == ["OG000010"]
        assert [o["orderId"] for o in filter_orders(orders, search="kasun@")] == ["OG000010"]

    def test_status_and_day_filters(self, orders):
        assert [o["orderId"] for o in filter_orders(orders, status="delivered")] == ["OG000012"]
        assert [o["orderId"] for o in filter_orders(orders, day=date(2026, 10, 2))] == ["OG000011", "OG000012"]

    def test_summary(self, orders):
        summary = summarize(orders)
        assert summary["count"] == 4
        assert summary["revenue"] == 5000 + 6000 + 6000
        assert summary["profit"] == 1000 + 1200 + 1000
        assert summary["customers"] == 2
        assert summary["averageOrderValue"] == 17000 / 4

    def test_empty_summary(self):
        assert summarize([]) == {"count": 0, "revenue": 0, "profit": 0, "customers": 0, "averageOrderValue": 0}

    def test_created_since(self, orders):
        recent = aggregator.created_since(orders, datetime(2026, 10, 2))
        assert [o["orderId"] for o in recent] == ["OG000011"]

    def test_top_items_across_shapes(self, orders):
        ranked = top_items(orders + [legacy(orderId="OG000013", quantity=1)])
        assert [(i["_id"], i["orderCount"]) for i in ranked] == [("s2", 4), ("a1", 2), ("s1", 1)]
        assert ranked[0]["revenue"] == 6000 + 2000
        assert ranked[1]["type"] == "apparel"
