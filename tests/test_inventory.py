# Tests for integrations/inventory.py — restock heuristics and listing mapping.
# Created: 2026-10-19

from datetime import date

import pytest

from stockpilot.integrations.inventory import (
    ItemFetchResult,
    Product,
    avg_daily_sales,
    demo_products,
    min_stock,
)


class TestHeuristics:
    def test_active_uses_30_days(self):
        assert avg_daily_sales(60, "active") == 2.0

    def test_inactive_uses_90_days(self):
        assert avg_daily_sales(90, "paused") == 1.0
        assert avg_daily_sales(90, None) == 1.0

    def test_floor_for_no_sales(self):
        assert avg_daily_sales(0, "active") == 0.05

    @pytest.mark.parametrize(
        ("sold", "expected"),
        [(0, 1), (1, 1), (5, 2), (30, 7), (60, 14), (31, 8)],
    )
    def test_min_stock(self, sold, expected):
        assert min_stock(sold) == expected


LISTING = {
    "id": "MLB123",
    "title": "Caneca térmica",
    "price": 59.9,
    "available_quantity": 12,
    "thumbnail": "http://http2.mlstatic.com/D_123-I.jpg",
    "category_id": "MLB1234",
    "status": "active",
    "condition": "new",
    "sold_quantity": 60,
}


class TestFromListing:
    def test_maps_fields(self):
        product = Product.from_listing(LISTING, today=date(2026, 10, 19))
        assert product.id == "MLB123"
        assert product.current_stock == 12
        assert product.category == "MLB1234"
        assert product.avg_daily_sales == 2.0
        assert product.min_stock == 14
        assert product.last_restock_date == "2026-10-19"
        assert product.needs_restock is True

    def test_thumbnail_fallback(self):
        product = Product.from_listing({**LISTING, "thumbnail": ""})
        assert product.thumbnail == "https://http2.mlstatic.com/D_NQ_NP_MLB123-F.jpg"

    def test_sparse_listing(self):
        product = Product.from_listing({"id": "MLB9"})
        assert product.title == ""
        assert product.price == 0
        assert product.current_stock == 0
        assert product.sold_quantity == 0
        assert product.avg_daily_sales == 0.05
        assert product.min_stock == 1

    def test_to_dict_adds_signals(self):
        data = Product.from_listing(LISTING, today=date(2026, 10, 19)).to_dict()
        assert data["days_of_cover"] == 6.0
        assert data["needs_restock"] is True
        assert data["last_restock_date"] == "2026-10-19"


class TestItemFetchResult:
    def test_ok(self):
        product = Product.from_listing(LISTING)
        assert ItemFetchResult("MLB123", product=product).ok is True

    def test_error(self):
        result = ItemFetchResult("MLB123", error="boom")
        assert result.ok is False
        assert result.product is None


class TestDemoProducts:
    def test_four_stock_levels(self):
        products = demo_products()
        assert [p.id for p in products] == ["MLB001", "MLB002", "MLB003", "MLB004"]
        assert [p.needs_restock for p in products] == [False, False, False, True]
