# Inventory — product shape and restock heuristics derived from listings.
# Created: 2026-10-19
#
# avg_daily_sales and min_stock are estimates computed from the listing's
# lifetime sold_quantity, not marketplace data.

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import date
from typing import Any

THUMBNAIL_FALLBACK = "https://http2.mlstatic.com/D_NQ_NP_{item_id}-F.jpg"

# Minimum average so a listing with no sales still gets a finite cover estimate.
MIN_AVG_DAILY_SALES = 0.05


def avg_daily_sales(sold_quantity: int, status: str | None) -> float:
    """Average units sold per day.

    Active listings spread sales over 30 days, anything else over 90.
    """
    window = 30 if status == "active" else 90
    return max(MIN_AVG_DAILY_SALES, sold_quantity / window)


def min_stock(sold_quantity: int) -> int:
    """Units needed to cover a week of demand (at least one)."""
    return max(1, math.ceil(sold_quantity / 30 * 7))


@dataclass
class Product:
    """A listing as tracked by the inventory view."""

    id: str
    title: str
    price: float
    current_stock: int
    thumbnail: str
    category: str | None = None
    status: str | None = None
    condition: str | None = None
    sold_quantity: int = 0
    avg_daily_sales: float = MIN_AVG_DAILY_SALES
    min_stock: int = 1
    last_restock_date: str = ""

    @property
    def days_of_cover(self) -> float:
        """Days until current stock runs out at the average sales rate."""
        return self.current_stock / self.avg_daily_sales

    @property
    def needs_restock(self) -> bool:
        return self.current_stock <= self.min_stock

    @classmethod
    def from_listing(cls, item: dict[str, Any], today: date | None = None) -> Product:
        """Map a raw /items/<id> record into a Product."""
        sold = int(item.get("sold_quantity") or 0)
        status = item.get("status")
        return cls(
            id=item["id"],
            title=item.get("title", ""),
            price=item.get("price") or 0,
            current_stock=int(item.get("available_quantity") or 0),
            thumbnail=item.get("thumbnail") or THUMBNAIL_FALLBACK.format(item_id=item["id"]),
            category=item.get("category_id"),
            status=status,
            condition=item.get("condition"),
            sold_quantity=sold,
            avg_daily_sales=avg_daily_sales(sold, status),
            min_stock=min_stock(sold),
            last_restock_date=(today or date.today()).isoformat(),
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["days_of_cover"] = round(self.days_of_cover, 1)
        data["needs_restock"] = self.needs_restock
        return data


@dataclass(frozen=True)
class ItemFetchResult:
    """Outcome of one item detail lookup: either a product or an error."""

    item_id: str
    product: Product | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.product is not None


def demo_products() -> list[Product]:
    """Sample inventory for offline demos, one product per stock level."""
    today = date.today().isoformat()
    rows = [
        ("MLB001", "Sample product A (high stock)", 199.90, 75, 3, 21),
        ("MLB002", "Sample product B (medium stock)", 49.50, 25, 1.5, 10),
        ("MLB003", "Sample product C (low stock)", 89.00, 8, 1, 7),
        ("MLB004", "Sample product D (critical stock)", 320.00, 3, 0.8, 5),
    ]
    return [
        Product(
            id=item_id,
            title=title,
            price=price,
            current_stock=stock,
            thumbnail=f"https://picsum.photos/seed/{item_id}/60/60",
            status="active",
            avg_daily_sales=avg,
            min_stock=minimum,
            last_restock_date=today,
        )
        for item_id, title, price, stock, avg, minimum in rows
    ]
