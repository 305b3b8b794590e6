"""Order book for a butcher shop.

This package provides the data model, in-memory and SQLite persistence,
production progress reporting and the cross-order product summary used on
the shop floor to follow customer orders for each delivery day.
"""

from .domain import (
    CatalogProduct,
    DeliveryDay,
    LineItem,
    Order,
    Unit,
)
from .progress import ProgressReport, compute_progress
from .services import ImportReport, ShopService
from .summary import ProductSummaryItem, build_product_summary
from .weeks import WeekInfo, upcoming_weeks

__all__ = [
    "CatalogProduct",
    "DeliveryDay",
    "LineItem",
    "Order",
    "Unit",
    "ProgressReport",
    "compute_progress",
    "ImportReport",
    "ShopService",
    "ProductSummaryItem",
    "build_product_summary",
    "WeekInfo",
    "upcoming_weeks",
]
