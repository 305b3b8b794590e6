"""Production progress at line item, order, day and week level.

Every function here is a pure recomputation over the orders it is given;
nothing is cached between calls.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Sequence

from .domain import DeliveryDay, LineItem, Order
from .weeks import WeekInfo


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percentage(part: float, whole: float) -> int:
    """Rounded ``100 * part / whole``, 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0
    return round_half_up(100 * part / whole)


@dataclass(slots=True)
class ProgressReport:
    """Aggregate progress over a set of orders."""

    order_count: int
    total_line_item_count: int
    completed_line_item_count: int
    total_required_quantity: float
    total_produced_quantity: float
    unique_customer_count: int
    unique_product_count: int
    order_completed_count: int

    @property
    def progress_percentage(self) -> int:
        return percentage(self.total_produced_quantity, self.total_required_quantity)

    @property
    def item_progress_percentage(self) -> int:
        return percentage(self.completed_line_item_count, self.total_line_item_count)

    @property
    def remaining_line_item_count(self) -> int:
        return self.total_line_item_count - self.completed_line_item_count

    @property
    def remaining_quantity(self) -> float:
        return max(0.0, self.total_required_quantity - self.total_produced_quantity)

    def as_dict(self) -> Dict[str, float]:
        return {
            "order_count": self.order_count,
            "total_line_item_count": self.total_line_item_count,
            "completed_line_item_count": self.completed_line_item_count,
            "remaining_line_item_count": self.remaining_line_item_count,
            "total_required_quantity": self.total_required_quantity,
            "total_produced_quantity": self.total_produced_quantity,
            "remaining_quantity": self.remaining_quantity,
            "progress_percentage": self.progress_percentage,
            "item_progress_percentage": self.item_progress_percentage,
            "unique_customer_count": self.unique_customer_count,
            "unique_product_count": self.unique_product_count,
            "order_completed_count": self.order_completed_count,
        }


def compute_progress(orders: Iterable[Order]) -> ProgressReport:
    orders = list(orders)
    items: List[LineItem] = [item for order in orders for item in order.items]
    return ProgressReport(
        order_count=len(orders),
        total_line_item_count=len(items),
        completed_line_item_count=sum(1 for item in items if item.is_complete),
        total_required_quantity=sum(item.quantity for item in items),
        total_produced_quantity=sum(item.produced for item in items),
        unique_customer_count=len({order.customer_name.lower() for order in orders}),
        unique_product_count=len({item.name.lower() for item in items}),
        order_completed_count=sum(1 for order in orders if order.is_complete),
    )


def order_progress(order: Order) -> int:
    required = sum(item.quantity for item in order.items)
    produced = sum(item.produced for item in order.items)
    return percentage(produced, required)


def line_item_status(item: LineItem) -> str:
    if item.is_complete:
        return "done"
    if item.produced > 0:
        return "in_progress"
    return "todo"


def orders_for_day(orders: Iterable[Order], day: DeliveryDay) -> List[Order]:
    return [order for order in orders if order.delivery_day == day]


def orders_for_date(orders: Iterable[Order], delivery_date: date) -> List[Order]:
    return [order for order in orders if order.delivery_date == delivery_date]


def orders_for_week(orders: Iterable[Order], week: WeekInfo) -> List[Order]:
    return [order for order in orders if week.contains(order.delivery_date)]


def day_overview(orders: Sequence[Order], week: WeekInfo) -> Dict[DeliveryDay, ProgressReport]:
    """One report per delivery day of ``week``, in weekday order."""
    in_week = orders_for_week(orders, week)
    return {day: compute_progress(orders_for_day(in_week, day)) for day in DeliveryDay}


__all__ = [
    "ProgressReport",
    "round_half_up",
    "percentage",
    "compute_progress",
    "order_progress",
    "line_item_status",
    "orders_for_day",
    "orders_for_date",
    "orders_for_week",
    "day_overview",
]
