"""Core data structures for the butcher shop order book."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Unit(str, Enum):
    """Units of measure used on the shop counter."""

    KILOGRAM = "kg"
    GRAM = "g"
    PIECE = "piece"
    SLICE = "slice"


MASS_BASE_UNIT = Unit.KILOGRAM
MASS_SUB_UNIT = Unit.GRAM


class DeliveryDay(str, Enum):
    """Weekdays on which orders are handed over to customers."""

    MERCREDI = "mercredi"
    JEUDI = "jeudi"
    VENDREDI = "vendredi"
    SAMEDI = "samedi"

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass(slots=True)
class CatalogProduct:
    """A sellable product as managed from the admin page."""

    id: str
    name: str
    default_unit: Unit
    created_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class LineItem:
    """One product entry within an order.

    ``produced`` accumulates what has been prepared so far. It may exceed
    ``quantity``; nothing in the model clamps it.
    """

    id: str
    name: str
    quantity: float
    unit: Unit
    produced: float = 0.0

    @property
    def is_complete(self) -> bool:
        return self.produced >= self.quantity

    @property
    def remaining(self) -> float:
        return max(0.0, self.quantity - self.produced)


@dataclass(slots=True)
class Order:
    """A customer order scheduled for one delivery day."""

    id: str
    customer_name: str
    customer_phone: str
    delivery_day: DeliveryDay
    delivery_date: date
    items: List[LineItem] = field(default_factory=list)
    notes: str = ""
    created_at: datetime = field(default_factory=utcnow)

    @property
    def is_complete(self) -> bool:
        return all(item.is_complete for item in self.items)

    def find_item(self, item_id: str) -> Optional[LineItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None


__all__ = [
    "Unit",
    "MASS_BASE_UNIT",
    "MASS_SUB_UNIT",
    "DeliveryDay",
    "CatalogProduct",
    "LineItem",
    "Order",
    "utcnow",
]
