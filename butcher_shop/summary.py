"""Cross-order product summary.

Line items of the selected orders are grouped by product name and
normalized unit so the counter can see how much of each product is still to
be prepared. Grams are folded into kilograms before grouping; no other unit
is converted.
"""

from __future__ import annotations

import logging
import math
import unicodedata
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from .domain import MASS_BASE_UNIT, MASS_SUB_UNIT, Order, Unit
from .progress import percentage
from .repository import OrderStore, RecordNotFoundError, RecordValidationError

logger = logging.getLogger(__name__)

GRAMS_PER_KILOGRAM = 1000


def normalize(quantity: float, unit: Unit) -> Tuple[float, Unit]:
    if unit == MASS_SUB_UNIT:
        return quantity / GRAMS_PER_KILOGRAM, MASS_BASE_UNIT
    return quantity, unit


def denormalize(quantity: float, unit: Unit) -> float:
    """Express a normalized quantity back in the line item's own ``unit``."""
    if unit == MASS_SUB_UNIT:
        return quantity * GRAMS_PER_KILOGRAM
    return quantity


def summary_key(name: str, normalized_unit: Unit) -> str:
    return f"{name.lower()}-{normalized_unit.value}"


@dataclass(slots=True)
class SummaryContribution:
    """The share of one order line in a product group, in normalized units."""

    order_id: str
    item_id: str
    customer_name: str
    quantity: float
    produced: float
    original_quantity: float
    original_unit: Unit


@dataclass(slots=True)
class ProductSummaryItem:
    key: str
    name: str
    unit: Unit
    total_quantity: float = 0.0
    total_produced: float = 0.0
    contributions: List[SummaryContribution] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.total_produced >= self.total_quantity

    @property
    def remaining(self) -> float:
        return self.total_quantity - self.total_produced

    @property
    def progress(self) -> int:
        return percentage(self.total_produced, self.total_quantity)


def _collation_key(name: str) -> str:
    """Accent and case insensitive key, so "Échine" sorts next to "Echine"."""
    decomposed = unicodedata.normalize("NFD", name)
    stripped = "".join(char for char in decomposed if unicodedata.category(char) != "Mn")
    return stripped.casefold()


def _sort_key(item: ProductSummaryItem) -> Tuple[bool, str, str]:
    return item.is_complete, _collation_key(item.name), item.name


def build_product_summary(orders: Iterable[Order]) -> List[ProductSummaryItem]:
    """Group every line item of ``orders`` by product, incomplete groups first."""
    groups: Dict[str, ProductSummaryItem] = {}
    for order in orders:
        for item in order.items:
            quantity, unit = normalize(item.quantity, item.unit)
            produced, _ = normalize(item.produced, item.unit)
            key = summary_key(item.name, unit)
            group = groups.get(key)
            if group is None:
                group = groups[key] = ProductSummaryItem(key=key, name=item.name, unit=unit)
            group.total_quantity += quantity
            group.total_produced += produced
            group.contributions.append(
                SummaryContribution(
                    order_id=order.id,
                    item_id=item.id,
                    customer_name=order.customer_name,
                    quantity=quantity,
                    produced=produced,
                    original_quantity=item.quantity,
                    original_unit=item.unit,
                )
            )
    return sorted(groups.values(), key=_sort_key)


def find_group(summary: Iterable[ProductSummaryItem], key: str) -> ProductSummaryItem:
    for group in summary:
        if group.key == key:
            return group
    raise RecordNotFoundError(f"Product group {key!r} not found")


class ProductionUpdater:
    """Bulk production updates for one product group.

    Every write goes through :meth:`OrderStore.update_line_item` on its own.
    There is no transaction around a bulk operation: when a write fails the
    earlier ones stay applied.
    """

    def __init__(self, orders: OrderStore) -> None:
        self._orders = orders

    def set_produced(self, contribution: SummaryContribution, produced: float) -> None:
        self._orders.update_line_item(contribution.order_id, contribution.item_id, produced)

    def mark_all_complete(self, group: ProductSummaryItem) -> int:
        writes = 0
        for contribution in group.contributions:
            if contribution.produced < contribution.quantity:
                self.set_produced(contribution, contribution.original_quantity)
                writes += 1
        logger.info(f"Marked {group.key} complete ({writes} line items)")
        return writes

    def mark_all_incomplete(self, group: ProductSummaryItem) -> int:
        writes = 0
        for contribution in group.contributions:
            if contribution.produced != 0:
                self.set_produced(contribution, 0.0)
                writes += 1
        logger.info(f"Marked {group.key} incomplete ({writes} line items)")
        return writes

    def set_total_quantity(self, group: ProductSummaryItem, target: float) -> int:
        """Spread ``target`` (normalized units) over the group, first line first.

        Each line absorbs at most its own quantity; whatever is left once every
        line is full is dropped.
        """
        if not math.isfinite(target) or target < 0:
            message = "La quantité doit être positive ou nulle"
            raise RecordValidationError(message, {"quantity": message})
        writes = 0
        for contribution in group.contributions:
            self.set_produced(contribution, 0.0)
            writes += 1
        remaining = target
        for contribution in group.contributions:
            if remaining <= 0:
                break
            share = min(remaining, contribution.quantity)
            self.set_produced(contribution, denormalize(share, contribution.original_unit))
            remaining -= share
            writes += 1
        if remaining > 0:
            logger.warning(f"Dropped {remaining} {group.unit.value} above the total of {group.key}")
        return writes


__all__ = [
    "GRAMS_PER_KILOGRAM",
    "normalize",
    "denormalize",
    "summary_key",
    "SummaryContribution",
    "ProductSummaryItem",
    "build_product_summary",
    "find_group",
    "ProductionUpdater",
]
