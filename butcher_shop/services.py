"""Service layer that implements the order book use-cases."""

from __future__ import annotations

import csv
import io
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Union
from uuid import uuid4

from .domain import CatalogProduct, DeliveryDay, LineItem, Order, Unit
from .progress import (
    ProgressReport,
    compute_progress,
    day_overview,
    orders_for_date,
    orders_for_day,
    orders_for_week,
)
from .repository import (
    CatalogStore,
    DuplicateRecordError,
    InMemoryCatalogStore,
    InMemoryOrderStore,
    OrderStore,
    RecordNotFoundError,
)
from .summary import ProductionUpdater, ProductSummaryItem, build_product_summary, find_group
from .validation import (
    ORDER_INCOMPLETE,
    PRODUCT_FIELDS_REQUIRED,
    ensure_valid,
    parse_date,
    parse_delivery_day,
    parse_unit,
    validate_catalog_changes,
    validate_catalog_product,
    validate_order,
    validate_delivery_schedule,
    validate_order_changes,
    validate_produced,
)
from .weeks import WeekInfo, build_week, delivery_date_for_day, week_start

logger = logging.getLogger(__name__)

PRODUCT_EXISTS = "Un produit avec ce nom existe déjà"
PRODUCT_NOT_FOUND = "Produit non trouvé"
ORDER_NOT_FOUND = "Commande non trouvée"
LINE_ITEM_NOT_FOUND = "Ligne de commande non trouvée"
GROUP_NOT_FOUND = "Produit introuvable dans le récapitulatif"


@dataclass(slots=True)
class ImportReport:
    """Outcome of a CSV catalog import."""

    imported: int = 0
    skipped: int = 0
    products: List[CatalogProduct] = field(default_factory=list)


def build_line_items(payloads: Sequence[Mapping[str, Any]]) -> List[LineItem]:
    """Turn validated item payloads into fresh line items with new ids."""
    return [
        LineItem(
            id=str(uuid4()),
            name=str(payload["name"]).strip(),
            quantity=float(payload["quantity"]),
            unit=parse_unit(payload["unit"]),
            produced=float(payload.get("produced") or 0.0),
        )
        for payload in payloads
    ]


@contextmanager
def _line_item_lookup() -> Iterator[None]:
    """Re-raise a missing line item with the user-facing message."""
    try:
        yield
    except RecordNotFoundError as exc:
        raise RecordNotFoundError(LINE_ITEM_NOT_FOUND) from exc


class ShopService:
    """Facade that exposes the order book use-cases to clients."""

    def __init__(
        self,
        catalog_repo: Optional[CatalogStore] = None,
        order_repo: Optional[OrderStore] = None,
    ) -> None:
        self.catalog = catalog_repo if catalog_repo is not None else InMemoryCatalogStore()
        self.orders = order_repo if order_repo is not None else InMemoryOrderStore()
        self.production = ProductionUpdater(self.orders)

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------
    def list_products(self) -> List[CatalogProduct]:
        return self.catalog.list()

    def create_product(self, name: str, default_unit: Union[Unit, str]) -> CatalogProduct:
        ensure_valid(validate_catalog_product(name, default_unit), PRODUCT_FIELDS_REQUIRED)
        name = name.strip()
        if self.catalog.find_by_name(name) is not None:
            logger.warning(f"Rejected duplicate catalog product {name!r}")
            raise DuplicateRecordError(PRODUCT_EXISTS)
        product = CatalogProduct(
            id=str(uuid4()),
            name=name,
            default_unit=parse_unit(default_unit),
        )
        self.catalog.add(product)
        logger.info(f"Created catalog product {product.name!r} ({product.id})")
        return product

    def update_product(
        self,
        product_id: str,
        *,
        name: Optional[str] = None,
        default_unit: Union[Unit, str, None] = None,
    ) -> CatalogProduct:
        ensure_valid(validate_catalog_changes(name, default_unit), PRODUCT_FIELDS_REQUIRED)
        product = self._get_product(product_id)
        if name is not None:
            name = name.strip()
            duplicate = self.catalog.find_by_name(name)
            if duplicate is not None and duplicate.id != product_id:
                logger.warning(f"Rejected rename of {product_id} to existing name {name!r}")
                raise DuplicateRecordError(PRODUCT_EXISTS)
            product.name = name
        if default_unit is not None:
            product.default_unit = parse_unit(default_unit)
        self.catalog.update(product)
        logger.info(f"Updated catalog product {product.name!r} ({product.id})")
        return product

    def delete_product(self, product_id: str) -> None:
        self._get_product(product_id)
        self.catalog.remove(product_id)
        logger.info(f"Deleted catalog product {product_id}")

    def _get_product(self, product_id: str) -> CatalogProduct:
        try:
            return self.catalog.get(product_id)
        except RecordNotFoundError as exc:
            raise RecordNotFoundError(PRODUCT_NOT_FOUND) from exc

    def import_products_csv(self, text: str) -> ImportReport:
        """Import ``name,unit`` rows, skipping the header line.

        Rows are skipped when they are blank, malformed, carry an unknown unit
        or name a product that already exists, compared case-insensitively.
        """
        report = ImportReport()
        lines = text.splitlines()[1:]
        if not lines:
            return report
        dialect = csv.excel
        sample = "\n".join(lines[:5])
        try:
            dialect = csv.Sniffer().sniff(sample, delimiters=",;\t")
        except csv.Error:
            pass
        known = {product.name.lower() for product in self.catalog.list()}
        for row in csv.reader(io.StringIO("\n".join(lines)), dialect):
            if not row or not any(cell.strip() for cell in row):
                continue
            name = row[0].strip()
            unit = parse_unit(row[1]) if len(row) > 1 else None
            if not name or unit is None:
                logger.warning(f"Skipped malformed catalog row {row!r}")
                report.skipped += 1
                continue
            if name.lower() in known:
                report.skipped += 1
                continue
            product = CatalogProduct(id=str(uuid4()), name=name, default_unit=unit)
            self.catalog.add(product)
            known.add(name.lower())
            report.imported += 1
            report.products.append(product)
        logger.info(f"Catalog import: {report.imported} imported, {report.skipped} skipped")
        return report

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------
    def list_orders(self) -> List[Order]:
        return self.orders.list()

    def get_order(self, order_id: str) -> Order:
        try:
            return self.orders.get(order_id)
        except RecordNotFoundError as exc:
            raise RecordNotFoundError(ORDER_NOT_FOUND) from exc

    def create_order(
        self,
        customer_name: str,
        customer_phone: str,
        delivery_day: Union[DeliveryDay, str],
        delivery_date: Union[date, str, None],
        items: Sequence[Mapping[str, Any]],
        *,
        notes: Optional[str] = None,
    ) -> Order:
        ensure_valid(
            validate_order(customer_name, customer_phone, delivery_day, delivery_date, items),
            ORDER_INCOMPLETE,
        )
        order = Order(
            id=str(uuid4()),
            customer_name=customer_name.strip(),
            customer_phone=customer_phone.strip(),
            delivery_day=parse_delivery_day(delivery_day),
            delivery_date=parse_date(delivery_date),
            items=build_line_items(items),
            notes=notes or "",
        )
        self.orders.add(order)
        logger.info(
            f"Created order {order.id} for {order.customer_name!r} "
            f"({len(order.items)} items, {order.delivery_date.isoformat()})"
        )
        return order

    def create_order_for_week(
        self,
        week_anchor: date,
        delivery_day: Union[DeliveryDay, str],
        customer_name: str,
        customer_phone: str,
        items: Sequence[Mapping[str, Any]],
        *,
        notes: Optional[str] = None,
    ) -> Order:
        """Create an order whose delivery date is resolved from the week."""
        day = parse_delivery_day(delivery_day)
        delivery_date = (
            delivery_date_for_day(week_start(week_anchor), day) if day is not None else None
        )
        return self.create_order(
            customer_name,
            customer_phone,
            delivery_day,
            delivery_date,
            items,
            notes=notes,
        )

    def update_order(self, order_id: str, **changes: Any) -> Order:
        """Replace the given fields of an order.

        An ``items`` change swaps the whole line item list; the previous items
        and their production state are discarded.
        """
        ensure_valid(validate_order_changes(changes), ORDER_INCOMPLETE)
        order = self.get_order(order_id)
        if "customer_name" in changes:
            order.customer_name = changes["customer_name"].strip()
        if "customer_phone" in changes:
            order.customer_phone = changes["customer_phone"].strip()
        if "delivery_day" in changes:
            order.delivery_day = parse_delivery_day(changes["delivery_day"])
        if "delivery_date" in changes:
            order.delivery_date = parse_date(changes["delivery_date"])
        if "notes" in changes:
            order.notes = changes["notes"] or ""
        if "delivery_day" in changes or "delivery_date" in changes:
            ensure_valid(
                validate_delivery_schedule(order.delivery_day, order.delivery_date),
                ORDER_INCOMPLETE,
            )
        self.orders.update(order)
        if "items" in changes:
            order.items = build_line_items(changes["items"])
            self.orders.replace_line_items(order.id, order.items)
        logger.info(f"Updated order {order.id} ({', '.join(sorted(changes)) or 'no changes'})")
        return order

    def set_line_item_produced(self, order_id: str, item_id: str, produced: float) -> Order:
        ensure_valid(validate_produced(produced), "Quantité produite invalide")
        order = self.get_order(order_id)
        if order.find_item(item_id) is None:
            raise RecordNotFoundError(LINE_ITEM_NOT_FOUND)
        with _line_item_lookup():
            self.orders.update_line_item(order_id, item_id, float(produced))
        return self.get_order(order_id)

    def delete_order(self, order_id: str) -> None:
        try:
            self.orders.remove(order_id)
        except RecordNotFoundError as exc:
            raise RecordNotFoundError(ORDER_NOT_FOUND) from exc
        logger.info(f"Deleted order {order_id}")

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def select_orders(
        self,
        *,
        day: Optional[DeliveryDay] = None,
        delivery_date: Optional[date] = None,
        week: Optional[WeekInfo] = None,
    ) -> List[Order]:
        orders = self.orders.list()
        if week is not None:
            orders = orders_for_week(orders, week)
        if day is not None:
            orders = orders_for_day(orders, day)
        if delivery_date is not None:
            orders = orders_for_date(orders, delivery_date)
        return orders

    def progress_for_orders(self, **filters: Any) -> ProgressReport:
        return compute_progress(self.select_orders(**filters))

    def progress_for_day(self, day: DeliveryDay, week: Optional[WeekInfo] = None) -> ProgressReport:
        return self.progress_for_orders(day=day, week=week)

    def progress_for_date(self, delivery_date: date) -> ProgressReport:
        return self.progress_for_orders(delivery_date=delivery_date)

    def progress_for_week(self, anchor: date) -> ProgressReport:
        return self.progress_for_orders(week=build_week(week_start(anchor)))

    def week_overview(self, anchor: date) -> Dict[DeliveryDay, ProgressReport]:
        return day_overview(self.orders.list(), build_week(week_start(anchor)))

    def product_summary(
        self,
        *,
        day: Optional[DeliveryDay] = None,
        delivery_date: Optional[date] = None,
        week: Optional[WeekInfo] = None,
    ) -> List[ProductSummaryItem]:
        return build_product_summary(
            self.select_orders(day=day, delivery_date=delivery_date, week=week)
        )

    def product_group(self, key: str, **filters: Any) -> ProductSummaryItem:
        try:
            return find_group(self.product_summary(**filters), key)
        except RecordNotFoundError as exc:
            raise RecordNotFoundError(GROUP_NOT_FOUND) from exc

    def mark_product_complete(self, key: str, **filters: Any) -> int:
        group = self.product_group(key, **filters)
        with _line_item_lookup():
            return self.production.mark_all_complete(group)

    def mark_product_incomplete(self, key: str, **filters: Any) -> int:
        group = self.product_group(key, **filters)
        with _line_item_lookup():
            return self.production.mark_all_incomplete(group)

    def set_product_quantity(self, key: str, target: float, **filters: Any) -> int:
        group = self.product_group(key, **filters)
        with _line_item_lookup():
            return self.production.set_total_quantity(group, target)


__all__ = [
    "ShopService",
    "ImportReport",
    "build_line_items",
    "PRODUCT_EXISTS",
    "PRODUCT_NOT_FOUND",
    "ORDER_NOT_FOUND",
    "LINE_ITEM_NOT_FOUND",
    "GROUP_NOT_FOUND",
]
