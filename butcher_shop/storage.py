"""SQLite-backed persistence for catalog products and orders."""

from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence

from .domain import CatalogProduct, DeliveryDay, LineItem, Order, Unit
from .repository import DuplicateRecordError, RecordNotFoundError

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS catalog_products (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    default_unit TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS orders (
    id TEXT PRIMARY KEY,
    customer_name TEXT NOT NULL,
    customer_phone TEXT NOT NULL,
    delivery_day TEXT NOT NULL,
    delivery_date TEXT NOT NULL,
    notes TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS line_items (
    id TEXT NOT NULL,
    order_id TEXT NOT NULL REFERENCES orders(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    name TEXT NOT NULL,
    quantity REAL NOT NULL,
    unit TEXT NOT NULL,
    produced REAL NOT NULL DEFAULT 0,
    PRIMARY KEY (order_id, id)
);
"""


def _product_from_row(row: sqlite3.Row) -> CatalogProduct:
    return CatalogProduct(
        id=row["id"],
        name=row["name"],
        default_unit=Unit(row["default_unit"]),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _item_from_row(row: sqlite3.Row) -> LineItem:
    return LineItem(
        id=row["id"],
        name=row["name"],
        quantity=row["quantity"],
        unit=Unit(row["unit"]),
        produced=row["produced"],
    )


class SQLiteCatalogStore:
    """Catalog store persisted in the ``catalog_products`` table."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection

    def __len__(self) -> int:
        cursor = self._connection.execute("SELECT COUNT(1) FROM catalog_products")
        value = cursor.fetchone()
        return int(value[0]) if value else 0

    def list(self) -> List[CatalogProduct]:
        cursor = self._connection.execute(
            "SELECT * FROM catalog_products ORDER BY created_at ASC, rowid ASC"
        )
        return [_product_from_row(row) for row in cursor.fetchall()]

    def get(self, product_id: str) -> CatalogProduct:
        cursor = self._connection.execute(
            "SELECT * FROM catalog_products WHERE id = ?", (product_id,)
        )
        row = cursor.fetchone()
        if row is None:
            raise RecordNotFoundError(f"Catalog product {product_id!r} not found")
        return _product_from_row(row)

    def find_by_name(self, name: str) -> Optional[CatalogProduct]:
        cursor = self._connection.execute(
            "SELECT * FROM catalog_products WHERE name = ?", (name,)
        )
        row = cursor.fetchone()
        return _product_from_row(row) if row is not None else None

    def add(self, product: CatalogProduct) -> None:
        try:
            with self._connection:
                self._connection.execute(
                    "INSERT INTO catalog_products (id, name, default_unit, created_at) "
                    "VALUES (?, ?, ?, ?)",
                    (
                        product.id,
                        product.name,
                        product.default_unit.value,
                        product.created_at.isoformat(),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise DuplicateRecordError(
                f"Catalog product {product.name!r} already exists"
            ) from exc

    def update(self, product: CatalogProduct) -> None:
        try:
            with self._connection:
                cursor = self._connection.execute(
                    "UPDATE catalog_products SET name = ?, default_unit = ? WHERE id = ?",
                    (product.name, product.default_unit.value, product.id),
                )
        except sqlite3.IntegrityError as exc:
            raise DuplicateRecordError(
                f"Catalog product {product.name!r} already exists"
            ) from exc
        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"Catalog product {product.id!r} not found")

    def remove(self, product_id: str) -> None:
        with self._connection:
            cursor = self._connection.execute(
                "DELETE FROM catalog_products WHERE id = ?", (product_id,)
            )
        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"Catalog product {product_id!r} not found")


class SQLiteOrderStore:
    """Order store persisted in the ``orders`` and ``line_items`` tables."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection

    def __len__(self) -> int:
        cursor = self._connection.execute("SELECT COUNT(1) FROM orders")
        value = cursor.fetchone()
        return int(value[0]) if value else 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def list(self) -> List[Order]:
        cursor = self._connection.execute(
            "SELECT * FROM orders ORDER BY created_at DESC, rowid DESC"
        )
        rows = cursor.fetchall()
        items = self._items_by_order()
        return [self._order_from_row(row, items.get(row["id"], [])) for row in rows]

    def get(self, order_id: str) -> Order:
        cursor = self._connection.execute(
            "SELECT * FROM orders WHERE id = ?", (order_id,)
        )
        row = cursor.fetchone()
        if row is None:
            raise RecordNotFoundError(f"Order {order_id!r} not found")
        cursor = self._connection.execute(
            "SELECT * FROM line_items WHERE order_id = ? ORDER BY position",
            (order_id,),
        )
        return self._order_from_row(row, [_item_from_row(item) for item in cursor])

    def _items_by_order(self) -> Dict[str, List[LineItem]]:
        grouped: Dict[str, List[LineItem]] = {}
        cursor = self._connection.execute(
            "SELECT * FROM line_items ORDER BY order_id, position"
        )
        for row in cursor:
            grouped.setdefault(row["order_id"], []).append(_item_from_row(row))
        return grouped

    @staticmethod
    def _order_from_row(row: sqlite3.Row, items: List[LineItem]) -> Order:
        return Order(
            id=row["id"],
            customer_name=row["customer_name"],
            customer_phone=row["customer_phone"],
            delivery_day=DeliveryDay(row["delivery_day"]),
            delivery_date=date.fromisoformat(row["delivery_date"]),
            items=items,
            notes=row["notes"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def add(self, order: Order) -> None:
        """Insert an order and its items; constraint failures other than a
        duplicate id propagate as :class:`sqlite3.IntegrityError`."""
        with self._connection:
            cursor = self._connection.execute(
                "SELECT 1 FROM orders WHERE id = ?", (order.id,)
            )
            if cursor.fetchone() is not None:
                raise DuplicateRecordError(f"Order {order.id!r} already exists")
            self._connection.execute(
                "INSERT INTO orders (id, customer_name, customer_phone, delivery_day, "
                "delivery_date, notes, created_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    order.id,
                    order.customer_name,
                    order.customer_phone,
                    order.delivery_day.value,
                    order.delivery_date.isoformat(),
                    order.notes,
                    order.created_at.isoformat(),
                ),
            )
            self._insert_items(order.id, order.items)

    def update(self, order: Order) -> None:
        with self._connection:
            cursor = self._connection.execute(
                "UPDATE orders SET customer_name = ?, customer_phone = ?, delivery_day = ?, "
                "delivery_date = ?, notes = ? WHERE id = ?",
                (
                    order.customer_name,
                    order.customer_phone,
                    order.delivery_day.value,
                    order.delivery_date.isoformat(),
                    order.notes,
                    order.id,
                ),
            )
        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"Order {order.id!r} not found")

    def replace_line_items(self, order_id: str, items: Sequence[LineItem]) -> None:
        """Swap the whole item list of an order inside a single transaction."""
        with self._connection:
            cursor = self._connection.execute(
                "SELECT 1 FROM orders WHERE id = ?", (order_id,)
            )
            if cursor.fetchone() is None:
                raise RecordNotFoundError(f"Order {order_id!r} not found")
            self._connection.execute(
                "DELETE FROM line_items WHERE order_id = ?", (order_id,)
            )
            self._insert_items(order_id, items)
        logger.debug(f"Replaced line items of order {order_id} ({len(items)} items)")

    def update_line_item(self, order_id: str, item_id: str, produced: float) -> None:
        with self._connection:
            cursor = self._connection.execute(
                "UPDATE line_items SET produced = ? WHERE order_id = ? AND id = ?",
                (produced, order_id, item_id),
            )
        if cursor.rowcount == 0:
            raise RecordNotFoundError(
                f"Line item {item_id!r} not found in order {order_id!r}"
            )

    def remove(self, order_id: str) -> None:
        with self._connection:
            cursor = self._connection.execute(
                "DELETE FROM orders WHERE id = ?", (order_id,)
            )
        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"Order {order_id!r} not found")

    def _insert_items(self, order_id: str, items: Sequence[LineItem]) -> None:
        self._connection.executemany(
            "INSERT INTO line_items (id, order_id, position, name, quantity, unit, produced) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    item.id,
                    order_id,
                    position,
                    item.name,
                    item.quantity,
                    item.unit.value,
                    item.produced,
                )
                for position, item in enumerate(items)
            ],
        )


class ShopDatabase:
    """Convenience facade bundling the SQLite stores of the shop."""

    def __init__(self, path: str) -> None:
        connection = sqlite3.connect(path, check_same_thread=False)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        connection.executescript(SCHEMA)
        connection.commit()
        self._connection = connection
        self.catalog = SQLiteCatalogStore(connection)
        self.orders = SQLiteOrderStore(connection)
        logger.info(f"Opened shop database at {path}")

    @property
    def connection(self) -> sqlite3.Connection:
        return self._connection

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> "ShopDatabase":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        traceback: Optional[BaseException],
    ) -> None:
        self.close()


__all__ = ["SQLiteCatalogStore", "SQLiteOrderStore", "ShopDatabase", "SCHEMA"]
