"""Store interfaces and simple in-memory stores used by the service layer."""

from __future__ import annotations

from copy import deepcopy
from typing import Dict, Generic, Iterator, List, Mapping, MutableMapping, Optional, Protocol, Sequence, TypeVar

from .domain import CatalogProduct, LineItem, Order

T = TypeVar("T")


class RepositoryError(RuntimeError):
    """Base exception for repository errors."""


class DuplicateRecordError(RepositoryError):
    """Raised when attempting to insert a record that already exists."""


class RecordNotFoundError(RepositoryError):
    """Raised when a requested record is missing."""


class RecordValidationError(RepositoryError):
    """Raised when a record fails validation before reaching a store.

    ``errors`` maps field names to human readable messages.
    """

    def __init__(self, message: str, errors: Optional[Mapping[str, str]] = None) -> None:
        super().__init__(message)
        self.errors: Dict[str, str] = dict(errors or {})


class CatalogStore(Protocol):
    def list(self) -> List[CatalogProduct]: ...

    def get(self, product_id: str) -> CatalogProduct: ...

    def find_by_name(self, name: str) -> Optional[CatalogProduct]: ...

    def add(self, product: CatalogProduct) -> None: ...

    def update(self, product: CatalogProduct) -> None: ...

    def remove(self, product_id: str) -> None: ...


class OrderStore(Protocol):
    def list(self) -> List[Order]: ...

    def get(self, order_id: str) -> Order: ...

    def add(self, order: Order) -> None: ...

    def update(self, order: Order) -> None: ...

    def replace_line_items(self, order_id: str, items: Sequence[LineItem]) -> None: ...

    def update_line_item(self, order_id: str, item_id: str, produced: float) -> None: ...

    def remove(self, order_id: str) -> None: ...


class InMemoryRepository(Generic[T]):
    """Generic repository backed by a simple dictionary.

    Records are copied on the way in and on the way out so callers never
    hold a reference into the store.
    """

    def __init__(self) -> None:
        self._items: MutableMapping[str, T] = {}

    def __contains__(self, item_id: object) -> bool:  # pragma: no cover - convenience
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def add(self, item_id: str, item: T) -> None:
        if item_id in self._items:
            raise DuplicateRecordError(f"Record with id {item_id!r} already exists")
        self._items[item_id] = deepcopy(item)

    def upsert(self, item_id: str, item: T) -> None:
        self._items[item_id] = deepcopy(item)

    def get(self, item_id: str) -> T:
        try:
            return deepcopy(self._items[item_id])
        except KeyError as exc:
            raise RecordNotFoundError(f"Record with id {item_id!r} not found") from exc

    def remove(self, item_id: str) -> None:
        if item_id not in self._items:
            raise RecordNotFoundError(f"Record with id {item_id!r} not found")
        del self._items[item_id]

    def list(self) -> List[T]:
        return [deepcopy(item) for item in self._items.values()]

    def __iter__(self) -> Iterator[T]:  # pragma: no cover - convenience
        return iter(self.list())


class InMemoryCatalogStore(InMemoryRepository[CatalogProduct]):
    """Catalog store kept in process memory."""

    def list(self) -> List[CatalogProduct]:
        return sorted(super().list(), key=lambda product: product.created_at)

    def find_by_name(self, name: str) -> Optional[CatalogProduct]:
        for product in self._items.values():
            if product.name == name:
                return deepcopy(product)
        return None

    def add(self, product: CatalogProduct) -> None:  # type: ignore[override]
        if self.find_by_name(product.name) is not None:
            raise DuplicateRecordError(f"Catalog product {product.name!r} already exists")
        super().add(product.id, product)

    def update(self, product: CatalogProduct) -> None:
        if product.id not in self._items:
            raise RecordNotFoundError(f"Catalog product {product.id!r} not found")
        self.upsert(product.id, product)


class InMemoryOrderStore(InMemoryRepository[Order]):
    """Order store kept in process memory. Line items live inside their order."""

    def list(self) -> List[Order]:
        return sorted(super().list(), key=lambda order: order.created_at, reverse=True)

    def add(self, order: Order) -> None:  # type: ignore[override]
        super().add(order.id, order)

    def update(self, order: Order) -> None:
        stored = self._require(order.id)
        updated = deepcopy(order)
        updated.items = stored.items
        updated.created_at = stored.created_at
        self._items[order.id] = updated

    def replace_line_items(self, order_id: str, items: Sequence[LineItem]) -> None:
        stored = self._require(order_id)
        stored.items = [deepcopy(item) for item in items]

    def update_line_item(self, order_id: str, item_id: str, produced: float) -> None:
        item = self._require(order_id).find_item(item_id)
        if item is None:
            raise RecordNotFoundError(
                f"Line item {item_id!r} not found in order {order_id!r}"
            )
        item.produced = produced

    def _require(self, order_id: str) -> Order:
        try:
            return self._items[order_id]
        except KeyError as exc:
            raise RecordNotFoundError(f"Order {order_id!r} not found") from exc


__all__ = [
    "CatalogStore",
    "OrderStore",
    "InMemoryRepository",
    "InMemoryCatalogStore",
    "InMemoryOrderStore",
    "RepositoryError",
    "DuplicateRecordError",
    "RecordNotFoundError",
    "RecordValidationError",
]
