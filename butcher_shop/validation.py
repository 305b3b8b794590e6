"""Field-level validation of catalog products and orders.

Each ``validate_*`` function returns a mapping of field name to message and
never touches a store. Callers raise :class:`RecordValidationError` through
:func:`ensure_valid` before issuing any write.
"""

from __future__ import annotations

import math
from datetime import date
from typing import Any, Dict, Mapping, Optional, Sequence

from .domain import DeliveryDay, Unit
from .repository import RecordValidationError
from .weeks import DELIVERY_DAY_OFFSETS

PRODUCT_FIELDS_REQUIRED = "Nom et unité par défaut requis"
ORDER_INCOMPLETE = "Données de commande incomplètes"
REQUIRED = "Champ requis"
NOT_A_NUMBER = "Nombre fini attendu"
DAY_MISMATCH = "La date ne correspond pas au jour de livraison"


def parse_unit(value: Any) -> Optional[Unit]:
    if isinstance(value, Unit):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Unit(value.strip())
    except ValueError:
        return None


def parse_delivery_day(value: Any) -> Optional[DeliveryDay]:
    if isinstance(value, DeliveryDay):
        return value
    if not isinstance(value, str):
        return None
    try:
        return DeliveryDay(value.strip().lower())
    except ValueError:
        return None


def parse_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def validate_catalog_product(name: Any, default_unit: Any) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if _is_blank(name):
        errors["name"] = REQUIRED
    if _is_blank(default_unit):
        errors["default_unit"] = REQUIRED
    elif parse_unit(default_unit) is None:
        errors["default_unit"] = f"Unité inconnue: {default_unit}"
    return errors


def validate_catalog_changes(name: Any, default_unit: Any) -> Dict[str, str]:
    """Validate a partial catalog update; at least one field must be supplied."""
    if name is None and default_unit is None:
        return {"name": REQUIRED, "default_unit": REQUIRED}
    errors: Dict[str, str] = {}
    if name is not None and _is_blank(name):
        errors["name"] = REQUIRED
    if default_unit is not None and parse_unit(default_unit) is None:
        errors["default_unit"] = f"Unité inconnue: {default_unit}"
    return errors


def validate_line_item(payload: Mapping[str, Any], prefix: str = "item") -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if _is_blank(payload.get("name")):
        errors[f"{prefix}.name"] = REQUIRED
    raw_quantity = payload.get("quantity")
    quantity = _as_number(raw_quantity)
    if _is_blank(raw_quantity):
        errors[f"{prefix}.quantity"] = REQUIRED
    elif quantity is None:
        errors[f"{prefix}.quantity"] = NOT_A_NUMBER
    elif quantity <= 0:
        errors[f"{prefix}.quantity"] = "La quantité doit être positive"
    unit = payload.get("unit")
    if _is_blank(unit):
        errors[f"{prefix}.unit"] = REQUIRED
    elif parse_unit(unit) is None:
        errors[f"{prefix}.unit"] = f"Unité inconnue: {unit}"
    produced = payload.get("produced")
    if produced is not None:
        value = _as_number(produced)
        if value is None or value < 0:
            errors[f"{prefix}.produced"] = "La quantité produite doit être positive ou nulle"
    return errors


def validate_line_items(items: Optional[Sequence[Mapping[str, Any]]]) -> Dict[str, str]:
    if not items:
        return {"items": "Au moins un produit est requis"}
    errors: Dict[str, str] = {}
    for index, payload in enumerate(items):
        errors.update(validate_line_item(payload, prefix=f"items[{index}]"))
    return errors


def validate_order(
    customer_name: Any,
    customer_phone: Any,
    delivery_day: Any,
    delivery_date: Any,
    items: Optional[Sequence[Mapping[str, Any]]],
) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if _is_blank(customer_name):
        errors["customer_name"] = REQUIRED
    if _is_blank(customer_phone):
        errors["customer_phone"] = REQUIRED
    if _is_blank(delivery_day):
        errors["delivery_day"] = REQUIRED
    elif parse_delivery_day(delivery_day) is None:
        errors["delivery_day"] = f"Jour de livraison inconnu: {delivery_day}"
    if _is_blank(delivery_date):
        errors["delivery_date"] = REQUIRED
    elif parse_date(delivery_date) is None:
        errors["delivery_date"] = f"Date invalide: {delivery_date}"
    else:
        errors.update(validate_delivery_schedule(delivery_day, delivery_date))
    errors.update(validate_line_items(items))
    return errors


def validate_delivery_schedule(delivery_day: Any, delivery_date: Any) -> Dict[str, str]:
    """Check that ``delivery_date`` falls on the weekday of ``delivery_day``.

    Unparseable values are left to the field checks.
    """
    day = parse_delivery_day(delivery_day)
    when = parse_date(delivery_date)
    if day is None or when is None:
        return {}
    if when.weekday() != DELIVERY_DAY_OFFSETS[day]:
        return {"delivery_date": DAY_MISMATCH}
    return {}


ORDER_FIELDS = (
    "customer_name",
    "customer_phone",
    "delivery_day",
    "delivery_date",
    "notes",
    "items",
)


def validate_order_changes(changes: Mapping[str, Any]) -> Dict[str, str]:
    """Validate a partial order update; only the supplied fields are checked."""
    errors: Dict[str, str] = {}
    for key in changes:
        if key not in ORDER_FIELDS:
            errors[key] = "Champ inconnu"
    for key in ("customer_name", "customer_phone"):
        if key in changes and _is_blank(changes[key]):
            errors[key] = REQUIRED
    if "delivery_day" in changes and parse_delivery_day(changes["delivery_day"]) is None:
        errors["delivery_day"] = f"Jour de livraison inconnu: {changes['delivery_day']}"
    if "delivery_date" in changes and parse_date(changes["delivery_date"]) is None:
        errors["delivery_date"] = f"Date invalide: {changes['delivery_date']}"
    if "notes" in changes and changes["notes"] is not None and not isinstance(changes["notes"], str):
        errors["notes"] = "Texte attendu"
    if "items" in changes:
        errors.update(validate_line_items(changes["items"]))
    return errors


def validate_produced(produced: Any) -> Dict[str, str]:
    value = _as_number(produced)
    if value is None or value < 0:
        return {"produced": "La quantité produite doit être positive ou nulle"}
    return {}


def ensure_valid(errors: Mapping[str, str], message: str) -> None:
    if errors:
        raise RecordValidationError(message, errors)


__all__ = [
    "PRODUCT_FIELDS_REQUIRED",
    "ORDER_INCOMPLETE",
    "NOT_A_NUMBER",
    "DAY_MISMATCH",
    "parse_unit",
    "parse_delivery_day",
    "parse_date",
    "validate_catalog_product",
    "validate_catalog_changes",
    "validate_line_item",
    "validate_line_items",
    "validate_order",
    "validate_delivery_schedule",
    "validate_order_changes",
    "ORDER_FIELDS",
    "validate_produced",
    "ensure_valid",
]
