"""FastAPI-based JSON interface for the butcher shop order book."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..config import Settings, configure_logging
from ..domain import CatalogProduct, DeliveryDay, LineItem, Order, Unit
from ..progress import ProgressReport, line_item_status, order_progress
from ..repository import DuplicateRecordError, RecordNotFoundError, RecordValidationError
from ..services import ShopService
from ..storage import ShopDatabase
from ..summary import ProductSummaryItem
from ..validation import parse_date, parse_delivery_day
from ..weeks import WeekInfo, build_week, upcoming_weeks, week_start

logger = logging.getLogger(__name__)

INTERNAL_ERROR = "Erreur interne du serveur"
CONFIRMATION_REQUIRED = "Confirmation requise pour la suppression"


class ProductPayload(BaseModel):
    """Body of catalog product create/update requests"""

    name: Optional[str] = None
    default_unit: Optional[str] = None


class LineItemPayload(BaseModel):
    name: Optional[str] = None
    quantity: Optional[float] = Field(None, allow_inf_nan=False)
    unit: Optional[str] = None
    produced: Optional[float] = Field(None, allow_inf_nan=False)


class OrderPayload(BaseModel):
    """Body of order create requests

    ``week_start`` may replace ``delivery_date``: the date is then resolved
    from the week and the delivery day.
    """

    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    delivery_day: Optional[str] = None
    delivery_date: Optional[str] = None
    week_start: Optional[str] = None
    notes: Optional[str] = None
    items: Optional[List[LineItemPayload]] = None


class OrderUpdatePayload(BaseModel):
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    delivery_day: Optional[str] = None
    delivery_date: Optional[str] = None
    notes: Optional[str] = None
    items: Optional[List[LineItemPayload]] = None


class ProducedPayload(BaseModel):
    produced: Optional[float] = Field(None, allow_inf_nan=False)


class QuantityPayload(BaseModel):
    quantity: Optional[float] = Field(None, allow_inf_nan=False)


# ----------------------------------------------------------------------
# Serialization
# ----------------------------------------------------------------------
def product_to_dict(product: CatalogProduct) -> Dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "default_unit": product.default_unit.value,
        "created_at": product.created_at.isoformat(),
    }


def line_item_to_dict(item: LineItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "name": item.name,
        "quantity": item.quantity,
        "unit": item.unit.value,
        "produced": item.produced,
        "status": line_item_status(item),
    }


def order_to_dict(order: Order) -> Dict[str, Any]:
    return {
        "id": order.id,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "delivery_day": order.delivery_day.value,
        "delivery_date": order.delivery_date.isoformat(),
        "notes": order.notes,
        "created_at": order.created_at.isoformat(),
        "progress": order_progress(order),
        "items": [line_item_to_dict(item) for item in order.items],
    }


def week_to_dict(week: WeekInfo) -> Dict[str, Any]:
    return {
        "week_number": week.week_number,
        "start_date": week.start_date.isoformat(),
        "end_date": week.end_date.isoformat(),
        "label": week.label,
    }


def summary_to_dict(group: ProductSummaryItem) -> Dict[str, Any]:
    return {
        "key": group.key,
        "name": group.name,
        "unit": group.unit.value,
        "total_quantity": group.total_quantity,
        "total_produced": group.total_produced,
        "remaining": group.remaining,
        "progress": group.progress,
        "is_complete": group.is_complete,
        "orders": [
            {
                "order_id": contribution.order_id,
                "item_id": contribution.item_id,
                "customer_name": contribution.customer_name,
                "quantity": contribution.quantity,
                "produced": contribution.produced,
            }
            for contribution in group.contributions
        ],
    }


def report_to_dict(report: ProgressReport) -> Dict[str, Any]:
    return report.as_dict()


# ----------------------------------------------------------------------
# Query parsing
# ----------------------------------------------------------------------
def parse_filters(day: Optional[str], delivery_date: Optional[str]) -> Dict[str, Any]:
    filters: Dict[str, Any] = {}
    errors: Dict[str, str] = {}
    if day:
        parsed_day = parse_delivery_day(day)
        if parsed_day is None:
            errors["day"] = f"Jour de livraison inconnu: {day}"
        filters["day"] = parsed_day
    if delivery_date:
        parsed_date = parse_date(delivery_date)
        if parsed_date is None:
            errors["date"] = f"Date invalide: {delivery_date}"
        filters["delivery_date"] = parsed_date
    if errors:
        raise RecordValidationError("Filtre invalide", errors)
    return filters


def require_confirmation(confirm: bool) -> None:
    if not confirm:
        raise RecordValidationError(CONFIRMATION_REQUIRED, {"confirm": CONFIRMATION_REQUIRED})


def _error(status_code: int, message: str, fields: Optional[Dict[str, str]] = None) -> JSONResponse:
    content: Dict[str, Any] = {"error": message}
    if fields:
        content["fields"] = fields
    return JSONResponse(status_code=status_code, content=content)


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[ShopService] = None,
) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings)
    database: Optional[ShopDatabase] = None
    if service is None:
        database = ShopDatabase(settings.DATABASE_PATH)
        service = ShopService(catalog_repo=database.catalog, order_repo=database.orders)
    if settings.SEED_DEMO_DATA:
        ensure_demo_data(service)

    app = FastAPI(title=settings.API_TITLE, version=settings.API_VERSION)
    app.state.shop_service = service
    app.state.database = database
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("shutdown")
    async def shutdown_event() -> None:  # pragma: no cover - framework hook
        if database is not None:
            database.close()

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------
    @app.exception_handler(RecordValidationError)
    async def validation_error(request: Request, exc: RecordValidationError):
        logger.warning(f"{request.method} {request.url.path}: {exc} {exc.errors}")
        return _error(400, str(exc), exc.errors)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        fields = {
            ".".join(str(part) for part in error["loc"]): error["msg"] for error in exc.errors()
        }
        logger.warning(f"{request.method} {request.url.path}: malformed request {fields}")
        return _error(400, "Requête invalide", fields)

    @app.exception_handler(RecordNotFoundError)
    async def not_found_error(request: Request, exc: RecordNotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(DuplicateRecordError)
    async def duplicate_error(request: Request, exc: DuplicateRecordError):
        return _error(409, str(exc))

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception(f"Unexpected error on {request.method} {request.url.path}")
        return _error(500, INTERNAL_ERROR)

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------
    @app.get("/api/admin-products")
    async def list_products(request: Request):
        service: ShopService = request.app.state.shop_service
        return [product_to_dict(product) for product in service.list_products()]

    @app.post("/api/admin-products", status_code=201)
    async def create_product(request: Request, payload: ProductPayload):
        service: ShopService = request.app.state.shop_service
        product = service.create_product(payload.name, payload.default_unit)
        return product_to_dict(product)

    @app.post("/api/admin-products/import")
    async def import_products(request: Request):
        service: ShopService = request.app.state.shop_service
        text = (await request.body()).decode("utf-8-sig")
        report = service.import_products_csv(text)
        return {
            "imported": report.imported,
            "skipped": report.skipped,
            "products": [product_to_dict(product) for product in report.products],
        }

    @app.put("/api/admin-products/{product_id}")
    async def update_product(product_id: str, request: Request, payload: ProductPayload):
        service: ShopService = request.app.state.shop_service
        product = service.update_product(
            product_id, name=payload.name, default_unit=payload.default_unit
        )
        return product_to_dict(product)

    @app.delete("/api/admin-products/{product_id}")
    async def delete_product(product_id: str, request: Request, confirm: bool = False):
        require_confirmation(confirm)
        service: ShopService = request.app.state.shop_service
        service.delete_product(product_id)
        return {"message": "Produit supprimé avec succès"}

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------
    @app.get("/api/orders")
    async def list_orders(
        request: Request,
        day: Optional[str] = None,
        delivery_date: Optional[str] = Query(None, alias="date"),
    ):
        service: ShopService = request.app.state.shop_service
        orders = service.select_orders(**parse_filters(day, delivery_date))
        return [order_to_dict(order) for order in orders]

    @app.post("/api/orders", status_code=201)
    async def create_order(request: Request, payload: OrderPayload):
        service: ShopService = request.app.state.shop_service
        items = [item.model_dump() for item in payload.items] if payload.items else []
        if not payload.delivery_date and payload.week_start:
            anchor = parse_date(payload.week_start)
            if anchor is None:
                raise RecordValidationError(
                    "Données de commande incomplètes",
                    {"week_start": f"Date invalide: {payload.week_start}"},
                )
            order = service.create_order_for_week(
                anchor,
                payload.delivery_day,
                payload.customer_name,
                payload.customer_phone,
                items,
                notes=payload.notes,
            )
        else:
            order = service.create_order(
                payload.customer_name,
                payload.customer_phone,
                payload.delivery_day,
                payload.delivery_date,
                items,
                notes=payload.notes,
            )
        return order_to_dict(order)

    @app.get("/api/orders/{order_id}")
    async def get_order(order_id: str, request: Request):
        service: ShopService = request.app.state.shop_service
        return order_to_dict(service.get_order(order_id))

    @app.put("/api/orders/{order_id}")
    async def update_order(order_id: str, request: Request, payload: OrderUpdatePayload):
        service: ShopService = request.app.state.shop_service
        changes = payload.model_dump(exclude_unset=True)
        order = service.update_order(order_id, **changes)
        return order_to_dict(order)

    @app.patch("/api/orders/{order_id}/items/{item_id}")
    async def set_produced(
        order_id: str, item_id: str, request: Request, payload: ProducedPayload
    ):
        service: ShopService = request.app.state.shop_service
        order = service.set_line_item_produced(order_id, item_id, payload.produced)
        return order_to_dict(order)

    @app.delete("/api/orders/{order_id}")
    async def delete_order(order_id: str, request: Request, confirm: bool = False):
        require_confirmation(confirm)
        service: ShopService = request.app.state.shop_service
        service.delete_order(order_id)
        return {"message": "Commande supprimée avec succès"}

    # ------------------------------------------------------------------
    # Weeks, progress and production summary
    # ------------------------------------------------------------------
    @app.get("/api/weeks")
    async def list_weeks(today: Optional[str] = None):
        reference = parse_date(today) if today else None
        return [week_to_dict(week) for week in upcoming_weeks(reference)]

    @app.get("/api/progress")
    async def progress(
        request: Request,
        day: Optional[str] = None,
        delivery_date: Optional[str] = Query(None, alias="date"),
        week_start_value: Optional[str] = Query(None, alias="week_start"),
    ):
        service: ShopService = request.app.state.shop_service
        filters = parse_filters(day, delivery_date)
        if week_start_value:
            anchor = parse_date(week_start_value)
            if anchor is None:
                raise RecordValidationError(
                    "Filtre invalide", {"week_start": f"Date invalide: {week_start_value}"}
                )
            filters["week"] = build_week(week_start(anchor))
        report = service.progress_for_orders(**filters)
        return report_to_dict(report)

    @app.get("/api/summary")
    async def product_summary(
        request: Request,
        day: Optional[str] = None,
        delivery_date: Optional[str] = Query(None, alias="date"),
    ):
        service: ShopService = request.app.state.shop_service
        summary = service.product_summary(**parse_filters(day, delivery_date))
        return [summary_to_dict(group) for group in summary]

    @app.post("/api/summary/{key}/complete")
    async def mark_complete(
        key: str,
        request: Request,
        day: Optional[str] = None,
        delivery_date: Optional[str] = Query(None, alias="date"),
    ):
        service: ShopService = request.app.state.shop_service
        writes = service.mark_product_complete(key, **parse_filters(day, delivery_date))
        return {"updated": writes}

    @app.post("/api/summary/{key}/incomplete")
    async def mark_incomplete(
        key: str,
        request: Request,
        day: Optional[str] = None,
        delivery_date: Optional[str] = Query(None, alias="date"),
    ):
        service: ShopService = request.app.state.shop_service
        writes = service.mark_product_incomplete(key, **parse_filters(day, delivery_date))
        return {"updated": writes}

    @app.post("/api/summary/{key}/quantity")
    async def set_quantity(
        key: str,
        request: Request,
        payload: QuantityPayload,
        day: Optional[str] = None,
        delivery_date: Optional[str] = Query(None, alias="date"),
    ):
        if payload.quantity is None:
            raise RecordValidationError("Quantité requise", {"quantity": "Champ requis"})
        service: ShopService = request.app.state.shop_service
        writes = service.set_product_quantity(
            key, payload.quantity, **parse_filters(day, delivery_date)
        )
        return {"updated": writes}

    return app


def ensure_demo_data(service: ShopService) -> None:
    if service.list_products():
        return

    for name, unit in (
        ("Entrecôte", Unit.KILOGRAM),
        ("Bavette", Unit.KILOGRAM),
        ("Saucisse de Toulouse", Unit.PIECE),
        ("Jambon blanc", Unit.SLICE),
        ("Chair à saucisse", Unit.GRAM),
    ):
        service.create_product(name, unit)

    anchor = week_start(date.today())
    service.create_order_for_week(
        anchor,
        DeliveryDay.VENDREDI,
        customer_name="Mme Martin",
        customer_phone="06 12 34 56 78",
        items=[
            {"name": "Entrecôte", "quantity": 1.2, "unit": "kg"},
            {"name": "Chair à saucisse", "quantity": 500, "unit": "g"},
        ],
        notes="Entrecôte en deux morceaux",
    )
    service.create_order_for_week(
        anchor,
        DeliveryDay.VENDREDI,
        customer_name="M. Durand",
        customer_phone="06 98 76 54 32",
        items=[
            {"name": "Chair à saucisse", "quantity": 1, "unit": "kg"},
            {"name": "Saucisse de Toulouse", "quantity": 6, "unit": "piece"},
        ],
    )
    service.create_order_for_week(
        anchor + timedelta(weeks=1),
        DeliveryDay.SAMEDI,
        customer_name="Restaurant Le Lys",
        customer_phone="05 61 00 00 00",
        items=[
            {"name": "Bavette", "quantity": 4, "unit": "kg"},
            {"name": "Jambon blanc", "quantity": 12, "unit": "slice"},
        ],
    )
    logger.info("Seeded demo catalog and orders")

