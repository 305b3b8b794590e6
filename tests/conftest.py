"""
Pytest fixtures shared by the order book tests

Stores are in-memory unless a test asks for the SQLite ``database`` fixture,
which lives in pytest's ``tmp_path``.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional, Tuple
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from butcher_shop.config import Settings
from butcher_shop.domain import DeliveryDay, LineItem, Order, Unit
from butcher_shop.repository import InMemoryOrderStore
from butcher_shop.services import ShopService
from butcher_shop.storage import ShopDatabase
from butcher_shop.web.app import create_app

WEEK_START = date(2025, 1, 6)
BASE_TIME = datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc)

ItemRow = Tuple[str, float, str, float]


def make_order(
    customer_name: str,
    items: Iterable[ItemRow],
    *,
    day: DeliveryDay = DeliveryDay.MERCREDI,
    delivery_date: Optional[date] = None,
    minutes: int = 0,
) -> Order:
    """Build an order from ``(name, quantity, unit, produced)`` tuples"""
    offsets = {"mercredi": 2, "jeudi": 3, "vendredi": 4, "samedi": 5}
    return Order(
        id=str(uuid4()),
        customer_name=customer_name,
        customer_phone="06 00 00 00 00",
        delivery_day=day,
        delivery_date=delivery_date or WEEK_START + timedelta(days=offsets[day.value]),
        items=[
            LineItem(id=str(uuid4()), name=name, quantity=quantity, unit=Unit(unit), produced=produced)
            for name, quantity, unit, produced in items
        ],
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


@pytest.fixture
def service():
    """Service over fresh in-memory stores"""
    return ShopService()


@pytest.fixture
def order_store():
    return InMemoryOrderStore()


@pytest.fixture
def database(tmp_path):
    """
    SQLite database in a temporary directory

    Scope: function (new file per test)
    """
    db = ShopDatabase(str(tmp_path / "shop.sqlite3"))
    yield db
    db.close()


@pytest.fixture
def sqlite_service(database):
    return ShopService(catalog_repo=database.catalog, order_repo=database.orders)


@pytest.fixture
def client(tmp_path):
    """FastAPI test client backed by a temporary SQLite file"""
    settings = Settings(
        DATABASE_PATH=str(tmp_path / "api.sqlite3"),
        SEED_DEMO_DATA=False,
        _env_file=None,
    )
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def sample_order_data():
    """Order body as sent by the order form"""
    return {
        "customer_name": "Mme Martin",
        "customer_phone": "06 12 34 56 78",
        "delivery_day": "samedi",
        "week_start": "2025-01-08",
        "notes": "Sans gras",
        "items": [
            {"name": "Steak", "quantity": 1, "unit": "kg"},
            {"name": "Steak", "quantity": 500, "unit": "g"},
        ],
    }
