"""
Unit tests for ShopService use-cases over in-memory stores
"""
from datetime import date

import pytest

from butcher_shop.domain import DeliveryDay, Unit
from butcher_shop.repository import DuplicateRecordError, RecordNotFoundError, RecordValidationError
from butcher_shop.services import (
    GROUP_NOT_FOUND,
    LINE_ITEM_NOT_FOUND,
    ORDER_NOT_FOUND,
    PRODUCT_EXISTS,
    PRODUCT_NOT_FOUND,
)
from butcher_shop.validation import DAY_MISMATCH, ORDER_INCOMPLETE, PRODUCT_FIELDS_REQUIRED

from conftest import make_order

STEAK = {"name": "Steak", "quantity": 2, "unit": "kg"}
SAUSAGES = {"name": "Saucisse", "quantity": 6, "unit": "piece"}


def _create_order(service, **overrides):
    data = {
        "customer_name": "Mme Martin",
        "customer_phone": "06 12 34 56 78",
        "delivery_day": "samedi",
        "delivery_date": "2025-01-11",
        "items": [STEAK, SAUSAGES],
    }
    data.update(overrides)
    notes = data.pop("notes", None)
    return service.create_order(**data, notes=notes)


class TestCatalog:
    """Catalog product CRUD"""

    def test_create_product(self, service):
        product = service.create_product("  Bavette ", "kg")

        assert product.name == "Bavette"
        assert product.default_unit == Unit.KILOGRAM
        assert service.list_products() == [product]

    def test_exact_duplicate_is_rejected(self, service):
        service.create_product("Steak", "kg")

        with pytest.raises(DuplicateRecordError) as exc_info:
            service.create_product("Steak", "g")
        assert str(exc_info.value) == PRODUCT_EXISTS

    def test_names_differing_by_case_are_distinct(self, service):
        service.create_product("Steak", "kg")
        service.create_product("steak", "kg")

        assert [p.name for p in service.list_products()] == ["Steak", "steak"]

    def test_missing_fields(self, service):
        with pytest.raises(RecordValidationError) as exc_info:
            service.create_product("", "kg")

        assert str(exc_info.value) == PRODUCT_FIELDS_REQUIRED
        assert set(exc_info.value.errors) == {"name"}

    def test_unknown_unit(self, service):
        with pytest.raises(RecordValidationError) as exc_info:
            service.create_product("Steak", "livre")

        assert "default_unit" in exc_info.value.errors
        assert service.list_products() == []

    def test_partial_update(self, service):
        product = service.create_product("Steak", "kg")

        updated = service.update_product(product.id, default_unit="piece")

        assert updated.name == "Steak"
        assert updated.default_unit == Unit.PIECE

    def test_update_requires_a_field(self, service):
        product = service.create_product("Steak", "kg")

        with pytest.raises(RecordValidationError):
            service.update_product(product.id)

    def test_update_unknown_product(self, service):
        with pytest.raises(RecordNotFoundError) as exc_info:
            service.update_product("missing", name="Steak")

        assert str(exc_info.value) == PRODUCT_NOT_FOUND

    def test_rename_onto_existing_name(self, service):
        service.create_product("Steak", "kg")
        bavette = service.create_product("Bavette", "kg")

        with pytest.raises(DuplicateRecordError):
            service.update_product(bavette.id, name="Steak")

    def test_rename_to_own_name_is_allowed(self, service):
        product = service.create_product("Steak", "kg")

        assert service.update_product(product.id, name="Steak").name == "Steak"

    def test_delete_product(self, service):
        product = service.create_product("Steak", "kg")

        service.delete_product(product.id)

        assert service.list_products() == []
        with pytest.raises(RecordNotFoundError):
            service.delete_product(product.id)


class TestCatalogImport:
    """CSV catalog import"""

    def test_header_is_skipped(self, service):
        report = service.import_products_csv("nom,unite\nSteak,kg\nSaucisse,piece\n")

        assert report.imported == 2
        assert report.skipped == 0
        assert {p.name for p in service.list_products()} == {"Steak", "Saucisse"}

    def test_existing_names_are_skipped_case_insensitively(self, service):
        service.create_product("Steak", "kg")

        report = service.import_products_csv("nom,unite\nSTEAK,kg\nBavette,kg\n")

        assert report.imported == 1
        assert report.skipped == 1

    def test_duplicates_inside_the_file(self, service):
        report = service.import_products_csv("nom,unite\nSteak,kg\nsteak,g\n")

        assert report.imported == 1
        assert report.skipped == 1

    def test_bad_rows_are_counted_as_skipped(self, service):
        report = service.import_products_csv("nom,unite\nSteak,livre\nBavette\n\nJambon,slice\n")

        assert report.imported == 1
        assert report.skipped == 2
        assert [p.name for p in report.products] == ["Jambon"]

    def test_semicolon_delimiter(self, service):
        report = service.import_products_csv("nom;unite\nSteak;kg\nRôti;kg\nTranche;slice\n")

        assert report.imported == 3
        assert {p.default_unit for p in report.products} == {Unit.KILOGRAM, Unit.SLICE}

    def test_header_only(self, service):
        report = service.import_products_csv("nom,unite\n")

        assert report.imported == 0
        assert report.skipped == 0


class TestOrders:
    """Order creation, update and deletion"""

    def test_create_order(self, service):
        order = _create_order(service, notes="Sans gras")

        assert order.delivery_day == DeliveryDay.SAMEDI
        assert order.delivery_date == date(2025, 1, 11)
        assert order.notes == "Sans gras"
        assert [item.produced for item in order.items] == [0, 0]
        assert len({item.id for item in order.items}) == 2
        assert service.get_order(order.id) == order

    def test_notes_default_to_empty(self, service):
        assert _create_order(service).notes == ""

    def test_missing_fields_are_reported_per_field(self, service):
        with pytest.raises(RecordValidationError) as exc_info:
            _create_order(
                service,
                customer_phone="",
                items=[{"name": "Steak", "quantity": 0, "unit": "kg"}],
            )

        assert str(exc_info.value) == ORDER_INCOMPLETE
        assert set(exc_info.value.errors) == {"customer_phone", "items[0].quantity"}
        assert service.list_orders() == []

    def test_empty_items(self, service):
        with pytest.raises(RecordValidationError) as exc_info:
            _create_order(service, items=[])

        assert "items" in exc_info.value.errors

    def test_unknown_delivery_day(self, service):
        with pytest.raises(RecordValidationError) as exc_info:
            _create_order(service, delivery_day="lundi")

        assert "delivery_day" in exc_info.value.errors

    def test_non_finite_quantity_is_rejected(self, service):
        with pytest.raises(RecordValidationError) as exc_info:
            _create_order(service, items=[{"name": "Steak", "quantity": "nan", "unit": "kg"}])

        assert set(exc_info.value.errors) == {"items[0].quantity"}
        assert service.list_orders() == []

    def test_delivery_date_must_match_the_day(self, service):
        """samedi on a Monday is refused"""
        with pytest.raises(RecordValidationError) as exc_info:
            _create_order(service, delivery_date="2025-01-06")

        assert exc_info.value.errors == {"delivery_date": DAY_MISMATCH}

    def test_day_change_without_matching_date_is_rejected(self, service):
        order = _create_order(service)

        with pytest.raises(RecordValidationError) as exc_info:
            service.update_order(order.id, delivery_day="jeudi")

        assert "delivery_date" in exc_info.value.errors
        assert service.get_order(order.id).delivery_day == DeliveryDay.SAMEDI

    def test_day_and_date_can_move_together(self, service):
        order = _create_order(service)

        updated = service.update_order(order.id, delivery_day="jeudi", delivery_date="2025-01-09")

        assert updated.delivery_day == DeliveryDay.JEUDI
        assert service.get_order(order.id).delivery_date == date(2025, 1, 9)

    def test_create_order_for_week(self, service):
        order = service.create_order_for_week(
            date(2025, 1, 8),
            "samedi",
            "Mme Martin",
            "06 12 34 56 78",
            [STEAK],
        )

        assert order.delivery_date == date(2025, 1, 11)

    def test_partial_update_keeps_items(self, service):
        order = _create_order(service)
        service.set_line_item_produced(order.id, order.items[0].id, 1)

        updated = service.update_order(order.id, customer_phone="07 00 00 00 00")

        assert updated.customer_phone == "07 00 00 00 00"
        stored = service.get_order(order.id)
        assert stored.customer_name == "Mme Martin"
        assert [item.produced for item in stored.items] == [1, 0]

    def test_items_update_replaces_everything(self, service):
        order = _create_order(service)
        service.set_line_item_produced(order.id, order.items[0].id, 1)

        service.update_order(order.id, items=[{"name": "Bavette", "quantity": 1, "unit": "kg"}])

        stored = service.get_order(order.id)
        assert [item.name for item in stored.items] == ["Bavette"]
        assert stored.items[0].produced == 0
        assert stored.items[0].id not in {item.id for item in order.items}

    def test_update_rejects_unknown_fields(self, service):
        order = _create_order(service)

        with pytest.raises(RecordValidationError) as exc_info:
            service.update_order(order.id, price=12)

        assert exc_info.value.errors == {"price": "Champ inconnu"}

    def test_update_unknown_order(self, service):
        with pytest.raises(RecordNotFoundError) as exc_info:
            service.update_order("missing", notes="x")

        assert str(exc_info.value) == ORDER_NOT_FOUND

    def test_produced_above_quantity_is_stored(self, service):
        order = _create_order(service)

        updated = service.set_line_item_produced(order.id, order.items[0].id, 3.5)

        assert updated.items[0].produced == 3.5
        assert updated.items[0].is_complete

    def test_negative_produced_is_rejected(self, service):
        order = _create_order(service)

        with pytest.raises(RecordValidationError):
            service.set_line_item_produced(order.id, order.items[0].id, -1)

    def test_produced_on_unknown_item(self, service):
        order = _create_order(service)

        with pytest.raises(RecordNotFoundError) as exc_info:
            service.set_line_item_produced(order.id, "missing", 1)

        assert str(exc_info.value) == LINE_ITEM_NOT_FOUND

    def test_delete_order(self, service):
        order = _create_order(service)

        service.delete_order(order.id)

        assert service.list_orders() == []
        with pytest.raises(RecordNotFoundError):
            service.get_order(order.id)

    def test_orders_are_listed_newest_first(self, service):
        older = make_order("Martin", [("Steak", 1, "kg", 0)], minutes=0)
        newer = make_order("Durand", [("Steak", 1, "kg", 0)], minutes=5)
        service.orders.add(older)
        service.orders.add(newer)

        assert [order.id for order in service.list_orders()] == [newer.id, older.id]


class TestReporting:
    """Progress and summary helpers on the service"""

    @pytest.fixture
    def populated(self, service):
        orders = [
            make_order("Martin", [("Steak", 500, "g", 0)], day=DeliveryDay.MERCREDI),
            make_order("Durand", [("Steak", 1, "kg", 0)], day=DeliveryDay.SAMEDI, minutes=1),
            make_order(
                "Petit",
                [("Steak", 2, "kg", 0)],
                day=DeliveryDay.SAMEDI,
                delivery_date=date(2025, 1, 18),
                minutes=2,
            ),
        ]
        for order in orders:
            service.orders.add(order)
        return service

    def test_progress_for_day_and_date(self, populated):
        assert populated.progress_for_day(DeliveryDay.SAMEDI).order_count == 2
        assert populated.progress_for_date(date(2025, 1, 11)).order_count == 1

    def test_progress_for_week(self, populated):
        report = populated.progress_for_week(date(2025, 1, 9))

        assert report.order_count == 2
        assert report.total_required_quantity == 501

    def test_week_overview(self, populated):
        overview = populated.week_overview(date(2025, 1, 13))

        assert overview[DeliveryDay.SAMEDI].order_count == 1
        assert overview[DeliveryDay.MERCREDI].order_count == 0

    def test_summary_honours_filters(self, populated):
        week = populated.product_summary(week=None, day=DeliveryDay.SAMEDI)

        assert len(week) == 1
        assert week[0].total_quantity == pytest.approx(3)

    def test_set_product_quantity_through_the_service(self, populated):
        writes = populated.set_product_quantity("steak-kg", 1, delivery_date=date(2025, 1, 11))

        assert writes == 2
        group = populated.product_group("steak-kg", delivery_date=date(2025, 1, 11))
        assert group.total_produced == pytest.approx(1)
        assert group.is_complete

    def test_mark_product_complete_and_incomplete(self, populated):
        assert populated.mark_product_complete("steak-kg") == 3
        assert all(group.is_complete for group in populated.product_summary())

        assert populated.mark_product_incomplete("steak-kg") == 3
        assert populated.product_summary()[0].total_produced == 0

    def test_unknown_group(self, populated):
        with pytest.raises(RecordNotFoundError) as exc_info:
            populated.mark_product_complete("agneau-kg")

        assert str(exc_info.value) == GROUP_NOT_FOUND

    def test_line_item_removed_during_bulk_update(self, populated, monkeypatch):
        """A line missing at write time is reported with the French message"""
        group = populated.product_group("steak-kg")
        populated.orders.remove(group.contributions[0].order_id)
        monkeypatch.setattr(populated, "product_group", lambda key, **filters: group)

        with pytest.raises(RecordNotFoundError) as exc_info:
            populated.mark_product_complete("steak-kg")

        assert str(exc_info.value) == LINE_ITEM_NOT_FOUND

    def test_infinite_custom_total_is_rejected(self, populated):
        with pytest.raises(RecordValidationError):
            populated.set_product_quantity("steak-kg", float("inf"))

        assert populated.product_summary()[0].total_produced == 0
