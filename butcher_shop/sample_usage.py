"""Demonstration script for the butcher shop order book."""

from __future__ import annotations

from datetime import date
from pprint import pprint

from . import DeliveryDay, ShopService, Unit, upcoming_weeks


def main() -> None:
    shop = ShopService()

    # Catalogue
    shop.create_product("Entrecôte", Unit.KILOGRAM)
    shop.create_product("Chair à saucisse", Unit.GRAM)
    report = shop.import_products_csv(
        "nom,unite\n"
        "Saucisse de Toulouse,piece\n"
        "Jambon blanc,slice\n"
        "entrecôte,kg\n"
    )
    print(f"Import: {report.imported} produits ajoutés, {report.skipped} ignorés")

    weeks = upcoming_weeks(date.today())
    for week in weeks:
        print(week.label)
    current = weeks[0]

    # Commandes
    martin = shop.create_order_for_week(
        current.start_date,
        DeliveryDay.VENDREDI,
        customer_name="Mme Martin",
        customer_phone="06 12 34 56 78",
        items=[
            {"name": "Entrecôte", "quantity": 1.2, "unit": "kg"},
            {"name": "Chair à saucisse", "quantity": 500, "unit": "g"},
        ],
    )
    shop.create_order_for_week(
        current.start_date,
        DeliveryDay.VENDREDI,
        customer_name="M. Durand",
        customer_phone="06 98 76 54 32",
        items=[
            {"name": "Chair à saucisse", "quantity": 1, "unit": "kg"},
            {"name": "Saucisse de Toulouse", "quantity": 6, "unit": "piece"},
        ],
    )

    # Production
    shop.set_line_item_produced(martin.id, martin.items[0].id, 1.2)
    shop.set_product_quantity("chair à saucisse-kg", 0.75, day=DeliveryDay.VENDREDI)

    print("\nRécapitulatif par produit:")
    for group in shop.product_summary(day=DeliveryDay.VENDREDI):
        print(
            f"  {group.name}: {group.total_produced:.2f} / {group.total_quantity:.2f} "
            f"{group.unit.value} ({group.progress}%)"
        )
        for contribution in group.contributions:
            print(
                f"    - {contribution.customer_name}: "
                f"{contribution.produced:.2f} / {contribution.quantity:.2f}"
            )

    print("\nAvancement du vendredi:")
    pprint(shop.progress_for_day(DeliveryDay.VENDREDI, week=current).as_dict())

    print("\nVue de la semaine:")
    for day, day_report in shop.week_overview(current.start_date).items():
        print(f"  {day.label}: {day_report.progress_percentage}% ({day_report.order_count} commandes)")


if __name__ == "__main__":
    main()
