# scripts/seed_data.py
import logging
from datetime import timedelta
from decimal import Decimal
from stockroom.schemas.inventory import Outlet, Product, Unit
from stockroom.schemas.order import MenuIngredient, MenuItem
from stockroom.services.kitchen import Kitchen, build_kitchen

log = logging.getLogger("stockroom.seed")


def seed(kitchen: Kitchen) -> Kitchen:
    """Demo outlets, catalog, recipes and opening stock for local runs."""
    central = kitchen.outlets.add(Outlet(id="central", name="Central Kitchen", type="cloud_kitchen"))
    cafe = kitchen.outlets.add(Outlet(id="cafe", name="Station Road Cafe", type="qsr"))

    paneer = kitchen.products.add(Product(
        id="paneer", name="Paneer", category="dairy", unit=Unit.KG, is_perishable=True,
        min_stock_threshold=Decimal("5"), auto_reorder_quantity=Decimal("20"),
    ))
    rice = kitchen.products.add(Product(
        id="rice", name="Basmati Rice", category="grains", unit=Unit.KG,
        min_stock_threshold=Decimal("10"), auto_reorder_quantity=Decimal("50"),
    ))
    wraps = kitchen.products.add(Product(
        id="wraps", name="Wheat Wraps", category="bakery", unit=Unit.PIECES, is_perishable=True,
        min_stock_threshold=Decimal("40"), auto_reorder_quantity=Decimal("200"),
    ))

    kitchen.menu.add(MenuItem(
        id="paneer-wrap", name="Paneer Wrap", category="wraps",
        ingredients=[
            MenuIngredient(product_id=paneer.id, quantity=Decimal("120"), unit=Unit.G),
            MenuIngredient(product_id=wraps.id, quantity=Decimal("1"), unit=Unit.PIECES),
        ],
        cost_per_plate=Decimal("62.00"), selling_price=Decimal("149.00"),
    ))
    kitchen.menu.add(MenuItem(
        id="chili-paneer-rice", name="Chili Paneer Rice", category="bowls",
        ingredients=[
            MenuIngredient(product_id=paneer.id, quantity=Decimal("150"), unit=Unit.G),
            MenuIngredient(product_id=rice.id, quantity=Decimal("200"), unit=Unit.G),
        ],
        cost_per_plate=Decimal("78.00"), selling_price=Decimal("199.00"),
    ))

    today = kitchen.clock().date()
    for outlet in (central, cafe):
        kitchen.movements.receive(paneer.id, outlet.id, Decimal("12"), price=Decimal("320"),
                                  expiry_date=today + timedelta(days=4))
        kitchen.movements.receive(rice.id, outlet.id, Decimal("40"), price=Decimal("95"))
        kitchen.movements.receive(wraps.id, outlet.id, Decimal("150"), price=Decimal("6"),
                                  expiry_date=today + timedelta(days=2))
        kitchen.thresholds.seed_from_catalog(kitchen.products, outlet.id)

    log.info(f"Seeded {len(kitchen.outlets.list())} outlets, {len(kitchen.products.list())} products")
    return kitchen


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    kitchen = seed(build_kitchen())
    for alert in kitchen.monitor.check_low_stock():
        log.info(f"Low stock: {alert.product_id} at {alert.outlet_id}")
    for item in kitchen.monitor.expiry_report():
        log.info(f"{item.product_id} at {item.outlet_id}: {item.status.value} in {item.days_until_expiry} days")
