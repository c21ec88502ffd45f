import logging
from decimal import Decimal
from typing import Dict, List, Optional

from stockroom.core.errors import UnknownMenuItem, UnknownOutlet, UnknownProduct
from stockroom.schemas.inventory import Outlet, Product
from stockroom.schemas.order import MenuItem

log = logging.getLogger("stockroom.catalog")


class OutletRegistry:
    def __init__(self, outlets: Optional[List[Outlet]] = None):
        self._outlets: Dict[str, Outlet] = {o.id: o for o in outlets or []}

    def add(self, outlet: Outlet) -> Outlet:
        self._outlets[outlet.id] = outlet
        return outlet

    def get(self, outlet_id: str) -> Outlet:
        outlet = self._outlets.get(outlet_id)
        if outlet is None or not outlet.is_active:
            raise UnknownOutlet(outlet_id)
        return outlet

    def list(self) -> List[Outlet]:
        return list(self._outlets.values())


class ProductCatalog:
    """Products by id. Only the reorder fields change after creation."""

    def __init__(self, products: Optional[List[Product]] = None):
        self._products: Dict[str, Product] = {p.id: p for p in products or []}

    def add(self, product: Product) -> Product:
        self._products[product.id] = product
        return product

    def get(self, product_id: str) -> Product:
        product = self._products.get(product_id)
        if product is None:
            raise UnknownProduct(product_id)
        return product

    def list(self) -> List[Product]:
        return list(self._products.values())

    def update_reorder(
        self,
        product_id: str,
        min_stock_threshold: Optional[Decimal] = None,
        auto_reorder_quantity: Optional[Decimal] = None,
        default_price: Optional[Decimal] = None,
    ) -> Product:
        product = self.get(product_id)
        updates = {
            key: value
            for key, value in (
                ("min_stock_threshold", min_stock_threshold),
                ("auto_reorder_quantity", auto_reorder_quantity),
                ("default_price", default_price),
            )
            if value is not None
        }
        updated = product.model_copy(update=updates)
        self._products[product_id] = updated
        log.info(f"Product {product_id} reorder settings updated: {updates}")
        return updated


class MenuCatalog:
    def __init__(self, menu_items: Optional[List[MenuItem]] = None):
        self._items: Dict[str, MenuItem] = {m.id: m for m in menu_items or []}

    def add(self, menu_item: MenuItem) -> MenuItem:
        self._items[menu_item.id] = menu_item
        return menu_item

    def get(self, menu_item_id: str) -> MenuItem:
        """Returns the active menu item; inactive dishes cannot be ordered."""
        item = self._items.get(menu_item_id)
        if item is None or not item.is_active:
            raise UnknownMenuItem(menu_item_id)
        return item

    def list(self, active_only: bool = False) -> List[MenuItem]:
        return [m for m in self._items.values() if m.is_active or not active_only]
