from decimal import Decimal
from typing import Any, Dict, Optional


class InventoryError(ValueError):
    """Base class for every rejected inventory operation.

    Each subclass carries an error ``code`` and a ``details`` dict so the HTTP
    layer can render it without knowing the concrete type.
    """
    code = "inventory_error"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InsufficientStock(InventoryError):
    code = "insufficient_stock"
    status_code = 409

    def __init__(self, product_id: str, outlet_id: str, available: Decimal, requested: Decimal):
        self.product_id = product_id
        self.outlet_id = outlet_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_id} at outlet {outlet_id}. "
            f"Requested: {requested}, Available: {available}",
            details={
                "product_id": product_id,
                "outlet_id": outlet_id,
                "available": str(available),
                "requested": str(requested),
            },
        )


class UnknownReference(InventoryError):
    code = "not_found"
    status_code = 404
    kind = "record"

    def __init__(self, ref_id: str):
        self.ref_id = ref_id
        super().__init__(f"{self.kind.capitalize()} {ref_id} not found.", details={f"{self.kind.replace(' ', '_')}_id": ref_id})


class UnknownProduct(UnknownReference):
    code = "unknown_product"
    kind = "product"


class UnknownOutlet(UnknownReference):
    code = "unknown_outlet"
    kind = "outlet"


class UnknownMenuItem(UnknownReference):
    code = "unknown_menu_item"
    kind = "menu item"


class UnknownRecord(UnknownReference):
    """Orders, purchase orders, hygiene logs and audits looked up by id."""
    code = "unknown_record"


class InvalidQuantity(InventoryError):
    code = "invalid_quantity"

    def __init__(self, quantity: Any, field: str = "quantity"):
        self.quantity = quantity
        super().__init__(f"{field} must be greater than zero, got {quantity}.", details={field: str(quantity)})


class IncompatibleUnit(InventoryError):
    code = "incompatible_unit"

    def __init__(self, from_unit: str, to_unit: str, product_id: str = ""):
        self.from_unit = from_unit
        self.to_unit = to_unit
        super().__init__(
            f"Cannot convert '{from_unit}' to '{to_unit}' for product '{product_id}'.",
            details={"from_unit": from_unit, "to_unit": to_unit, "product_id": product_id},
        )


class InvalidTransfer(InventoryError):
    code = "invalid_transfer"


class InvalidStateTransition(InventoryError):
    code = "invalid_state"
    status_code = 409


class RestorationMismatch(InventoryError):
    """A deduction plan no longer matches the batches it references."""
    code = "restoration_mismatch"
    status_code = 409


class PermissionDenied(InventoryError):
    code = "permission_denied"
    status_code = 403
