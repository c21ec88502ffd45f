from decimal import Decimal

from stockroom.core.errors import IncompatibleUnit
from stockroom.schemas.inventory import Unit

# Factor to the base unit of each dimension: g for weight, ml for volume, pieces for count
UNIT_CONVERSIONS = {
    Unit.KG: ("weight", Decimal("1000")),
    Unit.G: ("weight", Decimal("1")),
    Unit.L: ("volume", Decimal("1000")),
    Unit.ML: ("volume", Decimal("1")),
    Unit.PIECES: ("count", Decimal("1")),
}


def convert(quantity: Decimal, from_unit: Unit, to_unit: Unit, product_id: str = "") -> Decimal:
    """Converts a recipe quantity into the unit the product is stocked in."""
    from_unit, to_unit = Unit(from_unit), Unit(to_unit)
    if from_unit == to_unit:
        return quantity
    from_dim, from_factor = UNIT_CONVERSIONS[from_unit]
    to_dim, to_factor = UNIT_CONVERSIONS[to_unit]
    if from_dim != to_dim:
        raise IncompatibleUnit(from_unit.value, to_unit.value, product_id)
    return quantity * from_factor / to_factor
