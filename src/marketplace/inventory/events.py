"""Inventory domain events."""

from protean.fields import DateTime, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="StockLevel")
class StockLevelSet:
    """Available stock for a product was set by an admin or its vendor."""

    __version__ = 1

    product_id = Identifier(required=True)
    available = Integer(required=True)
    previous_available = Integer()
    set_by = Identifier(required=True)
    set_by_role = String(required=True)
    set_at = DateTime(required=True)
