"""Inventory side effects — audit trail for manual stock changes."""

from protean.utils.mixins import handle

from marketplace.domain import marketplace
from marketplace.inventory.events import StockLevelSet
from marketplace.inventory.stock import StockLevel
from marketplace.side_effects import record_audit


@marketplace.event_handler(part_of=StockLevel)
class InventorySideEffects:
    @handle(StockLevelSet)
    def on_stock_level_set(self, event: StockLevelSet) -> None:
        record_audit(
            "STOCK_LEVEL_SET",
            "inventory",
            str(event.set_by),
            event.set_by_role,
            event.product_id,
            "product",
            {"previous_available": event.previous_available, "available": event.available},
        )
